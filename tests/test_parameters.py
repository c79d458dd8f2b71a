"""Tests for generation parameters and their text format."""

import pytest
from pydantic import ValidationError

from scree_painter.config.parameters import ScreeParameters
from scree_painter.core.errors import ParameterFormatError
from scree_painter.core.gradation_curve import GradationCurve


def remove_entry(lines, label):
    """Remove a label line and the value line following it."""
    i = lines.index(label)
    del lines[i:i + 2]


class TestParameterModel:
    """Test defaults and validation."""

    def test_defaults(self):
        p = ScreeParameters()
        assert p.stone_max_diameter == 5.5
        assert p.stone_min_corner_count == 4
        assert p.stone_max_corner_count == 8
        assert p.line_min_distance == 55
        assert p.shading_gradation_curve1 == GradationCurve()

    def test_derived_radii(self):
        p = ScreeParameters(stone_max_diameter=10, stone_min_diameter_scale=0.5)
        assert p.stone_max_radius == 5
        assert p.stone_min_radius == 2.5

    def test_corner_counts_must_be_ordered(self):
        with pytest.raises(ValidationError):
            ScreeParameters(stone_min_corner_count=9, stone_max_corner_count=5)

    def test_at_least_three_corners(self):
        with pytest.raises(ValidationError):
            ScreeParameters(stone_min_corner_count=2)

    def test_positive_diameter(self):
        with pytest.raises(ValidationError):
            ScreeParameters(stone_max_diameter=0)

    def test_frozen(self):
        p = ScreeParameters()
        with pytest.raises(ValidationError):
            p.stone_max_diameter = 3


class TestTextFormat:
    """Test reading and writing the Scree Painter text format."""

    @pytest.fixture
    def params(self):
        return ScreeParameters(
            stone_max_diameter=4.25,
            stone_min_diameter_scale=0.33,
            stone_min_distance_fraction=0.1,
            stone_radius_variability_perc=12.5,
            stone_min_corner_count=5,
            stone_max_corner_count=7,
            shading_gradation_curve1=GradationCurve([(0, 0), (0.4, 0.7), (1, 1)]),
            shading_gradation_curve2=GradationCurve([(0, 0.2), (1, 0.8)]),
            line_gradation_curve=GradationCurve([(0, 1), (1, 0)]),
            line_size_scale_bottom=3.5,
            line_to_point_dist_fraction=1.1,
            line_min_distance=40,
            line_min_curvature=0.0025,
        )

    def test_header(self, params):
        assert params.to_string().startswith("Scree Painter Format 1.1\n")

    def test_integral_values_without_fraction(self, params):
        lines = params.to_string().splitlines()
        assert lines[lines.index("Stones: Minimum Corners") + 1] == "5"
        assert lines[lines.index("Lines: Minimum Distance between Lines") + 1] == "40"

    def test_round_trip(self, params):
        assert ScreeParameters.from_string(params.to_string()) == params

    def test_round_trip_with_windows_line_breaks(self, params):
        assert ScreeParameters.from_string(params.to_string("\r\n")) == params

    def test_version_1_0_keeps_defaults(self, params):
        lines = params.to_string().splitlines()
        lines[0] = "Scree Painter Format 1.0"
        remove_entry(lines, "Lines: Bottom Stone Size Scale")
        remove_entry(lines, "Lines: Distance between Stones on Lines and other Stones")

        parsed = ScreeParameters.from_string("\n".join(lines))
        defaults = ScreeParameters()
        assert parsed.line_size_scale_bottom == defaults.line_size_scale_bottom
        assert parsed.line_to_point_dist_fraction == defaults.line_to_point_dist_fraction
        assert parsed.stone_max_diameter == 4.25
        assert parsed.line_min_curvature == 0.0025

    def test_missing_identifier(self):
        with pytest.raises(ParameterFormatError):
            ScreeParameters.from_string("Some other format 1.1\n")

    def test_missing_version(self):
        with pytest.raises(ParameterFormatError):
            ScreeParameters.from_string("Scree Painter Format\n")

    def test_truncated_document(self, params):
        text = "\n".join(params.to_string().splitlines()[:10])
        with pytest.raises(ParameterFormatError):
            ScreeParameters.from_string(text)

    def test_invalid_number(self, params):
        lines = params.to_string().splitlines()
        lines[lines.index("Stones: Maximum Diameter") + 1] = "large"
        with pytest.raises(ParameterFormatError):
            ScreeParameters.from_string("\n".join(lines))

    def test_out_of_range_value(self, params):
        lines = params.to_string().splitlines()
        lines[lines.index("Stones: Maximum Diameter") + 1] = "-3"
        with pytest.raises(ParameterFormatError):
            ScreeParameters.from_string("\n".join(lines))

    def test_format_error_is_value_error(self):
        with pytest.raises(ValueError):
            ScreeParameters.from_string("")

    def test_fallback_to_defaults(self):
        assert ScreeParameters.from_string_or_default("garbage") == ScreeParameters()
