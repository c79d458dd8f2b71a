"""Tests for gradation curves and lookup tables."""

import numpy as np
import pytest

from scree_painter.core.gradation_curve import GradationCurve, lookup, spline


class TestLookupTable:
    """Test conversion of curves to lookup tables."""

    def test_identity_curve(self):
        table = GradationCurve().make_table()
        np.testing.assert_array_equal(table, np.arange(256))

    def test_build_table_alias(self):
        curve = GradationCurve([(0, 0), (0.5, 0.8), (1, 1)])
        np.testing.assert_array_equal(curve.build_table(), curve.make_table())

    def test_inverted_curve(self):
        table = GradationCurve([(0, 1), (1, 0)]).make_table()
        assert table[0] == 255
        assert table[255] == 0
        assert np.all(np.diff(table) <= 0)

    def test_brightening_curve(self):
        table = GradationCurve([(0, 0), (0.5, 0.75), (1, 1)]).make_table()
        assert table[128] > 128
        assert table[64] < table[128] < table[192]

    def test_table_values_in_byte_range(self):
        table = GradationCurve([(0, 0.2), (0.3, 1), (0.6, 0), (1, 0.9)]).make_table()
        assert table.min() >= 0
        assert table.max() <= 255

    def test_apply_clamps_out_of_range_values(self):
        values = np.array([[-5, 300, 10]], dtype=np.int32)
        GradationCurve().apply_to_grid(values)
        np.testing.assert_array_equal(values, [[0, 255, 10]])

    def test_lookup(self):
        table = np.arange(256)[::-1]
        np.testing.assert_array_equal(lookup(table, np.array([0, 255, 1000])), [255, 0, 0])

    def test_spline_needs_four_knots(self):
        with pytest.raises(ValueError):
            spline(0.5, [0, 1, 1])


class TestCurveEditing:
    """Test knot editing and text conversion."""

    def test_default_knots(self):
        assert GradationCurve().knots == [(0.0, 0.0), (1.0, 1.0)]

    def test_add_knot_keeps_order(self):
        curve = GradationCurve()
        index = curve.add_knot(0.5, 0.3)
        assert index == 1
        assert curve.x == [0.0, 0.5, 1.0]
        assert curve.y == [0.0, 0.3, 1.0]

    def test_duplicate_knot_is_ignored(self):
        curve = GradationCurve([(0, 0), (0.5, 0.3), (1, 1)])
        assert curve.add_knot(0.5, 0.3) == 1
        assert len(curve.knots) == 3

    def test_remove_knot(self):
        curve = GradationCurve([(0, 0), (0.5, 0.3), (1, 1)])
        curve.remove_knot(1)
        assert curve.knots == [(0.0, 0.0), (1.0, 1.0)]

    def test_never_below_two_knots(self):
        curve = GradationCurve()
        curve.remove_knot(0)
        assert len(curve.knots) == 2

    def test_copy_is_independent(self):
        curve = GradationCurve()
        copy = curve.copy()
        copy.add_knot(0.5, 0.9)
        assert copy != curve
        assert len(curve.knots) == 2

    def test_string_round_trip(self):
        curve = GradationCurve([(0, 0.1), (0.25, 0.4), (0.7, 0.65), (1, 1)])
        assert GradationCurve.from_string(curve.to_string()) == curve

    def test_from_string_with_too_few_knots(self):
        assert GradationCurve.from_string("0.5 0.5") == GradationCurve()

    def test_from_string_with_odd_count(self):
        with pytest.raises(ValueError):
            GradationCurve.from_string("0 0 1")
