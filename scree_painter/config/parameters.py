"""
Scree generation parameters.

Parameters are fixed for the duration of a run. They can be written to and
read from the Scree Painter text format: a header line with the format
version, followed by pairs of a label line and a value line. Version 1.0
documents lack the bottom stone size scale and the distance between line
stones and other stones; both keep their defaults when a 1.0 document is
read.
"""

import re
from typing import List

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..core.errors import ParameterFormatError
from ..core.gradation_curve import GradationCurve

logger = structlog.get_logger()

FILE_FORMAT_IDENTIFIER = "Scree Painter Format"
FILE_FORMAT_VERSION = "1.1"

# (label, field name, minimum format version)
_TEXT_FIELDS = [
    ("Stones: Minimum Distance Fraction", "stone_min_distance_fraction", 1.0),
    ("Stones: Minimum Distance Fraction to Obstructing Elements",
     "stone_min_obstacle_distance_fraction", 1.0),
    ("Stones: Maximum Diameter", "stone_max_diameter", 1.0),
    ("Stones: Relative Minimum Diameter", "stone_min_diameter_scale", 1.0),
    ("Stones: Radius Variability", "stone_radius_variability_perc", 1.0),
    ("Stones: Angular Variability", "stone_angle_variability_perc", 1.0),
    ("Stones: Maximum Scale for Large Stones", "stone_large_max_scale", 1.0),
    ("Stones: Minimum Corners", "stone_min_corner_count", 1.0),
    ("Stones: Maximum Corners", "stone_max_corner_count", 1.0),
    ("Stones: Maximum Position Jitter Fraction", "stone_max_pos_jitter_fraction", 1.0),
    ("Stones: Gradation 1", "shading_gradation_curve1", 1.0),
    ("Stones: Gradation 2", "shading_gradation_curve2", 1.0),
    ("Lines: Gradation", "line_gradation_curve", 1.0),
    ("Lines: Distance Fraction between Stones on Lines", "line_stone_dist_fraction", 1.0),
    ("Lines: Top Stone Size Scale", "line_size_scale_top", 1.0),
    ("Lines: Bottom Stone Size Scale", "line_size_scale_bottom", 1.1),
    ("Lines: Distance between Stones on Lines and other Stones",
     "line_to_point_dist_fraction", 1.1),
    ("Lines: Minimum Distance between Lines", "line_min_distance", 1.0),
    ("Lines: Minimum Slope [Degree]", "line_min_slope_degree", 1.0),
    ("Lines: Minimum Length of Lines", "line_min_length_approx", 1.0),
    ("Lines: Minimum Curvature", "line_min_curvature", 1.0),
]


def _format_number(value) -> str:
    """Shortest text that reads back to the same value; integral values without fraction."""
    if isinstance(value, int):
        return str(value)
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


class ScreeParameters(BaseModel):
    """Parameters controlling the size, density and shape of scree."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    # Map
    map_scale: float = Field(default=25000, gt=0, description="Scale denominator of the map")

    # Stones
    stone_max_diameter: float = Field(
        default=5.5, gt=0, description="Diameter of a stone in full shadow [m]"
    )
    stone_min_diameter_scale: float = Field(
        default=0.29, ge=0, le=1,
        description="Diameter of stones in full light relative to the maximum diameter",
    )
    stone_min_distance_fraction: float = Field(
        default=0.09, ge=0, description="White space around stones relative to the maximum diameter"
    )
    stone_min_obstacle_distance_fraction: float = Field(
        default=0.18, ge=0, description="White space between stones and obstacles"
    )
    stone_radius_variability_perc: float = Field(
        default=18, ge=0, le=100, description="Random radius variation [%]"
    )
    stone_angle_variability_perc: float = Field(
        default=28, ge=0, le=100, description="Random variation of corner angles [%]"
    )
    stone_large_max_scale: float = Field(
        default=1.8, ge=1, description="Maximum enlargement of stones on the large stones mask"
    )
    stone_min_corner_count: int = Field(default=4, ge=3, description="Minimum number of corners")
    stone_max_corner_count: int = Field(default=8, ge=3, description="Maximum number of corners")
    stone_max_pos_jitter_fraction: float = Field(
        default=0.36, ge=0, description="Position jitter relative to the maximum diameter"
    )
    shading_gradation_curve1: GradationCurve = Field(
        default_factory=GradationCurve,
        description="Gradation curve applied to the shading before dithering",
    )
    shading_gradation_curve2: GradationCurve = Field(
        default_factory=GradationCurve,
        description="Gradation curve applied where the gradation mask is dark",
    )

    # Gully lines
    line_gradation_curve: GradationCurve = Field(
        default_factory=GradationCurve,
        description="Gradation curve applied to the shading before searching gully lines",
    )
    line_stone_dist_fraction: float = Field(
        default=0.28, ge=0, description="Distance between stones along gully lines"
    )
    line_size_scale_top: float = Field(
        default=1.32, gt=0, description="Enlargement of stones at the top of gully lines"
    )
    line_size_scale_bottom: float = Field(
        default=2, gt=0, description="Enlargement of stones at the bottom of gully lines"
    )
    line_to_point_dist_fraction: float = Field(
        default=1.5, ge=0, description="Distance between line stones and other stones"
    )
    line_min_distance: float = Field(
        default=55, ge=0, description="Minimum distance between neighboring gully lines [m]"
    )
    line_min_length_approx: float = Field(
        default=150, ge=0, description="Minimum length of gully lines [m]"
    )
    line_min_slope_degree: float = Field(
        default=5, ge=0, le=90, description="Lines stop where the terrain is flatter [deg]"
    )
    line_min_curvature: float = Field(
        default=0.001, description="Minimum plan curvature along gully lines"
    )

    @model_validator(mode="after")
    def _check_corner_counts(self):
        if self.stone_min_corner_count > self.stone_max_corner_count:
            raise ValueError("stone_min_corner_count must not exceed stone_max_corner_count")
        return self

    @property
    def stone_max_radius(self) -> float:
        return self.stone_max_diameter / 2

    @property
    def stone_min_radius(self) -> float:
        return self.stone_min_diameter_scale * self.stone_max_diameter / 2

    def to_string(self, line_sep: str = "\n") -> str:
        """
        Serialize to the Scree Painter text format (version 1.1).

        Returns:
            Text that from_string() turns back into equal parameters
        """
        lines = [f"{FILE_FORMAT_IDENTIFIER} {FILE_FORMAT_VERSION}"]
        for label, name, _ in _TEXT_FIELDS:
            value = getattr(self, name)
            lines.append(label)
            if isinstance(value, GradationCurve):
                lines.append(value.to_string())
            else:
                lines.append(_format_number(value))
        return line_sep.join(lines) + line_sep

    @classmethod
    def from_string(cls, text: str) -> "ScreeParameters":
        """
        Parse a document written by to_string().

        Fields that are absent in the document version keep their defaults.
        Label lines are skipped without checking their text.

        Raises:
            ParameterFormatError: If the text is not a Scree Painter document
                or a value cannot be parsed
        """
        if not text.startswith(FILE_FORMAT_IDENTIFIER):
            raise ParameterFormatError("Not a Scree Painter File")

        tokens: List[str] = [t for t in re.split(r"[\r\n]+", text[len(FILE_FORMAT_IDENTIFIER):]) if t]
        try:
            version = float(tokens[0])
        except (IndexError, ValueError) as e:
            raise ParameterFormatError("Missing Scree Painter format version") from e

        values = {}
        pos = 1
        try:
            for label, name, min_version in _TEXT_FIELDS:
                if version < min_version:
                    continue
                # skip the label line
                value_text = tokens[pos + 1]
                pos += 2
                annotation = cls.model_fields[name].annotation
                if annotation is GradationCurve:
                    values[name] = GradationCurve.from_string(value_text)
                elif annotation is int:
                    values[name] = int(value_text)
                else:
                    values[name] = float(value_text)
        except IndexError as e:
            raise ParameterFormatError(f"Incomplete Scree Painter document, missing {label!r}") from e
        except ValueError as e:
            raise ParameterFormatError(f"Invalid value for {label!r}: {e}") from e

        logger.debug("Parameters parsed", version=version, fields=len(values))
        try:
            return cls(**values)
        except ValidationError as e:
            raise ParameterFormatError(f"Parameter out of range: {e}") from e

    @classmethod
    def from_string_or_default(cls, text: str) -> "ScreeParameters":
        """Parse parameter text, falling back to the defaults if it is malformed."""
        try:
            return cls.from_string(text)
        except ParameterFormatError as e:
            logger.warning("Ignoring malformed parameter text", error=str(e))
            return cls()
