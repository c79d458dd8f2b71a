"""
Raster primitives and scree generation.

Modules depending on ScreeParameters (stones, fall_lines, scree_generator,
generator_manager) are imported from their own modules.
"""

from .errors import (ScreeError, ParameterFormatError, MissingInputError,
                     ScreeGenerationError, ScreeMemoryError)
from .gradation_curve import GradationCurve
from .grids import GeoGrid, UpdateArea, plan_curvature, slope_grid
from .point_raster import PointRaster
from .fast_contains import FastContainsPolygon

__all__ = ['ScreeError', 'ParameterFormatError', 'MissingInputError',
           'ScreeGenerationError', 'ScreeMemoryError', 'GradationCurve',
           'GeoGrid', 'UpdateArea', 'plan_curvature', 'slope_grid',
           'PointRaster', 'FastContainsPolygon']
