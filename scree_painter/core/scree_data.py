"""Input rasters, polygons and generated output of a scree generation run."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import structlog
from shapely.geometry import Polygon

from .fall_lines import GullyLine
from .grids import GeoGrid, plan_curvature
from .stones import Stone

logger = structlog.get_logger()


@dataclass
class ScreeData:
    """
    Everything a generation run reads and writes.

    Grayscale images (shading, masks, reference image) hold values 0..255.
    The obstacles mask is white where stones are allowed, the large stones
    mask is non-white where stones are enlarged, and the gradation mask
    blends between the two shading gradation curves (white: curve 1,
    black: curve 2). The plan curvature grid is derived from the DEM.
    """
    dem: Optional[GeoGrid] = None
    shading: Optional[GeoGrid] = None
    obstacles_mask: Optional[GeoGrid] = None
    large_stone_mask: Optional[GeoGrid] = None
    gradation_mask: Optional[GeoGrid] = None
    reference_image: Optional[GeoGrid] = None  # display only
    line_density_grid: Optional[GeoGrid] = None
    curvature_grid: Optional[GeoGrid] = None
    polygons: List[Polygon] = field(default_factory=list)

    # output
    stones: List[Stone] = field(default_factory=list)
    gully_lines: List[GullyLine] = field(default_factory=list)
    fixed_scree_lines: bool = False  # gully lines are supplied, not extracted

    def __post_init__(self):
        if self.dem is not None and self.curvature_grid is None:
            self.curvature_grid = plan_curvature(self.dem)

    def set_dem(self, dem: GeoGrid) -> None:
        """Replace the DEM and derive its plan curvature."""
        self.dem = dem
        self.curvature_grid = plan_curvature(dem)

    def set_fixed_gully_lines(self, lines: Sequence) -> None:
        """Use externally supplied gully lines instead of extracting them."""
        self.gully_lines = [
            line if isinstance(line, GullyLine) else GullyLine(np.asarray(line))
            for line in lines
        ]
        self.fixed_scree_lines = True
        logger.info("Fixed gully lines set", count=len(self.gully_lines))

    def clear_output(self) -> None:
        """Remove stones, and gully lines unless they are fixed."""
        self.stones = []
        if not self.fixed_scree_lines:
            self.gully_lines = []

    @property
    def has_dem(self) -> bool:
        return self.dem is not None

    @property
    def has_shading(self) -> bool:
        return self.shading is not None

    @property
    def has_obstacles_mask(self) -> bool:
        return self.obstacles_mask is not None

    @property
    def has_large_stone_mask(self) -> bool:
        return self.large_stone_mask is not None

    @property
    def has_gradation_mask(self) -> bool:
        return self.gradation_mask is not None

    @property
    def has_line_density(self) -> bool:
        return self.line_density_grid is not None

    @property
    def has_polygons(self) -> bool:
        return len(self.polygons) > 0
