"""Polygon with a rasterized point-in-polygon test."""

import math
from typing import Optional, Sequence, Tuple

import numpy as np
import shapely
from shapely.geometry import Polygon

# The containment raster is this many times finer than the grid to dither
POINT_IN_POLYGON_TOLERANCE = 10.0


class FastContainsPolygon:
    """
    Wraps a static polygon with a fast but approximate contains test.

    ``prepare`` burns the polygon interior into a binary raster once, after
    which ``contains`` is a single array lookup. Points closer to the
    outline than about one raster cell may be misclassified.
    """

    def __init__(self, polygon: Polygon):
        self.polygon = polygon
        self.bounds: Tuple[float, float, float, float] = polygon.bounds
        self.cell_size: Optional[float] = None
        self.mask: Optional[np.ndarray] = None

    def prepare(self, cell_size: float) -> None:
        """Rasterize the polygon interior at the given cell size."""
        if cell_size <= 0:
            raise ValueError("Cell size must be positive")
        minx, miny, maxx, maxy = self.bounds
        cols = max(1, math.ceil((maxx - minx) / cell_size))
        rows = max(1, math.ceil((maxy - miny) / cell_size))

        # a cell is inside when its center is inside
        xs = minx + (np.arange(cols) + 0.5) * cell_size
        ys = maxy - (np.arange(rows) + 0.5) * cell_size
        xx, yy = np.meshgrid(xs, ys)
        self.mask = shapely.contains_xy(self.polygon, xx, yy)
        self.cell_size = cell_size

    def contains(self, x: float, y: float) -> bool:
        if self.mask is None:
            raise RuntimeError("prepare() must be called before contains()")
        c = math.floor((x - self.bounds[0]) / self.cell_size)
        r = math.floor((self.bounds[3] - y) / self.cell_size)
        rows, cols = self.mask.shape
        return 0 <= r < rows and 0 <= c < cols and bool(self.mask[r, c])

    def contains_any(self, coords: Sequence[Sequence[float]]) -> bool:
        """True if at least one vertex of ``coords`` is inside the polygon."""
        return any(self.contains(x, y) for x, y in coords)
