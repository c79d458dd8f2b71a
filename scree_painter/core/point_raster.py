"""
Binary occupancy raster for fast circle overlap tests.

A PointRaster covers the bounding box of one polygon. Placed stones are
burnt into the raster as discs, and a candidate stone is tested against
the cells within its radius only. The cost of both operations depends on
the radius in cells, not on the number of stones already placed.
"""

import math
from typing import Optional, Tuple

import numpy as np

# The cell size of a PointRaster is the maximum stone diameter divided by this value
REL_POINT_RASTER_RESOLUTION = 20


class PointRaster:
    """Occupancy raster over a bounding box."""

    def __init__(self, bounds: Tuple[float, float, float, float], cell_size: float):
        """
        Initialize an empty raster.

        Args:
            bounds: (minx, miny, maxx, maxy) of the area to cover
            cell_size: Size of a raster cell in ground units
        """
        if cell_size <= 0:
            raise ValueError("Cell size must be positive")
        minx, miny, maxx, maxy = bounds
        self.west = minx
        self.north = maxy
        self.cell_size = cell_size
        self.cols = max(1, math.ceil((maxx - minx) / cell_size))
        self.rows = max(1, math.ceil((maxy - miny) / cell_size))
        self.cells = np.zeros((self.rows, self.cols), dtype=bool)

    def _disc(self, x: float, y: float, rad: float) -> Optional[Tuple[slice, slice, np.ndarray]]:
        """
        Window and disc mask of the cells covered by a circle.

        A cell is covered when its center lies within ``rad`` of (x, y). The
        cell containing (x, y) is always covered.
        """
        cs = self.cell_size
        center_col = math.floor((x - self.west) / cs)
        center_row = math.floor((self.north - y) / cs)
        radi = max(0, math.ceil(rad / cs))

        r0 = max(center_row - radi, 0)
        r1 = min(center_row + radi + 1, self.rows)
        c0 = max(center_col - radi, 0)
        c1 = min(center_col + radi + 1, self.cols)
        if r0 >= r1 or c0 >= c1:
            return None

        dx = self.west + (np.arange(c0, c1) + 0.5) * cs - x
        dy = self.north - (np.arange(r0, r1) + 0.5) * cs - y
        disc = dx[np.newaxis, :] ** 2 + dy[:, np.newaxis] ** 2 <= rad * rad

        if r0 <= center_row < r1 and c0 <= center_col < c1:
            disc[center_row - r0, center_col - c0] = True
        return slice(r0, r1), slice(c0, c1), disc

    def add_circle(self, x: float, y: float, rad: float) -> None:
        """Mark all cells covered by the circle as occupied."""
        window = self._disc(x, y, rad)
        if window is None:
            return
        rows, cols, disc = window
        self.cells[rows, cols] |= disc

    def is_circle_overlaying(self, x: float, y: float, rad: float) -> bool:
        """True if any occupied cell is covered by the circle."""
        window = self._disc(x, y, rad)
        if window is None:
            return False
        rows, cols, disc = window
        return bool(np.any(self.cells[rows, cols] & disc))

    @property
    def occupied_count(self) -> int:
        return int(self.cells.sum())
