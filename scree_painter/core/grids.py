"""
Georeferenced raster grids.

This module provides:
- GeoGrid, a regular grid with a north-west origin and square cells
- Sampling (nearest neighbour, bilinear, grayscale pixel lookup)
- Bicubic resampling of grayscale images to a new cell size
- Slope and plan curvature derived from a digital elevation model
- UpdateArea, the optional clip box restricting generation

Rows run from north to south, columns from west to east. Node (col, row)
is located at (west + col * cell_size, north - row * cell_size).
"""

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple

import numpy as np
import structlog
from scipy import ndimage

logger = structlog.get_logger()


class UpdateArea(NamedTuple):
    """Axis-aligned box restricting generation to a sub-region."""
    west: float
    south: float
    east: float
    north: float

    def contains(self, x: float, y: float) -> bool:
        return self.west <= x < self.east and self.south <= y < self.north

    def intersects(self, bounds: Tuple[float, float, float, float]) -> bool:
        """Test against shapely style bounds (minx, miny, maxx, maxy)."""
        minx, miny, maxx, maxy = bounds
        return (
            minx < self.east
            and maxx > self.west
            and miny < self.north
            and maxy > self.south
        )


@dataclass
class GeoGrid:
    """A georeferenced raster of floats or integers."""

    values: np.ndarray
    west: float
    north: float
    cell_size: float
    name: str = ""

    def __post_init__(self):
        if self.values.ndim != 2:
            raise ValueError("Grid values must be a 2D array")
        if self.cell_size <= 0:
            raise ValueError("Grid cell size must be positive")

    @classmethod
    def from_array(cls, values, west: float, north: float, cell_size: float,
                   dtype=np.float32, name: str = "") -> "GeoGrid":
        return cls(np.asarray(values, dtype=dtype).copy(), float(west),
                   float(north), float(cell_size), name)

    @property
    def rows(self) -> int:
        return self.values.shape[0]

    @property
    def cols(self) -> int:
        return self.values.shape[1]

    @property
    def east(self) -> float:
        return self.west + (self.cols - 1) * self.cell_size

    @property
    def south(self) -> float:
        return self.north - (self.rows - 1) * self.cell_size

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return (self.west, self.south, self.east, self.north)

    def copy(self) -> "GeoGrid":
        return GeoGrid(self.values.copy(), self.west, self.north, self.cell_size, self.name)

    def min_max(self) -> Tuple[float, float]:
        return float(np.nanmin(self.values)), float(np.nanmax(self.values))

    def col_row(self, x: float, y: float) -> Tuple[int, int]:
        """Column and row of the node at or to the north-west of (x, y)."""
        return (int((x - self.west) / self.cell_size),
                int((self.north - y) / self.cell_size))

    def nearest_neighbor(self, x: float, y: float) -> float:
        col = int((x - self.west) / self.cell_size + 0.5)
        row = int((self.north - y) / self.cell_size + 0.5)
        if col < 0 or col >= self.cols or row < 0 or row >= self.rows:
            return math.nan
        return float(self.values[row, col])

    def gray_at(self, x: float, y: float) -> int:
        """Gray value of the image pixel covering (x, y), -1 outside the image."""
        col = math.floor((x - self.west) / self.cell_size)
        row = math.floor((self.north - y) / self.cell_size)
        if col < 0 or col >= self.cols or row < 0 or row >= self.rows:
            return -1
        return int(self.values[row, col])

    def bilinear(self, x: float, y: float) -> float:
        """
        Bilinear interpolation between the four nodes surrounding (x, y).

        Returns NaN outside the grid and where one of the four nodes is
        missing along the south or east border.
        """
        fx = (x - self.west) / self.cell_size
        fy = (self.north - y) / self.cell_size
        if fx < 0 or fy < 0:
            return math.nan
        col = int(fx)
        row = int(fy)
        if col >= self.cols or row >= self.rows:
            return math.nan
        rel_x = fx - col
        rel_y = fy - row

        v = self.values
        top_left = float(v[row, col])
        top_right = float(v[row, col + 1]) if col + 1 < self.cols else math.nan
        if row + 1 < self.rows:
            bottom_left = float(v[row + 1, col])
            bottom_right = float(v[row + 1, col + 1]) if col + 1 < self.cols else math.nan
        else:
            bottom_left = bottom_right = math.nan

        # exact node hits do not need the missing neighbours
        if rel_x == 0 and rel_y == 0:
            return top_left

        top = top_left + (top_right - top_left) * rel_x if rel_x else top_left
        bottom = bottom_left + (bottom_right - bottom_left) * rel_x if rel_x else bottom_left
        return top + (bottom - top) * rel_y if rel_y else top

    def gradient(self, x: float, y: float) -> Tuple[float, float]:
        """Central difference gradient (dz/dx, dz/dy) from bilinear samples one cell apart."""
        d = self.cell_size
        w = self.bilinear(x - d, y)
        e = self.bilinear(x + d, y)
        s = self.bilinear(x, y - d)
        n = self.bilinear(x, y + d)
        return (e - w) / (2 * d), (n - s) / (2 * d)

    def slope(self, x: float, y: float) -> float:
        """Slope at (x, y) in radians."""
        gx, gy = self.gradient(x, y)
        return math.atan(math.hypot(gx, gy))

    def aspect(self, x: float, y: float) -> float:
        """Direction of steepest ascent in radians, counter-clockwise from east."""
        gx, gy = self.gradient(x, y)
        return math.atan2(gy, gx)

    def resampled(self, cell_size: float) -> "GeoGrid":
        """
        Resample a grayscale image to a new cell size with bicubic interpolation.

        The north-west corner is kept. Values are rounded and clipped to
        0..255 and stored as integers, so the copy can be dithered in place.

        Args:
            cell_size: Cell size of the resampled grid

        Returns:
            New integer GeoGrid
        """
        if cell_size <= 0:
            raise ValueError("Cell size must be positive")
        width = self.cols * self.cell_size
        height = self.rows * self.cell_size
        new_cols = max(1, int(round(width / cell_size)))
        new_rows = max(1, int(round(height / cell_size)))
        zoom = (new_rows / self.rows, new_cols / self.cols)
        resampled = ndimage.zoom(self.values.astype(np.float64), zoom, order=3,
                                 mode="nearest", grid_mode=True)
        resampled = np.clip(np.rint(resampled), 0, 255).astype(np.int32)
        logger.debug("Resampled grid", name=self.name, cols=new_cols, rows=new_rows,
                     cell_size=cell_size)
        return GeoGrid(resampled, self.west, self.north, cell_size, self.name)


def _neighborhood(values: np.ndarray):
    """The nine 3x3 neighbourhood planes z1..z9 with replicated edges."""
    p = np.pad(values.astype(np.float64), 1, mode="edge")
    rows, cols = values.shape
    return [p[r:r + rows, c:c + cols] for r in range(3) for c in range(3)]


def slope_grid(dem: GeoGrid) -> GeoGrid:
    """Slope in radians for every interior node of the DEM, borders are NaN."""
    v = dem.values.astype(np.float64)
    slope = np.full(v.shape, np.nan)
    dh = v[1:-1, 2:] - v[1:-1, :-2]
    dv = v[:-2, 1:-1] - v[2:, 1:-1]
    slope[1:-1, 1:-1] = np.arctan(np.hypot(dh, dv) / (2.0 * dem.cell_size))
    return GeoGrid(slope.astype(np.float32), dem.west, dem.north, dem.cell_size, "slope")


def plan_curvature(dem: GeoGrid) -> GeoGrid:
    """
    Plan curvature of a DEM (Zevenbergen and Thorne).

    Positive values mark laterally concave terrain, i.e. valleys and
    gullies where flow converges. Border nodes use replicated edge values.
    Flat nodes have zero curvature.

    Args:
        dem: Digital elevation model

    Returns:
        Curvature grid with the geometry of the DEM
    """
    z1, z2, z3, z4, z5, z6, z7, z8, z9 = _neighborhood(dem.values)
    L = dem.cell_size

    d = ((z4 + z6) / 2 - z5) / L ** 2
    e = ((z2 + z8) / 2 - z5) / L ** 2
    f = (-z1 + z3 + z7 - z9) / (4 * L ** 2)
    g = (z6 - z4) / (2 * L)
    h = (z2 - z8) / (2 * L)

    denom = g * g + h * h
    curvature = np.zeros_like(z5)
    sloped = denom > 0
    curvature[sloped] = (
        2 * (d * h * h + e * g * g - f * g * h)[sloped] / denom[sloped]
    )

    logger.info("Plan curvature computed", cols=dem.cols, rows=dem.rows)
    return GeoGrid(curvature.astype(np.float32), dem.west, dem.north, dem.cell_size,
                   "plan curvature")
