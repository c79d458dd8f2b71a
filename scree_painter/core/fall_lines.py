"""
Gully line extraction.

This module implements:
- Fall line tracing on a DEM (steepest ascent to the head of a gully and
  steepest descent from the seed point)
- A binary raster of stroked lines used to keep gully lines apart
- Two pass greedy selection of gully lines inside a polygon
- Selection of fixed, externally supplied gully lines touching a polygon

Lines are traced with a step length of one DEM cell. The up-then-down
search joins the ascent from the seed to the head of the gully with the
descent from the seed, giving a line ordered from top to bottom. A trace
stops where the terrain is flatter than the minimum slope, where the mean
plan curvature along the line drops below the minimum curvature, at the
polygon boundary, or where the terrain stops rising (ascent) or falling
(descent).
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
import shapely
import structlog
from shapely.geometry import LineString, Point

from ..config.parameters import ScreeParameters
from .dithering import dither_seed_points
from .fast_contains import FastContainsPolygon
from .grids import GeoGrid

logger = structlog.get_logger()

# The cell size of the grid used to find seed points and to detect lines that
# are too close is line_min_distance divided by this value.
REL_GULLIES_SEARCH_RESOLUTION = 3.0

# Deflection angles tried when the next step would enter an excluded cell
STEERING_ANGLES = (math.radians(30), -math.radians(30), math.radians(60), -math.radians(60))


class SearchMethod(str, Enum):
    """Direction of fall line searches."""

    DOWN = "down"
    UP_THEN_DOWN = "up_then_down"


@dataclass(eq=False)
class GullyLine:
    """A polyline running from the top to the bottom of a gully."""
    coords: np.ndarray  # (n, 2) vertices
    weight: float = 0.0  # accumulated plan curvature

    def __post_init__(self):
        self.coords = np.asarray(self.coords, dtype=float).reshape(-1, 2)

    @property
    def points_count(self) -> int:
        return len(self.coords)

    @property
    def length(self) -> float:
        if self.points_count < 2:
            return 0.0
        return float(np.sum(np.hypot(*np.diff(self.coords, axis=0).T)))

    def to_line_string(self) -> LineString:
        return LineString(self.coords)


def gully_grid_cell_size(params: ScreeParameters) -> float:
    """Cell size for gully seed dithering and line spacing tests."""
    # line_min_distance can be 0
    d = params.line_min_distance / REL_GULLIES_SEARCH_RESOLUTION
    return max(d, params.stone_max_diameter)


def sort_by_weight(lines: List[GullyLine]) -> None:
    """Order lines by decreasing curvature weight, in place. The sort is stable."""
    lines.sort(key=lambda line: line.weight, reverse=True)


class LineGrid:
    """Binary raster of stroked lines."""

    def __init__(self, cols: int, rows: int, west: float, north: float, cell_size: float):
        self.cols = cols
        self.rows = rows
        self.west = west
        self.north = north
        self.cell_size = cell_size
        self.cells = np.zeros((rows, cols), dtype=bool)

    @classmethod
    def for_bounds(cls, bounds: Tuple[float, float, float, float],
                   cell_size: float) -> Optional["LineGrid"]:
        """Grid covering ``bounds``, None if the bounds are smaller than one cell."""
        minx, miny, maxx, maxy = bounds
        cols = int((maxx - minx) / cell_size)
        rows = int((maxy - miny) / cell_size)
        if cols == 0 or rows == 0:
            return None
        return cls(cols, rows, minx, maxy, cell_size)

    def _stroke(self, coords: np.ndarray, width: float):
        """Window and mask of the cells touched by a line stroked with ``width``."""
        if len(coords) >= 2:
            geom = LineString(coords)
        else:
            geom = Point(coords[0])
        if width > 0:
            geom = geom.buffer(width / 2)

        cs = self.cell_size
        minx, miny, maxx, maxy = geom.bounds
        c0 = max(math.floor((minx - self.west) / cs), 0)
        c1 = min(math.floor((maxx - self.west) / cs) + 1, self.cols)
        r0 = max(math.floor((self.north - maxy) / cs), 0)
        r1 = min(math.floor((self.north - miny) / cs) + 1, self.rows)
        if c0 >= c1 or r0 >= r1:
            return None

        left = self.west + np.arange(c0, c1) * cs
        top = self.north - np.arange(r0, r1) * cs
        xx, yy = np.meshgrid(left, top)
        boxes = shapely.box(xx, yy - cs, xx + cs, yy)
        shapely.prepare(geom)
        mask = shapely.intersects(boxes, geom)
        return slice(r0, r1), slice(c0, c1), mask

    def rasterize(self, line: GullyLine, width: float) -> None:
        stroke = self._stroke(line.coords, width)
        if stroke is not None:
            rows, cols, mask = stroke
            self.cells[rows, cols] |= mask

    def is_adding_causing_overlay(self, line: GullyLine, width: float, add: bool = True) -> bool:
        """
        Test whether a stroked line overlaps lines already in the grid.

        Args:
            line: Line to test
            width: Stroke width
            add: Rasterize the line if it does not overlap

        Returns:
            True if the line overlaps
        """
        stroke = self._stroke(line.coords, width)
        if stroke is None:
            return False
        rows, cols, mask = stroke
        if np.any(self.cells[rows, cols] & mask):
            return True
        if add:
            self.cells[rows, cols] |= mask
        return False

    def is_occupied(self, x: float, y: float) -> bool:
        c = math.floor((x - self.west) / self.cell_size)
        r = math.floor((self.north - y) / self.cell_size)
        return 0 <= r < self.rows and 0 <= c < self.cols and bool(self.cells[r, c])


class FallLineOperator:
    """Traces fall lines on a DEM."""

    def __init__(self, min_slope_degree: float, min_curvature: Optional[float] = None,
                 search_method: SearchMethod = SearchMethod.UP_THEN_DOWN,
                 max_steps: Optional[int] = None):
        """
        Initialize the operator.

        Args:
            min_slope_degree: Lines stop where the terrain is flatter
            min_curvature: Lines stop where the mean plan curvature along the
                line drops below this value. Ignored without a curvature grid.
            search_method: Search down only, or up to the gully head and down
            max_steps: Upper bound on steps per direction, defaults to the
                number of DEM cells
        """
        self.min_slope = math.radians(min_slope_degree)
        self.min_curvature = min_curvature
        self.search_method = search_method
        self.max_steps = max_steps

    def trace(self, dem: GeoGrid, x: float, y: float,
              polygon: Optional[FastContainsPolygon] = None,
              curvature: Optional[GeoGrid] = None,
              exclusion: Optional[LineGrid] = None) -> Optional[GullyLine]:
        """
        Trace a fall line through (x, y).

        Args:
            dem: Digital elevation model
            x, y: Seed point
            polygon: Lines do not leave this polygon
            curvature: Plan curvature grid with the geometry of the DEM
            exclusion: Grid with lines to steer away from

        Returns:
            The line ordered from top to bottom, or None if the seed point is
            unusable
        """
        if not self._is_free(dem, x, y, polygon, exclusion):
            return None

        coords, weight = self._walk(dem, x, y, -1, polygon, curvature, exclusion)
        if self.search_method is SearchMethod.UP_THEN_DOWN:
            up, up_weight = self._walk(dem, x, y, 1, polygon, curvature, exclusion)
            if len(up) > 1:
                # the seed ends the ascent and starts the descent
                weight += up_weight - self._curvature_at(curvature, x, y)
                coords = up[::-1] + coords[1:]
        return GullyLine(np.array(coords), weight)

    def _is_free(self, dem, x, y, polygon, exclusion) -> bool:
        if math.isnan(dem.bilinear(x, y)):
            return False
        if polygon is not None and not polygon.contains(x, y):
            return False
        if exclusion is not None and exclusion.is_occupied(x, y):
            return False
        return True

    def _curvature_at(self, curvature: Optional[GeoGrid], x: float, y: float) -> float:
        if curvature is None:
            return 0.0
        return curvature.bilinear(x, y)

    def _walk(self, dem: GeoGrid, x: float, y: float, direction: int,
              polygon, curvature, exclusion) -> Tuple[List[Tuple[float, float]], float]:
        """
        Follow the gradient uphill (direction 1) or downhill (direction -1).

        Curvature is accumulated into the returned weight, but the walk
        stops once the running mean of the plan curvature over the visited
        points would drop below min_curvature.
        """
        points = [(x, y)]
        check_curvature = curvature is not None and self.min_curvature is not None

        weight = self._curvature_at(curvature, x, y)
        if check_curvature and not weight >= self.min_curvature:
            return points, 0.0

        z = dem.bilinear(x, y)
        step = dem.cell_size
        max_steps = self.max_steps or dem.rows * dem.cols
        for _ in range(max_steps):
            gx, gy = dem.gradient(x, y)
            grad = math.hypot(gx, gy)
            if math.isnan(grad) or grad == 0 or math.atan(grad) < self.min_slope:
                break
            ux = direction * gx / grad
            uy = direction * gy / grad

            found = self._next_point(dem, x, y, z, ux, uy, step, direction, polygon, exclusion)
            if found is None:
                break
            nx, ny, nz = found

            k = self._curvature_at(curvature, nx, ny)
            if math.isnan(k):
                break
            if check_curvature and (weight + k) / (len(points) + 1) < self.min_curvature:
                break

            weight += k
            points.append((nx, ny))
            x, y, z = nx, ny, nz

        return points, weight

    def _next_point(self, dem, x, y, z, ux, uy, step, direction, polygon, exclusion):
        """Next vertex along (ux, uy), deflected if it would enter an excluded cell."""
        nx = x + ux * step
        ny = y + uy * step
        candidates = [(nx, ny)]
        if exclusion is not None and exclusion.is_occupied(nx, ny):
            candidates = []
            for angle in STEERING_ANGLES:
                cos_a, sin_a = math.cos(angle), math.sin(angle)
                dx = ux * cos_a - uy * sin_a
                dy = ux * sin_a + uy * cos_a
                candidates.append((x + dx * step, y + dy * step))

        for cx, cy in candidates:
            cz = dem.bilinear(cx, cy)
            # the line must keep climbing or descending
            if math.isnan(cz) or direction * (cz - z) <= 0:
                continue
            if polygon is not None and not polygon.contains(cx, cy):
                continue
            if exclusion is not None and exclusion.is_occupied(cx, cy):
                continue
            return cx, cy, cz
        return None


class GullyLineExtractor:
    """Finds gully lines inside polygons."""

    def __init__(self, params: ScreeParameters, dem: GeoGrid, curvature: Optional[GeoGrid]):
        self.params = params
        self.dem = dem
        self.curvature = curvature
        self.operator = FallLineOperator(
            params.line_min_slope_degree,
            params.line_min_curvature,
            SearchMethod.UP_THEN_DOWN,
        )

    def is_long_enough(self, line: Optional[GullyLine]) -> bool:
        return (line is not None
                and line.points_count >= self.params.line_min_length_approx / self.dem.cell_size)

    def find_lines(self, polygon: FastContainsPolygon, exclusion: Optional[LineGrid],
                   density: GeoGrid) -> List[GullyLine]:
        """
        Search a fall line from every seed point of the dithered line density.

        Args:
            polygon: Polygon to search in
            exclusion: Grid of lines the new lines must avoid
            density: Line density grid, changed in place by dithering

        Returns:
            Lines that are long enough, unsorted
        """
        lines = []
        for x, y in dither_seed_points(polygon.bounds, density):
            line = self.operator.trace(self.dem, x, y, polygon, self.curvature, exclusion)
            if self.is_long_enough(line):
                lines.append(line)
        return lines

    def extract(self, polygon: FastContainsPolygon, density_1: GeoGrid,
                density_2: GeoGrid) -> List[GullyLine]:
        """
        Extract gully lines for a polygon in two passes.

        The first pass accepts full length lines by decreasing curvature
        weight, as long as a line stroked with line_min_distance does not
        overlap lines accepted before. The second pass searches again,
        steering around the accepted lines stroked with twice the width to
        compensate for the zero width of traced paths, and adds shorter
        lines that fit between them.

        Returns:
            Accepted lines, empty if the polygon is smaller than the search grid
        """
        cell_size = gully_grid_cell_size(self.params)
        single_width_grid = LineGrid.for_bounds(polygon.bounds, cell_size)
        double_width_grid = LineGrid.for_bounds(polygon.bounds, cell_size)
        if single_width_grid is None:
            return []

        single_width = self.params.line_min_distance
        double_width = self.params.line_min_distance * 2
        lines = []

        # find full length lines
        candidates = self.find_lines(polygon, None, density_1)
        sort_by_weight(candidates)
        for line in candidates:
            if not single_width_grid.is_adding_causing_overlay(line, single_width):
                double_width_grid.rasterize(line, double_width)
                lines.append(line)
        full_length_count = len(lines)

        # find shorter lines between the full length lines
        candidates = self.find_lines(polygon, double_width_grid, density_2)
        sort_by_weight(candidates)
        for line in candidates:
            if not single_width_grid.is_adding_causing_overlay(line, single_width):
                lines.append(line)

        logger.debug("Gully lines accepted", full_length=full_length_count,
                     shorter=len(lines) - full_length_count)
        return lines


def select_lines_for_polygon(lines: Sequence[GullyLine],
                             polygon: FastContainsPolygon) -> List[GullyLine]:
    """Fixed gully lines with at least one vertex inside the polygon."""
    return [line for line in lines if polygon.contains_any(line.coords)]
