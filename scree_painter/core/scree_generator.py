"""
Per-polygon scree generation.

This module implements:
- Gully line extraction (or selection of fixed lines) for one polygon
- Placement of stones along gully lines, tapered from top to bottom
- Error diffusion fill of the remaining polygon area with jittered stones
- Outline synthesis for every placed stone

Shared grids are prepared once per run by the generation manager. The
dither grids in SharedGrids are working copies changed in place.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog
from shapely.geometry import Polygon

from ..config.parameters import ScreeParameters
from .dithering import boustrophedon, diffuse_error, is_inner_cell, quantize
from .errors import MissingInputError
from .fall_lines import GullyLine, GullyLineExtractor, select_lines_for_polygon
from .fast_contains import POINT_IN_POLYGON_TOLERANCE, FastContainsPolygon
from .grids import GeoGrid, UpdateArea
from .point_raster import REL_POINT_RASTER_RESOLUTION, PointRaster
from .scree_data import ScreeData
from .stones import Stone, clamped_gaussian, generate_stone

logger = structlog.get_logger()

# Jittered placement attempts per dither grid node
MAX_DITHER_TRIES = 20


@dataclass
class SharedGrids:
    """Grids shared by all polygons of a run."""
    shading: GeoGrid  # resampled and tone mapped, read only
    min_shading: float
    max_shading: float
    shading_to_dither: GeoGrid
    line_density_1: GeoGrid
    line_density_2: GeoGrid

    def isolated(self) -> "SharedGrids":
        """Copy with private working copies of the dither grids."""
        return SharedGrids(
            self.shading, self.min_shading, self.max_shading,
            self.shading_to_dither.copy(),
            self.line_density_1.copy(),
            self.line_density_2.copy(),
        )


@dataclass
class PolygonScree:
    """Stones and gully lines generated for one polygon."""
    stones: List[Stone] = field(default_factory=list)
    gully_lines: List[GullyLine] = field(default_factory=list)
    extracted_lines: bool = False  # lines are new, not taken from the fixed set


def jitter_point(x: float, y: float, ndx: float, ndy: float, max_along: float,
                 max_vertical: float, rng: np.random.Generator) -> Tuple[float, float]:
    """Move a point randomly along and perpendicular to the direction (ndx, ndy)."""
    along = max_along * (rng.random() - 0.5)
    vertical = max_vertical * (rng.random() - 0.5)
    return (x + ndx * along - ndy * vertical,
            y + ndy * along + ndx * vertical)


def to_beads(coords: Sequence[Sequence[float]], d: float, jitter_along: float,
             jitter_vertical: float, rng: np.random.Generator) -> List[Tuple[float, float]]:
    """
    Points at distance ``d`` along a polyline, starting with its first vertex.

    Spacing is measured along the line and carries over vertices. Every
    point after the first is jittered along and perpendicular to its
    segment.

    Args:
        coords: Vertices of the line
        d: Distance between consecutive points
        jitter_along: Maximum jitter along the line
        jitter_vertical: Maximum jitter perpendicular to the line
        rng: Random number generator

    Returns:
        List of (x, y) points

    Raises:
        ValueError: If d is not positive
    """
    if d <= 0:
        raise ValueError("Bead distance must be positive")

    coords = np.asarray(coords, dtype=float)
    start_x, start_y = coords[0]
    beads = [(float(start_x), float(start_y))]

    length = 0.0
    for end_x, end_y in coords[1:]:
        dx = end_x - start_x
        dy = end_y - start_y
        seg = math.hypot(dx, dy)
        if seg == 0:
            continue
        dx /= seg
        dy /= seg

        rest = length
        length += seg
        while length >= d:
            length -= d
            start_x += dx * (d - rest)
            start_y += dy * (d - rest)
            rest = 0
            beads.append(jitter_point(float(start_x), float(start_y), dx, dy,
                                      jitter_along, jitter_vertical, rng))
        start_x, start_y = end_x, end_y
    return beads


class ScreeGenerator:
    """Fills single polygons with gully lines and stones."""

    def __init__(self, params: ScreeParameters, data: ScreeData):
        self.params = params
        self.data = data

    def generate_scree(self, polygon: Polygon, grids: SharedGrids, rng: np.random.Generator,
                       update_area: Optional[UpdateArea] = None,
                       generate_stones: bool = True) -> PolygonScree:
        """
        Generate gully lines and stones for one polygon.

        Args:
            polygon: Polygon to fill
            grids: Grids prepared for the run
            rng: Random number generator for this polygon
            update_area: Only place stones inside this box
            generate_stones: False to extract gully lines only

        Returns:
            PolygonScree, empty if the polygon misses the update area
        """
        if update_area is not None and not update_area.intersects(polygon.bounds):
            return PolygonScree()

        contains_polygon = FastContainsPolygon(polygon)
        contains_polygon.prepare(grids.shading.cell_size / POINT_IN_POLYGON_TOLERANCE)

        result = PolygonScree(extracted_lines=not self.data.fixed_scree_lines)
        result.gully_lines = self.gully_lines_for_polygon(contains_polygon, grids)

        if generate_stones:
            result.stones = self.fill_polygon_with_stones_and_lines(
                contains_polygon, result.gully_lines, grids, rng, update_area)

        logger.debug("Polygon filled", lines=len(result.gully_lines), stones=len(result.stones))
        return result

    def gully_lines_for_polygon(self, polygon: FastContainsPolygon,
                                grids: SharedGrids) -> List[GullyLine]:
        if self.data.fixed_scree_lines:
            return select_lines_for_polygon(self.data.gully_lines, polygon)
        if self.data.dem is None:
            raise MissingInputError("A DEM is required to extract gully lines")
        extractor = GullyLineExtractor(self.params, self.data.dem, self.data.curvature_grid)
        return extractor.extract(polygon, grids.line_density_1, grids.line_density_2)

    def modulated_stone_radius(self, x: float, y: float, r: float, grids: SharedGrids) -> float:
        """
        Reduce a radius with the brightness of the shading at (x, y).

        The darkest shading value keeps the radius, the brightest reduces it
        by the difference between the maximum and the minimum stone radius.
        Uniform shading and positions outside the shading keep the radius.
        """
        if grids.max_shading == grids.min_shading:
            return r
        v = grids.shading.nearest_neighbor(x, y)
        if math.isnan(v):
            return r
        v = min(max(v, 0.0), 255.0)
        p = self.params
        scaled_rad_dif = (p.stone_max_radius - p.stone_min_radius) / (grids.max_shading - grids.min_shading)
        return r - (v - grids.min_shading) * scaled_rad_dif

    def is_stone_on_obstacle(self, x: float, y: float, radius: float) -> bool:
        """
        True if a circle touches a non-white cell of the obstacles mask.

        Circles whose test window reaches beyond the mask are never on an
        obstacle.
        """
        mask = self.data.obstacles_mask
        if mask is None:
            return False

        inv_cell_size = 1.0 / mask.cell_size
        x_ = (x - mask.west) * inv_cell_size
        y_ = (mask.north - y) * inv_cell_size
        radius_ = radius * inv_cell_size
        col = int(x_)
        row = int(y_)
        cells = math.ceil(radius_)
        if col - cells < 0 or row - cells < 0 or col + cells >= mask.cols or row + cells >= mask.rows:
            return False

        window = mask.values[row - cells:row + cells + 1, col - cells:col + cells + 1]
        dc = np.arange(col - cells, col + cells + 1) - x_
        dr = np.arange(row - cells, row + cells + 1) - y_
        inside = dc[np.newaxis, :] ** 2 + dr[:, np.newaxis] ** 2 <= radius_ * radius_
        return bool(np.any(window[inside] < 255))

    def fill_polygon_with_stones_and_lines(self, polygon: FastContainsPolygon,
                                           lines: Sequence[GullyLine], grids: SharedGrids,
                                           rng: np.random.Generator,
                                           update_area: Optional[UpdateArea] = None) -> List[Stone]:
        """Place stones along gully lines, dither fill the rest and generate outlines."""
        p = self.params
        raster = PointRaster(polygon.bounds, p.stone_max_diameter / REL_POINT_RASTER_RESOLUTION)

        stones = self.place_line_stones(lines, grids, raster, rng, update_area)
        line_stone_count = len(stones)
        self.dither_fill_polygon(polygon, stones, grids, raster, rng, update_area)
        logger.debug("Stones placed", on_lines=line_stone_count,
                     dithered=len(stones) - line_stone_count)

        return [stone for stone in stones if generate_stone(stone, p, rng) is not None]

    def place_line_stones(self, lines: Sequence[GullyLine], grids: SharedGrids,
                          raster: PointRaster, rng: np.random.Generator,
                          update_area: Optional[UpdateArea] = None) -> List[Stone]:
        """
        Place stones along gully lines.

        Stone sizes taper linearly from line_size_scale_top at the first bead
        to line_size_scale_bottom at the last. After a line is done, its
        stones are burnt into the raster enlarged by line_to_point_dist_fraction
        so that dithered stones keep a wider distance.
        """
        p = self.params
        max_r = p.stone_max_radius
        min_obstacle_dist = p.stone_min_obstacle_distance_fraction * p.stone_max_diameter
        min_stone_dist_on_line = p.line_stone_dist_fraction * p.stone_max_diameter
        jitter_dist = p.stone_max_diameter * p.stone_max_pos_jitter_fraction
        line_point_dist = p.line_to_point_dist_fraction * p.stone_max_diameter
        t = p.line_size_scale_top
        b = p.line_size_scale_bottom
        mean_scale = (t + b) / 2

        stones = []
        for line in lines:
            if line.points_count == 0:
                continue
            mean_r = np.mean([self.modulated_stone_radius(x, y, max_r, grids)
                              for x, y in line.coords])
            d = mean_r * 2 * mean_scale + min_stone_dist_on_line / 2
            if not d > 0:
                continue
            beads = to_beads(line.coords, d, jitter_dist, jitter_dist, rng)

            line_stones = []
            count = len(beads)
            for i, (x, y) in enumerate(beads):
                if update_area is not None and not update_area.contains(x, y):
                    continue
                r_scale = (b - t) / count * i + t
                r = self.modulated_stone_radius(x, y, max_r, grids) * r_scale
                if self.is_stone_on_obstacle(x, y, r + min_obstacle_dist):
                    continue
                if raster.is_circle_overlaying(x, y, r + min_stone_dist_on_line):
                    continue
                stone = Stone(x, y, r)
                line_stones.append(stone)
                raster.add_circle(x, y, r)

            for stone in line_stones:
                raster.add_circle(stone.x, stone.y, stone.r + line_point_dist)
            stones.extend(line_stones)
        return stones

    def _is_large_stone(self, x: float, y: float) -> bool:
        mask = self.data.large_stone_mask
        if mask is None:
            return False
        gray = mask.gray_at(x, y)
        return 0 <= gray < 255

    def dither_fill_polygon(self, polygon: FastContainsPolygon, stones: List[Stone],
                            grids: SharedGrids, raster: PointRaster, rng: np.random.Generator,
                            update_area: Optional[UpdateArea] = None) -> None:
        """
        Fill a polygon with stones by error diffusion of the shading.

        Nodes spaced stone_max_diameter apart are scanned in zig-zag order.
        At every node inside the polygon up to MAX_DITHER_TRIES jittered
        positions are tried. The quantization error is diffused for the
        first position that is valid; nodes without a valid position diffuse
        nothing.

        Args:
            polygon: Polygon to fill, prepared
            stones: New stones are appended to this list
            grids: Shared grids, the dither grid is changed in place
            raster: Collision raster of the polygon
            rng: Random number generator
            update_area: Only place stones inside this box
        """
        p = self.params
        max_r = p.stone_max_radius
        min_stone_dist = p.stone_min_distance_fraction * p.stone_max_diameter
        min_obstacle_dist = p.stone_min_obstacle_distance_fraction * p.stone_max_diameter
        jitter_dist = p.stone_max_diameter * p.stone_max_pos_jitter_fraction
        dither_grid = grids.shading_to_dither
        values = dither_grid.values

        minx, miny, maxx, maxy = polygon.bounds
        n_rows = int((maxy - miny) / p.stone_max_diameter) + 2
        n_cols = int((maxx - minx) / p.stone_max_diameter) + 2

        for row, col, inc in boustrophedon(n_rows, n_cols):
            x = minx + col * p.stone_max_diameter
            y = maxy - row * p.stone_max_diameter
            if not polygon.contains(x, y):
                continue
            if update_area is not None and not update_area.contains(x, y):
                continue

            shade_col, shade_row = dither_grid.col_row(x, y)
            for _ in range(MAX_DITHER_TRIES):
                stone_x = x + rng.standard_normal() * jitter_dist
                stone_y = y + rng.standard_normal() * jitter_dist

                # ignores the later variation of the radius
                if self.is_stone_on_obstacle(stone_x, stone_y, max_r + min_obstacle_dist):
                    continue
                if not polygon.contains(stone_x, stone_y):
                    continue
                if not is_inner_cell(dither_grid, shade_col, shade_row):
                    continue

                shade = float(values[shade_row, shade_col])
                mark, dif = quantize(shade)
                if mark:
                    large_stone = self._is_large_stone(stone_x, stone_y)
                    r_scale = 1.0
                    if large_stone:
                        r_scale = 1.0 + clamped_gaussian(rng) * (p.stone_large_max_scale - 1.0)
                    r = self.modulated_stone_radius(stone_x, stone_y, max_r * r_scale, grids)
                    if (self.is_stone_on_obstacle(stone_x, stone_y, r + min_obstacle_dist)
                            or raster.is_circle_overlaying(stone_x, stone_y, r + min_stone_dist)):
                        continue
                    stones.append(Stone(stone_x, stone_y, r))
                    raster.add_circle(stone_x, stone_y, r)
                    if large_stone:
                        dif = shade * r_scale * r_scale

                diffuse_error(values, shade_col, shade_row, inc, dif)
                break
