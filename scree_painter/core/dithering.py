"""
Floyd-Steinberg error diffusion on brightness grids.

Grids are scanned in boustrophedon order: even rows from west to east, odd
rows from east to west. A cell darker than 128 emits a mark (a seed point
for a gully line or a stone) and diffuses its own value; a brighter cell
diffuses ``value - 255``. The error is spread to four neighbours relative
to the scan direction.

The grids passed to these routines are working copies that are changed
in place.
"""

from typing import Iterator, List, Tuple

import numpy as np

from .grids import GeoGrid

# Floyd Steinberg dithering constants
A = 7.0 / 16.0  # next column, same row
B = 3.0 / 16.0  # previous column, next row
C = 5.0 / 16.0  # same column, next row
D = 1.0 / 16.0  # next column, next row

THRESHOLD = 128


def boustrophedon(n_rows: int, n_cols: int) -> Iterator[Tuple[int, int, int]]:
    """Yield (row, col, inc) in zig-zag order, inc being the scan direction."""
    for row in range(n_rows):
        if row % 2 == 0:
            for col in range(n_cols):
                yield row, col, 1
        else:
            for col in range(n_cols - 1, -1, -1):
                yield row, col, -1


def is_inner_cell(grid: GeoGrid, col: int, row: int) -> bool:
    """True if all four diffusion targets of the cell exist."""
    return 0 < col < grid.cols - 1 and 0 < row < grid.rows - 1


def diffuse_error(values: np.ndarray, col: int, row: int, inc: int, dif: float) -> None:
    """
    Spread the quantization error of cell (col, row) to its neighbours.

    New values are truncated towards zero, matching integer storage.
    """
    values[row, col + inc] = int(values[row, col + inc] + dif * A)
    values[row + 1, col - inc] = int(values[row + 1, col - inc] + dif * B)
    values[row + 1, col] = int(values[row + 1, col] + dif * C)
    values[row + 1, col + inc] = int(values[row + 1, col + inc] + dif * D)


def quantize(shade: float) -> Tuple[bool, float]:
    """Threshold a cell. Returns (mark, error to diffuse)."""
    if shade < THRESHOLD:
        return True, shade
    return False, shade - 255


def dither_seed_points(bounds: Tuple[float, float, float, float],
                       shading: GeoGrid) -> List[Tuple[float, float]]:
    """
    Dither the part of ``shading`` covering ``bounds`` and return the marks.

    Used to find start points for gully line searches. The spacing of the
    points equals the cell size of ``shading``.

    Args:
        bounds: (minx, miny, maxx, maxy) of the area to scan
        shading: Line density grid, changed in place

    Returns:
        List of (x, y) points
    """
    dist = shading.cell_size
    minx, miny, maxx, maxy = bounds
    n_rows = int((maxy - miny) / dist) + 1
    n_cols = int((maxx - minx) / dist) + 1
    values = shading.values

    points = []
    for row, col, inc in boustrophedon(n_rows, n_cols):
        x = minx + col * dist
        y = maxy - row * dist
        shade_col, shade_row = shading.col_row(x, y)
        if not is_inner_cell(shading, shade_col, shade_row):
            continue

        mark, dif = quantize(float(values[shade_row, shade_col]))
        if mark:
            points.append((x, y))
        diffuse_error(values, shade_col, shade_row, inc, dif)
    return points
