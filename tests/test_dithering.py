"""Tests for Floyd-Steinberg error diffusion."""

import numpy as np
import pytest

from scree_painter.core.dithering import (
    boustrophedon, diffuse_error, dither_seed_points, is_inner_cell, quantize
)
from scree_painter.core.grids import GeoGrid


class TestPrimitives:
    """Test scan order, thresholding and diffusion."""

    def test_boustrophedon_order(self):
        assert list(boustrophedon(2, 3)) == [
            (0, 0, 1), (0, 1, 1), (0, 2, 1),
            (1, 2, -1), (1, 1, -1), (1, 0, -1),
        ]

    def test_quantize(self):
        assert quantize(0) == (True, 0)
        assert quantize(127) == (True, 127)
        assert quantize(128) == (False, -127)
        assert quantize(255) == (False, 0)

    def test_diffuse_left_to_right(self):
        values = np.zeros((3, 3), dtype=np.int32)
        diffuse_error(values, 1, 1, 1, 16)
        expected = np.array([[0, 0, 0], [0, 0, 7], [3, 5, 1]])
        np.testing.assert_array_equal(values, expected)

    def test_diffuse_right_to_left(self):
        values = np.zeros((3, 3), dtype=np.int32)
        diffuse_error(values, 1, 1, -1, 16)
        expected = np.array([[0, 0, 0], [7, 0, 0], [1, 5, 3]])
        np.testing.assert_array_equal(values, expected)

    def test_diffusion_truncates_towards_zero(self):
        values = np.zeros((3, 3), dtype=np.int32)
        diffuse_error(values, 1, 1, 1, -10)
        # -10 * 7/16 = -4.375
        assert values[1, 2] == -4

    def test_inner_cells(self):
        grid = GeoGrid.from_array(np.zeros((4, 5)), 0, 3, 1)
        assert is_inner_cell(grid, 1, 1)
        assert is_inner_cell(grid, 3, 2)
        assert not is_inner_cell(grid, 0, 1)
        assert not is_inner_cell(grid, 4, 1)
        assert not is_inner_cell(grid, 1, 3)


class TestSeedPoints:
    """Test seed point dithering of line density grids."""

    @staticmethod
    def density(value):
        return GeoGrid.from_array(np.full((10, 10), value), west=0, north=90,
                                  cell_size=10, dtype=np.int32)

    def test_black_marks_every_inner_cell(self):
        points = dither_seed_points((0, 0, 90, 90), self.density(0))
        assert len(points) == 64

    def test_white_marks_nothing(self):
        assert dither_seed_points((0, 0, 90, 90), self.density(255)) == []

    def test_density_follows_brightness(self):
        dark = dither_seed_points((0, 0, 90, 90), self.density(64))
        light = dither_seed_points((0, 0, 90, 90), self.density(192))
        assert len(dark) > len(light) > 0

    def test_grid_is_changed_in_place(self):
        grid = self.density(100)
        dither_seed_points((0, 0, 90, 90), grid)
        assert not np.all(grid.values == 100)

    def test_points_lie_on_grid_nodes(self):
        points = dither_seed_points((0, 0, 90, 90), self.density(0))
        xs = np.array([p[0] for p in points])
        np.testing.assert_array_equal(xs % 10, 0)
