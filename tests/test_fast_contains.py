"""Tests for the rasterized point-in-polygon test."""

import numpy as np
import pytest
from shapely.geometry import Point, Polygon

from scree_painter.core.fast_contains import FastContainsPolygon


class TestFastContainsPolygon:
    """Test agreement of the raster test with exact containment."""

    @pytest.fixture
    def polygon(self):
        # concave L-shaped polygon
        return Polygon([(0, 0), (100, 0), (100, 40), (40, 40), (40, 100), (0, 100)])

    @pytest.fixture
    def prepared(self, polygon):
        fast = FastContainsPolygon(polygon)
        fast.prepare(0.5)
        return fast

    def test_requires_prepare(self, polygon):
        fast = FastContainsPolygon(polygon)
        with pytest.raises(RuntimeError):
            fast.contains(10, 10)

    def test_invalid_cell_size(self, polygon):
        with pytest.raises(ValueError):
            FastContainsPolygon(polygon).prepare(-1)

    def test_agrees_away_from_outline(self, polygon, prepared):
        rng = np.random.default_rng(7)
        tolerance = 2 * prepared.cell_size
        checked = 0
        for x, y in rng.uniform(-10, 110, size=(2000, 2)):
            if polygon.exterior.distance(Point(x, y)) <= tolerance:
                continue
            assert prepared.contains(x, y) == polygon.contains(Point(x, y))
            checked += 1
        assert checked > 1000

    def test_concave_notch_is_outside(self, prepared):
        assert not prepared.contains(70, 70)
        assert prepared.contains(20, 70)
        assert prepared.contains(70, 20)

    def test_outside_bounds(self, prepared):
        assert not prepared.contains(-5, 50)
        assert not prepared.contains(50, 105)

    def test_contains_any(self, prepared):
        assert prepared.contains_any([(200, 200), (10, 10)])
        assert not prepared.contains_any([(200, 200), (70, 70)])
        assert not prepared.contains_any([])
