"""Tests for runtime settings, logging setup and input containers."""

import numpy as np
import pytest
import structlog

from scree_painter.config import Settings
from scree_painter.core.fall_lines import GullyLine
from scree_painter.core.grids import GeoGrid
from scree_painter.core.scree_data import ScreeData
from scree_painter.core.stones import Stone
from scree_painter.log_setup import configure_logging
from scree_painter.utils.random import create_prng, polygon_prng


class TestSettings:
    """Test settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        for name in ("SCREE_MAX_WORKERS", "SCREE_RANDOM_SEED", "SCREE_ISOLATE_DITHER_GRIDS"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.max_workers == 0
        assert settings.random_seed == 0
        assert settings.isolate_dither_grids is False

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SCREE_MAX_WORKERS", "3")
        monkeypatch.setenv("SCREE_ISOLATE_DITHER_GRIDS", "true")
        settings = Settings(_env_file=None)
        assert settings.max_workers == 3
        assert settings.isolate_dither_grids is True


class TestLogging:
    """Test structlog configuration."""

    @pytest.fixture(autouse=True)
    def reset_structlog(self):
        yield
        structlog.reset_defaults()

    def test_configure_json(self):
        configure_logging(Settings(_env_file=None, log_format="json", log_level="DEBUG"))
        assert structlog.is_configured()
        structlog.get_logger("scree_test").debug("configured", value=1)

    def test_configure_plain(self):
        configure_logging(Settings(_env_file=None, log_format="plain"))
        assert structlog.is_configured()
        structlog.get_logger("scree_test").info("configured")


class TestRandom:
    """Test explicit PRNG construction."""

    def test_same_seed_same_stream(self):
        assert create_prng(1).random() == create_prng(1).random()

    def test_polygon_streams_differ(self):
        assert polygon_prng(1, 0).random() != polygon_prng(1, 1).random()

    def test_polygon_stream_is_reproducible(self):
        assert polygon_prng(7, 3).random() == polygon_prng(7, 3).random()


class TestScreeData:
    """Test the input and output container."""

    def test_curvature_derived_from_dem(self):
        dem = GeoGrid.from_array(np.zeros((5, 5)), 0, 4, 1)
        data = ScreeData(dem=dem)
        assert data.has_dem
        assert data.curvature_grid.values.shape == (5, 5)

    def test_set_dem(self):
        data = ScreeData()
        assert not data.has_dem
        data.set_dem(GeoGrid.from_array(np.zeros((3, 3)), 0, 2, 1))
        assert data.curvature_grid is not None

    def test_fixed_gully_lines(self):
        data = ScreeData()
        data.set_fixed_gully_lines([[(0, 10), (0, 0)], GullyLine([(5, 5), (5, 0)])])
        assert data.fixed_scree_lines
        assert all(isinstance(line, GullyLine) for line in data.gully_lines)

    def test_clear_output_keeps_fixed_lines(self):
        data = ScreeData()
        data.set_fixed_gully_lines([[(0, 10), (0, 0)]])
        data.stones = [Stone(0, 0, 1)]
        data.clear_output()
        assert data.stones == []
        assert len(data.gully_lines) == 1

    def test_has_queries(self):
        data = ScreeData()
        assert not data.has_shading
        assert not data.has_obstacles_mask
        assert not data.has_large_stone_mask
        assert not data.has_gradation_mask
        assert not data.has_line_density
        assert not data.has_polygons
