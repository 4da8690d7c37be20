"""
Unit tests for the typed configuration layer.

Tests:
1. AppConfig.from_dict(CONFIG) matches the dataclass defaults
2. samples_for() looks up, falls back and clamps
3. Validation rejects inconsistent sections
4. CLI argument parsing

Run with: python -m pytest mgrs_graticule/_tests/test_config_types.py -v
"""

import pytest

from mgrs_graticule.config import CONFIG
from mgrs_graticule.config_types import (
    AppConfig,
    GenerationConfig,
    ParallelConfig,
    ViewportConfig,
)
from mgrs_graticule.main import _parse_args


class TestFromDict:
    """The CONFIG dictionary maps onto the typed facade."""

    def test_master_config(self):
        app_config = AppConfig.from_dict(CONFIG)
        assert app_config.viewport.hundred_km_min_zoom == 5
        assert app_config.viewport.ten_km_min_zoom == 8
        assert app_config.generation.samples_for(100000) == 20
        assert app_config.generation.samples_for(10000) == 10

    def test_empty_sections_use_defaults(self):
        assert AppConfig.from_dict({}) == AppConfig()

    def test_string_values_converted(self):
        """Environment overrides arrive as strings."""
        config = ParallelConfig.from_dict({"pool_size": "2", "backend": "thread"})
        assert config.pool_size == 2
        assert config.backend == "thread"


class TestSamples:
    """Edge sampling density."""

    def test_fallback_for_unlisted_size(self):
        assert GenerationConfig().samples_for(1000) == 8

    def test_clamped(self):
        config = GenerationConfig(samples_per_edge=((100000, 50), (10000, 1)))
        assert config.samples_for(100000) == 20
        assert config.samples_for(10000) == 8


class TestValidation:
    """Inconsistent values fail at construction."""

    def test_bad_backend(self):
        with pytest.raises(ValueError):
            ParallelConfig(backend="dask")

    def test_bad_pool_size(self):
        with pytest.raises(ValueError):
            ParallelConfig(pool_size=0)

    def test_zoom_order(self):
        with pytest.raises(ValueError):
            ViewportConfig(hundred_km_min_zoom=9, ten_km_min_zoom=8)

    def test_min_area(self):
        with pytest.raises(ValueError):
            GenerationConfig(min_area_deg2=0)


class TestCommandLine:
    """main.py argument parsing."""

    def test_bbox_and_zoom(self):
        args = _parse_args(["--bbox", "-155", "18", "-151", "22", "--zoom", "9"])
        assert args.bbox == [-155.0, 18.0, -151.0, 22.0]
        assert args.zoom == 9.0
        assert args.backend is None

    def test_backend_choice(self):
        with pytest.raises(SystemExit):
            _parse_args(["--backend", "dask"])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
