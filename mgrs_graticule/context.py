"""
Application context.

One dispatcher and one cache per process, built once at startup and passed
explicitly to the viewport controller (there are no module-level instances).
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple

from mgrs_graticule.config_types import AppConfig
from mgrs_graticule.models import ZoneDescriptor
from mgrs_graticule.parallel.dispatcher import create_dispatcher
from mgrs_graticule.parallel.grid_cache import GridCache, create_grid_cache
from mgrs_graticule.zone_boundaries import zone_boundaries

logger = logging.getLogger("MGRS.Context")


@dataclass
class GridContext:
    """
    Shared state of one running engine.

    Attributes:
        config: Typed application configuration
        dispatcher: GenerationDispatcher (or any object with the same
            submit/deliver_results/forget_all/shutdown surface)
        cache: GridCache, written only by the viewport controller
        zones: Root boundary set (existing zones only)
    """

    config: AppConfig
    dispatcher: Any
    cache: GridCache
    zones: Tuple[ZoneDescriptor, ...]

    def close(self) -> None:
        self.dispatcher.shutdown()

    def __enter__(self) -> "GridContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _load_zones(config: AppConfig) -> Tuple[ZoneDescriptor, ...]:
    asset = config.file_paths.zone_asset
    if not asset:
        return zone_boundaries()

    # Deferred import keeps geopandas out of worker start-up
    from mgrs_graticule.exporters import load_zone_asset

    zones = tuple(z for z in load_zone_asset(Path(asset)) if z.exists)
    logger.info(f"📂 Loaded {len(zones)} zones from {asset}")
    return zones


def create_grid_context(
    config: Optional[AppConfig] = None,
    dispatcher: Any = None,
    zones: Optional[Sequence[ZoneDescriptor]] = None,
) -> GridContext:
    """
    Build the context for one engine instance.

    Args:
        config: Application config (AppConfig defaults when None)
        dispatcher: Pre-built dispatcher, mainly for tests
        zones: Zone boundary set override (config asset or built-in otherwise)
    """
    config = config or AppConfig()
    return GridContext(
        config=config,
        dispatcher=dispatcher or create_dispatcher(config.parallel),
        cache=create_grid_cache(max_attempts=config.viewport.max_attempts_per_key),
        zones=tuple(zones) if zones is not None else _load_zones(config),
    )
