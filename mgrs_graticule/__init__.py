"""
MGRS Graticule Engine

Multi-resolution MGRS grid generation (zones, 100 km squares, 10 km cells)
with concurrent workers and a viewport-driven cache.
"""

from mgrs_graticule.config import CONFIG
from mgrs_graticule.config_types import AppConfig
from mgrs_graticule.context import GridContext, create_grid_context
from mgrs_graticule.viewport_controller import ViewportController

__version__ = "0.1.0"

__all__ = [
    "CONFIG",
    "AppConfig",
    "GridContext",
    "create_grid_context",
    "ViewportController",
]
