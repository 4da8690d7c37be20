#!/usr/bin/env python3
"""
MGRS Graticule Engine - Configuration

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Centralized configuration for grid generation and caching.
Single source of truth for sampling density, zoom thresholds, worker pool
and file locations.

Configuration Sections (ordered by importance for tuning):
1. generation: Edge sampling density and sliver threshold
2. viewport: Zoom thresholds for each precision level
3. parallel: Worker pool size and executor backend
4. file_paths: Zone asset and output locations (bottom - rarely changed)
5. logging: Log level

Navigation Guide:
- Use VS Code outline (Ctrl+Shift+O) to jump between sections
"""

import os
from typing import Any, Callable, Dict, Optional, TypeVar

T = TypeVar("T")


def _env_or_default(
    key: str, default: T, type_fn: Optional[Callable[[str], T]] = None
) -> T:
    """
    Get value from environment variable or use default.

    Args:
        key: Environment variable name (e.g., "MGRS_POOL_SIZE")
        default: Default value if env var not set
        type_fn: Optional type conversion function (e.g., float, int)

    Returns:
        Value from environment (converted) or default

    Example:
        >>> _env_or_default("MGRS_POOL_SIZE", 4, int)
        4  # If env var not set
    """
    val = os.getenv(key)
    if val is not None:
        if type_fn is not None:
            return type_fn(val)
        return val  # type: ignore
    return default


def _env_bool(key: str, default: bool) -> bool:
    """
    Get boolean value from environment variable.

    Treats "true", "1", "yes" as True (case-insensitive).
    Any other value or unset returns default.
    """
    val = os.getenv(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


# ═══════════════════════════════════════════════════════════════════════════
# 🔧 ENVIRONMENT VARIABLE OVERRIDES
# ═══════════════════════════════════════════════════════════════════════════
# These settings can be overridden via environment variables for testing:
#
#   MGRS_POOL_SIZE       - number of isolated worker contexts (default 4)
#   MGRS_BACKEND         - "loky", "process" or "thread"
#   MGRS_MIN_AREA_DEG2   - sliver threshold in square degrees
#   MGRS_LOG_LEVEL       - root log level for main.py
#   MGRS_LOG_TO_FILE     - write main.log into a per-run folder
# ═══════════════════════════════════════════════════════════════════════════


CONFIG: Dict[str, Any] = {
    # ═══════════════════════════════════════════════════════════════════════
    # 🔲 GRID GENERATION
    # ═══════════════════════════════════════════════════════════════════════
    # Straight projected edges become curves on the map, so every cell edge
    # is sampled densely before being projected back to lon/lat.
    "generation": {
        # Pieces with smaller geodetic area are dropped as clipping slivers
        "min_area_deg2": _env_or_default("MGRS_MIN_AREA_DEG2", 1e-8, float),
        # Samples per edge keyed by cell size in meters
        "samples_per_edge": {
            100000: 20,
            10000: 10,
        },
        # Used for cell sizes not listed above
        "default_samples_per_edge": 8,
        "min_samples_per_edge": 8,
        "max_samples_per_edge": 20,
        # Cell sizes of the two precision levels driven by the viewport
        "hundred_km_cell_m": 100000,
        "ten_km_cell_m": 10000,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🔭 VIEWPORT
    # ═══════════════════════════════════════════════════════════════════════
    # zoom < 5: zones only | 5 <= zoom < 8: + 100 km | zoom >= 8: + 10 km
    "viewport": {
        "hundred_km_min_zoom": 5,
        "ten_km_min_zoom": 8,
        # 0 = retry failing keys forever (on every viewport change)
        "max_attempts_per_key": 0,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # ⚡ PARALLEL PROCESSING
    # ═══════════════════════════════════════════════════════════════════════
    "parallel": {
        "pool_size": _env_or_default("MGRS_POOL_SIZE", 4, int),
        # "loky" (joblib process executor), "process" or "thread"
        "backend": _env_or_default("MGRS_BACKEND", "loky"),
        # Seconds main.py waits for results per polling round
        "poll_interval_s": 0.05,
        # Seconds main.py waits for the whole run before giving up
        "run_timeout_s": 120.0,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 📁 FILE PATHS
    # ═══════════════════════════════════════════════════════════════════════
    "file_paths": {
        # Optional static GeoJSON with the zone boundary set
        "zone_asset": "",
        "output_dir": "Output",
        "log_dir": "logs",
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 📋 LOGGING
    # ═══════════════════════════════════════════════════════════════════════
    "logging": {
        "level": _env_or_default("MGRS_LOG_LEVEL", "INFO"),
        "log_to_file": _env_bool("MGRS_LOG_TO_FILE", True),
    },
}

