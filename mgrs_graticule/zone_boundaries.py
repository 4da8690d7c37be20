"""
Zone Boundary Generator

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Produce the geodetic rectangles of every grid zone
designation (60 zones x 20 latitude bands), applying the irregular zones
around south-west Norway (band V) and Svalbard (band X).

Key Functions:
- build_zone_descriptors(): all 1200 descriptors, suppressed ones included
- zone_boundaries(): only existing zones (root boundary set for 100 km)
- get_zone(): lookup by name ("05Q", "5Q")
- zones_in_bounds(): existing zones whose rectangle touches a viewport

Rules:
- Regular zones are 6 deg wide and 8 deg tall; band X is 12 deg tall (72-84 N)
- Coverage stops at 80 S and 84 N
- Exceptions are data (ZONE_EXCEPTIONS), not branches in the loop

The set is computed once per process and shared read-only.

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

from mgrs_graticule.grid_reference import BAND_LETTERS, parse_grid_reference
from mgrs_graticule.models import (
    EncodingError,
    Hemisphere,
    MIN_LATITUDE,
    ViewportBounds,
    ZoneDescriptor,
)

logger = logging.getLogger("MGRS.ZoneBoundaries")

BAND_HEIGHT_DEG = 8.0
BAND_X_NORTH = 84.0
ZONE_WIDTH_DEG = 6.0

# ═══════════════════════════════════════════════════════════════════════════
# 🧭 EXCEPTION ZONES
# ═══════════════════════════════════════════════════════════════════════════
# (zone, band) -> (west, east) override, or None when the zone is suppressed.
# Svalbard: each widened zone absorbs its eastern neighbour, so band X stays
# gap-free. Band V follows the source data: 31V is widened to 9E only and 32V
# is suppressed, which leaves 9E-12E of band V without a zone on purpose.

ZONE_EXCEPTIONS: Dict[Tuple[int, str], Optional[Tuple[float, float]]] = {
    # South-west Norway
    (31, "V"): (0.0, 9.0),
    (32, "V"): None,
    # Svalbard
    (33, "X"): (12.0, 24.0),
    (34, "X"): None,
    (35, "X"): (24.0, 36.0),
    (36, "X"): None,
}


def _band_limits(band_index: int) -> Tuple[float, float]:
    south = MIN_LATITUDE + band_index * BAND_HEIGHT_DEG
    band = BAND_LETTERS[band_index]
    north = BAND_X_NORTH if band == "X" else south + BAND_HEIGHT_DEG
    return south, north


@lru_cache(maxsize=1)
def build_zone_descriptors() -> Tuple[ZoneDescriptor, ...]:
    """
    Every zone descriptor, ordered by band then zone number.

    Suppressed zones are included with exists=False.
    """
    descriptors: List[ZoneDescriptor] = []
    for band_index, band in enumerate(BAND_LETTERS):
        south, north = _band_limits(band_index)
        hemisphere = Hemisphere.from_band(band)
        for number in range(1, 61):
            west = -180.0 + (number - 1) * ZONE_WIDTH_DEG
            east = west + ZONE_WIDTH_DEG
            exists = True
            key = (number, band)
            if key in ZONE_EXCEPTIONS:
                override = ZONE_EXCEPTIONS[key]
                if override is None:
                    exists = False
                else:
                    west, east = override
            descriptors.append(
                ZoneDescriptor(
                    number=number,
                    band=band,
                    hemisphere=hemisphere,
                    west=west,
                    east=east,
                    south=south,
                    north=north,
                    exists=exists,
                )
            )

    suppressed = sum(1 for d in descriptors if not d.exists)
    logger.debug(
        f"Built {len(descriptors)} zone descriptors ({suppressed} suppressed)"
    )
    return tuple(descriptors)


def zone_boundaries() -> Tuple[ZoneDescriptor, ...]:
    """Existing zones only: the root boundary set for 100 km generation."""
    return tuple(d for d in build_zone_descriptors() if d.exists)


@lru_cache(maxsize=1)
def _zones_by_name() -> Dict[str, ZoneDescriptor]:
    return {d.name: d for d in build_zone_descriptors()}


def get_zone(name: str) -> ZoneDescriptor:
    """
    Look up a zone descriptor by name.

    Raises:
        KeyError: Unknown zone name.
    """
    try:
        gzd = parse_grid_reference(name).gzd
    except EncodingError as exc:
        raise KeyError(name) from exc
    return _zones_by_name()[gzd]


def zones_in_bounds(bounds: ViewportBounds) -> List[ZoneDescriptor]:
    """Existing zones whose rectangle touches the viewport."""
    return [d for d in zone_boundaries() if bounds.intersects_bbox(d.bbox)]
