"""
Projection Service

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Convert between geodetic (lon, lat) and zone-local UTM
(easting, northing) coordinates, and map longitudes/boxes to UTM zones.

Key Functions:
- geodetic_to_projected(): lon/lat -> easting/northing for one zone
- projected_to_geodetic(): easting/northing -> lon/lat for one zone
- projected_to_geodetic_many(): vectorised inverse for dense edge sampling
- zone_for_longitude(): standard 6-degree zone number
- zones_for_bounds(): every (zone, hemisphere) touching a geodetic box

Projection definitions are pyproj Transformers between EPSG:4326 and the
WGS84 UTM codes (326zz north, 327zz south), memoised per (zone, hemisphere).
They are immutable, so every worker process keeps its own copy.

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
import math
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

import numpy as np
from pyproj import Transformer
from pyproj.exceptions import ProjError

from mgrs_graticule.models import (
    GeodeticPoint,
    Hemisphere,
    ProjectedPoint,
    ProjectionError,
    ViewportBounds,
)

logger = logging.getLogger("MGRS.Projection")

ZONE_COUNT = 60
ZONE_WIDTH_DEG = 6.0

# Transverse Mercator degrades quickly far from the central meridian and is
# singular at 90 degrees. Widened zones reach 9 degrees, so 45 is generous.
MAX_CENTRAL_MERIDIAN_OFFSET_DEG = 45.0


# ═══════════════════════════════════════════════════════════════════════════
# 🌐 ZONE ARITHMETIC
# ═══════════════════════════════════════════════════════════════════════════


def normalize_longitude(lon: float) -> float:
    """Wrap longitude into [-180, 180)."""
    return ((lon + 180.0) % 360.0) - 180.0


def _unwrap_longitudes(lons, zone: int):
    """
    Express longitudes relative to the zone central meridian.

    PROJ wraps its output into [-180, 180], so samples of a zone 60 cell
    east of the antimeridian come back near -180. Keeping them within 180
    degrees of the central meridian keeps rings continuous (179.5 -> 180.4).
    Works on floats and numpy arrays.
    """
    cm = central_meridian(zone)
    return cm + ((lons - cm + 180.0) % 360.0) - 180.0


def zone_for_longitude(lon: float) -> int:
    """
    Standard UTM zone number (1..60) for a longitude.

    Exception zones (31V, 33X, 35X) are handled by the zone boundary set,
    not here.
    """
    if not math.isfinite(lon):
        raise ProjectionError(f"Non-finite longitude: {lon}")
    return int((normalize_longitude(lon) + 180.0) // ZONE_WIDTH_DEG) % ZONE_COUNT + 1


def central_meridian(zone: int) -> float:
    """Central meridian in degrees of a UTM zone."""
    _check_zone(zone)
    return -183.0 + ZONE_WIDTH_DEG * zone


def utm_epsg(zone: int, hemisphere: Hemisphere) -> int:
    """EPSG code of WGS84 / UTM for zone and hemisphere."""
    _check_zone(zone)
    base = 32600 if hemisphere == Hemisphere.NORTH else 32700
    return base + zone


def _check_zone(zone: int) -> None:
    if not 1 <= zone <= ZONE_COUNT:
        raise ProjectionError(f"Zone number out of range 1..60: {zone}")


def zones_for_bounds(bounds: ViewportBounds) -> List[Tuple[int, Hemisphere]]:
    """
    All (zone, hemisphere) pairs overlapping a geodetic box.

    Boxes crossing the antimeridian (west > east) wrap from zone 60 to 1.
    Both hemispheres are returned when the box straddles the equator.

    Args:
        bounds: Geodetic viewport box

    Returns:
        Sorted list of (zone number, Hemisphere)
    """
    hemispheres = []
    if bounds.north >= 0:
        hemispheres.append(Hemisphere.NORTH)
    if bounds.south < 0:
        hemispheres.append(Hemisphere.SOUTH)

    zones = set()
    for west, _south, east, _north in bounds.boxes():
        first = zone_for_longitude(west)
        # An east edge exactly on 180 belongs to zone 60, not zone 1
        last = ZONE_COUNT if east >= 180.0 else zone_for_longitude(east)
        zones.update(range(first, last + 1))

    return [(zone, hemi) for zone in sorted(zones) for hemi in hemispheres]


# ═══════════════════════════════════════════════════════════════════════════
# 🔄 TRANSFORMERS
# ═══════════════════════════════════════════════════════════════════════════


@lru_cache(maxsize=None)
def _transformers(zone: int, hemisphere: Hemisphere) -> Tuple[Transformer, Transformer]:
    """(forward, inverse) transformers for one zone, created once per process."""
    crs = f"EPSG:{utm_epsg(zone, hemisphere)}"
    forward = Transformer.from_crs("EPSG:4326", crs, always_xy=True)
    inverse = Transformer.from_crs(crs, "EPSG:4326", always_xy=True)
    logger.debug(f"Created transformers for {crs}")
    return forward, inverse


def geodetic_to_projected(
    lon: float, lat: float, zone: int, hemisphere: Hemisphere
) -> ProjectedPoint:
    """
    Project lon/lat into a zone's UTM coordinates.

    Raises:
        ProjectionError: Non-finite input, |lat| > 90, longitude too far from
            the central meridian, or a failure reported by PROJ.
    """
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise ProjectionError(f"Non-finite coordinate: ({lon}, {lat})")
    if abs(lat) > 90.0:
        raise ProjectionError(f"Latitude out of range: {lat}")
    offset = abs(normalize_longitude(lon - central_meridian(zone)))
    if offset > MAX_CENTRAL_MERIDIAN_OFFSET_DEG:
        raise ProjectionError(
            f"Longitude {lon} is {offset:.1f} deg from zone {zone} central meridian"
        )

    forward, _ = _transformers(zone, hemisphere)
    try:
        easting, northing = forward.transform(lon, lat, errcheck=True)
    except ProjError as exc:
        raise ProjectionError(f"Cannot project ({lon}, {lat}): {exc}") from exc

    if not (math.isfinite(easting) and math.isfinite(northing)):
        raise ProjectionError(f"Projection of ({lon}, {lat}) is not finite")
    return ProjectedPoint(easting, northing)


def projected_to_geodetic(
    easting: float, northing: float, zone: int, hemisphere: Hemisphere
) -> GeodeticPoint:
    """
    Unproject zone UTM coordinates back to lon/lat.

    The longitude stays within 180 degrees of the zone central meridian, so
    it may exceed +/-180 for zones 1 and 60.

    Raises:
        ProjectionError: Non-finite input or output, or a PROJ failure.
    """
    if not (math.isfinite(easting) and math.isfinite(northing)):
        raise ProjectionError(f"Non-finite coordinate: ({easting}, {northing})")

    _, inverse = _transformers(zone, hemisphere)
    try:
        lon, lat = inverse.transform(easting, northing, errcheck=True)
    except ProjError as exc:
        raise ProjectionError(
            f"Cannot unproject ({easting}, {northing}) in zone {zone}: {exc}"
        ) from exc

    if not (math.isfinite(lon) and math.isfinite(lat)) or abs(lat) > 90.0:
        raise ProjectionError(
            f"Unprojection of ({easting}, {northing}) in zone {zone} is invalid"
        )
    lon = float(_unwrap_longitudes(lon, zone))
    return GeodeticPoint(lon, lat)


def projected_to_geodetic_many(
    eastings: Sequence[float],
    northings: Sequence[float],
    zone: int,
    hemisphere: Hemisphere,
) -> List[Optional[GeodeticPoint]]:
    """
    Vectorised inverse projection, longitudes unwrapped like
    projected_to_geodetic().

    Failed samples come back as None instead of raising, so one bad sample
    never discards its neighbours.
    """
    _, inverse = _transformers(zone, hemisphere)
    e = np.asarray(eastings, dtype=float)
    n = np.asarray(northings, dtype=float)
    lons, lats = inverse.transform(e, n)
    lons = np.atleast_1d(np.asarray(lons, dtype=float))
    lats = np.atleast_1d(np.asarray(lats, dtype=float))
    lons = _unwrap_longitudes(lons, zone)

    valid = np.isfinite(lons) & np.isfinite(lats) & (np.abs(lats) <= 90.0)
    return [
        GeodeticPoint(float(lon), float(lat)) if ok else None
        for lon, lat, ok in zip(lons, lats, valid)
    ]
