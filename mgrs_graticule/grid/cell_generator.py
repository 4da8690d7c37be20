"""
Recursive Square/Cell Generator

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Subdivide a parent boundary (a zone, or a 100 km square)
into grid cells of one size, clipped to the parent, each labelled with its
grid reference. The same function drives zone -> 100 km and 100 km -> 10 km.

Key Functions:
- generate_grid_cells(): full pipeline for one parent boundary
- _projected_bounds(): parent vertices -> projected rectangle
- _sample_cell_ring(): densely sampled geodetic ring of one projected cell

Pipeline:
1. Project every parent vertex into the generating zone
2. Snap the projected rectangle outward to multiples of the cell size
3. For each candidate cell sample its four edges and unproject the samples
   (longitudes stay continuous across the antimeridian for zones 1 and 60)
4. Clip the sampled ring to the parent (see geometry_repair)
5. Label from the projected cell center and emit one polygon per piece

Failure handling:
- Failed vertex/sample projections are skipped and counted
- Failed clips and labels drop the cell, never the whole parent
- A parent producing zero features logs a WARNING diagnostic summary

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from mgrs_graticule.config_types import GenerationConfig
from mgrs_graticule.grid.geometry_repair import ClipBoundary, IntersectFn
from mgrs_graticule.grid_reference import (
    encode_grid_reference,
    parse_grid_reference,
    precision_digits,
)
from mgrs_graticule.models import (
    EncodingError,
    GenerationDiagnostics,
    GeometryError,
    GridPolygon,
    Hemisphere,
    ProjectionError,
    Ring,
)
from mgrs_graticule.projection import (
    geodetic_to_projected,
    normalize_longitude,
    projected_to_geodetic,
    projected_to_geodetic_many,
)

logger = logging.getLogger("MGRS.Grid.Generator")

DEFAULT_MIN_AREA_DEG2 = 1e-8


@dataclass
class GenerationOutcome:
    """Features plus the diagnostics of the run that produced them."""

    features: List[GridPolygon] = field(default_factory=list)
    diagnostics: GenerationDiagnostics = field(default_factory=GenerationDiagnostics)


# ═══════════════════════════════════════════════════════════════════════════
# 📐 PROJECTED FRAME
# ═══════════════════════════════════════════════════════════════════════════


def _densify_ring(ring: Ring, steps: int) -> List[Tuple[float, float]]:
    """Ring vertices plus evenly spaced points along every edge."""
    points: List[Tuple[float, float]] = []
    fractions = np.arange(steps, dtype=float) / steps
    for (x0, y0), (x1, y1) in zip(ring[:-1], ring[1:]):
        for t in fractions:
            points.append((x0 + (x1 - x0) * t, y0 + (y1 - y0) * t))
    if ring:
        points.append(tuple(ring[-1]))
    return points


def _projected_bounds(
    parent_boundary: Sequence[Ring],
    zone: int,
    hemisphere: Hemisphere,
    diagnostics: GenerationDiagnostics,
    densify_steps: int,
) -> Optional[Tuple[float, float, float, float]]:
    """
    (min_e, min_n, max_e, max_n) of the parent outline in the zone projection.

    Parallels curve in transverse Mercator, so edges are densified first;
    their projected extreme can lie between two vertices.
    """
    eastings: List[float] = []
    northings: List[float] = []
    for ring in parent_boundary:
        for lon, lat in _densify_ring(ring, densify_steps):
            try:
                point = geodetic_to_projected(lon, lat, zone, hemisphere)
            except ProjectionError as exc:
                diagnostics.skipped_samples += 1
                logger.debug(f"Parent vertex ({lon}, {lat}) skipped: {exc}")
                continue
            eastings.append(point.easting)
            northings.append(point.northing)

    if not eastings:
        return None
    return (min(eastings), min(northings), max(eastings), max(northings))


def _snap_outward(low: float, high: float, cell_size_m: int) -> Tuple[int, int]:
    start = int(math.floor(low / cell_size_m)) * cell_size_m
    stop = int(math.ceil(high / cell_size_m)) * cell_size_m
    return start, stop


def _sample_cell_ring(
    easting: float,
    northing: float,
    cell_size_m: int,
    samples_per_edge: int,
    zone: int,
    hemisphere: Hemisphere,
) -> Tuple[Optional[Ring], int]:
    """
    Geodetic ring of one projected cell, each edge sampled densely.

    Returns:
        (ring or None when fewer than 4 distinct vertices survive,
         number of samples that failed to unproject)
    """
    corners = np.array(
        [
            (easting, northing),
            (easting + cell_size_m, northing),
            (easting + cell_size_m, northing + cell_size_m),
            (easting, northing + cell_size_m),
        ],
        dtype=float,
    )
    # Each edge contributes its start corner and interior samples; the end
    # corner is the next edge's start.
    steps = np.arange(samples_per_edge, dtype=float) / samples_per_edge
    edges = []
    for i in range(4):
        start = corners[i]
        end = corners[(i + 1) % 4]
        edges.append(start + np.outer(steps, end - start))
    samples = np.vstack(edges)

    points = projected_to_geodetic_many(samples[:, 0], samples[:, 1], zone, hemisphere)
    skipped = sum(1 for p in points if p is None)

    vertices: List[Tuple[float, float]] = []
    for point in points:
        if point is None:
            continue
        vertex = (point.lon, point.lat)
        if not vertices or vertices[-1] != vertex:
            vertices.append(vertex)
    if len(vertices) > 1 and vertices[0] == vertices[-1]:
        vertices.pop()

    if len(set(vertices)) < 4:
        return None, skipped
    return tuple(vertices) + (vertices[0],), skipped


# ═══════════════════════════════════════════════════════════════════════════
# 🔲 GENERATOR
# ═══════════════════════════════════════════════════════════════════════════


def generate_grid_cells(
    parent_boundary: Sequence[Ring],
    parent_id: str,
    zone: int,
    hemisphere: Hemisphere,
    cell_size_m: int,
    samples_per_edge: Optional[int] = None,
    min_area_deg2: float = DEFAULT_MIN_AREA_DEG2,
    intersect_fn: Optional[IntersectFn] = None,
) -> GenerationOutcome:
    """
    Subdivide a parent boundary into clipped, labelled grid cells.

    Args:
        parent_boundary: One or more closed geodetic rings
        parent_id: Zone name ("05Q") or parent square id ("05QKB")
        zone: Zone whose projection defines the cell lattice
        hemisphere: Hemisphere of that projection
        cell_size_m: Power-of-ten cell size (100000, 10000, ...)
        samples_per_edge: Edge sampling density (config default when None)
        min_area_deg2: Pieces smaller than this are dropped as slivers
        intersect_fn: Intersection callable override, used by tests

    Returns:
        GenerationOutcome with features and diagnostics

    Raises:
        EncodingError: parent_id is malformed or cell_size_m is not a
            power of ten (nothing could be labelled).
    """
    band = parse_grid_reference(parent_id).band
    precision_digits(cell_size_m)
    if samples_per_edge is None:
        samples_per_edge = GenerationConfig().samples_for(cell_size_m)

    diagnostics = GenerationDiagnostics(parent_id=parent_id, cell_size_m=cell_size_m)
    outcome = GenerationOutcome(diagnostics=diagnostics)

    try:
        boundary = ClipBoundary(parent_boundary, intersect_fn=intersect_fn)
    except GeometryError as exc:
        diagnostics.parent_valid = False
        logger.warning(f"⚠️ Zero features for {parent_id}: {exc}")
        return outcome
    diagnostics.parent_valid = boundary.is_valid
    diagnostics.parent_area = boundary.area

    bounds = _projected_bounds(
        parent_boundary, zone, hemisphere, diagnostics, samples_per_edge
    )
    if bounds is None:
        logger.warning(f"⚠️ Zero features for {parent_id}: {diagnostics.summary()}")
        return outcome
    diagnostics.projected_bounds = bounds

    min_e, max_e = _snap_outward(bounds[0], bounds[2], cell_size_m)
    min_n, max_n = _snap_outward(bounds[1], bounds[3], cell_size_m)

    for easting in range(min_e, max_e, cell_size_m):
        for northing in range(min_n, max_n, cell_size_m):
            diagnostics.attempted_cells += 1
            outcome.features.extend(
                _generate_cell(
                    easting,
                    northing,
                    boundary,
                    parent_id,
                    band,
                    zone,
                    hemisphere,
                    cell_size_m,
                    samples_per_edge,
                    min_area_deg2,
                    diagnostics,
                )
            )

    diagnostics.feature_count = len(outcome.features)
    if not outcome.features:
        logger.warning(f"⚠️ Zero features for {parent_id}: {diagnostics.summary()}")
    else:
        logger.debug(
            f"✅ {parent_id}: {len(outcome.features)} features at {cell_size_m}m "
            f"from {diagnostics.attempted_cells} candidate cells"
        )
    return outcome


def _generate_cell(
    easting: int,
    northing: int,
    boundary: ClipBoundary,
    parent_id: str,
    band: str,
    zone: int,
    hemisphere: Hemisphere,
    cell_size_m: int,
    samples_per_edge: int,
    min_area_deg2: float,
    diagnostics: GenerationDiagnostics,
) -> List[GridPolygon]:
    """Clipped pieces of one candidate cell (empty when discarded)."""
    ring, skipped = _sample_cell_ring(
        easting, northing, cell_size_m, samples_per_edge, zone, hemisphere
    )
    diagnostics.skipped_samples += skipped
    if ring is None:
        diagnostics.discarded_cells += 1
        return []

    try:
        clipped = boundary.clip(ring)
    except GeometryError as exc:
        diagnostics.intersection_failures += 1
        logger.debug(f"Cell E{easting} N{northing} of {parent_id} dropped: {exc}")
        return []
    if clipped.repaired:
        diagnostics.repaired_intersections += 1

    pieces = [
        piece
        for piece, area in zip(clipped.pieces, clipped.piece_areas)
        if area >= min_area_deg2
    ]
    if not pieces:
        diagnostics.discarded_cells += 1
        return []

    center_e = easting + cell_size_m / 2.0
    center_n = northing + cell_size_m / 2.0
    try:
        cell_id = encode_grid_reference(zone, band, center_e, center_n, cell_size_m)
    except EncodingError as exc:
        diagnostics.encoding_failures += 1
        logger.debug(f"Cell E{easting} N{northing} of {parent_id} unlabelled: {exc}")
        return []

    try:
        anchor = projected_to_geodetic(center_e, center_n, zone, hemisphere)
        center = (normalize_longitude(anchor.lon), anchor.lat)
    except ProjectionError:
        center = None

    return [
        GridPolygon(
            id=cell_id,
            parent_id=parent_id,
            precision_m=cell_size_m,
            ring=piece,
            part=part,
            center=center,
        )
        for part, piece in enumerate(pieces)
    ]
