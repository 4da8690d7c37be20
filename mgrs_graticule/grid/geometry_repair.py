"""
Geometry Repair & Clipping

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Intersect candidate cell rings with a parent boundary,
repairing invalid topology once when the geometry engine rejects an operand.
This is the only module that converts between the engine's ring tuples and
shapely geometries.

Key Functions:
- safe_intersection(): raw intersection, one buffer(0) repair retry
- ClipBoundary: parent boundary built once per request, clip() per cell
- ring_area(): planar area of a ring in square degrees

Repair policy:
1. Try the raw intersection
2. On GEOSException, repair both operands with buffer(0) and retry once
3. A second failure raises GeometryError (the cell is discarded upstream)

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import shapely
from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient

from mgrs_graticule.models import GeometryError, Ring

logger = logging.getLogger("MGRS.Grid.Repair")

IntersectFn = Callable[[BaseGeometry, BaseGeometry], BaseGeometry]

# Rings need at least this many distinct vertices to render as polygons
MIN_DISTINCT_VERTICES = 4


# ═══════════════════════════════════════════════════════════════════════════
# 🔄 RING <-> GEOMETRY CONVERSION
# ═══════════════════════════════════════════════════════════════════════════


def ring_to_polygon(ring: Sequence[Tuple[float, float]]) -> Polygon:
    """Polygon from a ring; an invalid ring yields an invalid polygon, not an error."""
    return Polygon(ring)


def rings_to_geometry(rings: Sequence[Ring]) -> BaseGeometry:
    """Single polygon for one ring, MultiPolygon for several."""
    polygons = [ring_to_polygon(r) for r in rings if len(r) >= 4]
    if not polygons:
        raise GeometryError("Boundary has no usable ring")
    if len(polygons) == 1:
        return polygons[0]
    return MultiPolygon(polygons)


def _polygon_parts(geom: BaseGeometry) -> List[Polygon]:
    """Polygonal parts of any geometry; lines and points are dropped."""
    if geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, MultiPolygon):
        return list(geom.geoms)
    if hasattr(geom, "geoms"):
        parts: List[Polygon] = []
        for sub in geom.geoms:
            parts.extend(_polygon_parts(sub))
        return parts
    return []


def _distinct_vertices(coords: Sequence[Tuple[float, float]]) -> List[Tuple[float, float]]:
    """Exterior vertices without the closing point and consecutive duplicates."""
    distinct: List[Tuple[float, float]] = []
    for x, y in coords[:-1]:
        point = (float(x), float(y))
        if not distinct or distinct[-1] != point:
            distinct.append(point)
    while len(distinct) > 1 and distinct[0] == distinct[-1]:
        distinct.pop()
    return distinct


def _insert_longest_edge_midpoint(
    vertices: List[Tuple[float, float]],
) -> List[Tuple[float, float]]:
    """Split the longest edge of a triangle so the ring reaches 4 vertices."""
    count = len(vertices)
    longest = max(
        range(count),
        key=lambda i: (vertices[(i + 1) % count][0] - vertices[i][0]) ** 2
        + (vertices[(i + 1) % count][1] - vertices[i][1]) ** 2,
    )
    a = vertices[longest]
    b = vertices[(longest + 1) % count]
    midpoint = ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)
    return vertices[: longest + 1] + [midpoint] + vertices[longest + 1 :]


def polygon_to_ring(polygon: Polygon) -> Optional[Ring]:
    """
    Closed counter-clockwise exterior ring with at least 4 distinct vertices.

    Triangles get the midpoint of their longest edge inserted. Returns None
    for anything degenerate below that.
    """
    oriented = orient(polygon, sign=1.0)
    vertices = _distinct_vertices(list(oriented.exterior.coords))
    if len(vertices) == 3:
        vertices = _insert_longest_edge_midpoint(vertices)
    if len(vertices) < MIN_DISTINCT_VERTICES:
        return None
    return tuple(vertices) + (vertices[0],)


def ring_area(ring: Sequence[Tuple[float, float]]) -> float:
    """Planar area of a ring in square degrees."""
    return ring_to_polygon(ring).area


# ═══════════════════════════════════════════════════════════════════════════
# 🩹 INTERSECTION WITH REPAIR
# ═══════════════════════════════════════════════════════════════════════════


def safe_intersection(
    a: BaseGeometry,
    b: BaseGeometry,
    intersect_fn: Optional[IntersectFn] = None,
) -> Tuple[BaseGeometry, bool]:
    """
    Intersect two geometries, repairing both once on a topology error.

    Args:
        a, b: Operands
        intersect_fn: Intersection callable (defaults to shapely.intersection)

    Returns:
        (intersection, repaired) where repaired tells whether the retry ran

    Raises:
        GeometryError: The repaired retry failed as well.
    """
    fn = intersect_fn or shapely.intersection
    try:
        return fn(a, b), False
    except GEOSException as exc:
        logger.debug(f"Intersection failed, repairing operands: {exc}")

    repaired_a = a.buffer(0)
    repaired_b = b.buffer(0)
    try:
        return fn(repaired_a, repaired_b), True
    except GEOSException as exc:
        raise GeometryError(f"Intersection failed after repair: {exc}") from exc


# ═══════════════════════════════════════════════════════════════════════════
# ✂️ CLIP BOUNDARY
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class ClipOutcome:
    """Result of clipping one candidate ring.

    pieces and piece_areas are parallel lists, one entry per polygonal part.
    """

    pieces: List[Ring] = field(default_factory=list)
    piece_areas: List[float] = field(default_factory=list)
    repaired: bool = False

    @property
    def area(self) -> float:
        return float(sum(self.piece_areas))

    @property
    def is_empty(self) -> bool:
        return not self.pieces


class ClipBoundary:
    """
    Parent boundary prepared once and reused for every candidate cell.

    Example:
        boundary = ClipBoundary([zone.ring])
        outcome = boundary.clip(candidate_ring)
        for part, piece in enumerate(outcome.pieces): ...
    """

    def __init__(
        self,
        rings: Sequence[Ring],
        intersect_fn: Optional[IntersectFn] = None,
    ):
        self._geometry = rings_to_geometry(rings)
        self._intersect_fn = intersect_fn

    @property
    def is_valid(self) -> bool:
        return bool(self._geometry.is_valid)

    @property
    def area(self) -> float:
        return float(self._geometry.area)

    @property
    def geometry(self) -> BaseGeometry:
        return self._geometry

    def clip(self, ring: Ring) -> ClipOutcome:
        """
        Intersect a candidate ring with the boundary.

        Raises:
            GeometryError: Intersection failed even after repair.
        """
        candidate = ring_to_polygon(ring)
        clipped, repaired = safe_intersection(
            candidate, self._geometry, self._intersect_fn
        )
        outcome = ClipOutcome(repaired=repaired)
        for part in _polygon_parts(clipped):
            ring = polygon_to_ring(part)
            if ring is not None:
                outcome.pieces.append(ring)
                outcome.piece_areas.append(float(part.area))
        return outcome
