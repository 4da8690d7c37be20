"""
Unit tests for Geometry Repair & Clipping.

Tests:
1. Valid operands intersect without repair
2. A topology error triggers exactly one buffer(0) repair retry
3. A failing retry raises GeometryError
4. ClipBoundary returns CCW rings with at least 4 distinct vertices
5. Triangles gain a midpoint vertex; split cells yield several pieces

Run with: python -m pytest mgrs_graticule/_tests/test_geometry_repair.py -v
"""

import pytest
import shapely
from shapely.errors import GEOSException
from shapely.geometry import Polygon

from mgrs_graticule.grid.geometry_repair import (
    ClipBoundary,
    polygon_to_ring,
    ring_area,
    safe_intersection,
)
from mgrs_graticule.models import GeometryError

SQUARE = ((0.0, 0.0), (2.0, 0.0), (2.0, 2.0), (0.0, 2.0), (0.0, 0.0))
BOWTIE = ((0.0, 0.0), (1.0, 1.0), (1.0, 0.0), (0.0, 1.0), (0.0, 0.0))


class _StrictIntersection:
    """Intersection that rejects invalid operands, counting its calls."""

    def __init__(self):
        self.calls = 0

    def __call__(self, a, b):
        self.calls += 1
        if not (a.is_valid and b.is_valid):
            raise GEOSException("TopologyException: self-intersection")
        return shapely.intersection(a, b)


class TestSafeIntersection:
    """Repair happens only after a raw failure, and only once."""

    def test_valid_operands_not_repaired(self):
        """A clean intersection runs once and reports no repair."""
        fn = _StrictIntersection()
        result, repaired = safe_intersection(Polygon(SQUARE), Polygon(SQUARE), fn)

        assert fn.calls == 1
        assert not repaired
        assert result.area == pytest.approx(4.0)

    def test_bowtie_repaired_once(self):
        """A self-intersecting operand is repaired and retried exactly once."""
        fn = _StrictIntersection()
        result, repaired = safe_intersection(Polygon(BOWTIE), Polygon(SQUARE), fn)

        assert fn.calls == 2, f"Expected one retry, got {fn.calls - 1}"
        assert repaired
        assert not result.is_empty

    def test_second_failure_raises(self):
        """When the retry also fails GeometryError is raised."""
        calls = {"n": 0}

        def always_fails(a, b):
            calls["n"] += 1
            raise GEOSException("boom")

        with pytest.raises(GeometryError):
            safe_intersection(Polygon(SQUARE), Polygon(SQUARE), always_fails)
        assert calls["n"] == 2

    def test_clip_boundary_reports_repair(self):
        """ClipBoundary.clip surfaces the repair flag to the generator."""
        boundary = ClipBoundary([SQUARE], intersect_fn=_StrictIntersection())
        outcome = boundary.clip(BOWTIE)
        assert outcome.repaired
        assert not outcome.is_empty


class TestClipBoundary:
    """Clipped pieces obey the ring invariants."""

    def test_partial_overlap(self):
        """A square half outside the boundary keeps half its area."""
        boundary = ClipBoundary([SQUARE])
        candidate = ((1.0, 0.0), (3.0, 0.0), (3.0, 2.0), (1.0, 2.0), (1.0, 0.0))
        outcome = boundary.clip(candidate)

        assert len(outcome.pieces) == 1
        assert outcome.area == pytest.approx(2.0)
        ring = outcome.pieces[0]
        assert ring[0] == ring[-1]
        assert len(set(ring[:-1])) >= 4

    def test_rings_are_counter_clockwise(self):
        """Clockwise input comes back counter-clockwise."""
        boundary = ClipBoundary([SQUARE])
        clockwise = tuple(reversed(SQUARE))
        ring = boundary.clip(clockwise).pieces[0]
        assert Polygon(ring).exterior.is_ccw

    def test_disjoint_candidate_is_empty(self):
        boundary = ClipBoundary([SQUARE])
        far = ((10.0, 10.0), (11.0, 10.0), (11.0, 11.0), (10.0, 11.0), (10.0, 10.0))
        assert boundary.clip(far).is_empty

    def test_multi_part_boundary_splits_cell(self):
        """A cell spanning two boundary parts yields two pieces."""
        left = ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0), (0.0, 0.0))
        right = ((2.0, 0.0), (3.0, 0.0), (3.0, 1.0), (2.0, 1.0), (2.0, 0.0))
        boundary = ClipBoundary([left, right])
        candidate = ((0.5, 0.0), (2.5, 0.0), (2.5, 1.0), (0.5, 1.0), (0.5, 0.0))

        outcome = boundary.clip(candidate)
        assert len(outcome.pieces) == 2
        assert outcome.piece_areas == [pytest.approx(0.5), pytest.approx(0.5)]

    def test_boundary_reports_validity_and_area(self):
        boundary = ClipBoundary([SQUARE])
        assert boundary.is_valid
        assert boundary.area == pytest.approx(4.0)

    def test_no_usable_ring(self):
        """A boundary without rings raises GeometryError."""
        with pytest.raises(GeometryError):
            ClipBoundary([])


class TestPolygonToRing:
    """Degenerate outputs are padded or rejected."""

    def test_triangle_gains_midpoint(self):
        """A triangle gets the midpoint of its longest edge inserted."""
        triangle = Polygon([(0.0, 0.0), (4.0, 0.0), (0.0, 1.0)])
        ring = polygon_to_ring(triangle)

        assert ring is not None
        assert len(set(ring[:-1])) == 4
        assert (2.0, 0.5) in ring
        assert ring_area(ring) == pytest.approx(triangle.area)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
