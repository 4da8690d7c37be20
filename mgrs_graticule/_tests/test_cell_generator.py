"""
Unit tests for the Recursive Square/Cell Generator.

Tests:
1. Zone 05Q -> 100 km squares: ids, counts, ring invariants
2. Uniqueness of (id, part) and idempotence of repeated runs
3. Coverage across ordinary, antimeridian, polar, southern and widened
   zones: exact union, no overlap, every piece inside its zone
4. 100 km -> 10 km pass with the same function
5. Widened and southern zones
6. Zero-feature diagnostic when nothing projects
7. Invalid parameters raise EncodingError

Run with: python -m pytest mgrs_graticule/_tests/test_cell_generator.py -v
"""

import logging
import re
from collections import Counter

import pytest
from shapely.geometry import Polygon
from shapely.ops import unary_union

from mgrs_graticule.grid.cell_generator import generate_grid_cells
from mgrs_graticule.models import EncodingError, Hemisphere
from mgrs_graticule.zone_boundaries import get_zone

MIN_AREA = 1e-8


# ============================================================================
# FIXTURES
# ============================================================================


def _generate_zone(name: str, cell_size_m: int = 100000):
    zone = get_zone(name)
    return generate_grid_cells(
        parent_boundary=[zone.ring],
        parent_id=zone.name,
        zone=zone.number,
        hemisphere=zone.hemisphere,
        cell_size_m=cell_size_m,
    )


@pytest.fixture(scope="module")
def squares_05q():
    """100 km squares of zone 05Q (generated once for the module)."""
    return _generate_zone("05Q")


@pytest.fixture(scope="module")
def interior_square(squares_05q):
    """The largest unsplit 100 km square of 05Q."""
    counts = Counter(f.id for f in squares_05q.features)
    whole = [f for f in squares_05q.features if counts[f.id] == 1]
    return max(whole, key=lambda f: Polygon(f.ring).area)


def _union_area(features) -> float:
    return unary_union([Polygon(f.ring) for f in features]).area


# ============================================================================
# TESTS
# ============================================================================


class TestHundredKmSquares:
    """Zone -> 100 km pass on zone 05Q."""

    def test_ids_match_zone_prefix(self, squares_05q):
        """Every id is 05Q plus a column and a row letter."""
        pattern = re.compile(r"^05Q[A-Z]{2}$")
        bad = [f.id for f in squares_05q.features if not pattern.match(f.id)]
        assert not bad, f"Unexpected ids: {bad}"

    def test_feature_count(self, squares_05q):
        """8 columns x 10 rows of candidates, at least one survives."""
        assert 1 <= len(squares_05q.features) <= 100
        assert squares_05q.diagnostics.feature_count == len(squares_05q.features)

    def test_ring_invariants(self, squares_05q):
        """Closed rings, at least 4 distinct vertices, area above epsilon."""
        for feature in squares_05q.features:
            ring = feature.ring
            assert ring[0] == ring[-1], feature.id
            assert len(set(ring[:-1])) >= 4, feature.id
            assert Polygon(ring).area >= MIN_AREA, feature.id
            assert Polygon(ring).exterior.is_ccw, feature.id

    def test_metadata(self, squares_05q):
        for feature in squares_05q.features:
            assert feature.parent_id == "05Q"
            assert feature.precision_m == 100000
            assert feature.center is not None

    def test_id_part_pairs_unique(self, squares_05q):
        """(id, part) never repeats; split pieces are numbered."""
        pairs = [(f.id, f.part) for f in squares_05q.features]
        assert len(pairs) == len(set(pairs))

    def test_idempotent(self, squares_05q):
        """A second run produces identical features."""
        again = _generate_zone("05Q")
        assert again.features == squares_05q.features

    def test_diagnostics_counts(self, squares_05q):
        diagnostics = squares_05q.diagnostics
        assert diagnostics.attempted_cells >= len({f.id for f in squares_05q.features})
        assert diagnostics.intersection_failures == 0
        assert diagnostics.parent_valid
        assert diagnostics.parent_area == pytest.approx(48.0)


COVERAGE_ZONES = ["05Q", "01Q", "60Q", "60C", "01X", "05M", "05C", "31V", "33X"]


@pytest.fixture(scope="module", params=COVERAGE_ZONES)
def zone_squares(request):
    """(zone, 100 km squares) for ordinary, antimeridian, polar and widened zones."""
    return get_zone(request.param), _generate_zone(request.param)


class TestZoneCoverage:
    """The squares of a zone tile it exactly, without leaving it."""

    def test_union_reconstructs_zone(self, zone_squares):
        zone, outcome = zone_squares
        expected = (zone.east - zone.west) * (zone.north - zone.south)
        assert outcome.features, outcome.diagnostics.summary()
        assert _union_area(outcome.features) == pytest.approx(expected, abs=1e-6)

    def test_pieces_do_not_overlap(self, zone_squares):
        """Summed piece areas equal the union area."""
        _, outcome = zone_squares
        total = sum(Polygon(f.ring).area for f in outcome.features)
        assert total == pytest.approx(_union_area(outcome.features), abs=1e-6)

    def test_pieces_stay_inside_zone(self, zone_squares):
        zone, outcome = zone_squares
        width = zone.east - zone.west
        for feature in outcome.features:
            min_lon, min_lat, max_lon, max_lat = feature.bbox
            assert min_lon >= zone.west - 1e-9, feature.id
            assert max_lon <= zone.east + 1e-9, feature.id
            assert min_lat >= zone.south - 1e-9, feature.id
            assert max_lat <= zone.north + 1e-9, feature.id
            assert max_lon - min_lon <= width + 1e-9, feature.id

    def test_centers_are_normalized(self, zone_squares):
        _, outcome = zone_squares
        for feature in outcome.features:
            if feature.center is not None:
                assert -180.0 <= feature.center[0] <= 180.0, feature.id


class TestTenKmCells:
    """100 km -> 10 km pass with the same generator."""

    def test_cells_of_interior_square(self, interior_square):
        """An unsplit square yields up to 100 labelled cells covering it."""
        reference = interior_square.id
        outcome = generate_grid_cells(
            parent_boundary=[interior_square.ring],
            parent_id=reference,
            zone=5,
            hemisphere=Hemisphere.NORTH,
            cell_size_m=10000,
        )

        pattern = re.compile(rf"^{reference}\d\d$")
        assert outcome.features, outcome.diagnostics.summary()
        assert all(pattern.match(f.id) for f in outcome.features)
        assert all(f.parent_id == reference for f in outcome.features)
        assert len({f.id for f in outcome.features}) <= 100

        parent_area = Polygon(interior_square.ring).area
        assert _union_area(outcome.features) == pytest.approx(parent_area, abs=1e-6)

    def test_multi_part_parent(self, squares_05q):
        """All pieces of a split square can be passed as one boundary."""
        counts = Counter(f.id for f in squares_05q.features)
        split = [square_id for square_id, n in counts.items() if n > 1]
        if not split:
            pytest.skip("No split squares in 05Q")
        pieces = [f for f in squares_05q.features if f.id == split[0]]

        outcome = generate_grid_cells(
            parent_boundary=[p.ring for p in pieces],
            parent_id=split[0],
            zone=5,
            hemisphere=Hemisphere.NORTH,
            cell_size_m=10000,
        )
        assert outcome.features


class TestSpecialZones:
    """Widened and southern zones generate like any other."""

    def test_widened_svalbard_zone(self):
        """33X spans 12 degrees and still covers its whole area."""
        outcome = _generate_zone("33X")
        assert outcome.features
        assert all(f.id.startswith("33X") for f in outcome.features)
        assert _union_area(outcome.features) == pytest.approx(12.0 * 12.0, abs=1e-6)

    def test_southern_zone(self):
        outcome = _generate_zone("56H")
        assert outcome.features
        assert all(re.match(r"^56H[A-Z]{2}$", f.id) for f in outcome.features)


class TestDiagnostics:
    """Failures stay observable instead of silently yielding nothing."""

    def test_nothing_projects(self, caplog):
        """A parent beyond the pole yields zero features and attempted == 0."""
        ring = ((-155.0, 95.0), (-151.0, 95.0), (-151.0, 96.0), (-155.0, 96.0), (-155.0, 95.0))
        with caplog.at_level(logging.WARNING, logger="MGRS.Grid.Generator"):
            outcome = generate_grid_cells(
                parent_boundary=[ring],
                parent_id="05Q",
                zone=5,
                hemisphere=Hemisphere.NORTH,
                cell_size_m=100000,
            )

        assert outcome.features == []
        assert outcome.diagnostics.attempted_cells == 0
        assert outcome.diagnostics.projected_bounds is None
        assert any("Zero features for 05Q" in r.getMessage() for r in caplog.records)

    def test_invalid_cell_size(self):
        zone = get_zone("05Q")
        with pytest.raises(EncodingError):
            generate_grid_cells([zone.ring], "05Q", 5, Hemisphere.NORTH, 25000)

    def test_malformed_parent_id(self):
        zone = get_zone("05Q")
        with pytest.raises(EncodingError):
            generate_grid_cells([zone.ring], "not-a-zone", 5, Hemisphere.NORTH, 100000)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
