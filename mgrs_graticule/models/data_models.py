"""
Typed data models for MGRS grid generation.

Architectural Overview:
=======================
Immutable value types shared by every layer of the engine. Rings are plain
tuples of (lon, lat) tuples so they pickle cheaply across worker processes
and cannot be mutated once they leave the generator.

Key Interactions:
-----------------
- Input: zone_boundaries builds ZoneDescriptor, cell_generator builds GridPolygon
- Transport: to_dict()/from_dict() carry requests and results through the
  dispatcher as primitive dicts
- Output: the cache stores GridPolygon tuples and the viewport controller
  hands them to the renderer unchanged
- Navigation: Use VS Code outline (Ctrl+Shift+O) for quick navigation

Lifecycle of a cache entry:
---------------------------
UNREQUESTED -> PENDING -> RESOLVED (terminal until clear_all)
PENDING -> ERROR (retry-eligible, dispatched again like UNREQUESTED)

MODIFICATION POINT: Add new precision levels by extending cell sizes in config,
the types here are resolution agnostic.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

Coordinate = Tuple[float, float]
Ring = Tuple[Coordinate, ...]

# Coverage of the grid system (bands C..X)
MIN_LATITUDE = -80.0
MAX_LATITUDE = 84.0


# ═══════════════════════════════════════════════════════════════════════════
# 📍 POINT TYPES
# ═══════════════════════════════════════════════════════════════════════════


class GeodeticPoint(NamedTuple):
    """Longitude/latitude in degrees."""

    lon: float
    lat: float


class ProjectedPoint(NamedTuple):
    """Easting/northing in meters, only meaningful for one (zone, hemisphere)."""

    easting: float
    northing: float


# ═══════════════════════════════════════════════════════════════════════════
# 🏷️ ENUMS SECTION
# ═══════════════════════════════════════════════════════════════════════════


class Hemisphere(Enum):
    """Hemisphere of a UTM projection (selects the false northing)."""

    NORTH = "N"
    SOUTH = "S"

    @classmethod
    def from_band(cls, band: str) -> "Hemisphere":
        """Bands N..X lie north of the equator, C..M south of it."""
        return cls.NORTH if band.upper() >= "N" else cls.SOUTH

    @classmethod
    def from_latitude(cls, lat: float) -> "Hemisphere":
        return cls.NORTH if lat >= 0 else cls.SOUTH

    @classmethod
    def from_string(cls, s: str) -> "Hemisphere":
        """Accept "N"/"S" as well as "north"/"south" (case-insensitive)."""
        value = s.strip().upper()[:1]
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Unknown hemisphere: {s!r}")


class CacheState(Enum):
    """Lifecycle state of one generation key in the cache."""

    UNREQUESTED = "unrequested"
    PENDING = "pending"
    RESOLVED = "resolved"
    ERROR = "error"  # retry-eligible


# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ ZONE DESCRIPTOR
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ZoneDescriptor:
    """Geodetic rectangle of one grid zone designation (e.g. 05Q).

    Suppressed zones (32V, 34X, 36X) are kept with exists=False so lookups
    by name stay total; they never enter the generation boundary set.
    """

    number: int
    band: str
    hemisphere: Hemisphere
    west: float
    east: float
    south: float
    north: float
    exists: bool = True

    @property
    def name(self) -> str:
        return f"{self.number:02d}{self.band}"

    @property
    def width_deg(self) -> float:
        return self.east - self.west

    @property
    def bbox(self) -> Tuple[float, float, float, float]:
        """(min_lon, min_lat, max_lon, max_lat)"""
        return (self.west, self.south, self.east, self.north)

    @property
    def ring(self) -> Ring:
        """Closed counter-clockwise ring of the zone rectangle."""
        return (
            (self.west, self.south),
            (self.east, self.south),
            (self.east, self.north),
            (self.west, self.north),
            (self.west, self.south),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "number": self.number,
            "band": self.band,
            "hemisphere": self.hemisphere.value,
            "west": self.west,
            "east": self.east,
            "south": self.south,
            "north": self.north,
            "exists": self.exists,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ZoneDescriptor":
        return cls(
            number=int(d["number"]),
            band=str(d["band"]),
            hemisphere=Hemisphere.from_string(str(d["hemisphere"])),
            west=float(d["west"]),
            east=float(d["east"]),
            south=float(d["south"]),
            north=float(d["north"]),
            exists=bool(d.get("exists", True)),
        )


# ═══════════════════════════════════════════════════════════════════════════
# 🔲 GRID POLYGON
# ═══════════════════════════════════════════════════════════════════════════


def ring_bbox(ring: Ring) -> Tuple[float, float, float, float]:
    """Bounding box (min_lon, min_lat, max_lon, max_lat) of a ring."""
    lons = [p[0] for p in ring]
    lats = [p[1] for p in ring]
    return (min(lons), min(lats), max(lons), max(lats))


@dataclass(frozen=True)
class GridPolygon:
    """One clipped grid square or cell, ready to render.

    Invariants:
    - ring is closed (first == last) with at least 4 distinct vertices
    - enclosed area exceeds the configured minimum
    - (id, part) is unique within one generation result; pieces of a cell
      that the parent boundary split in two share the id

    Attributes:
        id: Grid reference, e.g. "05QKB" (100 km) or "05QKB12" (10 km)
        parent_id: Zone name or parent square id
        precision_m: Cell size in meters
        ring: Closed exterior ring of (lon, lat) tuples, counter-clockwise
        part: Index of this piece among the pieces sharing the id
        center: Geodetic point of the projected cell center (label anchor)
    """

    id: str
    parent_id: str
    precision_m: int
    ring: Ring
    part: int = 0
    center: Optional[Coordinate] = None

    @property
    def bbox(self) -> Tuple[float, float, float, float]:
        return ring_bbox(self.ring)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "precision_m": self.precision_m,
            "ring": [list(p) for p in self.ring],
            "part": self.part,
            "center": list(self.center) if self.center is not None else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GridPolygon":
        center = d.get("center")
        return cls(
            id=d["id"],
            parent_id=d["parent_id"],
            precision_m=int(d["precision_m"]),
            ring=tuple((float(p[0]), float(p[1])) for p in d["ring"]),
            part=int(d.get("part", 0)),
            center=(float(center[0]), float(center[1])) if center else None,
        )


# ═══════════════════════════════════════════════════════════════════════════
# 📨 GENERATION REQUEST / RESULT
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class GenerationRequest:
    """Work item sent to a generation worker.

    boundary holds one or more rings; a 100 km square that the zone edge cut
    into several pieces is passed as a multi-part boundary.
    """

    key: str
    zone: int
    hemisphere: Hemisphere
    boundary: Tuple[Ring, ...]
    cell_size_m: int
    parent_id: str
    samples_per_edge: Optional[int] = None
    min_area_deg2: float = 1e-8

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "zone": self.zone,
            "hemisphere": self.hemisphere.value,
            "boundary": [[list(p) for p in ring] for ring in self.boundary],
            "cell_size_m": self.cell_size_m,
            "parent_id": self.parent_id,
            "samples_per_edge": self.samples_per_edge,
            "min_area_deg2": self.min_area_deg2,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GenerationRequest":
        return cls(
            key=d["key"],
            zone=int(d["zone"]),
            hemisphere=Hemisphere.from_string(d["hemisphere"]),
            boundary=tuple(
                tuple((float(p[0]), float(p[1])) for p in ring)
                for ring in d["boundary"]
            ),
            cell_size_m=int(d["cell_size_m"]),
            parent_id=d["parent_id"],
            samples_per_edge=d.get("samples_per_edge"),
            min_area_deg2=float(d.get("min_area_deg2", 1e-8)),
        )


@dataclass
class GenerationDiagnostics:
    """Counters collected during one generator run.

    Returned with every result so a zero-feature run stays observable from
    the caller's process, not only from the worker's log.
    """

    parent_id: str = ""
    cell_size_m: int = 0
    attempted_cells: int = 0
    intersection_failures: int = 0
    repaired_intersections: int = 0
    encoding_failures: int = 0
    skipped_samples: int = 0
    discarded_cells: int = 0
    feature_count: int = 0
    projected_bounds: Optional[Tuple[float, float, float, float]] = None
    parent_valid: bool = True
    parent_area: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parent_id": self.parent_id,
            "cell_size_m": self.cell_size_m,
            "attempted_cells": self.attempted_cells,
            "intersection_failures": self.intersection_failures,
            "repaired_intersections": self.repaired_intersections,
            "encoding_failures": self.encoding_failures,
            "skipped_samples": self.skipped_samples,
            "discarded_cells": self.discarded_cells,
            "feature_count": self.feature_count,
            "projected_bounds": (
                list(self.projected_bounds) if self.projected_bounds else None
            ),
            "parent_valid": self.parent_valid,
            "parent_area": self.parent_area,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GenerationDiagnostics":
        bounds = d.get("projected_bounds")
        return cls(
            parent_id=d.get("parent_id", ""),
            cell_size_m=int(d.get("cell_size_m", 0)),
            attempted_cells=int(d.get("attempted_cells", 0)),
            intersection_failures=int(d.get("intersection_failures", 0)),
            repaired_intersections=int(d.get("repaired_intersections", 0)),
            encoding_failures=int(d.get("encoding_failures", 0)),
            skipped_samples=int(d.get("skipped_samples", 0)),
            discarded_cells=int(d.get("discarded_cells", 0)),
            feature_count=int(d.get("feature_count", 0)),
            projected_bounds=tuple(bounds) if bounds else None,
            parent_valid=bool(d.get("parent_valid", True)),
            parent_area=float(d.get("parent_area", 0.0)),
        )

    def summary(self) -> str:
        """One-line summary used in diagnostic log entries."""
        if self.projected_bounds:
            min_e, min_n, max_e, max_n = self.projected_bounds
            bounds = f"E {min_e:.0f}..{max_e:.0f} N {min_n:.0f}..{max_n:.0f}"
        else:
            bounds = "none (no parent vertex projected)"
        return (
            f"parent={self.parent_id} cell={self.cell_size_m}m "
            f"attempted={self.attempted_cells} "
            f"intersection_failures={self.intersection_failures} "
            f"repaired={self.repaired_intersections} "
            f"discarded={self.discarded_cells} "
            f"projected_bounds=[{bounds}] "
            f"parent_valid={self.parent_valid} "
            f"parent_area={self.parent_area:.6g}"
        )


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one request: features on success, error text otherwise."""

    key: str
    features: Tuple[GridPolygon, ...] = ()
    diagnostics: Optional[GenerationDiagnostics] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


# ═══════════════════════════════════════════════════════════════════════════
# 📦 CACHE ENTRY
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class CacheEntry:
    """State of one generation key (zone name or 100 km square id)."""

    key: str
    state: CacheState = CacheState.UNREQUESTED
    features: Tuple[GridPolygon, ...] = ()
    error: Optional[str] = None
    attempts: int = 0


# ═══════════════════════════════════════════════════════════════════════════
# 🔭 VIEWPORT BOUNDS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ViewportBounds:
    """Geodetic viewport box.

    west > east means the box crosses the antimeridian.
    """

    west: float
    south: float
    east: float
    north: float

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    def clamped(self) -> "ViewportBounds":
        """Clamp to grid coverage: lon -180..180, lat -80..84."""
        west = max(-180.0, min(180.0, self.west))
        east = max(-180.0, min(180.0, self.east))
        south = max(MIN_LATITUDE, min(MAX_LATITUDE, self.south))
        north = max(MIN_LATITUDE, min(MAX_LATITUDE, self.north))
        return ViewportBounds(west=west, south=south, east=east, north=north)

    def boxes(self) -> List[Tuple[float, float, float, float]]:
        """Split into plain (min_lon, min_lat, max_lon, max_lat) boxes."""
        if self.crosses_antimeridian:
            return [
                (self.west, self.south, 180.0, self.north),
                (-180.0, self.south, self.east, self.north),
            ]
        return [(self.west, self.south, self.east, self.north)]

    def intersects_bbox(self, bbox: Tuple[float, float, float, float]) -> bool:
        """True when bbox overlaps the viewport (edges touching count)."""
        min_lon, min_lat, max_lon, max_lat = bbox
        for west, south, east, north in self.boxes():
            if (
                min_lon <= east
                and max_lon >= west
                and min_lat <= north
                and max_lat >= south
            ):
                return True
        return False


@dataclass
class VisibleGrid:
    """Everything the renderer should draw for the current viewport."""

    zoom: float = 0.0
    zones: List[ZoneDescriptor] = field(default_factory=list)
    squares_100km: List[GridPolygon] = field(default_factory=list)
    cells_10km: List[GridPolygon] = field(default_factory=list)

    def all_features(self) -> List[GridPolygon]:
        return list(self.squares_100km) + list(self.cells_10km)
