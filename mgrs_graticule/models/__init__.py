"""Data models package for typed grid, request and cache structures."""

from .data_models import (
    CacheEntry,
    CacheState,
    Coordinate,
    GenerationDiagnostics,
    GenerationRequest,
    GenerationResult,
    GeodeticPoint,
    GridPolygon,
    Hemisphere,
    MAX_LATITUDE,
    MIN_LATITUDE,
    ProjectedPoint,
    Ring,
    ViewportBounds,
    VisibleGrid,
    ZoneDescriptor,
    ring_bbox,
)

from .errors import (
    DispatchError,
    EncodingError,
    GeometryError,
    GridError,
    ProjectionError,
)

__all__ = [
    # Point and ring types
    "Coordinate",
    "GeodeticPoint",
    "ProjectedPoint",
    "Ring",
    "ring_bbox",
    "MIN_LATITUDE",
    "MAX_LATITUDE",
    # Grid models
    "Hemisphere",
    "ZoneDescriptor",
    "GridPolygon",
    "GenerationRequest",
    "GenerationResult",
    "GenerationDiagnostics",
    # Cache and viewport models
    "CacheState",
    "CacheEntry",
    "ViewportBounds",
    "VisibleGrid",
    # Errors
    "GridError",
    "ProjectionError",
    "GeometryError",
    "EncodingError",
    "DispatchError",
]
