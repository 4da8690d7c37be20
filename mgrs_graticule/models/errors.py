"""
Error taxonomy for grid generation.

Each failure kind has its own exception so call sites can decide what to
swallow (per-point and per-cell failures) and what to surface (dispatch
failures reach the caller's error callback).
"""


class GridError(Exception):
    """Base class for all grid engine errors."""


class ProjectionError(GridError):
    """A coordinate fell outside the valid domain of a zone projection."""


class GeometryError(GridError):
    """Clipping failed even after topology repair."""


class EncodingError(GridError):
    """A grid reference could not be built or parsed."""


class DispatchError(GridError):
    """A worker reported an error or crashed while generating a key."""
