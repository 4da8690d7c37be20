"""
Grid generation package.

- cell_generator.py: Recursive square/cell generator (zone -> 100 km -> 10 km)
- geometry_repair.py: Clipping against parent boundaries with topology repair
"""

from mgrs_graticule.grid.cell_generator import (
    GenerationOutcome,
    generate_grid_cells,
)
from mgrs_graticule.grid.geometry_repair import (
    ClipBoundary,
    ClipOutcome,
    ring_area,
    safe_intersection,
)

__all__ = [
    "GenerationOutcome",
    "generate_grid_cells",
    "ClipBoundary",
    "ClipOutcome",
    "ring_area",
    "safe_intersection",
]
