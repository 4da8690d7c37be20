"""
MGRS Parallel Generation Module

Runs grid generation off the caller's thread and caches the results.
Follows the thin-worker architecture:
- Thin worker calling the existing generator
- Primitive dict payloads for process transport
- Results routed back by key, consumed on the caller's thread

Module Structure:
- generation_worker.py: Thin worker for one generation request
- dispatcher.py: Fixed pool of isolated contexts with keyed callbacks
- grid_cache.py: Per-key state machine (unrequested/pending/resolved/error)
"""

from mgrs_graticule.parallel.dispatcher import (
    DispatchStats,
    GenerationDispatcher,
    create_dispatcher,
)
from mgrs_graticule.parallel.generation_worker import run_generation_request
from mgrs_graticule.parallel.grid_cache import (
    GridCache,
    GridCacheStats,
    create_grid_cache,
)

__all__ = [
    # Dispatcher
    "DispatchStats",
    "GenerationDispatcher",
    "create_dispatcher",
    # Worker
    "run_generation_request",
    # Cache
    "GridCache",
    "GridCacheStats",
    "create_grid_cache",
]
