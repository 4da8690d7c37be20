"""
Worker function for generating one grid key.

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Run the cell generator for one GenerationRequest inside an
isolated worker (process or thread) and return a tagged message.

THIN WRAPPER pattern - calls existing functions from:
- grid/cell_generator.py: generate_grid_cells()

Follows the parallel worker conventions:
- Accept only primitive/serializable parameters (request dict)
- Return a dict tagged "generation-result" or "generation-error"
- Never raise: every failure becomes an error message for the dispatcher
- No business logic duplication

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
import time
from typing import Any, Dict

from mgrs_graticule.grid.cell_generator import generate_grid_cells
from mgrs_graticule.models import GenerationRequest

RESULT_MESSAGE = "generation-result"
ERROR_MESSAGE = "generation-error"


# ═══════════════════════════════════════════════════════════════════════════
# 🔧 WORKER LOGGING SETUP
# ═══════════════════════════════════════════════════════════════════════════


def _setup_worker_logging(key: str) -> logging.Logger:
    """
    Named logger for one request, so interleaved worker output stays
    attributable to its key.
    """
    logger = logging.getLogger(f"MGRS.Parallel.Worker.{key}")
    return logger


# ═══════════════════════════════════════════════════════════════════════════
# 🚀 WORKER ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════


def run_generation_request(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Generate the features for one request.

    Args:
        payload: GenerationRequest.to_dict() output

    Returns:
        {"type": "generation-result", "key", "features", "diagnostics",
         "elapsed_s"} on success, or
        {"type": "generation-error", "key", "error"} on failure
    """
    key = str(payload.get("key", ""))
    logger = _setup_worker_logging(key)
    start = time.perf_counter()

    try:
        request = GenerationRequest.from_dict(payload)
        outcome = generate_grid_cells(
            parent_boundary=request.boundary,
            parent_id=request.parent_id,
            zone=request.zone,
            hemisphere=request.hemisphere,
            cell_size_m=request.cell_size_m,
            samples_per_edge=request.samples_per_edge,
            min_area_deg2=request.min_area_deg2,
        )
    except Exception as exc:
        logger.error(f"❌ Generation failed for {key}: {exc}")
        return {
            "type": ERROR_MESSAGE,
            "key": key,
            "error": f"{type(exc).__name__}: {exc}",
        }

    elapsed = time.perf_counter() - start
    logger.debug(
        f"✅ {key}: {len(outcome.features)} features in {elapsed:.2f}s"
    )
    return {
        "type": RESULT_MESSAGE,
        "key": key,
        "features": [f.to_dict() for f in outcome.features],
        "diagnostics": outcome.diagnostics.to_dict(),
        "elapsed_s": round(elapsed, 3),
    }
