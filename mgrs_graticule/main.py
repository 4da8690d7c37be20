#!/usr/bin/env python3
"""
MGRS Graticule Engine - Main Entry Point

Headless run of the grid engine: evaluate one viewport at one zoom level,
wait for the generation workers, and export the visible grid as GeoJSON.

Usage:
    python -m mgrs_graticule.main --bbox -156 16 -150 24 --zoom 9
    python -m mgrs_graticule.main --export-zones Output/zones.geojson
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

# Fix Windows console encoding for emoji support
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

from mgrs_graticule.config import CONFIG
from mgrs_graticule.config_types import AppConfig
from mgrs_graticule.context import create_grid_context
from mgrs_graticule.exporters import export_features_geojson, export_zone_asset
from mgrs_graticule.models import ViewportBounds, VisibleGrid
from mgrs_graticule.viewport_controller import ViewportController

# ═══════════════════════════════════════════════════════════════════════════
# 🎯 MODULE-LEVEL CONFIG (Single Source of Truth)
# ═══════════════════════════════════════════════════════════════════════════
APP_CONFIG = AppConfig.from_dict(CONFIG)


# ═══════════════════════════════════════════════════════════════════════════
# 📋 LOGGING SETUP
# ═══════════════════════════════════════════════════════════════════════════


def setup_logging(app_config: AppConfig = APP_CONFIG) -> Tuple[logging.Logger, Optional[Path]]:
    """Configure logging with file and console handlers.

    Returns:
        Tuple of (logger, run_log_folder). run_log_folder is None when file
        logging is disabled.

    Folder naming convention:
        run_{MMDD}_{HHMM}, e.g. run_0129_1028
    """
    level = getattr(logging, app_config.logging.level, logging.INFO)

    logger = logging.getLogger("MGRS")
    logger.setLevel(level)
    logger.handlers.clear()

    run_log_folder = None
    if app_config.logging.log_to_file:
        timestamp = datetime.now().strftime("%m%d_%H%M")
        run_log_folder = app_config.file_paths.log_path / f"run_{timestamp}"
        run_log_folder.mkdir(parents=True, exist_ok=True)

        # File handler
        fh = logging.FileHandler(run_log_folder / "main.log", encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(fh)

    # Console handler
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(ch)

    return logger, run_log_folder


# ═══════════════════════════════════════════════════════════════════════════
# 🚀 HEADLESS RUN
# ═══════════════════════════════════════════════════════════════════════════


def run_viewport(
    bounds: ViewportBounds,
    zoom: float,
    app_config: AppConfig,
    logger: logging.Logger,
) -> VisibleGrid:
    """
    Evaluate one viewport until every dispatched key has settled.

    Returns:
        The final visible grid (may be partial if the run timed out)
    """
    parallel = app_config.parallel
    with create_grid_context(app_config) as context:
        controller = ViewportController(context)
        controller.on_viewport_change(bounds, zoom)

        deadline = time.monotonic() + parallel.run_timeout_s
        while controller.has_pending:
            if time.monotonic() > deadline:
                logger.warning(
                    f"⚠️ Timed out after {parallel.run_timeout_s:.0f}s with "
                    f"{len(context.dispatcher.pending_keys)} keys pending"
                )
                break
            controller.process_results(timeout=parallel.poll_interval_s)

        context.cache.log_summary()
        return controller.visible


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate MGRS grid polygons for a viewport and export GeoJSON."
    )
    parser.add_argument(
        "--bbox",
        nargs=4,
        type=float,
        metavar=("WEST", "SOUTH", "EAST", "NORTH"),
        help="Viewport in degrees (west > east crosses the antimeridian)",
    )
    parser.add_argument("--zoom", type=float, default=9.0, help="Map zoom level")
    parser.add_argument("--output", type=Path, help="GeoJSON output file")
    parser.add_argument(
        "--backend",
        choices=["loky", "process", "thread"],
        help="Worker backend (overrides config)",
    )
    parser.add_argument("--workers", type=int, help="Worker pool size")
    parser.add_argument(
        "--export-zones", type=Path, help="Write the zone boundary asset and exit"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    app_config = APP_CONFIG
    if args.backend or args.workers:
        app_config = replace(
            app_config,
            parallel=replace(
                app_config.parallel,
                backend=args.backend or app_config.parallel.backend,
                pool_size=args.workers or app_config.parallel.pool_size,
            ),
        )

    logger, run_log_folder = setup_logging(app_config)
    if run_log_folder is not None:
        logger.info(f"📁 Logs: {run_log_folder}")

    try:
        if args.export_zones:
            export_zone_asset(args.export_zones)
            return 0

        if not args.bbox:
            logger.error("❌ --bbox is required unless --export-zones is given")
            return 2

        bounds = ViewportBounds(*args.bbox)
        start = time.perf_counter()
        visible = run_viewport(bounds, args.zoom, app_config, logger)
        elapsed = time.perf_counter() - start
        logger.info(
            f"✅ {len(visible.zones)} zones, {len(visible.squares_100km)} squares, "
            f"{len(visible.cells_10km)} cells in {elapsed:.1f}s"
        )

        output = args.output or (
            app_config.file_paths.output_path / f"grid_z{args.zoom:g}.geojson"
        )
        export_features_geojson(visible.all_features(), output)
        return 0
    except Exception as e:
        logger.error(f"❌ Run failed: {e}")
        import traceback

        logger.error(traceback.format_exc())
        raise


if __name__ == "__main__":
    sys.exit(main())
