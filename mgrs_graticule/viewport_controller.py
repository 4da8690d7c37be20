"""
Viewport Controller

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: On every viewport change decide which grid levels are
visible, dispatch generation for keys not yet resolved or in flight, and
publish the features that intersect the viewport.

Key Functions:
- ViewportController.on_viewport_change(): evaluate a new viewport
- ViewportController.process_results(): deliver worker results, re-evaluate
- ViewportController.clear_all(): forget cache and in-flight callbacks
- precision_levels_for_zoom(): zoom -> cell sizes to show

Zoom contract:
- zoom < 5: zone outlines only
- 5 <= zoom < 8: zones + 100 km squares
- zoom >= 8: zones + 100 km squares + 10 km cells

Hierarchy:
- 100 km requests are keyed by zone name ("05Q") and use the zone rectangle
- 10 km requests are keyed by square id ("05QKB") and use every resolved
  piece of that square as a multi-part parent boundary

Visibility filtering is applied on read, never on storage: panning back to
an area reuses cached features without regenerating them.

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
from collections import OrderedDict
from typing import Callable, Dict, List, Optional, Tuple

from mgrs_graticule.config_types import GenerationConfig, ViewportConfig
from mgrs_graticule.context import GridContext
from mgrs_graticule.grid_reference import parse_grid_reference
from mgrs_graticule.models import (
    CacheState,
    DispatchError,
    GenerationRequest,
    GenerationResult,
    GridPolygon,
    ViewportBounds,
    VisibleGrid,
    ZoneDescriptor,
)

logger = logging.getLogger("MGRS.Viewport")

VisibleListener = Callable[[VisibleGrid], None]


def precision_levels_for_zoom(
    zoom: float,
    viewport: Optional[ViewportConfig] = None,
    generation: Optional[GenerationConfig] = None,
) -> Tuple[int, ...]:
    """Cell sizes (meters) to display at a zoom level, coarsest first."""
    viewport = viewport or ViewportConfig()
    generation = generation or GenerationConfig()
    levels: List[int] = []
    if zoom >= viewport.hundred_km_min_zoom:
        levels.append(generation.hundred_km_cell_m)
    if zoom >= viewport.ten_km_min_zoom:
        levels.append(generation.ten_km_cell_m)
    return tuple(levels)


def _group_by_id(features: Tuple[GridPolygon, ...]) -> Dict[str, List[GridPolygon]]:
    groups: Dict[str, List[GridPolygon]] = OrderedDict()
    for feature in features:
        groups.setdefault(feature.id, []).append(feature)
    return groups


class ViewportController:
    """
    Drives the hierarchical cache from viewport changes.

    Example:
        with create_grid_context(app_config) as context:
            controller = ViewportController(context, listener=renderer.update)
            controller.on_viewport_change(ViewportBounds(-156, 16, -150, 24), 9)
            while controller.has_pending:
                controller.process_results(timeout=0.05)
    """

    def __init__(
        self,
        context: GridContext,
        listener: Optional[VisibleListener] = None,
    ):
        self.context = context
        self.listener = listener
        self._bounds: Optional[ViewportBounds] = None
        self._zoom: float = 0.0
        self._visible = VisibleGrid()

    @property
    def visible(self) -> VisibleGrid:
        """Features published by the last evaluation."""
        return self._visible

    @property
    def has_pending(self) -> bool:
        return self.context.dispatcher.has_pending

    # ───────────────────────────────────────────────────────────────────────
    # Viewport events
    # ───────────────────────────────────────────────────────────────────────

    def on_viewport_change(self, bounds: ViewportBounds, zoom: float) -> VisibleGrid:
        """
        Evaluate a new viewport.

        Keys that failed earlier are retried here (user-driven passes only).
        """
        self._bounds = bounds.clamped()
        self._zoom = zoom
        return self._evaluate(retry_errors=True)

    def process_results(self, timeout: float = 0.0) -> int:
        """
        Deliver finished worker results and re-evaluate the last viewport.

        Re-evaluation may dispatch 10 km requests for freshly resolved
        squares; failed keys wait for the next viewport change.

        Returns:
            Number of results delivered
        """
        delivered = self.context.dispatcher.deliver_results(timeout=timeout)
        if delivered and self._bounds is not None:
            self._evaluate(retry_errors=False)
        return delivered

    def clear_all(self) -> None:
        """Forget in-flight callbacks and every cached key."""
        self.context.dispatcher.forget_all()
        self.context.cache.clear_all()
        self._visible = VisibleGrid(zoom=self._zoom)

    def shutdown(self) -> None:
        self.context.close()

    # ───────────────────────────────────────────────────────────────────────
    # Evaluation
    # ───────────────────────────────────────────────────────────────────────

    def _evaluate(self, retry_errors: bool) -> VisibleGrid:
        bounds = self._bounds
        config = self.context.config
        levels = precision_levels_for_zoom(
            self._zoom, config.viewport, config.generation
        )
        hundred_km = config.generation.hundred_km_cell_m
        ten_km = config.generation.ten_km_cell_m

        visible = VisibleGrid(zoom=self._zoom)
        visible.zones = [z for z in self.context.zones if bounds.intersects_bbox(z.bbox)]

        if hundred_km in levels:
            for zone in visible.zones:
                if self._should_dispatch(zone.name, retry_errors):
                    self._dispatch(self._zone_request(zone))

                squares = self.context.cache.features(zone.name)
                shown = [f for f in squares if bounds.intersects_bbox(f.bbox)]
                visible.squares_100km.extend(shown)

                if ten_km in levels:
                    self._evaluate_cells(squares, shown, visible, retry_errors)

        self._visible = visible
        logger.debug(
            f"🔭 zoom {self._zoom}: {len(visible.zones)} zones, "
            f"{len(visible.squares_100km)} squares, {len(visible.cells_10km)} cells"
        )
        if self.listener is not None:
            self.listener(visible)
        return visible

    def _evaluate_cells(
        self,
        squares: Tuple[GridPolygon, ...],
        shown: List[GridPolygon],
        visible: VisibleGrid,
        retry_errors: bool,
    ) -> None:
        """Dispatch and publish 10 km cells of the visible squares of one zone."""
        bounds = self._bounds
        shown_ids = {f.id for f in shown}
        for square_id, pieces in _group_by_id(squares).items():
            if square_id not in shown_ids:
                continue
            if self._should_dispatch(square_id, retry_errors):
                self._dispatch(self._square_request(square_id, pieces))
            visible.cells_10km.extend(
                f
                for f in self.context.cache.features(square_id)
                if bounds.intersects_bbox(f.bbox)
            )

    def _should_dispatch(self, key: str, retry_errors: bool) -> bool:
        cache = self.context.cache
        if not retry_errors and cache.state(key) == CacheState.ERROR:
            return False
        return cache.needs_dispatch(key)

    # ───────────────────────────────────────────────────────────────────────
    # Requests
    # ───────────────────────────────────────────────────────────────────────

    def _zone_request(self, zone: ZoneDescriptor) -> GenerationRequest:
        generation = self.context.config.generation
        cell = generation.hundred_km_cell_m
        return GenerationRequest(
            key=zone.name,
            zone=zone.number,
            hemisphere=zone.hemisphere,
            boundary=(zone.ring,),
            cell_size_m=cell,
            parent_id=zone.name,
            samples_per_edge=generation.samples_for(cell),
            min_area_deg2=generation.min_area_deg2,
        )

    def _square_request(
        self, square_id: str, pieces: List[GridPolygon]
    ) -> GenerationRequest:
        generation = self.context.config.generation
        cell = generation.ten_km_cell_m
        reference = parse_grid_reference(square_id)
        return GenerationRequest(
            key=square_id,
            zone=reference.zone,
            hemisphere=reference.hemisphere,
            boundary=tuple(p.ring for p in sorted(pieces, key=lambda p: p.part)),
            cell_size_m=cell,
            parent_id=square_id,
            samples_per_edge=generation.samples_for(cell),
            min_area_deg2=generation.min_area_deg2,
        )

    def _dispatch(self, request: GenerationRequest) -> None:
        cache = self.context.cache
        cache.mark_pending(request.key)
        try:
            self.context.dispatcher.submit(
                request, on_result=self._on_result, on_error=self._on_error
            )
        except DispatchError as exc:
            logger.error(f"❌ Could not dispatch {request.key}: {exc}")
            cache.fail(request.key, str(exc))
            return
        logger.debug(f"🚀 Dispatched {request.key} ({request.cell_size_m}m)")

    # ───────────────────────────────────────────────────────────────────────
    # Dispatcher callbacks (run on this controller's thread)
    # ───────────────────────────────────────────────────────────────────────

    def _on_result(self, result: GenerationResult) -> None:
        if not result.features:
            summary = result.diagnostics.summary() if result.diagnostics else "n/a"
            logger.warning(f"⚠️ {result.key} produced zero features: {summary}")
            self.context.cache.fail(result.key, "zero features")
            return
        self.context.cache.resolve(result.key, result.features)
        logger.info(f"✅ {result.key}: {len(result.features)} features")

    def _on_error(self, key: str, error: str) -> None:
        self.context.cache.fail(key, error)
