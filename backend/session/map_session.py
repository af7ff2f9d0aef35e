from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Iterable

import config
from cache.bounds_cache import BoundsCache
from cache.detail_cache import DetailCache
from engine.types import FetchError, LocationSource
from geo.bounds import MapBounds
from geo.hit_test import ZoneHitTester
from layers.filters import visible_records
from layers.types import LayerVisibility, LocationRecord, ZoneCategory, ZoneFeature, ZoneHit
from ranking.preload import Preloader
from selection.resolver import close_panel, collect_candidates, resolve_click
from selection.state import SelectionState
from session.debounce import ViewportDebouncer
from session.loader import LoadResult, LocationLoader
from status.feed import StatusFeed
from telemetry.store import TelemetryStore

_logger = logging.getLogger(__name__)


class MapSession:
    """
    Everything one map view owns: caches, the live record set, zones, and the selection.

    Construct one per view; nothing here is shared between sessions. All mutation happens
    on the event loop, so no locking is needed; reads stay valid while a fetch is out.
    """

    def __init__(
        self,
        source: LocationSource,
        *,
        center: tuple[float, float] | None = None,
        visibility: LayerVisibility | None = None,
        bounds_cache: BoundsCache | None = None,
        detail_cache: DetailCache | None = None,
        status: StatusFeed | None = None,
        preload_limit: int | None = None,
        click_threshold_deg: float | None = None,
        fallback: bool | None = None,
        debounce_s: float | None = None,
        telemetry: TelemetryStore | None = None,
    ) -> None:
        self.source = source
        self.bounds_cache = bounds_cache or BoundsCache()
        self.detail_cache = detail_cache or DetailCache()
        self.status = status or StatusFeed()
        self.visibility = visibility or LayerVisibility()
        self.loader = LocationLoader(source, self.bounds_cache, fallback=fallback)
        self.preloader = Preloader(self.detail_cache, limit=preload_limit)
        self.click_threshold_deg = (
            config.click_threshold_deg() if click_threshold_deg is None else float(click_threshold_deg)
        )
        self.telemetry = telemetry
        self.debouncer: ViewportDebouncer[tuple[MapBounds, tuple[float, float] | None]] = (
            ViewportDebouncer(self._load_debounced, delay_s=debounce_s)
        )

        self.records: list[LocationRecord] = []
        self.zones: dict[ZoneCategory, list[ZoneFeature]] = {c: [] for c in ZoneCategory}
        self.selection: SelectionState = SelectionState.empty()
        self.center: tuple[float, float] | None = center
        self.desired_bounds: MapBounds | None = None
        self.loaded_bounds: MapBounds | None = None
        self._hit_tester: ZoneHitTester | None = None
        self._zone_load_attempted: set[ZoneCategory] = set()

    @property
    def visible_records(self) -> list[LocationRecord]:
        return visible_records(
            self.records,
            show_active=self.visibility.active_locations,
            show_closed=self.visibility.closed_locations,
        )

    def viewport_changed(
        self, bounds: MapBounds, *, center: tuple[float, float] | None = None
    ) -> asyncio.Task:
        """
        Debounced entry point for pan/zoom events.

        The newest viewport becomes the desired one immediately, so any fetch still in
        flight for an older viewport is discarded when it lands.
        """
        self.desired_bounds = bounds
        if center is not None:
            self.set_center(*center)
        return self.debouncer.schedule((bounds, center))

    async def _load_debounced(
        self, change: tuple[MapBounds, tuple[float, float] | None]
    ) -> LoadResult:
        bounds, center = change
        return await self.load_viewport(bounds, center=center)

    async def load_viewport(
        self, bounds: MapBounds, *, center: tuple[float, float] | None = None
    ) -> LoadResult:
        """
        Load records for a viewport. Without an explicit center the map center follows
        the viewport, so preloading ranks around what is on screen.
        """
        self.desired_bounds = bounds
        if center is not None:
            self.center = (float(center[0]), float(center[1]))
        else:
            self.center = bounds.center()

        result = await self.loader.load(bounds, is_current=self._is_desired)
        if result.message:
            self.status.add(result.message)
        if result.records is not None:
            self.records = result.records
            self.loaded_bounds = bounds
            self._refresh_preload()
        self._record_telemetry(result)
        _logger.debug(
            "viewport %s -> %s (%s records)",
            bounds.rounded_key(),
            result.origin,
            len(result.records) if result.records is not None else "kept",
        )
        return result

    def set_center(self, lat: float, lon: float) -> None:
        self.center = (float(lat), float(lon))
        self._refresh_preload()

    def _is_desired(self, bounds: MapBounds) -> bool:
        return self.desired_bounds is None or self.desired_bounds == bounds

    def _refresh_preload(self) -> list[LocationRecord]:
        if not self.records or self.center is None:
            return []
        lat, lon = self.center
        return self.preloader.refresh(self.visible_records, lat, lon)

    def lookup(self, record_id: str) -> LocationRecord | None:
        """
        Hover/click detail lookup: warm cache first, then the live record set.
        """
        cached = self.detail_cache.get(record_id)
        if cached is not None:
            return cached
        return next((r for r in self.records if r.id == str(record_id)), None)

    async def load_zones(
        self,
        categories: Iterable[ZoneCategory] | None = None,
        *,
        bounds: MapBounds | None = None,
    ) -> dict[ZoneCategory, int]:
        """
        Fetch each zone layer independently; a failed layer keeps what it had.
        """
        loaded: dict[ZoneCategory, int] = {}
        for category in list(categories or ZoneCategory):
            first_attempt = category not in self._zone_load_attempted
            self._zone_load_attempted.add(category)
            if first_attempt:
                self.status.add("Loading map overlays...")
            try:
                zones = await self.source.fetch_zone_polygons(category, bounds)
            except FetchError as e:
                _logger.warning("%s zones unavailable: %s", category.label, e)
                if first_attempt:
                    self.status.add(f"Error loading {category.label} zones")
                continue
            if not zones:
                continue
            self.zones[category] = zones
            loaded[category] = len(zones)
            if first_attempt:
                self.status.add(f"Loaded {len(zones)} {category.label} zones")
        if loaded:
            self._hit_tester = None
        return loaded

    def hit_test(self, lat: float, lon: float) -> list[ZoneHit]:
        if self._hit_tester is None:
            self._hit_tester = ZoneHitTester.build(self.zones)
        return self._hit_tester.hits_at(lat, lon, visibility=self.visibility)

    def click(
        self,
        lat: float,
        lon: float,
        hits: Iterable[ZoneHit] | None = None,
    ) -> SelectionState:
        """
        Resolve a map click. `hits` are the rendered polygons under the cursor; when the
        caller has none, the loaded zones are hit-tested instead.
        """
        zone_hits = list(hits) if hits is not None else self.hit_test(lat, lon)
        candidates = collect_candidates(
            self.visible_records,
            lat,
            lon,
            zone_hits,
            visibility=self.visibility,
            threshold_deg=self.click_threshold_deg,
        )
        self.selection = resolve_click(
            self.selection, candidates, detail_cache=self.detail_cache
        )
        return self.selection

    def close_panel(self) -> SelectionState:
        self.selection = close_panel(self.selection)
        return self.selection

    def set_visibility(self, **toggles: bool) -> LayerVisibility:
        self.visibility = replace(self.visibility, **toggles)
        self._refresh_preload()
        return self.visibility

    def _record_telemetry(self, result: LoadResult) -> None:
        if self.telemetry is None:
            return
        self.telemetry.record(
            event="viewport",
            source=getattr(self.source, "name", type(self.source).__name__),
            bounds=result.bounds,
            stats={
                "cacheHit": result.cache_hit,
                "origin": result.origin,
                "recordCount": len(result.records) if result.records is not None else None,
                "timingsMs": result.timings_ms,
            },
        )

    def snapshot(self) -> dict[str, Any]:
        return {
            "center": list(self.center) if self.center is not None else None,
            "loadedBounds": self.loaded_bounds.to_dict() if self.loaded_bounds else None,
            "recordCount": len(self.records),
            "visibleCount": len(self.visible_records),
            "detailCacheSize": len(self.detail_cache),
            "zoneCounts": {c.value: len(zs) for c, zs in self.zones.items()},
            "visibility": {
                "qct": self.visibility.qct,
                "dda": self.visibility.dda,
                "activeLocations": self.visibility.active_locations,
                "closedLocations": self.visibility.closed_locations,
            },
            "selection": {
                "focusType": self.selection.focus_type.value,
                "selectedId": self.selection.selected_id,
                "panelVisible": self.selection.panel_visible,
            },
            "status": self.status.messages(),
        }
