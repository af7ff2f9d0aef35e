from __future__ import annotations

import asyncio

from engine.in_memory import InMemorySource
from engine.types import FetchError
from geo.bounds import MapBounds
from layers.types import (
    DdaAttributes,
    LocationRecord,
    QctAttributes,
    ZoneCategory,
    ZoneFeature,
    ZoneGeometry,
    ZoneHit,
)
from selection.state import FocusType
from session.map_session import MapSession

VIEW = MapBounds(north=36.3, south=35.8, east=-86.5, west=-87.0)


def _square(min_lon: float, min_lat: float, max_lon: float, max_lat: float) -> ZoneGeometry:
    ring = [[min_lon, min_lat], [max_lon, min_lat], [max_lon, max_lat], [min_lon, max_lat], [min_lon, min_lat]]
    return ZoneGeometry(type="Polygon", coordinates=[ring])


RECORDS = [
    LocationRecord(id="1", latitude=36.164, longitude=-86.7819, status="Active", name="McKendree"),
    LocationRecord(id="2", latitude=36.1486, longitude=-86.7892, status="Active", name="Edgehill"),
    LocationRecord(id="3", latitude=36.1663, longitude=-86.7742, status="Closed", name="Calvary"),
    LocationRecord(id="4", latitude=None, longitude=None, status="Active", name="Unmapped"),
]
ZONES = {
    ZoneCategory.qct: [
        ZoneFeature(ZoneCategory.qct, QctAttributes(id="q1", geoid="47037016000"), _square(-86.80, 36.155, -86.77, 36.175)),
    ],
    ZoneCategory.dda: [
        ZoneFeature(ZoneCategory.dda, DdaAttributes(id="d1", dda_code="37203"), _square(-86.79, 36.16, -86.76, 36.185)),
    ],
}


class FlakyZoneSource(InMemorySource):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.fail_zones = False

    async def fetch_zone_polygons(self, category, bounds=None):
        if self.fail_zones:
            raise FetchError("zones down", category=category)
        return await super().fetch_zone_polygons(category, bounds)


class GatedSource(InMemorySource):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.gate: asyncio.Event | None = None

    async def fetch_records_in_bounds(self, bounds):
        if self.gate is not None:
            await self.gate.wait()
        return await super().fetch_records_in_bounds(bounds)


def _session(source=None, **kwargs) -> MapSession:
    kwargs.setdefault("fallback", False)
    kwargs.setdefault("debounce_s", 0.01)
    return MapSession(source or InMemorySource(RECORDS, ZONES), center=(36.16, -86.78), **kwargs)


def test_load_viewport_sets_records_status_and_preload():
    s = _session()
    result = asyncio.run(s.load_viewport(VIEW))
    assert result.origin == "backend"
    assert [r.id for r in s.records] == ["1", "2", "3"]
    # Closed records are hidden by default.
    assert [r.id for r in s.visible_records] == ["1", "2"]
    assert sorted(s.detail_cache.ids()) == ["1", "2"]
    assert s.loaded_bounds == VIEW
    assert s.status.messages() == ["Retrieved 3 locations"]


def test_visibility_toggle_shows_closed_records():
    s = _session()
    asyncio.run(s.load_viewport(VIEW))
    s.set_visibility(closed_locations=True)
    assert [r.id for r in s.visible_records] == ["1", "2", "3"]
    assert "3" in s.detail_cache
    snap = s.snapshot()
    assert snap["visibility"]["closedLocations"] is True
    assert snap["visibleCount"] == 3


def test_click_cycles_through_marker_and_zones():
    s = _session()
    asyncio.run(s.load_zones())
    asyncio.run(s.load_viewport(VIEW))

    lat, lon = 36.164, -86.7819
    assert s.click(lat, lon).focus_type is FocusType.location
    assert s.click(lat, lon).focus_type is FocusType.qct
    assert s.click(lat, lon).focus_type is FocusType.dda
    sel = s.click(lat, lon)
    assert sel.focus_type is FocusType.location
    assert sel.record.name == "McKendree"

    assert s.close_panel().focus_type is FocusType.none
    assert not s.selection.panel_visible


def test_click_with_client_hits_and_hidden_layer():
    s = _session()
    asyncio.run(s.load_viewport(VIEW))
    s.set_visibility(qct=False)
    hits = [
        ZoneHit(source_layer="qct-source", properties={"id": "q1"}),
        ZoneHit(source_layer="dda-source", properties={"id": "d1", "dda_code": "37203"}),
    ]
    # Far from any marker.
    sel = s.click(36.0, -86.6, hits)
    assert sel.focus_type is FocusType.dda
    assert sel.dda.attributes.dda_code == "37203"


def test_click_on_nothing_keeps_selection():
    s = _session()
    asyncio.run(s.load_viewport(VIEW))
    first = s.click(36.164, -86.7819, [])
    assert s.click(35.9, -86.55, []) is first


def test_zone_failure_keeps_previous_zones_and_reports_once():
    source = FlakyZoneSource(RECORDS, ZONES)
    s = _session(source)
    loaded = asyncio.run(s.load_zones([ZoneCategory.qct]))
    assert loaded == {ZoneCategory.qct: 1}
    assert "Loaded 1 QCT zones" in s.status.messages()

    source.fail_zones = True
    asyncio.run(s.load_zones([ZoneCategory.qct, ZoneCategory.dda]))
    assert len(s.zones[ZoneCategory.qct]) == 1
    assert s.zones[ZoneCategory.dda] == []
    msgs = s.status.messages()
    assert "Error loading DDA zones" in msgs
    assert "Error loading QCT zones" not in msgs


def test_stale_in_flight_response_is_discarded():
    source = GatedSource(RECORDS, ZONES)
    s = _session(source)
    newer = MapBounds(north=36.2, south=36.1, east=-86.7, west=-86.8)

    async def run():
        source.gate = asyncio.Event()
        old = asyncio.ensure_future(s.load_viewport(VIEW))
        await asyncio.sleep(0)
        s.desired_bounds = newer
        source.gate.set()
        return await old

    result = asyncio.run(run())
    assert result.origin == "discarded"
    assert s.records == []
    assert s.bounds_cache.entry.bounds is None


def test_debounced_viewport_changes_load_only_the_last():
    source = GatedSource(RECORDS, ZONES)
    s = _session(source)
    calls: list[MapBounds] = []
    inner = source.fetch_records_in_bounds

    async def counting(bounds):
        calls.append(bounds)
        return await inner(bounds)

    source.fetch_records_in_bounds = counting  # type: ignore[method-assign]
    views = [
        MapBounds(north=36.3 - i * 0.01, south=35.8, east=-86.5, west=-87.0)
        for i in range(4)
    ]

    async def run():
        task = None
        for v in views:
            task = s.viewport_changed(v)
            await asyncio.sleep(0)
        return await task

    result = asyncio.run(run())
    assert calls == [views[-1]]
    assert result.origin == "backend"
    assert s.loaded_bounds == views[-1]


def test_fallback_records_are_shown_but_not_cached():
    class DownSource(InMemorySource):
        async def fetch_records_in_bounds(self, bounds):
            raise FetchError("down", bounds=bounds)

    s = _session(DownSource(), fallback=True)
    result = asyncio.run(s.load_viewport(VIEW))
    assert result.origin == "fallback"
    assert len(s.records) == 9
    assert s.bounds_cache.entry.bounds is None
    assert s.status.messages() == ["Error loading location data; showing 9 demo locations"]


def test_preload_center_follows_panned_viewport():
    south = LocationRecord(id="south", latitude=36.16, longitude=-86.78, status="Active")
    north = LocationRecord(id="north", latitude=36.60, longitude=-86.78, status="Active")
    s = _session(InMemorySource([south, north], {}), preload_limit=1)

    wide = MapBounds(north=36.7, south=36.0, east=-86.5, west=-87.0)
    asyncio.run(s.load_viewport(wide, center=(36.16, -86.78)))
    assert s.detail_cache.ids() == ["south"]

    # Pan north without an explicit center; still inside the padded cache.
    panned = MapBounds(north=36.75, south=36.1, east=-86.5, west=-87.0)
    result = asyncio.run(s.load_viewport(panned))
    assert result.origin == "cache"
    assert s.center == panned.center()
    assert "north" in s.detail_cache
    assert s.snapshot()["center"] == list(panned.center())


def test_debounced_viewport_keeps_explicit_center():
    s = _session()

    async def run():
        return await s.viewport_changed(VIEW, center=(36.2, -86.7))

    asyncio.run(run())
    assert s.center == (36.2, -86.7)
    assert s.loaded_bounds == VIEW
