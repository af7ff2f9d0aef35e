from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

import config
from geo.bounds import MapBounds
from layers.loaders import zone_properties
from layers.types import LocationRecord, ZoneFeature, ZoneHit
from maps.load_map import build_source, default_bounds, default_visibility, normalize_engine
from maps.registry import clear_registry_cache, get_map, list_maps
from selection.state import SelectionState
from session.map_session import MapSession
from telemetry.singleton import get_store, reset_store

_logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ApiBounds(BaseModel):
    north: float
    south: float
    east: float
    west: float


class ApiCenter(BaseModel):
    lat: float
    lon: float


class ApiCreateSession(BaseModel):
    mapId: str | None = None
    engine: str | None = None


class ApiViewport(BaseModel):
    bounds: ApiBounds
    center: ApiCenter | None = None


class ApiZoneHit(BaseModel):
    sourceLayer: str
    properties: dict[str, Any] | None = None


class ApiClick(BaseModel):
    lat: float
    lon: float
    # Rendered polygons under the cursor; omitted means "hit-test loaded zones".
    hits: list[ApiZoneHit] | None = None


class ApiVisibility(BaseModel):
    qct: bool | None = None
    dda: bool | None = None
    activeLocations: bool | None = None
    closedLocations: bool | None = None


# Session handlers are async so every read and write of a session runs on the event
# loop, one at a time.
_sessions: dict[str, MapSession] = {}
# session id -> time.monotonic() of its last request
_last_used: dict[str, float] = {}


def _close_session(session_id: str) -> MapSession | None:
    session = _sessions.pop(session_id, None)
    _last_used.pop(session_id, None)
    if session is None:
        return None
    session.debouncer.cancel()
    close = getattr(session.source, "close", None)
    if callable(close):
        close()
    return session


def _expire_idle_sessions() -> list[str]:
    cutoff = time.monotonic() - config.session_idle_s()
    expired = [sid for sid, used in _last_used.items() if used < cutoff]
    for sid in expired:
        _close_session(sid)
        _logger.info("session %s expired after inactivity", sid)
    return expired


def _session(session_id: str) -> MapSession:
    _expire_idle_sessions()
    s = _sessions.get(session_id)
    if s is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    _last_used[session_id] = time.monotonic()
    return s


def _bounds(b: ApiBounds) -> MapBounds:
    try:
        return MapBounds(north=b.north, south=b.south, east=b.east, west=b.west)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


def _record_json(r: LocationRecord) -> dict[str, Any]:
    return {
        **r.props,
        "id": r.id,
        "name": r.name,
        "address": r.address,
        "city": r.city,
        "state": r.state,
        "status": r.status,
        "latitude": r.latitude,
        "longitude": r.longitude,
    }


def _zone_json(z: ZoneFeature | None) -> dict[str, Any] | None:
    if z is None:
        return None
    return {"category": z.category.value, **zone_properties(z)}


def _selection_json(sel: SelectionState) -> dict[str, Any]:
    return {
        "focusType": sel.focus_type.value,
        "panelVisible": sel.panel_visible,
        "selectedId": sel.selected_id,
        "location": _record_json(sel.record) if sel.record is not None else None,
        "qct": _zone_json(sel.qct),
        "dda": _zone_json(sel.dda),
    }


@app.get("/maps")
def get_maps():
    # Allow editing YAML without restarting the backend.
    clear_registry_cache()
    return [m.model_dump() for m in list_maps()]


@app.post("/sessions")
async def create_session(body: ApiCreateSession | None = None):
    body = body or ApiCreateSession()
    try:
        entry = get_map(body.mapId)
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    cfg = entry.config
    engine = normalize_engine(body.engine)
    _expire_idle_sessions()

    center = (cfg.defaultView.center.lat, cfg.defaultView.center.lon)
    session = MapSession(
        build_source(cfg.id, engine),
        center=center,
        visibility=default_visibility(cfg),
        telemetry=get_store(),
    )
    await session.load_zones()
    result = await session.load_viewport(default_bounds(cfg), center=center)

    session_id = uuid.uuid4().hex
    _sessions[session_id] = session
    _last_used[session_id] = time.monotonic()
    _logger.info("session %s created (map=%s engine=%s)", session_id, cfg.id, engine)
    return {
        "sessionId": session_id,
        "mapId": cfg.id,
        "engine": engine,
        "origin": result.origin,
        "state": session.snapshot(),
    }


@app.get("/sessions/{session_id}")
async def get_session(session_id: str):
    return _session(session_id).snapshot()


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    if _close_session(session_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    return {"ok": True}


@app.post("/sessions/{session_id}/viewport")
async def post_viewport(session_id: str, body: ApiViewport):
    session = _session(session_id)
    center = (body.center.lat, body.center.lon) if body.center is not None else None
    result = await session.load_viewport(_bounds(body.bounds), center=center)
    return {
        "origin": result.origin,
        "cacheHit": result.cache_hit,
        "message": result.message,
        "timingsMs": result.timings_ms,
        "state": session.snapshot(),
    }


@app.get("/sessions/{session_id}/locations")
async def get_locations(session_id: str):
    return [_record_json(r) for r in _session(session_id).visible_records]


@app.get("/sessions/{session_id}/locations/{record_id}")
async def get_location(session_id: str, record_id: str):
    record = _session(session_id).lookup(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Unknown location '{record_id}'")
    return _record_json(record)


@app.post("/sessions/{session_id}/click")
async def post_click(session_id: str, body: ApiClick):
    session = _session(session_id)
    hits = None
    if body.hits is not None:
        hits = [ZoneHit(source_layer=h.sourceLayer, properties=h.properties) for h in body.hits]
    return _selection_json(session.click(body.lat, body.lon, hits))


@app.post("/sessions/{session_id}/close")
async def post_close(session_id: str):
    return _selection_json(_session(session_id).close_panel())


@app.post("/sessions/{session_id}/visibility")
async def post_visibility(session_id: str, body: ApiVisibility):
    session = _session(session_id)
    toggles = {
        "qct": body.qct,
        "dda": body.dda,
        "active_locations": body.activeLocations,
        "closed_locations": body.closedLocations,
    }
    session.set_visibility(**{k: v for k, v in toggles.items() if v is not None})
    return session.snapshot()


@app.get("/telemetry/summary")
def telemetry_summary(
    source: str | None = None,
    event: str | None = None,
    since_ms: int | None = None,
):
    store = get_store()
    if store is None:
        return {"enabled": False, "rows": []}
    store.flush(timeout_s=2.0)
    return {
        "enabled": True,
        "rows": store.summary(source=source, event=event, since_ms=since_ms),
    }


@app.get("/telemetry/slowest")
def telemetry_slowest(source: str | None = None, limit: int = 25):
    store = get_store()
    if store is None:
        return {"enabled": False, "rows": []}
    store.flush(timeout_s=2.0)
    return {"enabled": True, "rows": store.slowest(source=source, limit=limit)}


@app.post("/telemetry/reset")
def telemetry_reset():
    reset_store()
    return {"ok": True}
