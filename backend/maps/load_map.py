from __future__ import annotations

from pathlib import Path

from engine.duckdb import DuckDBSource
from engine.in_memory import InMemorySource
from engine.types import LocationSource
from geo.bounds import MapBounds
from layers.loaders import load_geojson_zones, load_location_records
from layers.types import LayerVisibility, LocationRecord, ZoneCategory, ZoneFeature
from maps.registry import get_map, resolve_repo_path
from maps.types import MapPreset


def load_map_source(map_id: str | None) -> InMemorySource:
    """
    Load preset-configured locations and zones from files.
    """
    cfg = get_map(map_id).config

    def _p(rel: str) -> Path:
        p = resolve_repo_path(rel)
        if not p.exists():
            raise FileNotFoundError(f"Map '{cfg.id}' missing file: {rel}")
        return p

    records: list[LocationRecord] = []
    if cfg.locations is not None:
        records = load_location_records(_p(cfg.locations.path))

    zones: dict[ZoneCategory, list[ZoneFeature]] = {}
    for layer in cfg.zones:
        category = ZoneCategory(layer.category)
        zones.setdefault(category, []).extend(load_geojson_zones(category, _p(layer.path)))

    return InMemorySource(records=records, zones=zones)


def default_bounds(cfg: MapPreset) -> MapBounds:
    b = cfg.defaultBounds
    return MapBounds(north=b.north, south=b.south, east=b.east, west=b.west)


def default_visibility(cfg: MapPreset) -> LayerVisibility:
    by_category = {z.category: z.visibleByDefault for z in cfg.zones}
    return LayerVisibility(
        qct=by_category.get("qct", True),
        dda=by_category.get("dda", True),
        active_locations=cfg.showActiveByDefault,
        closed_locations=cfg.showClosedByDefault,
    )


def normalize_engine(name: str | None) -> str:
    n = (name or "in_memory").strip().lower()
    if n in {"duckdb", "in_memory"}:
        return n
    return "in_memory"


def build_source(map_id: str | None, engine: str | None = None) -> LocationSource:
    """
    Source for one session: the preset's files either served from memory or seeded
    into a private DuckDB database.
    """
    mem = load_map_source(map_id)
    if normalize_engine(engine) != "duckdb":
        return mem
    db = DuckDBSource()
    db.seed_locations(mem.records)
    for category, zones in mem.zones.items():
        db.seed_zones(category, zones)
    return db
