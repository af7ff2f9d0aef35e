from __future__ import annotations

import asyncio
import json
import logging
import threading
from pathlib import Path
from typing import Any, Iterable

import duckdb
from shapely.geometry import shape

import config
from engine.types import FetchError, LocationSource
from geo.bounds import MapBounds
from layers.loaders import records_from_rows, zone_properties, zones_from_rows
from layers.types import LocationRecord, ZoneCategory, ZoneFeature

_logger = logging.getLogger(__name__)

_LOCATION_COLUMNS = ("id", "latitude", "longitude", "status", "name", "address", "city", "state")


def connect(path: str) -> duckdb.DuckDBPyConnection:
    if path != ":memory:":
        p = Path(path)
        if p.parent and str(p.parent) not in {".", ""}:
            p.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(database=path, read_only=False)


def init_schema(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS locations (
          id TEXT PRIMARY KEY,
          latitude DOUBLE,
          longitude DOUBLE,
          status TEXT,
          name TEXT,
          address TEXT,
          city TEXT,
          state TEXT,
          props_json TEXT
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS zones (
          category TEXT,
          id TEXT,
          props_json TEXT,
          geom_json TEXT,
          min_lon DOUBLE,
          min_lat DOUBLE,
          max_lon DOUBLE,
          max_lat DOUBLE,
          PRIMARY KEY(category, id)
        );
        """
    )


class DuckDBSource(LocationSource):
    """
    Location/zone backend over two DuckDB tables.

    Queries run in a worker thread so the event loop keeps serving stale data meanwhile.
    """

    name = "duckdb"

    def __init__(self, *, path: str | None = None) -> None:
        self.path = path or config.duckdb_path()
        self._lock = threading.RLock()
        self.conn = connect(self.path)
        init_schema(self.conn)

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def seed_locations(self, records: Iterable[LocationRecord]) -> int:
        rows = [
            (
                r.id,
                r.latitude,
                r.longitude,
                r.status,
                r.name,
                r.address,
                r.city,
                r.state,
                json.dumps(r.props or {}, ensure_ascii=False, default=str),
            )
            for r in records
        ]
        with self._lock:
            self.conn.executemany(
                "INSERT OR REPLACE INTO locations VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    def seed_zones(self, category: ZoneCategory, zones: Iterable[ZoneFeature]) -> int:
        rows = []
        for z in zones:
            if z.geometry is None:
                continue
            geom = z.geometry.to_geojson()
            min_lon, min_lat, max_lon, max_lat = shape(geom).bounds
            props = zone_properties(z)
            rows.append(
                (
                    category.value,
                    z.id,
                    json.dumps(props, ensure_ascii=False, default=str),
                    json.dumps(geom),
                    float(min_lon),
                    float(min_lat),
                    float(max_lon),
                    float(max_lat),
                )
            )
        with self._lock:
            self.conn.executemany(
                "INSERT OR REPLACE INTO zones VALUES (?, ?, ?, ?, ?, ?, ?, ?)", rows
            )
        return len(rows)

    async def fetch_records_in_bounds(self, bounds: MapBounds) -> list[LocationRecord]:
        try:
            rows = await asyncio.to_thread(self._query_locations, bounds)
        except (duckdb.Error, ValueError) as e:
            _logger.warning("location query failed: %s", e)
            raise FetchError(f"location query failed: {e}", bounds=bounds) from e
        return records_from_rows(rows)

    async def fetch_zone_polygons(
        self, category: ZoneCategory, bounds: MapBounds | None = None
    ) -> list[ZoneFeature]:
        try:
            rows = await asyncio.to_thread(self._query_zones, category, bounds)
        except (duckdb.Error, ValueError) as e:
            _logger.warning("%s zone query failed: %s", category.label, e)
            raise FetchError(f"{category.label} zone query failed: {e}", category=category) from e
        return zones_from_rows(category, rows)

    def _query_locations(self, bounds: MapBounds) -> list[dict[str, Any]]:
        cols = ", ".join(_LOCATION_COLUMNS)
        with self._lock:
            rows = self.conn.execute(
                f"""
                SELECT {cols}, props_json FROM locations
                WHERE latitude IS NOT NULL AND longitude IS NOT NULL
                  AND latitude >= ? AND latitude <= ?
                  AND longitude >= ? AND longitude <= ?
                ORDER BY id
                """,
                (bounds.south, bounds.north, bounds.west, bounds.east),
            ).fetchall()

        out: list[dict[str, Any]] = []
        for row in rows:
            rec = dict(zip(_LOCATION_COLUMNS, row[:-1]))
            rec.update(_props(row[-1]))
            out.append(rec)
        return out

    def _query_zones(
        self, category: ZoneCategory, bounds: MapBounds | None
    ) -> list[dict[str, Any]]:
        sql = "SELECT id, props_json, geom_json FROM zones WHERE category = ?"
        params: list[Any] = [category.value]
        if bounds is not None:
            sql += " AND max_lon >= ? AND min_lon <= ? AND max_lat >= ? AND min_lat <= ?"
            params.extend([bounds.west, bounds.east, bounds.south, bounds.north])
        sql += " ORDER BY id"
        with self._lock:
            rows = self.conn.execute(sql, params).fetchall()
        return [
            {**_props(props_json), "id": fid, "geom": geom_json}
            for fid, props_json, geom_json in rows
        ]


def _props(raw: str | None) -> dict[str, Any]:
    # Raises ValueError on a garbled column; callers turn it into a FetchError.
    props = json.loads(raw or "{}")
    if not isinstance(props, dict):
        raise ValueError(f"props_json is not an object: {raw!r}")
    return props
