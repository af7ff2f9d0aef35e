from __future__ import annotations

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb

from geo.bounds import MapBounds
from telemetry.sql import (
    CREATE_EVENTS_TABLE_SQL,
    INSERT_EVENTS_SQL,
    SLOWEST_SQL_TEMPLATE,
    SUMMARY_SQL_TEMPLATE,
)

_logger = logging.getLogger(__name__)

# Writer flushes whichever comes first.
BATCH_MAX = 250
BATCH_MAX_AGE_S = 0.5


def _safe_float(v) -> float | None:
    try:
        if v is None:
            return None
        return float(v)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class TelemetryEvent:
    ts_ms: int
    event: str
    source: str
    bounds: MapBounds
    stats_json: str

    def as_row(self) -> tuple:
        b = self.bounds
        return (self.ts_ms, self.event, self.source, b.north, b.south, b.east, b.west, self.stats_json)


@dataclass
class TelemetryStore:
    """
    Append-only event log of viewport loads in a local DuckDB file.

    record() never blocks the caller: events go through a queue to one writer thread,
    which owns all inserts. Reads share the connection under the same lock.
    """

    path: Path
    conn: duckdb.DuckDBPyConnection
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _q: "queue.Queue[TelemetryEvent]" = field(default_factory=queue.Queue, repr=False)
    _stop: threading.Event = field(default_factory=threading.Event, repr=False)
    _worker: threading.Thread | None = field(default=None, repr=False)

    def ensure_schema(self) -> None:
        with self._lock:
            self.conn.execute(CREATE_EVENTS_TABLE_SQL)

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stop.clear()
        self._worker = threading.Thread(target=self._run, name="telemetry-writer", daemon=True)
        self._worker.start()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        self._stop.set()
        w = self._worker
        if w is not None and w.is_alive():
            w.join(timeout=timeout_s)
        self._worker = None

    def record(
        self,
        *,
        event: str,
        source: str,
        bounds: MapBounds,
        stats: dict[str, Any],
    ) -> None:
        self.start()
        try:
            self._q.put_nowait(
                TelemetryEvent(
                    ts_ms=int(time.time() * 1000),
                    event=str(event),
                    source=str(source),
                    bounds=bounds,
                    stats_json=json.dumps(stats, ensure_ascii=False, default=str),
                )
            )
        except queue.Full:
            _logger.debug("telemetry queue full; dropping %s event", event)

    def flush(self, *, timeout_s: float = 2.0) -> None:
        """
        Wait until queued events are written (used by tests and the summary endpoint).
        """
        if self._worker is None:
            return
        # Events are marked done only once written (or dropped on a write error).
        deadline = time.time() + timeout_s
        while self._q.unfinished_tasks and time.time() < deadline:
            time.sleep(0.01)

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        # DuckDB locks the file per process, so reads go through this connection.
        with self._lock:
            return self.conn.execute(sql, params or []).fetchall()

    def summary(
        self,
        *,
        source: str | None = None,
        event: str | None = None,
        since_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Per (source, event): count, latency, average records returned and cache hit rate.
        """
        where, params = _filters(source=source, event=event, since_ms=since_ms)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ""
        rows = self.query(SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), params)
        return [
            {
                "source": source_v,
                "event": event_v,
                "n": int(n),
                "avgTotalMs": _safe_float(avg_ms),
                "p95TotalMs": _safe_float(p95),
                "avgRecords": _safe_float(avg_records),
                "cacheHitRate": _safe_float(hit_rate),
            }
            for source_v, event_v, n, avg_ms, p95, avg_records, hit_rate in rows
        ]

    def slowest(self, *, source: str | None = None, limit: int = 25) -> list[dict[str, Any]]:
        where, params = _filters(source=source)
        where.insert(0, "json_extract(stats_json, '$.timingsMs.total') IS NOT NULL")
        params.append(max(1, min(200, int(limit))))
        rows = self.query(SLOWEST_SQL_TEMPLATE.format(where_sql=" AND ".join(where)), params)
        return [
            {
                "tsMs": int(ts_ms),
                "source": source_v,
                "event": event_v,
                "origin": origin,
                "totalMs": _safe_float(total_ms),
                "recordCount": int(n) if n is not None else None,
                "bounds": {"north": north, "south": south, "east": east, "west": west},
            }
            for ts_ms, source_v, event_v, origin, total_ms, n, north, south, east, west in rows
        ]

    def reset(self) -> None:
        """
        Stop writing and delete the database file.
        """
        self.stop(timeout_s=2.0)
        with self._lock:
            self.conn.close()
            self.path.unlink(missing_ok=True)

    def _write(self, batch: list[TelemetryEvent]) -> None:
        if not batch:
            return
        with self._lock:
            try:
                self.conn.executemany(INSERT_EVENTS_SQL, [e.as_row() for e in batch])
                # Make rows visible to readers right away.
                self.conn.execute("CHECKPOINT;")
            except duckdb.Error as e:
                _logger.warning("dropping %d telemetry events: %s", len(batch), e)
        for _ in batch:
            self._q.task_done()

    def _run(self) -> None:
        self.ensure_schema()
        batch: list[TelemetryEvent] = []
        oldest: float | None = None

        while not self._stop.is_set():
            try:
                batch.append(self._q.get(timeout=0.1))
                if oldest is None:
                    oldest = time.time()
            except queue.Empty:
                pass

            if batch and (len(batch) >= BATCH_MAX or time.time() - oldest >= BATCH_MAX_AGE_S):
                self._write(batch)
                batch, oldest = [], None

        while True:
            try:
                batch.append(self._q.get_nowait())
            except queue.Empty:
                break
        self._write(batch)


def _filters(
    *,
    source: str | None = None,
    event: str | None = None,
    since_ms: int | None = None,
) -> tuple[list[str], list[Any]]:
    where: list[str] = []
    params: list[Any] = []
    if source:
        where.append("source = ?")
        params.append(source)
    if event:
        where.append("event = ?")
        params.append(event)
    if since_ms is not None:
        where.append("ts_ms >= ?")
        params.append(int(since_ms))
    return where, params
