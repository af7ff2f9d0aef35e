from __future__ import annotations

import logging
import threading
from pathlib import Path

import duckdb

import config
from telemetry.store import TelemetryStore

_logger = logging.getLogger(__name__)

_STORE: TelemetryStore | None = None
_STORE_LOCK = threading.RLock()


def open_store(path: Path) -> TelemetryStore:
    path.parent.mkdir(parents=True, exist_ok=True)
    store = TelemetryStore(path=path, conn=duckdb.connect(str(path)))
    store.ensure_schema()
    store.start()
    return store


def _close(store: TelemetryStore) -> None:
    store.stop(timeout_s=2.0)
    try:
        store.conn.close()
    except duckdb.Error as e:
        _logger.debug("closing telemetry store %s failed: %s", store.path, e)


def get_store() -> TelemetryStore | None:
    """
    Process-wide store, or None when ZONEMAP_TELEMETRY is off.

    Reopens on the new file when ZONEMAP_TELEMETRY_PATH changes (tests do this).
    """
    global _STORE
    if not config.telemetry_enabled():
        return None
    path = config.telemetry_path()
    with _STORE_LOCK:
        if _STORE is not None and _STORE.path.resolve() != path.resolve():
            _close(_STORE)
            _STORE = None
        if _STORE is None:
            _STORE = open_store(path)
        return _STORE


def reset_store() -> None:
    global _STORE
    with _STORE_LOCK:
        if _STORE is None:
            config.telemetry_path().unlink(missing_ok=True)
            return
        _STORE.reset()
        _STORE = None
