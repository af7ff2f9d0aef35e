from __future__ import annotations

import os
from pathlib import Path


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if raw:
        try:
            return float(raw)
        except ValueError:
            pass
    return default


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "no", "off"}


def cache_expiration_s() -> float:
    return _env_float("ZONEMAP_CACHE_EXPIRATION_S", 300.0)


def cache_padding() -> float:
    # Fraction of the cached rectangle's own height/width.
    return _env_float("ZONEMAP_CACHE_PADDING", 0.2)


def preload_limit() -> int:
    return max(0, int(_env_float("ZONEMAP_PRELOAD_LIMIT", 100)))


def click_threshold_deg() -> float:
    # ~1-2km depending on latitude.
    return _env_float("ZONEMAP_CLICK_THRESHOLD_DEG", 0.02)


def debounce_s() -> float:
    return _env_float("ZONEMAP_DEBOUNCE_MS", 200.0) / 1000.0


def status_lifespan_s() -> float:
    return _env_float("ZONEMAP_STATUS_LIFESPAN_S", 30.0)


def fallback_enabled() -> bool:
    return _env_flag("ZONEMAP_FALLBACK", True)


def duckdb_path() -> str:
    return (os.getenv("ZONEMAP_DUCKDB_PATH") or "").strip() or ":memory:"


def maps_root() -> Path:
    return Path(os.getenv("ZONEMAP_MAPS_PATH") or (_repo_root() / "maps"))


def telemetry_enabled() -> bool:
    return _env_flag("ZONEMAP_TELEMETRY", True)


def telemetry_path() -> Path:
    # Kept under the repo so it's easy to inspect locally.
    raw = (os.getenv("ZONEMAP_TELEMETRY_PATH") or "").strip()
    return Path(raw) if raw else _repo_root() / "data" / "telemetry" / "zonemap.duckdb"


def session_idle_s() -> float:
    # Sessions untouched this long are dropped by the API.
    return _env_float("ZONEMAP_SESSION_IDLE_S", 1800.0)
