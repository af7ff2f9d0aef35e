from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable

import yaml

import config
from maps.types import MapPreset

DEFAULT_MAP_ID = "nashville"


@dataclass(frozen=True)
class MapEntry:
    config: MapPreset
    # Absolute path to map.yaml on disk (useful for debugging).
    path: Path


def _iter_map_yaml_files() -> Iterable[Path]:
    root = config.maps_root()
    if not root.exists():
        return []
    # Convention: maps/*/map.yaml
    return root.glob("*/map.yaml")


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid map yaml root: {path}")
    return data


@lru_cache(maxsize=1)
def get_registry() -> dict[str, MapEntry]:
    out: dict[str, MapEntry] = {}
    for p in sorted(_iter_map_yaml_files(), key=lambda x: str(x)):
        cfg = MapPreset.model_validate(_load_yaml(p))
        if cfg.id in out:
            raise ValueError(f"Duplicate map id '{cfg.id}': {p}")
        out[cfg.id] = MapEntry(config=cfg, path=p)
    return out


def default_map_id() -> str:
    reg = get_registry()
    if DEFAULT_MAP_ID in reg or not reg:
        return DEFAULT_MAP_ID
    return next(iter(reg.keys()))


def list_maps() -> list[MapPreset]:
    return [e.config for e in get_registry().values() if e.config.enabled]


def get_map(map_id: str | None) -> MapEntry:
    reg = get_registry()
    if not reg:
        raise RuntimeError("No map presets discovered under `maps/*/map.yaml`")
    mid = (map_id or "").strip() or default_map_id()
    if mid not in reg:
        # Unknown preset falls back to default.
        mid = default_map_id()
    return reg[mid]


def resolve_repo_path(repo_relative: str) -> Path:
    # Allow both "maps/..." and "/maps/..." inputs (normalize to repo-relative).
    rel = (repo_relative or "").lstrip("/")
    return config.maps_root().parent / rel


def clear_registry_cache() -> None:
    """
    Clear in-memory map registry cache.

    Map YAML changes are otherwise not picked up until the backend process restarts.
    """
    get_registry.cache_clear()
