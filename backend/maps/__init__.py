"""
Map presets: `maps/*/map.yaml` files describing a default view and the seed data behind it.
"""

from .registry import MapEntry, clear_registry_cache, get_map, list_maps
from .types import MapPreset, MapZoneLayer

__all__ = [
    "MapEntry",
    "MapPreset",
    "MapZoneLayer",
    "clear_registry_cache",
    "get_map",
    "list_maps",
]
