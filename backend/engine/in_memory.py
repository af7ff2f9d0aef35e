from __future__ import annotations

from typing import Iterable

from cache.bounds_cache import filter_to_bounds
from engine.types import LocationSource
from geo.bounds import MapBounds
from layers.types import LocationRecord, ZoneCategory, ZoneFeature


class InMemorySource(LocationSource):
    """
    Serves a fixed set of records and zones held in memory (map presets, tests).
    """

    name = "in_memory"

    def __init__(
        self,
        records: Iterable[LocationRecord] = (),
        zones: dict[ZoneCategory, list[ZoneFeature]] | None = None,
    ) -> None:
        self.records = list(records)
        self.zones = {c: list(zs) for c, zs in (zones or {}).items()}

    async def fetch_records_in_bounds(self, bounds: MapBounds) -> list[LocationRecord]:
        return filter_to_bounds(self.records, bounds)

    async def fetch_zone_polygons(
        self, category: ZoneCategory, bounds: MapBounds | None = None
    ) -> list[ZoneFeature]:
        # Zones are small per preset; bounds filtering happens at render time.
        return list(self.zones.get(category, []))
