from __future__ import annotations

from typing import Protocol

from geo.bounds import MapBounds
from layers.types import LocationRecord, ZoneCategory, ZoneFeature


class FetchError(Exception):
    """Backend query failed (network, backend error, or a result we could not parse)."""

    def __init__(
        self,
        message: str,
        *,
        bounds: MapBounds | None = None,
        category: ZoneCategory | None = None,
    ) -> None:
        self.bounds = bounds
        self.category = category
        super().__init__(message)


class LocationSource(Protocol):
    """
    Backend query interface consumed by the map session.

    Implementations raise FetchError on failure; they never return partial garbage.
    """

    name: str

    async def fetch_records_in_bounds(self, bounds: MapBounds) -> list[LocationRecord]: ...

    async def fetch_zone_polygons(
        self, category: ZoneCategory, bounds: MapBounds | None = None
    ) -> list[ZoneFeature]: ...
