from __future__ import annotations

from typing import Iterable

import config
from cache.detail_cache import DetailCache
from geo.distance import distance_km
from layers.filters import mappable
from layers.types import LocationRecord

DEFAULT_LIMIT = 100


def rank_by_distance(
    records: Iterable[LocationRecord],
    center_lat: float,
    center_lon: float,
    limit: int = DEFAULT_LIMIT,
) -> list[LocationRecord]:
    """
    Up to `limit` mappable records, closest to the center first.

    Equal distances keep input order (sorted() is stable).
    """
    scored = [
        (distance_km(center_lat, center_lon, r.latitude, r.longitude), r)  # type: ignore[arg-type]
        for r in mappable(records)
    ]
    scored.sort(key=lambda pair: pair[0])
    return [r for _, r in scored[: max(0, int(limit))]]


class Preloader:
    """
    Keeps the detail cache warm with the records nearest the view center.
    """

    def __init__(self, detail_cache: DetailCache, *, limit: int | None = None) -> None:
        self.detail_cache = detail_cache
        self.limit = config.preload_limit() if limit is None else int(limit)

    def refresh(
        self,
        records: Iterable[LocationRecord],
        center_lat: float,
        center_lon: float,
    ) -> list[LocationRecord]:
        ranked = rank_by_distance(records, center_lat, center_lon, self.limit)
        # Keyed writes, so re-running with the same inputs changes nothing.
        self.detail_cache.put_many(ranked)
        return ranked
