from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Literal

import config
from cache.bounds_cache import BoundsCache
from engine.types import FetchError, LocationSource
from geo.bounds import MapBounds
from layers.fallback import fallback_locations
from layers.types import LocationRecord

_logger = logging.getLogger(__name__)

LoadOrigin = Literal["cache", "backend", "fallback", "stale", "skipped", "discarded"]


@dataclass(frozen=True)
class LoadResult:
    """
    Outcome of one viewport load.

    `records is None` means "keep showing what you have" (stale, skipped, discarded).
    """

    bounds: MapBounds
    origin: LoadOrigin
    records: list[LocationRecord] | None = None
    message: str | None = None
    timings_ms: dict[str, float] = field(default_factory=dict)

    @property
    def cache_hit(self) -> bool:
        return self.origin == "cache"


class LocationLoader:
    """
    Cache-or-fetch for viewport records.

    - padded cache hit: served without a backend call
    - miss: fetch, then replace the cache wholesale
    - failure or empty result: cache untouched; fallback demo data or stale records
    - response for a viewport that is no longer wanted: dropped before touching the cache
    """

    def __init__(
        self,
        source: LocationSource,
        cache: BoundsCache,
        *,
        fallback: bool | None = None,
    ) -> None:
        self.source = source
        self.cache = cache
        self.fallback = config.fallback_enabled() if fallback is None else bool(fallback)

    async def load(
        self,
        bounds: MapBounds,
        *,
        is_current: Callable[[MapBounds], bool] | None = None,
    ) -> LoadResult:
        t0 = time.perf_counter()
        if bounds.is_degenerate():
            return LoadResult(bounds=bounds, origin="skipped")

        cached = self.cache.query(bounds)
        if cached is not None:
            return LoadResult(
                bounds=bounds,
                origin="cache",
                records=cached,
                timings_ms={"total": _ms_since(t0)},
            )

        error: FetchError | None = None
        fetched: list[LocationRecord] = []
        try:
            fetched = await self.source.fetch_records_in_bounds(bounds)
        except FetchError as e:
            error = e
        fetch_ms = _ms_since(t0)

        if is_current is not None and not is_current(bounds):
            _logger.debug("discarding stale response for %s", bounds.rounded_key())
            return LoadResult(
                bounds=bounds,
                origin="discarded",
                timings_ms={"fetch": fetch_ms, "total": _ms_since(t0)},
            )

        if error is not None or not fetched:
            reason = str(error) if error is not None else "no locations returned"
            _logger.warning("location fetch failed for %s: %s", bounds.rounded_key(), reason)
            return self._degrade(bounds, t0, fetch_ms)

        self.cache.replace(bounds, fetched)
        return LoadResult(
            bounds=bounds,
            origin="backend",
            records=list(fetched),
            message=f"Retrieved {len(fetched)} locations",
            timings_ms={"fetch": fetch_ms, "total": _ms_since(t0)},
        )

    def _degrade(self, bounds: MapBounds, t0: float, fetch_ms: float) -> LoadResult:
        if self.fallback:
            demo = fallback_locations(bounds)
            return LoadResult(
                bounds=bounds,
                origin="fallback",
                records=demo,
                message=f"Error loading location data; showing {len(demo)} demo locations",
                timings_ms={"fetch": fetch_ms, "total": _ms_since(t0)},
            )
        return LoadResult(
            bounds=bounds,
            origin="stale",
            message="Error loading location data",
            timings_ms={"fetch": fetch_ms, "total": _ms_since(t0)},
        )


def _ms_since(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000.0, 3)
