from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Sequence

import config
from geo.bounds import MapBounds
from layers.filters import mappable
from layers.types import LocationRecord

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    fetched_at: float
    bounds: MapBounds | None
    data: tuple[LocationRecord, ...]


EMPTY_ENTRY = CacheEntry(fetched_at=0.0, bounds=None, data=())


def contains_with_padding(
    requested: MapBounds, cached: MapBounds, *, fraction: float = 0.2
) -> bool:
    """
    True iff `requested` lies fully inside `cached` grown by `fraction` of its own size.

    One-directional: a request larger than the cached rectangle is never contained.
    """
    return cached.padded(fraction).contains(requested)


def filter_to_bounds(
    records: Sequence[LocationRecord], bounds: MapBounds
) -> list[LocationRecord]:
    return [
        r
        for r in mappable(records)
        if bounds.contains_point(r.latitude, r.longitude)  # type: ignore[arg-type]
    ]


class BoundsCache:
    """
    Holds the most recent bounds fetch and answers whether a new viewport can reuse it.

    The entry is replaced wholesale on every successful fetch; it is never merged.
    Owned by one map session; not shared across sessions.
    """

    def __init__(
        self,
        *,
        expiration_s: float | None = None,
        padding: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.expiration_s = config.cache_expiration_s() if expiration_s is None else float(expiration_s)
        self.padding = config.cache_padding() if padding is None else float(padding)
        self._clock = clock
        self._entry: CacheEntry = EMPTY_ENTRY

    @property
    def entry(self) -> CacheEntry:
        return self._entry

    def is_valid(self, bounds: MapBounds) -> bool:
        entry = self._entry
        if not entry.data or entry.bounds is None:
            return False
        age = self._clock() - entry.fetched_at
        if age >= self.expiration_s:
            return False
        return contains_with_padding(bounds, entry.bounds, fraction=self.padding)

    def query(self, bounds: MapBounds) -> list[LocationRecord] | None:
        """
        Cached records inside `bounds`, or None when the caller has to fetch.

        Padding decides applicability only; the result is always filtered to the
        unpadded request. A hit that filters down to nothing is reported as a miss.
        """
        if not self.is_valid(bounds):
            _logger.debug("bounds cache miss for %s", bounds.rounded_key())
            return None
        hits = filter_to_bounds(self._entry.data, bounds)
        if not hits:
            _logger.debug("bounds cache hit filtered to zero records for %s", bounds.rounded_key())
            return None
        _logger.debug("bounds cache hit: %d records for %s", len(hits), bounds.rounded_key())
        return hits

    def replace(self, bounds: MapBounds, records: Sequence[LocationRecord]) -> CacheEntry:
        self._entry = CacheEntry(
            fetched_at=self._clock(),
            bounds=bounds,
            data=tuple(records),
        )
        return self._entry
