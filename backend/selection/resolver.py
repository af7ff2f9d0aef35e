from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Union

import config
from cache.detail_cache import DetailCache
from geo.distance import planar_distance_deg
from layers.loaders import zone_from_hit
from layers.types import (
    LayerVisibility,
    LocationRecord,
    ZoneCategory,
    ZoneFeature,
    ZoneHit,
)
from selection.state import FocusType, SelectionState

_logger = logging.getLogger(__name__)

# Non-cycling precedence: a marker always beats the zones under it.
PRIORITY: tuple[FocusType, ...] = (FocusType.location, FocusType.qct, FocusType.dda)

# Repeated ambiguous clicks walk the ring location -> qct -> dda -> location,
# skipping types that are not candidates at the new click.
NEXT_IN_RING: dict[FocusType, tuple[FocusType, ...]] = {
    FocusType.location: (FocusType.qct, FocusType.dda),
    FocusType.qct: (FocusType.dda, FocusType.location),
    FocusType.dda: (FocusType.location, FocusType.qct),
}


@dataclass(frozen=True)
class ClickCandidates:
    """
    Everything a single click could select.

    `qct_hit`/`dda_hit` say a visible zone was under the cursor; `qct`/`dda` hold
    its data, which can be missing even when the flag is set.
    """

    record: LocationRecord | None = None
    qct_hit: bool = False
    dda_hit: bool = False
    qct: ZoneFeature | None = None
    dda: ZoneFeature | None = None

    def available(self) -> list[FocusType]:
        flags = {
            FocusType.location: self.record is not None,
            FocusType.qct: self.qct_hit,
            FocusType.dda: self.dda_hit,
        }
        return [ft for ft in PRIORITY if flags[ft]]

    @property
    def is_ambiguous(self) -> bool:
        return len(self.available()) >= 2

    def data_for(self, focus: FocusType) -> Union[LocationRecord, ZoneFeature, None]:
        if focus is FocusType.location:
            return self.record
        if focus is FocusType.qct:
            return self.qct
        if focus is FocusType.dda:
            return self.dda
        return None


def find_nearest_record(
    records: Iterable[LocationRecord],
    lat: float,
    lon: float,
    *,
    threshold_deg: float | None = None,
) -> LocationRecord | None:
    """
    The single mappable record closest to the click, if strictly within the threshold.

    Uses planar degrees rather than haversine; the radius is small.
    """
    best: LocationRecord | None = None
    best_d = config.click_threshold_deg() if threshold_deg is None else float(threshold_deg)
    for r in records:
        if not r.is_mappable:
            continue
        d = planar_distance_deg(lat, lon, r.latitude, r.longitude)  # type: ignore[arg-type]
        if d < best_d:
            best_d = d
            best = r
    return best


def collect_candidates(
    records: Iterable[LocationRecord],
    lat: float,
    lon: float,
    hits: Iterable[ZoneHit],
    *,
    visibility: LayerVisibility | None = None,
    threshold_deg: float | None = None,
) -> ClickCandidates:
    vis = visibility or LayerVisibility()
    first_hit: dict[ZoneCategory, ZoneHit] = {}
    for h in hits:
        category = h.category
        if category is None or not vis.zone_visible(category):
            continue
        first_hit.setdefault(category, h)

    qct_hit = first_hit.get(ZoneCategory.qct)
    dda_hit = first_hit.get(ZoneCategory.dda)
    return ClickCandidates(
        record=find_nearest_record(records, lat, lon, threshold_deg=threshold_deg),
        qct_hit=qct_hit is not None,
        dda_hit=dda_hit is not None,
        qct=zone_from_hit(qct_hit) if qct_hit is not None else None,
        dda=zone_from_hit(dda_hit) if dda_hit is not None else None,
    )


def _select(
    focus: FocusType,
    candidates: ClickCandidates,
    detail_cache: DetailCache | None,
) -> SelectionState | None:
    data = candidates.data_for(focus)
    if data is None:
        return None
    if isinstance(data, LocationRecord):
        # Prefer the enriched copy the preloader stored, if any.
        record = detail_cache.resolve(data) if detail_cache is not None else data
        return SelectionState.of_record(record)
    return SelectionState.of_zone(data)


def resolve_click(
    state: SelectionState,
    candidates: ClickCandidates,
    *,
    detail_cache: DetailCache | None = None,
) -> SelectionState:
    """
    Next selection after a click.

    - nothing under the cursor: unchanged (closing is a separate action)
    - prior selection + at least two candidate types: advance along NEXT_IN_RING
    - otherwise, or when the ring target has no data: first of PRIORITY with data
    """
    available = candidates.available()
    if not available:
        return state

    if state.focus_type is not FocusType.none and len(available) >= 2:
        target = next(
            (ft for ft in NEXT_IN_RING[state.focus_type] if ft in available),
            None,
        )
        if target is not None:
            chosen = _select(target, candidates, detail_cache)
            if chosen is not None:
                _logger.debug("cycle %s -> %s", state.focus_type.value, target.value)
                return chosen
            _logger.debug("cycle target %s has no data; using priority order", target.value)

    for focus in PRIORITY:
        if focus not in available:
            continue
        chosen = _select(focus, candidates, detail_cache)
        if chosen is not None:
            _logger.debug("select %s", focus.value)
            return chosen
    return state


def close_panel(_state: SelectionState | None = None) -> SelectionState:
    return SelectionState.empty()
