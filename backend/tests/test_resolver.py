from __future__ import annotations

import pytest

from cache.detail_cache import DetailCache
from layers.types import (
    DdaAttributes,
    LayerVisibility,
    LocationRecord,
    QctAttributes,
    ZoneCategory,
    ZoneFeature,
    ZoneHit,
)
from selection.resolver import (
    ClickCandidates,
    close_panel,
    collect_candidates,
    find_nearest_record,
    resolve_click,
)
from selection.state import FocusType, SelectionState

REC = LocationRecord(id="301003", latitude=36.164, longitude=-86.7819, status="Active", name="McKendree")
QCT = ZoneFeature(category=ZoneCategory.qct, attributes=QctAttributes(id="1", geoid="47037016000"))
DDA = ZoneFeature(category=ZoneCategory.dda, attributes=DdaAttributes(id="10", dda_code="37203"))


def _cands(point: bool = False, qct: bool = False, dda: bool = False) -> ClickCandidates:
    return ClickCandidates(
        record=REC if point else None,
        qct_hit=qct,
        dda_hit=dda,
        qct=QCT if qct else None,
        dda=DDA if dda else None,
    )


def _state(focus: FocusType) -> SelectionState:
    if focus is FocusType.location:
        return SelectionState.of_record(REC)
    if focus is FocusType.qct:
        return SelectionState.of_zone(QCT)
    if focus is FocusType.dda:
        return SelectionState.of_zone(DDA)
    return SelectionState.empty()


def test_point_only_click_selects_point():
    s = resolve_click(SelectionState.empty(), _cands(point=True))
    assert s.focus_type is FocusType.location
    assert s.record == REC
    assert s.qct is None and s.dda is None
    assert s.panel_visible


def test_point_beats_zones_without_prior_selection():
    s = resolve_click(SelectionState.empty(), _cands(point=True, qct=True, dda=True))
    assert s.focus_type is FocusType.location


def test_zone_priority_without_point():
    s = resolve_click(SelectionState.empty(), _cands(qct=True, dda=True))
    assert s.focus_type is FocusType.qct
    s = resolve_click(SelectionState.empty(), _cands(dda=True))
    assert s.focus_type is FocusType.dda
    assert s.dda == DDA


def test_cycle_from_point_to_zone_a():
    s = resolve_click(_state(FocusType.location), _cands(point=True, qct=True))
    assert s.focus_type is FocusType.qct
    assert s.record is None and s.dda is None


def test_cycle_from_zone_b_to_zone_a_when_point_missing():
    s = resolve_click(_state(FocusType.dda), _cands(qct=True, dda=True))
    assert s.focus_type is FocusType.qct


@pytest.mark.parametrize(
    "current,avail,expected",
    [
        (FocusType.location, dict(point=True, qct=True, dda=True), FocusType.qct),
        (FocusType.location, dict(point=True, dda=True), FocusType.dda),
        (FocusType.qct, dict(point=True, qct=True, dda=True), FocusType.dda),
        (FocusType.qct, dict(point=True, qct=True), FocusType.location),
        (FocusType.qct, dict(qct=True, dda=True), FocusType.dda),
        (FocusType.dda, dict(point=True, qct=True, dda=True), FocusType.location),
        (FocusType.dda, dict(point=True, dda=True), FocusType.location),
    ],
)
def test_cycle_ring_table(current, avail, expected):
    assert resolve_click(_state(current), _cands(**avail)).focus_type is expected


def test_full_ring_walk_on_repeated_clicks():
    s = SelectionState.empty()
    seen = []
    for _ in range(4):
        s = resolve_click(s, _cands(point=True, qct=True, dda=True))
        seen.append(s.focus_type)
    assert seen == [FocusType.location, FocusType.qct, FocusType.dda, FocusType.location]


def test_single_candidate_with_prior_selection_uses_priority():
    s = resolve_click(_state(FocusType.qct), _cands(dda=True))
    assert s.focus_type is FocusType.dda


def test_cycle_target_without_data_falls_back_to_priority():
    # QCT flagged as hit but the hit carried no properties.
    cands = ClickCandidates(record=REC, qct_hit=True, dda_hit=False, qct=None, dda=None)
    s = resolve_click(_state(FocusType.location), cands)
    assert s.focus_type is FocusType.location


def test_no_candidates_leaves_state_unchanged():
    prior = _state(FocusType.qct)
    assert resolve_click(prior, _cands()) is prior
    empty = SelectionState.empty()
    assert resolve_click(empty, _cands()) is empty


def test_close_panel_resets():
    s = close_panel(_state(FocusType.dda))
    assert s.focus_type is FocusType.none
    assert not s.panel_visible
    assert s.selected_id is None


def test_point_selection_prefers_detail_cache_copy():
    enriched = LocationRecord(
        id=REC.id, latitude=REC.latitude, longitude=REC.longitude, props={"url": "https://example.org"}
    )
    cache = DetailCache()
    cache.put(enriched)
    s = resolve_click(SelectionState.empty(), _cands(point=True), detail_cache=cache)
    assert s.record is enriched
    s = resolve_click(SelectionState.empty(), _cands(point=True), detail_cache=DetailCache())
    assert s.record is REC


def test_selection_invariant_is_enforced():
    with pytest.raises(ValueError):
        SelectionState(focus_type=FocusType.location, record=REC, qct=QCT, panel_visible=True)
    with pytest.raises(ValueError):
        SelectionState(focus_type=FocusType.none, panel_visible=True)
    with pytest.raises(ValueError):
        SelectionState(focus_type=FocusType.qct, qct=QCT, panel_visible=False)


def test_nearest_record_is_single_and_strictly_within_threshold():
    a = LocationRecord(id="a", latitude=0.0, longitude=0.01)
    b = LocationRecord(id="b", latitude=0.0, longitude=0.005)
    c = LocationRecord(id="c", latitude=None, longitude=None)
    assert find_nearest_record([a, b, c], 0.0, 0.0, threshold_deg=0.02) is b
    assert find_nearest_record([a], 0.0, 0.0, threshold_deg=0.01) is None
    assert find_nearest_record([], 0.0, 0.0) is None


def test_collect_candidates_respects_visibility():
    hits = [
        ZoneHit(source_layer="qct-source", properties={"id": "1", "geoid": "47037016000"}),
        ZoneHit(source_layer="dda-source", properties={"id": "10", "dda_code": "37203"}),
        ZoneHit(source_layer="roads", properties={"id": "x"}),
    ]
    c = collect_candidates([REC], 36.164, -86.7819, hits, visibility=LayerVisibility(qct=False))
    assert c.record == REC
    assert not c.qct_hit and c.qct is None
    assert c.dda_hit and c.dda is not None
    assert c.dda.attributes.dda_code == "37203"
    assert c.available() == [FocusType.location, FocusType.dda]


def test_collect_candidates_hit_without_properties_flags_but_has_no_data():
    c = collect_candidates([], 0.0, 0.0, [ZoneHit(source_layer="qct-layer", properties=None)])
    assert c.qct_hit
    assert c.qct is None
    s = resolve_click(SelectionState.empty(), c)
    assert s.focus_type is FocusType.none
