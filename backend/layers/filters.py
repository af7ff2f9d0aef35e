from __future__ import annotations

from typing import Iterable

from layers.types import LocationRecord


def mappable(records: Iterable[LocationRecord]) -> list[LocationRecord]:
    return [r for r in records if r.is_mappable]


def visible_records(
    records: Iterable[LocationRecord],
    *,
    show_active: bool,
    show_closed: bool,
) -> list[LocationRecord]:
    """
    Mappable records that pass the active/closed toggles.

    Records with no status, or a status other than active/closed, are always shown.
    """
    out: list[LocationRecord] = []
    for r in mappable(records):
        status = (r.status or "").strip().lower()
        if status == "active" and not show_active:
            continue
        if status == "closed" and not show_closed:
            continue
        out.append(r)
    return out
