from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from layers.types import LocationRecord, ZoneCategory, ZoneFeature


class FocusType(str, Enum):
    none = "none"
    location = "location"
    qct = "qct"
    dda = "dda"

    @classmethod
    def for_zone(cls, category: ZoneCategory) -> "FocusType":
        return cls.qct if category is ZoneCategory.qct else cls.dda


@dataclass(frozen=True)
class SelectionState:
    """
    What the detail panel is showing.

    Invariant: focus none <=> panel hidden <=> no selection; otherwise exactly the
    slot matching the focus is filled.
    """

    focus_type: FocusType = FocusType.none
    record: LocationRecord | None = None
    qct: ZoneFeature | None = None
    dda: ZoneFeature | None = None
    panel_visible: bool = False

    def __post_init__(self) -> None:
        filled = {
            FocusType.location: self.record is not None,
            FocusType.qct: self.qct is not None,
            FocusType.dda: self.dda is not None,
        }
        if self.focus_type is FocusType.none:
            if self.panel_visible or any(filled.values()):
                raise ValueError("empty selection must hide the panel and clear all slots")
            return
        if not self.panel_visible:
            raise ValueError(f"{self.focus_type.value} selection must show the panel")
        others = [ft for ft, is_set in filled.items() if is_set and ft is not self.focus_type]
        if not filled[self.focus_type] or others:
            raise ValueError(f"{self.focus_type.value} selection must fill exactly its own slot")

    @classmethod
    def empty(cls) -> "SelectionState":
        return cls()

    @classmethod
    def of_record(cls, record: LocationRecord) -> "SelectionState":
        return cls(focus_type=FocusType.location, record=record, panel_visible=True)

    @classmethod
    def of_zone(cls, zone: ZoneFeature) -> "SelectionState":
        if zone.category is ZoneCategory.qct:
            return cls(focus_type=FocusType.qct, qct=zone, panel_visible=True)
        return cls(focus_type=FocusType.dda, dda=zone, panel_visible=True)

    @property
    def selected_id(self) -> str | None:
        if self.record is not None:
            return self.record.id
        zone = self.qct or self.dda
        return zone.id if zone is not None else None
