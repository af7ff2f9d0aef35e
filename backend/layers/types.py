from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeAlias, Union


class ZoneCategory(str, Enum):
    """
    The two overlay zone layers drawn on top of the location markers.
    """

    qct = "qct"  # Qualified Census Tracts
    dda = "dda"  # Difficult Development Areas

    @property
    def source_layer(self) -> str:
        return f"{self.value}-source"

    @property
    def label(self) -> str:
        return self.value.upper()

    @classmethod
    def from_source_layer(cls, source_layer: str | None) -> "ZoneCategory | None":
        raw = (source_layer or "").strip().lower()
        for category in cls:
            if raw in {category.value, category.source_layer, f"{category.value}-layer"}:
                return category
        return None


@dataclass(frozen=True)
class LocationRecord:
    """
    A point-of-interest row as returned by the backend.

    Coordinates are optional: rows without them stay in the raw list but never take
    part in spatial operations.
    """

    id: str
    latitude: float | None
    longitude: float | None
    status: str | None = None
    name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    # Everything else the backend returned (conference, district, url, details, ...).
    props: dict[str, Any] = field(default_factory=dict)

    @property
    def is_mappable(self) -> bool:
        return _is_number(self.latitude) and _is_number(self.longitude)


@dataclass(frozen=True)
class ZoneGeometry:
    """
    Opaque GeoJSON geometry carried alongside zone attributes.

    Only the hit tester looks inside; everything else passes it through untouched.
    """

    type: str
    coordinates: Any

    @classmethod
    def from_geojson(cls, geom: dict[str, Any] | None) -> "ZoneGeometry | None":
        if not isinstance(geom, dict):
            return None
        gtype = geom.get("type")
        coords = geom.get("coordinates")
        if gtype not in {"Polygon", "MultiPolygon"} or not coords:
            return None
        return cls(type=str(gtype), coordinates=coords)

    def to_geojson(self) -> dict[str, Any]:
        return {"type": self.type, "coordinates": self.coordinates}


@dataclass(frozen=True)
class QctAttributes:
    id: str
    geoid: str = ""
    tract: str = ""
    state: str = ""
    county: str = ""
    name: str = ""
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DdaAttributes:
    id: str
    dda_code: str = ""
    dda_type: str = ""
    dda_name: str = ""
    state: str = ""
    county: str = ""
    extra: dict[str, Any] = field(default_factory=dict)


ZoneAttributes: TypeAlias = Union[QctAttributes, DdaAttributes]


@dataclass(frozen=True)
class ZoneFeature:
    category: ZoneCategory
    attributes: ZoneAttributes
    geometry: ZoneGeometry | None = None

    @property
    def id(self) -> str:
        return self.attributes.id


@dataclass(frozen=True)
class ZoneHit:
    """
    One rendered polygon under the click pixel, as reported by the map surface.
    """

    source_layer: str
    properties: dict[str, Any] | None

    @property
    def category(self) -> ZoneCategory | None:
        return ZoneCategory.from_source_layer(self.source_layer)


@dataclass(frozen=True)
class LayerVisibility:
    """
    UI-owned toggles. A hidden zone layer counts as absent even if the click hits it.
    """

    qct: bool = True
    dda: bool = True
    active_locations: bool = True
    closed_locations: bool = False

    def zone_visible(self, category: ZoneCategory) -> bool:
        return self.qct if category is ZoneCategory.qct else self.dda


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)
