from __future__ import annotations

import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Iterable

from layers.types import (
    DdaAttributes,
    LocationRecord,
    QctAttributes,
    ZoneAttributes,
    ZoneCategory,
    ZoneFeature,
    ZoneGeometry,
    ZoneHit,
)

_RECORD_FIELDS = {"id", "gcfa", "latitude", "longitude", "status", "name", "address", "city", "state"}


def record_from_row(row: dict[str, Any]) -> LocationRecord | None:
    """
    Normalize one backend row.

    Returns None for rows without an id. Rows without usable coordinates are kept
    (unmappable), never rejected.
    """
    if not isinstance(row, dict):
        return None
    rid = row.get("id", row.get("gcfa"))
    if rid is None or str(rid).strip() == "":
        return None

    props = {k: v for k, v in row.items() if k not in _RECORD_FIELDS}
    details = props.get("details")
    if isinstance(details, str):
        try:
            props["details"] = json.loads(details)
        except ValueError:
            # Keep the raw string; details are display-only.
            pass

    return LocationRecord(
        id=str(rid),
        latitude=_to_float(row.get("latitude")),
        longitude=_to_float(row.get("longitude")),
        status=_to_str_or_none(row.get("status")),
        name=str(row.get("name") or ""),
        address=str(row.get("address") or ""),
        city=str(row.get("city") or ""),
        state=str(row.get("state") or ""),
        props=props,
    )


def records_from_rows(rows: Iterable[dict[str, Any]]) -> list[LocationRecord]:
    out: list[LocationRecord] = []
    for row in rows:
        rec = record_from_row(row)
        if rec is not None:
            out.append(rec)
    return out


def load_location_records(path: Path) -> list[LocationRecord]:
    """
    Input: a JSON array of rows, or `{"locations": [...]}`.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    rows = data.get("locations") if isinstance(data, dict) else data
    return records_from_rows(rows or [])


def zone_attributes(category: ZoneCategory, props: dict[str, Any]) -> ZoneAttributes:
    fid = str(props.get("id") or props.get("objectid") or props.get("geoid") or props.get("dda_code") or "")
    if category is ZoneCategory.qct:
        known = {"id", "geoid", "tract", "state", "county", "name"}
        return QctAttributes(
            id=fid,
            geoid=str(props.get("geoid") or ""),
            tract=str(props.get("tract") or ""),
            state=str(props.get("state") or ""),
            county=str(props.get("county") or ""),
            name=str(props.get("name") or ""),
            extra={k: v for k, v in props.items() if k not in known},
        )
    known = {"id", "dda_code", "dda_type", "dda_name", "state", "county"}
    return DdaAttributes(
        id=fid,
        dda_code=str(props.get("dda_code") or ""),
        dda_type=str(props.get("dda_type") or ""),
        dda_name=str(props.get("dda_name") or ""),
        state=str(props.get("state") or ""),
        county=str(props.get("county") or ""),
        extra={k: v for k, v in props.items() if k not in known},
    )


def zone_from_hit(hit: ZoneHit) -> ZoneFeature | None:
    """
    Build the zone a click landed on from its rendered properties.

    A hit without properties carries no data to show, so it yields None.
    """
    category = hit.category
    if category is None or not hit.properties:
        return None
    return ZoneFeature(category=category, attributes=zone_attributes(category, hit.properties))


def zones_from_geojson(category: ZoneCategory, data: dict[str, Any]) -> list[ZoneFeature]:
    features = (data or {}).get("features") or []

    out: list[ZoneFeature] = []
    for i, feature in enumerate(features):
        geometry = ZoneGeometry.from_geojson((feature or {}).get("geometry"))
        if geometry is None:
            continue
        props = dict((feature or {}).get("properties") or {})
        if not props.get("id"):
            props["id"] = str((feature or {}).get("id") or f"{category.value}-{i}")
        out.append(
            ZoneFeature(
                category=category,
                attributes=zone_attributes(category, props),
                geometry=geometry,
            )
        )
    return out


def zones_from_rows(category: ZoneCategory, rows: Iterable[dict[str, Any]]) -> list[ZoneFeature]:
    """
    Rows as stored by the backend: attribute columns plus a GeoJSON `geom` column.
    """
    out: list[ZoneFeature] = []
    for row in rows:
        geom = row.get("geom")
        if isinstance(geom, str):
            try:
                geom = json.loads(geom)
            except ValueError:
                continue
        geometry = ZoneGeometry.from_geojson(geom)
        if geometry is None:
            continue
        props = {k: v for k, v in row.items() if k != "geom"}
        extra = props.pop("properties", None)
        if isinstance(extra, dict):
            props = {**props, **extra}
        out.append(
            ZoneFeature(
                category=category,
                attributes=zone_attributes(category, props),
                geometry=geometry,
            )
        )
    return out


def load_geojson_zones(category: ZoneCategory, path: Path) -> list[ZoneFeature]:
    return zones_from_geojson(category, json.loads(path.read_text(encoding="utf-8")))


def _to_float(v: Any) -> float | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _to_str_or_none(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def zone_properties(zone: ZoneFeature) -> dict[str, Any]:
    """
    Flat attribute bag for a zone, the shape the map surface reports on a hit.
    """
    attrs = zone.attributes
    out: dict[str, Any] = dict(attrs.extra)
    for f in fields(attrs):
        if f.name != "extra":
            out[f.name] = getattr(attrs, f.name)
    return out
