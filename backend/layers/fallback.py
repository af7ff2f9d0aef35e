from __future__ import annotations

from geo.bounds import MapBounds
from layers.types import LocationRecord

# Shown when the backend is unreachable so the map is never blank.
_NASHVILLE_LOCATIONS: tuple[tuple[str, float, float], ...] = (
    ("Belmont United Methodist Church", 36.1352, -86.7988),
    ("West End United Methodist Church", 36.1492, -86.8074),
    ("McKendree United Methodist Church", 36.1640, -86.7819),
    ("Edgehill United Methodist Church", 36.1486, -86.7892),
    ("East End United Methodist Church", 36.1782, -86.7551),
    ("Calvary United Methodist Church", 36.1663, -86.7742),
    ("Sixty-First Avenue United Methodist Church", 36.1686, -86.8466),
    ("Woodbine United Methodist Church", 36.1248, -86.7318),
    ("Glendale United Methodist Church", 36.0996, -86.8157),
)

FALLBACK_ID_BASE = 1000


def fallback_locations(bounds: MapBounds | None = None) -> list[LocationRecord]:
    out: list[LocationRecord] = []
    for i, (name, lat, lon) in enumerate(_NASHVILLE_LOCATIONS):
        if bounds is not None and not bounds.contains_point(lat, lon):
            continue
        out.append(
            LocationRecord(
                id=str(FALLBACK_ID_BASE + i),
                latitude=lat,
                longitude=lon,
                status="Active",
                name=name,
                address="123 Main St",
                city="Nashville",
                state="TN",
                props={
                    "conference": "Tennessee Conference",
                    "district": "Nashville District",
                    "fallback": True,
                },
            )
        )
    return out
