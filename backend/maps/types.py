from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class MapCenter(BaseModel):
    lat: float
    lon: float


class MapDefaultView(BaseModel):
    center: MapCenter
    zoom: float = Field(ge=0.0, le=24.0)


class MapBoundsConfig(BaseModel):
    north: float
    south: float
    east: float
    west: float

    @model_validator(mode="after")
    def _check_order(self) -> "MapBoundsConfig":
        if self.north < self.south:
            raise ValueError("defaultBounds.north must not be below south")
        return self


class MapLocationsSource(BaseModel):
    # Repo-relative path to a JSON array of location rows.
    path: str


class MapZoneLayer(BaseModel):
    category: Literal["qct", "dda"]
    title: str
    # Repo-relative path to a GeoJSON FeatureCollection.
    path: str
    # Free-form style hints for the frontend (fill color/opacity/outline).
    style: dict[str, Any] = Field(default_factory=dict)
    visibleByDefault: bool = True


class MapPreset(BaseModel):
    id: str
    title: str
    enabled: bool = True
    defaultView: MapDefaultView
    defaultBounds: MapBoundsConfig
    locations: MapLocationsSource | None = None
    zones: list[MapZoneLayer] = Field(default_factory=list)
    showActiveByDefault: bool = True
    showClosedByDefault: bool = False
