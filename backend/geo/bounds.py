from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MapBounds:
    """
    WGS84 viewport rectangle in lat/lon degrees.

    Convention used throughout this repo:
    - north/south are latitudes, east/west are longitudes
    - no antimeridian crossing (west <= east)
    """

    north: float
    south: float
    east: float
    west: float

    def __post_init__(self) -> None:
        if self.north < self.south:
            raise ValueError(f"north ({self.north}) must not be below south ({self.south})")

    @property
    def lat_span(self) -> float:
        return self.north - self.south

    @property
    def lon_span(self) -> float:
        return self.east - self.west

    def is_degenerate(self) -> bool:
        # A collapsed viewport is what the map reports before its first layout.
        return self.north == self.south or self.east == self.west

    def center(self) -> tuple[float, float]:
        """(lat, lon) of the rectangle center."""
        return (self.north + self.south) / 2.0, (self.east + self.west) / 2.0

    def contains_point(self, lat: float, lon: float) -> bool:
        # Edges are inclusive.
        return self.south <= lat <= self.north and self.west <= lon <= self.east

    def contains(self, other: "MapBounds") -> bool:
        return (
            other.south >= self.south
            and other.north <= self.north
            and other.west >= self.west
            and other.east <= self.east
        )

    def padded(self, fraction: float) -> "MapBounds":
        """
        Grow each edge by `fraction` of this rectangle's own height/width.
        """
        lat_pad = self.lat_span * fraction
        lon_pad = self.lon_span * fraction
        return MapBounds(
            north=self.north + lat_pad,
            south=self.south - lat_pad,
            east=self.east + lon_pad,
            west=self.west - lon_pad,
        )

    def rounded_key(self, decimals: int = 4) -> tuple[float, float, float, float]:
        """
        A stable, hashable key for comparing viewports.

        decimals=4 is ~11m-ish in latitude, which is plenty for viewport identity.
        """
        return (
            round(self.north, decimals),
            round(self.south, decimals),
            round(self.east, decimals),
            round(self.west, decimals),
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "north": float(self.north),
            "south": float(self.south),
            "east": float(self.east),
            "west": float(self.west),
        }
