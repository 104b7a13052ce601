# spatial/geo.py

"""Tile <-> geographic coordinate mapping used to drive the radius index.

No real geography is involved: the map is laid onto a small lon/lat patch
so that a geo radius-search primitive can serve as a 2D index for tiles.
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

from core.exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from core.config import TilemapConfig

EARTH_RADIUS_M = 6_371_000.0

# Degree -> metre factor for radius arguments. Slightly above the true
# 111_195 m/deg of EARTH_RADIUS_M so converted radii never under-cover.
METERS_PER_DEGREE = 111_320.0


class GeoPoint(NamedTuple):
    """A projected (lon, lat) pair in decimal degrees."""

    lon: float
    lat: float


@dataclass(frozen=True)
class CoordinateTransform:
    """Affine bijection between tile space and lon/lat.

    ``y`` grows downward in tile space and southward in geo space, hence
    the sign flip on latitude.
    """

    map_width: float
    map_height: float
    lon0: float = 0.0
    lat0: float = 0.0
    lon_span: float = 0.1
    lat_span: float = 0.1

    def __post_init__(self):
        if self.map_width <= 0 or self.map_height <= 0:
            raise InvalidArgumentError(
                f"Map size must be positive, got {self.map_width}x{self.map_height}"
            )
        if self.lon_span <= 0 or self.lat_span <= 0:
            raise InvalidArgumentError(
                f"Geo spans must be positive, got {self.lon_span}, {self.lat_span}"
            )

    @classmethod
    def from_config(cls, config: "TilemapConfig") -> "CoordinateTransform":
        return cls(
            map_width=config.map_width,
            map_height=config.map_height,
            lon0=config.origin_lon,
            lat0=config.origin_lat,
            lon_span=config.lon_span,
            lat_span=config.lat_span,
        )

    def to_geo(self, x: float, y: float) -> GeoPoint:
        """Project tile coordinates to (lon, lat)."""
        u = x / self.map_width
        v = y / self.map_height
        return GeoPoint(self.lon0 + u * self.lon_span, self.lat0 - v * self.lat_span)

    def from_geo(self, lon: float, lat: float) -> tuple[float, float]:
        """Inverse of to_geo."""
        u = (lon - self.lon0) / self.lon_span
        v = (self.lat0 - lat) / self.lat_span
        return (u * self.map_width, v * self.map_height)


def planar_distance_deg(a: GeoPoint, b: GeoPoint) -> float:
    """Euclidean distance in degrees, treating lon/lat as a flat plane."""
    dx = a.lon - b.lon
    dy = a.lat - b.lat
    return (dx * dx + dy * dy) ** 0.5


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in metres between two points."""
    lat1, lon1 = math.radians(a.lat), math.radians(a.lon)
    lat2, lon2 = math.radians(b.lat), math.radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def radius_bbox(center: GeoPoint, radius_m: float) -> tuple[float, float, float, float]:
    """Lon/lat box (min_lon, min_lat, max_lon, max_lat) enclosing a metre radius.

    Used by stores as a cheap pre-filter ahead of the haversine check.
    """
    # 1% pad: away from the centre latitude the circle is slightly wider in lon
    dlat = math.degrees(radius_m / EARTH_RADIUS_M) * 1.01
    cos_lat = max(math.cos(math.radians(center.lat)), 1e-12)
    dlon = min(180.0, dlat / cos_lat)
    return (center.lon - dlon, center.lat - dlat, center.lon + dlon, center.lat + dlat)
