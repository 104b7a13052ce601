# terrain/__init__.py

"""Terrain layers - tile occupancy bitset and region partition."""

from .regions import Rect, Region, RegionPartitionLayer
from .tiles import ReadOnlyTileLayer, TileOccupancyLayer, TileType

__all__ = [
    "TileOccupancyLayer",
    "ReadOnlyTileLayer",
    "TileType",
    "RegionPartitionLayer",
    "Region",
    "Rect",
]
