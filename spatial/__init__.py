# spatial/__init__.py

"""Spatial object index - map objects, geo projection, stores and change events."""

from .broadcast import BroadcastRelay, ChangeBroadcaster
from .events import ChangeEvent, ChangeListenerRegistry, ChangeType, SubscriptionHandle
from .geo import CoordinateTransform, GeoPoint
from .index import SpatialObjectIndex
from .objects import MapObject
from .sqlite_store import SqliteBackingStore
from .store import BackingStore, ChannelHub, MemoryBackingStore, create_store

__all__ = [
    "SpatialObjectIndex",
    "MapObject",
    "CoordinateTransform",
    "GeoPoint",
    "ChangeEvent",
    "ChangeType",
    "ChangeListenerRegistry",
    "SubscriptionHandle",
    "BackingStore",
    "MemoryBackingStore",
    "SqliteBackingStore",
    "ChannelHub",
    "create_store",
    "BroadcastRelay",
    "ChangeBroadcaster",
]
