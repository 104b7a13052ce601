# spatial/store.py

"""Backing store capability used by the spatial object index.

A store offers keyed records, a geographic radius index, an atomic
record+point delete and a pub/sub channel. ``MemoryBackingStore`` keeps
everything in process with an R-tree for the radius index;
``SqliteBackingStore`` (see sqlite_store.py) persists to SQLite.
"""

import asyncio
import itertools
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import TYPE_CHECKING, AsyncIterator, Optional

import rtree.index

from core.exceptions import StoreUnavailableError
from core.logging import get_logger

from .geo import GeoPoint, haversine_m, radius_bbox

if TYPE_CHECKING:
    from core.config import TilemapConfig

_CLOSED = object()


class ChannelSubscription:
    """One subscriber's view of a pub/sub channel.

    Iterate with ``async for``; iteration ends once close() is called.
    """

    def __init__(self, hub: "ChannelHub", channel: str):
        self.channel = channel
        self._hub = hub
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def _deliver(self, message: str) -> None:
        self._queue.put_nowait(message)

    async def get(self) -> Optional[str]:
        """Wait for the next message; None once the subscription is closed."""
        if self._closed and self._queue.empty():
            return None
        message = await self._queue.get()
        return None if message is _CLOSED else message

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        while True:
            message = await self.get()
            if message is None:
                return
            yield message

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hub._remove(self)
        self._queue.put_nowait(_CLOSED)


class ChannelHub:
    """In-process fan-out of channel messages to every live subscription."""

    def __init__(self):
        self._subscriptions: dict[str, list[ChannelSubscription]] = defaultdict(list)

    def subscribe(self, channel: str) -> ChannelSubscription:
        subscription = ChannelSubscription(self, channel)
        self._subscriptions[channel].append(subscription)
        return subscription

    def publish(self, channel: str, message: str) -> int:
        """Deliver a message; returns the number of receiving subscriptions."""
        receivers = list(self._subscriptions.get(channel, ()))
        for subscription in receivers:
            subscription._deliver(message)
        return len(receivers)

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscriptions.get(channel, ()))

    def close_all(self) -> None:
        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                subscription.close()

    def _remove(self, subscription: ChannelSubscription) -> None:
        subscriptions = self._subscriptions.get(subscription.channel)
        if subscriptions and subscription in subscriptions:
            subscriptions.remove(subscription)
            if not subscriptions:
                del self._subscriptions[subscription.channel]


class BackingStore(ABC):
    """Primitives the spatial object index needs from storage."""

    async def initialize(self) -> None:
        """Open connections / schema. No-op by default."""

    async def close(self) -> None:
        """Release resources. No-op by default."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the serialized record stored under key, or None."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store (overwrite) a serialized record."""

    @abstractmethod
    async def geo_add(self, geo_key: str, member: str, lon: float, lat: float) -> None:
        """Index (or move) member at the given point."""

    @abstractmethod
    async def geo_radius(
        self, geo_key: str, lon: float, lat: float, radius_m: float
    ) -> list[str]:
        """Members whose indexed point lies within radius_m metres of (lon, lat)."""

    @abstractmethod
    async def raise_to(self, key: str, value: float) -> float:
        """Atomically store max(current, value) under key.

        Returns:
            The value stored after the update
        """

    @abstractmethod
    async def delete_atomic(self, key: str, geo_key: str, member: str) -> bool:
        """Remove a record and its geo entry together.

        Returns:
            True if a record existed under key
        """

    @abstractmethod
    async def publish(self, channel: str, message: str) -> int:
        """Publish a message; returns the number of receivers."""

    @abstractmethod
    def subscribe(self, channel: str) -> ChannelSubscription:
        """Open a subscription on a channel."""


class MemoryBackingStore(BackingStore):
    """In-process store with one R-tree per geo key."""

    def __init__(self):
        self._records: dict[str, str] = {}
        self._rtrees: dict[str, rtree.index.Index] = {}
        # geo_key -> member -> (rtree int id, point)
        self._points: dict[str, dict[str, tuple[int, GeoPoint]]] = defaultdict(dict)
        self._ids = itertools.count(1)
        self._members_by_id: dict[int, str] = {}
        self._lock = asyncio.Lock()
        self._hub = ChannelHub()
        self._closed = False

        self.logger = get_logger(f"{__name__}.MemoryBackingStore")

    def _check_open(self) -> None:
        if self._closed:
            raise StoreUnavailableError("Memory store is closed")

    def _rtree(self, geo_key: str) -> rtree.index.Index:
        index = self._rtrees.get(geo_key)
        if index is None:
            index = rtree.index.Index()
            self._rtrees[geo_key] = index
        return index

    async def close(self) -> None:
        self._closed = True
        self._hub.close_all()
        self.logger.info("memory_store.closed", records=len(self._records))

    async def get(self, key: str) -> Optional[str]:
        self._check_open()
        return self._records.get(key)

    async def set(self, key: str, value: str) -> None:
        self._check_open()
        self._records[key] = value

    async def geo_add(self, geo_key: str, member: str, lon: float, lat: float) -> None:
        self._check_open()
        async with self._lock:
            self._remove_point(geo_key, member)

            point = GeoPoint(lon, lat)
            int_id = next(self._ids)
            self._rtree(geo_key).insert(int_id, (lon, lat, lon, lat))
            self._points[geo_key][member] = (int_id, point)
            self._members_by_id[int_id] = member

    async def geo_radius(
        self, geo_key: str, lon: float, lat: float, radius_m: float
    ) -> list[str]:
        self._check_open()
        index = self._rtrees.get(geo_key)
        if index is None:
            return []

        center = GeoPoint(lon, lat)
        points = self._points[geo_key]

        results = []
        for int_id in index.intersection(radius_bbox(center, radius_m)):
            member = self._members_by_id.get(int_id)
            if member is None:
                continue
            _, point = points[member]
            if haversine_m(center, point) <= radius_m:
                results.append(member)

        return results

    async def raise_to(self, key: str, value: float) -> float:
        self._check_open()
        async with self._lock:
            current = float(self._records.get(key, "0"))
            stored = max(current, float(value))
            self._records[key] = repr(stored)
        return stored

    async def delete_atomic(self, key: str, geo_key: str, member: str) -> bool:
        self._check_open()
        async with self._lock:
            existed = self._records.pop(key, None) is not None
            self._remove_point(geo_key, member)

        self.logger.debug("memory_store.deleted", key=key, existed=existed)
        return existed

    async def publish(self, channel: str, message: str) -> int:
        self._check_open()
        return self._hub.publish(channel, message)

    def subscribe(self, channel: str) -> ChannelSubscription:
        self._check_open()
        return self._hub.subscribe(channel)

    def _remove_point(self, geo_key: str, member: str) -> None:
        entry = self._points[geo_key].pop(member, None)
        if entry is None:
            return
        int_id, point = entry
        self._rtree(geo_key).delete(int_id, (point.lon, point.lat, point.lon, point.lat))
        del self._members_by_id[int_id]


def create_store(config: "TilemapConfig") -> BackingStore:
    """Build the store selected by ``config.store_backend`` (not yet initialized)."""
    if config.store_backend == "sqlite":
        from .sqlite_store import SqliteBackingStore

        return SqliteBackingStore(config.sqlite_path)
    return MemoryBackingStore()
