# spatial/index.py

"""Spatial object index over a backing store with a geo radius primitive."""

import asyncio
from typing import TYPE_CHECKING, Optional

from core.exceptions import InvalidArgumentError, StorageFailure
from core.logging import get_logger
from core.retry import RetryPolicy

from .events import (
    ChangeEvent,
    ChangeListener,
    ChangeListenerRegistry,
    ChangeType,
    SubscriptionHandle,
)
from .geo import METERS_PER_DEGREE, CoordinateTransform, GeoPoint, planar_distance_deg
from .objects import MapObject
from .store import BackingStore, ChannelSubscription

if TYPE_CHECKING:
    from core.config import TilemapConfig

GEO_KEY_PREFIX = "geo:map:"
OBJ_KEY_PREFIX = "obj:"
CHANNEL_PREFIX = "channel:map:objects:"


def geo_key(map_id: str) -> str:
    return f"{GEO_KEY_PREFIX}{map_id}:objects"


def obj_key(map_id: str, object_id: str) -> str:
    return f"{OBJ_KEY_PREFIX}{map_id}:{object_id}"


def extent_key(map_id: str) -> str:
    return f"{GEO_KEY_PREFIX}{map_id}:extent"


def channel_name(map_id: str) -> str:
    return f"{CHANNEL_PREFIX}{map_id}"


class SpatialObjectIndex:
    """Objects keyed by id, queryable by rectangle and tile.

    Each object's centre is projected to a geo point so the store's radius
    search can produce a candidate set, which is then refined with exact
    tile geometry. Search radii are widened by the largest object reach
    recorded for the map, which only ever grows, so an object whose centre
    lies outside the query circle but whose footprint overlaps it is still
    a candidate. The record write and the geo write of an upsert are two
    separate store calls, so a failure between them leaves the object
    findable by id but not by area until the next successful write.
    """

    def __init__(
        self,
        store: BackingStore,
        transform: CoordinateTransform,
        retry_policy: Optional[RetryPolicy] = None,
        candidate_margin_tiles: float = 1.0,
        tile_search_factor: float = 2.0,
    ):
        if candidate_margin_tiles < 0:
            raise InvalidArgumentError("candidate_margin_tiles must not be negative")
        if tile_search_factor <= 0:
            raise InvalidArgumentError("tile_search_factor must be positive")

        self.store = store
        self.transform = transform
        self.retry_policy = retry_policy or RetryPolicy()
        self.candidate_margin_tiles = candidate_margin_tiles
        self.tile_search_factor = tile_search_factor

        self._listeners = ChangeListenerRegistry()
        self._consumers: dict[str, tuple[ChannelSubscription, asyncio.Task]] = {}

        self.logger = get_logger(f"{__name__}.SpatialObjectIndex")

    @classmethod
    def from_config(cls, store: BackingStore, config: "TilemapConfig") -> "SpatialObjectIndex":
        return cls(
            store,
            CoordinateTransform.from_config(config),
            retry_policy=RetryPolicy.from_config(config),
            candidate_margin_tiles=config.candidate_margin_tiles,
            tile_search_factor=config.tile_search_factor,
        )

    # Writes

    async def upsert(self, map_id: str, obj: Optional[MapObject]) -> MapObject:
        """Create or fully replace an object (last writer wins).

        Args:
            map_id: Map namespace
            obj: Object to store; its ``updated_at`` is refreshed

        Returns:
            The stored object

        Raises:
            InvalidArgumentError: If obj is None
            StorageFailure: If either store write fails for good
        """
        if obj is None:
            raise InvalidArgumentError("upsert requires an object")

        obj = obj.touched()
        point = self.transform.to_geo(*obj.center())
        payload = obj.to_json()

        await self.retry_policy.run(
            lambda: self.store.set(obj_key(map_id, obj.id), payload), "object.set"
        )
        await self.retry_policy.run(
            lambda: self.store.raise_to(extent_key(map_id), obj.reach()), "object.extent"
        )
        await self.retry_policy.run(
            lambda: self.store.geo_add(geo_key(map_id), obj.id, point.lon, point.lat),
            "object.geo_add",
        )

        self.logger.debug(
            "object.upserted",
            map_id=map_id,
            object_id=obj.id,
            geo=(point.lon, point.lat),
        )

        await self._publish_quietly(map_id, ChangeType.CREATED_OR_UPDATED, obj, obj.id)
        return obj

    async def delete(
        self, map_id: str, object_id: str, prior: Optional[MapObject] = None
    ) -> bool:
        """Remove an object's record and geo entry in one atomic store call.

        Args:
            map_id: Map namespace
            object_id: Object to remove
            prior: The object as last seen by the caller, carried on the event

        Returns:
            True if a record was removed
        """
        removed = await self.retry_policy.run(
            lambda: self.store.delete_atomic(
                obj_key(map_id, object_id), geo_key(map_id), object_id
            ),
            "object.delete",
        )

        self.logger.debug("object.deleted", map_id=map_id, object_id=object_id, removed=removed)

        if removed:
            await self._publish_quietly(map_id, ChangeType.DELETED, prior, object_id)
        return removed

    # Reads

    async def get_by_id(self, map_id: str, object_id: str) -> Optional[MapObject]:
        """Fetch an object record; None if absent."""
        raw = await self.retry_policy.run(
            lambda: self.store.get(obj_key(map_id, object_id)), "object.get"
        )
        return MapObject.from_json(raw) if raw is not None else None

    async def query_rectangle(
        self, map_id: str, x: int, y: int, width: int, height: int
    ) -> list[MapObject]:
        """All objects overlapping the half-open rectangle.

        One radius search over the rectangle's bounding circle gives the
        candidates; each is loaded and kept only if it really intersects.
        """
        if width < 1 or height < 1:
            raise InvalidArgumentError(f"Query rectangle must be at least 1x1, got {width}x{height}")

        center = self.transform.to_geo(x + width / 2.0, y + height / 2.0)
        corners = (
            self.transform.to_geo(x, y),
            self.transform.to_geo(x + width, y),
            self.transform.to_geo(x, y + height),
            self.transform.to_geo(x + width, y + height),
        )
        max_deg = max(planar_distance_deg(center, corner) for corner in corners)
        reach_tiles = self.candidate_margin_tiles + await self._map_extent(map_id)
        radius_m = (max_deg + self._tiles_to_deg(reach_tiles)) * METERS_PER_DEGREE

        candidates = await self._radius_search(map_id, center, radius_m)

        results = []
        for candidate_id in candidates:
            obj = await self.get_by_id(map_id, candidate_id)
            if obj is None:
                # Geo entry without a record: a delete or upsert is in flight
                continue
            if obj.intersects_rect(x, y, width, height):
                results.append(obj)

        self.logger.debug(
            "objects.rectangle_query",
            map_id=map_id,
            rect=(x, y, width, height),
            candidates=len(candidates),
            matches=len(results),
        )
        return results

    async def query_tile(self, map_id: str, tile_x: int, tile_y: int) -> Optional[MapObject]:
        """An object covering the tile, or None.

        With overlapping objects the one returned is whichever candidate the
        store lists first.
        """
        center = self.transform.to_geo(tile_x + 0.5, tile_y + 0.5)
        radius_tiles = (
            self.tile_search_factor + self.candidate_margin_tiles + await self._map_extent(map_id)
        )
        radius_m = max(1.0, self._tiles_to_deg(radius_tiles) * METERS_PER_DEGREE)

        for candidate_id in await self._radius_search(map_id, center, radius_m):
            obj = await self.get_by_id(map_id, candidate_id)
            if obj is not None and obj.contains_point(tile_x, tile_y):
                return obj

        return None

    # Change events

    async def publish_event(
        self,
        map_id: str,
        event_type: ChangeType | str,
        obj: Optional[MapObject] = None,
        object_id: Optional[str] = None,
    ) -> int:
        """Publish a change event on the map's channel.

        Returns:
            Number of receivers reported by the store

        Raises:
            InvalidArgumentError: If neither obj nor object_id is given
            StorageFailure: If publishing failed for good
        """
        if obj is None and not object_id:
            raise InvalidArgumentError("publish_event needs an object or an object id")

        event = ChangeEvent(
            map_id=map_id,
            type=event_type,
            object_id=object_id or obj.id,
            obj=obj,
        )
        message = event.to_json()
        return await self.retry_policy.run(
            lambda: self.store.publish(channel_name(map_id), message), "event.publish"
        )

    def subscribe(self, listener: ChangeListener) -> SubscriptionHandle:
        """Register an in-process listener for change events of listened maps."""
        return self._listeners.subscribe(listener)

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        return self._listeners.unsubscribe(handle)

    async def start_listening(self, map_id: str) -> None:
        """Start relaying a map's channel messages to registered listeners."""
        if map_id in self._consumers:
            return

        subscription = self.store.subscribe(channel_name(map_id))
        task = asyncio.create_task(
            self._consume(map_id, subscription), name=f"change-consumer:{map_id}"
        )
        self._consumers[map_id] = (subscription, task)

        self.logger.info("change_consumer.started", map_id=map_id)

    async def stop_listening(self, map_id: str) -> None:
        entry = self._consumers.pop(map_id, None)
        if entry is None:
            return

        subscription, task = entry
        subscription.close()
        await task

        self.logger.info("change_consumer.stopped", map_id=map_id)

    async def close(self) -> None:
        """Stop every channel consumer and drop all listeners."""
        for map_id in list(self._consumers):
            await self.stop_listening(map_id)
        self._listeners.clear()

    # Internals

    async def _consume(self, map_id: str, subscription: ChannelSubscription) -> None:
        async for message in subscription:
            try:
                event = ChangeEvent.from_json(map_id, message)
            except InvalidArgumentError as e:
                self.logger.warning(
                    "change_event.rejected",
                    map_id=map_id,
                    channel=subscription.channel,
                    error=str(e),
                )
                continue
            self._listeners.dispatch(event)

    async def _publish_quietly(
        self,
        map_id: str,
        event_type: ChangeType,
        obj: Optional[MapObject],
        object_id: str,
    ) -> None:
        """Publish after a write; failures are logged, never raised."""
        try:
            await self.publish_event(map_id, event_type, obj, object_id)
        except StorageFailure as e:
            self.logger.error(
                "event.publish_failed",
                map_id=map_id,
                event_type=event_type.value,
                object_id=object_id,
                error=str(e),
            )

    async def _map_extent(self, map_id: str) -> float:
        """Largest object reach ever stored on the map, in tiles."""
        raw = await self.retry_policy.run(
            lambda: self.store.get(extent_key(map_id)), "object.extent_get"
        )
        return float(raw) if raw is not None else 0.0

    async def _radius_search(self, map_id: str, center: GeoPoint, radius_m: float) -> list[str]:
        return await self.retry_policy.run(
            lambda: self.store.geo_radius(geo_key(map_id), center.lon, center.lat, radius_m),
            "object.geo_radius",
        )

    def _tiles_to_deg(self, tiles: float) -> float:
        """Geo length of ``tiles`` tile edges, using the longer edge axis."""
        t = self.transform
        return tiles * max(t.lon_span / t.map_width, t.lat_span / t.map_height)
