# spatial/broadcast.py

"""Bridge from index change events to a live-push transport.

The transport is someone else's: it only has to implement the three
``ChangeBroadcaster`` methods.
"""

import asyncio
from typing import Protocol

from core.logging import get_logger

from .events import ChangeEvent, SubscriptionHandle
from .index import SpatialObjectIndex

GROUP_PREFIX = "map:"

_ADDED_TYPES = {"created", "created_or_updated", "added"}
_DELETED_TYPES = {"deleted", "remove", "removed"}


class ChangeBroadcaster(Protocol):
    """Push transport contract."""

    async def object_added(self, group: str, event: ChangeEvent) -> None: ...

    async def object_updated(self, group: str, event: ChangeEvent) -> None: ...

    async def object_deleted(self, group: str, event: ChangeEvent) -> None: ...


def group_name(map_id: str) -> str:
    return f"{GROUP_PREFIX}{map_id}"


class BroadcastRelay:
    """Forwards one map's change events to a broadcaster group.

    Listener callbacks are synchronous, so each broadcast runs as its own
    task; ``drain()`` waits for the ones still in flight.
    """

    def __init__(
        self,
        index: SpatialObjectIndex,
        broadcaster: ChangeBroadcaster,
        map_id: str = "default",
    ):
        self.index = index
        self.broadcaster = broadcaster
        self.map_id = map_id
        self.group = group_name(map_id)
        self._pending: set[asyncio.Task] = set()
        self.logger = get_logger(f"{__name__}.BroadcastRelay", map_id=map_id, group=self.group)
        self._handle: SubscriptionHandle | None = index.subscribe(self._on_change)

    def _on_change(self, event: ChangeEvent) -> None:
        if event.map_id != self.map_id:
            return

        kind = event.type_name.lower()
        if kind in _ADDED_TYPES:
            send = self.broadcaster.object_added
        elif kind in _DELETED_TYPES:
            send = self.broadcaster.object_deleted
        else:
            send = self.broadcaster.object_updated

        task = asyncio.get_running_loop().create_task(send(self.group, event))
        self._pending.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("broadcast.failed", error=str(exc))

    async def drain(self) -> None:
        """Wait until every scheduled broadcast has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Stop relaying and wait for in-flight broadcasts."""
        if self._handle is not None:
            self.index.unsubscribe(self._handle)
            self._handle = None
        await self.drain()
