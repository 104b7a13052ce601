"""Tests for relaying change events to a broadcaster."""

import asyncio

import pytest

from spatial.broadcast import BroadcastRelay, group_name
from spatial.events import ChangeEvent, ChangeType
from spatial.objects import MapObject


class RecordingBroadcaster:
    """Broadcaster that records every call."""

    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    async def _record(self, kind, group, event):
        self.calls.append((kind, group, event.object_id))
        if self.fail:
            raise RuntimeError("transport down")

    async def object_added(self, group, event):
        await self._record("added", group, event)

    async def object_updated(self, group, event):
        await self._record("updated", group, event)

    async def object_deleted(self, group, event):
        await self._record("deleted", group, event)


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


def event(map_id, event_type, object_id="a"):
    return ChangeEvent(map_id=map_id, type=event_type, object_id=object_id)


class TestRouting:
    """Event kind to broadcaster method."""

    def test_group_name(self):
        assert group_name("m1") == "map:m1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event_type,expected",
        [
            (ChangeType.CREATED_OR_UPDATED, "added"),
            ("created", "added"),
            ("Added", "added"),
            (ChangeType.DELETED, "deleted"),
            ("removed", "deleted"),
            ("moved", "updated"),
            ("updated", "updated"),
        ],
    )
    async def test_route(self, index, broadcaster, map_id, event_type, expected):
        relay = BroadcastRelay(index, broadcaster, map_id)

        relay._on_change(event(map_id, event_type))
        await relay.drain()

        assert broadcaster.calls == [(expected, f"map:{map_id}", "a")]
        await relay.close()

    @pytest.mark.asyncio
    async def test_other_maps_ignored(self, index, broadcaster, map_id):
        relay = BroadcastRelay(index, broadcaster, map_id)

        relay._on_change(event("elsewhere", ChangeType.DELETED))
        await relay.drain()

        assert broadcaster.calls == []
        await relay.close()


class TestEndToEnd:
    """Index writes reach the broadcaster through the change channel."""

    @pytest.mark.asyncio
    async def test_upsert_and_delete_are_broadcast(self, index, broadcaster, map_id):
        relay = BroadcastRelay(index, broadcaster, map_id)
        await index.start_listening(map_id)

        await index.upsert(map_id, MapObject("a", 1, 1))
        await index.delete(map_id, "a")
        await index.stop_listening(map_id)
        await relay.drain()

        assert broadcaster.calls == [
            ("added", f"map:{map_id}", "a"),
            ("deleted", f"map:{map_id}", "a"),
        ]
        await relay.close()

    @pytest.mark.asyncio
    async def test_broadcast_failure_is_contained(self, index, map_id):
        broadcaster = RecordingBroadcaster(fail=True)
        relay = BroadcastRelay(index, broadcaster, map_id)
        await index.start_listening(map_id)

        stored = await index.upsert(map_id, MapObject("a", 1, 1))
        await index.stop_listening(map_id)
        await relay.drain()

        assert broadcaster.calls == [("added", f"map:{map_id}", "a")]
        assert await index.get_by_id(map_id, "a") == stored
        await relay.close()

    @pytest.mark.asyncio
    async def test_close_stops_relaying(self, index, broadcaster, map_id):
        relay = BroadcastRelay(index, broadcaster, map_id)
        await relay.close()
        await index.start_listening(map_id)

        await index.upsert(map_id, MapObject("a", 1, 1))
        await index.stop_listening(map_id)
        await asyncio.sleep(0)

        assert broadcaster.calls == []
