# spatial/events.py

"""Change events published after object writes, and their in-process listeners."""

import itertools
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from core.exceptions import InvalidArgumentError
from core.logging import get_logger

from .objects import MapObject

logger = get_logger(__name__)


class ChangeType(str, Enum):
    """Change event type as carried on the wire."""

    CREATED_OR_UPDATED = "created_or_updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class ChangeEvent:
    """A single object change on one map.

    Wire form: ``{"type": ..., "objectId": ..., "obj": {...} | null}``.
    ``type`` stays a plain string when it is not a known ChangeType.
    """

    map_id: str
    type: ChangeType | str
    object_id: str
    obj: Optional[MapObject] = None

    def __post_init__(self):
        if isinstance(self.type, str) and not isinstance(self.type, ChangeType):
            try:
                object.__setattr__(self, "type", ChangeType(self.type))
            except ValueError:
                # Keep as string if not a known ChangeType
                pass

    @property
    def type_name(self) -> str:
        return self.type.value if isinstance(self.type, ChangeType) else self.type

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type_name,
            "objectId": self.object_id,
            "obj": self.obj.to_dict() if self.obj else None,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, map_id: str, payload: str | bytes) -> "ChangeEvent":
        """Decode a channel message.

        Raises:
            InvalidArgumentError: If the payload is not a JSON object with a
                string ``type`` field
        """
        try:
            root = json.loads(payload)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"Change message is not valid JSON: {e}") from e

        if not isinstance(root, dict) or not isinstance(root.get("type"), str):
            raise InvalidArgumentError("Change message missing 'type' field")

        obj = None
        raw_obj = root.get("obj")
        if raw_obj is not None:
            try:
                obj = MapObject.from_dict(raw_obj)
            except (KeyError, TypeError, ValueError, InvalidArgumentError) as e:
                logger.warning(
                    "change_event.object_undecodable",
                    map_id=map_id,
                    error=str(e),
                )

        object_id = root.get("objectId") or (obj.id if obj else "")
        return cls(map_id=map_id, type=root["type"], object_id=object_id, obj=obj)


# Type alias for change listeners
ChangeListener = Callable[[ChangeEvent], None]


@dataclass(frozen=True)
class SubscriptionHandle:
    """Opaque token returned by subscribe(), used to unsubscribe."""

    token: int


class ChangeListenerRegistry:
    """Ordered registry of synchronous change listeners."""

    def __init__(self):
        self._listeners: dict[SubscriptionHandle, ChangeListener] = {}
        self._tokens = itertools.count(1)
        self.logger = get_logger(f"{__name__}.ChangeListenerRegistry")

    def subscribe(self, listener: ChangeListener) -> SubscriptionHandle:
        """Register a listener; listeners run in registration order."""
        handle = SubscriptionHandle(next(self._tokens))
        self._listeners[handle] = listener

        self.logger.debug("listener.registered", listener_count=len(self._listeners))
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        """Remove a listener.

        Returns:
            True if the handle was registered, False otherwise
        """
        if self._listeners.pop(handle, None) is None:
            return False

        self.logger.debug("listener.unregistered", listener_count=len(self._listeners))
        return True

    def dispatch(self, event: ChangeEvent) -> int:
        """Invoke every listener with the event.

        A failing listener is logged and skipped; it never stops the others
        and never reaches the publisher.

        Returns:
            Number of listeners that raised
        """
        errors = 0

        # Snapshot so listeners may unsubscribe while being dispatched to
        for listener in list(self._listeners.values()):
            try:
                listener(event)
            except Exception as e:
                errors += 1
                self.logger.error(
                    "listener.failed",
                    map_id=event.map_id,
                    event_type=event.type_name,
                    object_id=event.object_id,
                    listener=getattr(listener, "__name__", repr(listener)),
                    error=str(e),
                )

        if errors:
            self.logger.warning(
                "change_event.dispatch_completed_with_errors",
                map_id=event.map_id,
                event_type=event.type_name,
                error_count=errors,
            )
        return errors

    def listener_count(self) -> int:
        return len(self._listeners)

    def clear(self) -> None:
        """Remove all registered listeners."""
        self._listeners.clear()
        self.logger.info("listeners.cleared")
