# spatial/objects.py

"""Map object record and its pure geometry helpers."""

import json
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

from core.exceptions import InvalidArgumentError


@dataclass(frozen=True)
class MapObject:
    """A rectangular footprint of tiles with identity and a type tag.

    ``(x, y)`` is the top-left tile and may be negative. ``metadata`` is an
    opaque serialized blob that is stored and returned untouched.
    """

    id: str
    x: int
    y: int
    width: int = 1
    height: int = 1
    type: str = "generic"
    metadata: str = "{}"
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not self.id:
            raise InvalidArgumentError("MapObject id must be a non-empty string")
        if self.width < 1 or self.height < 1:
            raise InvalidArgumentError(
                f"MapObject {self.id} must be at least 1x1, got {self.width}x{self.height}"
            )

    def center(self) -> tuple[float, float]:
        """Centre of the footprint in tile coordinates."""
        return (self.x + (self.width - 1) / 2.0, self.y + (self.height - 1) / 2.0)

    def reach(self) -> float:
        """Largest distance, in tiles, from ``center()`` to any point of the footprint."""
        return math.hypot((self.width + 1) / 2.0, (self.height + 1) / 2.0)

    def contains_point(self, tile_x: int, tile_y: int) -> bool:
        """True if the tile lies inside the footprint (half-open bounds)."""
        return (
            self.x <= tile_x < self.x + self.width
            and self.y <= tile_y < self.y + self.height
        )

    def intersects_rect(self, rx: int, ry: int, r_width: int, r_height: int) -> bool:
        """True if the footprint overlaps the half-open rectangle."""
        ax2, ay2 = self.x + self.width, self.y + self.height
        bx2, by2 = rx + r_width, ry + r_height
        no_overlap = ax2 <= rx or bx2 <= self.x or ay2 <= ry or by2 <= self.y
        return not no_overlap

    def touched(self, now: Optional[datetime] = None) -> "MapObject":
        """Copy of this object with ``updated_at`` set to now."""
        return replace(self, updated_at=now or datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "type": self.type,
            "metadata": self.metadata,
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MapObject":
        updated_at = data.get("updatedAt")
        return cls(
            id=data["id"],
            x=int(data["x"]),
            y=int(data["y"]),
            width=int(data.get("width", 1)),
            height=int(data.get("height", 1)),
            type=data.get("type", "generic"),
            metadata=data.get("metadata", "{}"),
            updated_at=(
                datetime.fromisoformat(updated_at)
                if updated_at
                else datetime.now(timezone.utc)
            ),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str | bytes) -> "MapObject":
        return cls.from_dict(json.loads(payload))
