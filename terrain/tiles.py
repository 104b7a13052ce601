# terrain/tiles.py

"""Dense 1-bit-per-tile occupancy grid (placeable vs blocked)."""

import threading
from array import array
from enum import IntEnum
from typing import Iterable

from core.exceptions import InvalidArgumentError, OutOfRangeError
from core.logging import get_logger

logger = get_logger(__name__)

WORD_BITS = 64
_WORD_SHIFT = 6
_BIT_MASK = WORD_BITS - 1

# Writers to the same word serialize on one of these stripes
_LOCK_STRIPES = 64


class TileType(IntEnum):
    """Terrain state of a single tile."""

    PLAIN = 0
    BLOCKED = 1


def _tile_type(value) -> TileType:
    try:
        return TileType(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"Unknown tile type {value!r}") from e


class TileOccupancyLayer:
    """Bitset of tile states, row-major, packed into 64-bit words.

    Single-bit writes are atomic read-modify-writes on their word, so
    concurrent writers to different bits of one word never lose updates.
    Reads take no lock and see either the old or the new value of a bit
    being written. ``fill_area`` is a run of independent single-bit writes,
    not a transaction.
    """

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise InvalidArgumentError(f"Tile layer size must be positive, got {width}x{height}")

        self.width = width
        self.height = height

        word_count = (width * height + WORD_BITS - 1) >> _WORD_SHIFT
        self._words = array("Q", [0]) * word_count
        self._locks = [threading.Lock() for _ in range(min(_LOCK_STRIPES, word_count))]

        logger.debug(
            "tile_layer.created",
            width=width,
            height=height,
            memory_bytes=self.estimated_memory_bytes(),
        )

    @classmethod
    def from_states(
        cls, width: int, height: int, states: Iterable[TileType | int | bool]
    ) -> "TileOccupancyLayer":
        """Build a layer from a flat row-major sequence of width*height states."""
        states = list(states)
        if len(states) != width * height:
            raise InvalidArgumentError(
                f"Expected {width * height} tile states, got {len(states)}"
            )

        layer = cls(width, height)
        words = layer._words
        for idx, state in enumerate(states):
            if _tile_type(state) is TileType.BLOCKED:
                words[idx >> _WORD_SHIFT] |= 1 << (idx & _BIT_MASK)
        return layer

    def get(self, x: int, y: int) -> TileType:
        idx = self._index_checked(x, y)
        return TileType.BLOCKED if self._get_bit(idx) else TileType.PLAIN

    def set(self, x: int, y: int, tile_type: TileType) -> None:
        blocked = _tile_type(tile_type) is TileType.BLOCKED
        idx = self._index_checked(x, y)
        self._set_bit(idx, blocked)

    def can_place(self, x: int, y: int) -> bool:
        return self.get(x, y) == TileType.PLAIN

    def fill_area(self, x: int, y: int, w: int, h: int, tile_type: TileType) -> None:
        """Set every tile of the rectangle, row by row."""
        blocked = _tile_type(tile_type) is TileType.BLOCKED
        self._check_area(x, y, w, h)

        for row in range(y, y + h):
            base = row * self.width + x
            for idx in range(base, base + w):
                self._set_bit(idx, blocked)

    def can_place_in_area(self, x: int, y: int, w: int, h: int) -> bool:
        """True if no tile in the rectangle is blocked."""
        self._check_area(x, y, w, h)

        for row in range(y, y + h):
            base = row * self.width + x
            for idx in range(base, base + w):
                if self._get_bit(idx):
                    return False
        return True

    def estimated_memory_bytes(self) -> int:
        return len(self._words) * self._words.itemsize

    def as_read_only(self) -> "ReadOnlyTileLayer":
        return ReadOnlyTileLayer(self)

    def _get_bit(self, idx: int) -> bool:
        return (self._words[idx >> _WORD_SHIFT] >> (idx & _BIT_MASK)) & 1 == 1

    def _set_bit(self, idx: int, value: bool) -> None:
        word = idx >> _WORD_SHIFT
        mask = 1 << (idx & _BIT_MASK)
        with self._locks[word % len(self._locks)]:
            if value:
                self._words[word] |= mask
            else:
                self._words[word] &= ~mask & 0xFFFFFFFFFFFFFFFF

    def _index_checked(self, x: int, y: int) -> int:
        if not 0 <= x < self.width:
            raise OutOfRangeError(f"x={x} outside [0, {self.width})")
        if not 0 <= y < self.height:
            raise OutOfRangeError(f"y={y} outside [0, {self.height})")
        return y * self.width + x

    def _check_area(self, x: int, y: int, w: int, h: int) -> None:
        if w <= 0 or h <= 0:
            raise OutOfRangeError(f"Area must be at least 1x1, got {w}x{h}")
        if x < 0 or y < 0 or x + w > self.width or y + h > self.height:
            raise OutOfRangeError(
                f"Area ({x}, {y}, {w}, {h}) outside {self.width}x{self.height} grid"
            )


class ReadOnlyTileLayer:
    """Query-only view of a TileOccupancyLayer; safe to share with readers."""

    __slots__ = ("_layer",)

    def __init__(self, layer: TileOccupancyLayer):
        self._layer = layer

    @property
    def width(self) -> int:
        return self._layer.width

    @property
    def height(self) -> int:
        return self._layer.height

    def get(self, x: int, y: int) -> TileType:
        return self._layer.get(x, y)

    def can_place(self, x: int, y: int) -> bool:
        return self._layer.can_place(x, y)

    def can_place_in_area(self, x: int, y: int, w: int, h: int) -> bool:
        return self._layer.can_place_in_area(x, y, w, h)

    def estimated_memory_bytes(self) -> int:
        return self._layer.estimated_memory_bytes()
