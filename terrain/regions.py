# terrain/regions.py

"""Static partition of the map into equal, near-square rectangular regions."""

from array import array
from dataclasses import dataclass
from typing import Callable, Optional

from core.exceptions import InvalidArgumentError, NotFoundError, OutOfRangeError
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned tile rectangle with inclusive right/bottom corners.

    Unlike ``MapObject.intersects_rect`` (half-open), ``intersects`` and
    ``contains`` here compare inclusive corners.
    """

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise InvalidArgumentError(f"Rect must be at least 1x1, got {self.width}x{self.height}")

    @classmethod
    def from_corners(cls, x1: int, y1: int, x2: int, y2: int) -> "Rect":
        """Rect spanning two opposite corner tiles, given in any order."""
        min_x, max_x = min(x1, x2), max(x1, x2)
        min_y, max_y = min(y1, y2), max(y1, y2)
        return cls(min_x, min_y, max_x - min_x + 1, max_y - min_y + 1)

    @property
    def right(self) -> int:
        return self.x + self.width - 1

    @property
    def bottom(self) -> int:
        return self.y + self.height - 1

    @property
    def area(self) -> int:
        return self.width * self.height

    def intersects(self, other: "Rect") -> bool:
        return not (
            other.x > self.right
            or other.right < self.x
            or other.y > self.bottom
            or other.bottom < self.y
        )

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x <= self.right and self.y <= y <= self.bottom


@dataclass(frozen=True)
class Region:
    """One partition cell. Ids are dense, starting at 1."""

    id: int
    name: str
    bounds: Rect


def _divisors(n: int) -> list[int]:
    small, large = [], []
    i = 1
    while i * i <= n:
        if n % i == 0:
            small.append(i)
            if i != n // i:
                large.append(n // i)
        i += 1
    return small + large[::-1]


def _default_name(region_id: int) -> str:
    return f"Region #{region_id}"


class RegionPartitionLayer:
    """Immutable region partition with O(1) tile -> region lookup.

    Build with ``generate``. Safe for any number of concurrent readers.
    """

    def __init__(self, map_width: int, map_height: int, region_ids: array, regions: list[Region]):
        self.width = map_width
        self.height = map_height
        self._region_ids = region_ids
        self._regions = tuple(regions)
        self._regions_by_id = {region.id: region for region in self._regions}

    @classmethod
    def generate(
        cls,
        map_width: int,
        map_height: int,
        name_fn: Optional[Callable[[int], str]] = None,
    ) -> "RegionPartitionLayer":
        """Partition the map into cols x rows regions of identical size.

        Column and row counts are divisors of the map dimensions, chosen so
        that regions are as close to square as possible (first found wins
        ties). A prime dimension can only be split into one strip or into
        single-tile strips.
        """
        if map_width <= 0 or map_height <= 0:
            raise InvalidArgumentError(
                f"Map size must be positive, got {map_width}x{map_height}"
            )
        name_fn = name_fn or _default_name

        best_cols, best_rows = 1, 1
        best_diff: Optional[int] = None
        for cols in _divisors(map_width):
            for rows in _divisors(map_height):
                diff = abs(map_width // cols - map_height // rows)
                if best_diff is None or diff < best_diff:
                    best_diff = diff
                    best_cols, best_rows = cols, rows

        region_width = map_width // best_cols
        region_height = map_height // best_rows

        regions = []
        region_id = 1
        for ry in range(best_rows):
            for cx in range(best_cols):
                bounds = Rect(cx * region_width, ry * region_height, region_width, region_height)
                regions.append(Region(region_id, name_fn(region_id), bounds))
                region_id += 1

        region_ids = array("I", [0]) * (map_width * map_height)
        for region in regions:
            b = region.bounds
            row_ids = array("I", [region.id]) * b.width
            for yy in range(b.y, b.y + b.height):
                start = yy * map_width + b.x
                region_ids[start:start + b.width] = row_ids

        logger.info(
            "regions.generated",
            map_width=map_width,
            map_height=map_height,
            cols=best_cols,
            rows=best_rows,
            region_width=region_width,
            region_height=region_height,
        )
        return cls(map_width, map_height, region_ids, regions)

    @property
    def regions(self) -> tuple[Region, ...]:
        """All regions in generation (row-major) order."""
        return self._regions

    @property
    def region_count(self) -> int:
        return len(self._regions)

    def get_region_id(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise OutOfRangeError(f"Tile ({x}, {y}) outside {self.width}x{self.height} map")
        return self._region_ids[y * self.width + x]

    def get_region_meta(self, region_id: int) -> Region:
        region = self._regions_by_id.get(region_id)
        if region is None:
            raise NotFoundError(f"Region id {region_id} not found")
        return region

    def tile_belongs_to_region(self, x: int, y: int, region_id: int) -> bool:
        return self.get_region_id(x, y) == region_id

    def get_regions_intersecting(self, query: Rect) -> list[Region]:
        return [region for region in self._regions if region.bounds.intersects(query)]
