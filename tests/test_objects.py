"""Tests for MapObject geometry and serialization."""

from datetime import datetime, timezone

import pytest

from core.exceptions import InvalidArgumentError
from spatial.objects import MapObject


class TestGeometry:
    """Centre, point containment and rectangle overlap."""

    def test_center_single_tile(self):
        assert MapObject("a", 4, 7).center() == (4.0, 7.0)

    def test_center_even_size(self):
        assert MapObject("a", 0, 0, 4, 2).center() == (1.5, 0.5)

    def test_contains_point_half_open(self):
        obj = MapObject("a", 10, 10, 3, 3)
        assert obj.contains_point(10, 10)
        assert obj.contains_point(12, 12)
        assert not obj.contains_point(13, 12)
        assert not obj.contains_point(12, 13)
        assert not obj.contains_point(9, 10)

    def test_negative_coordinates(self):
        obj = MapObject("a", -5, -5, 2, 2)
        assert obj.contains_point(-4, -4)
        assert not obj.contains_point(-3, -4)

    @pytest.mark.parametrize(
        "rect,expected",
        [
            ((9, 9, 10, 10), True),  # full containment
            ((11, 11, 1, 1), True),  # rect inside object
            ((12, 12, 5, 5), True),  # corner overlap
            ((13, 10, 5, 5), False),  # touching right edge
            ((10, 13, 5, 5), False),  # touching bottom edge
            ((5, 5, 5, 5), False),  # touching top-left corner
            ((0, 0, 2, 2), False),
        ],
    )
    def test_intersects_rect(self, rect, expected):
        assert MapObject("a", 10, 10, 3, 3).intersects_rect(*rect) is expected


class TestValidation:
    """Bad geometry is rejected at construction."""

    @pytest.mark.parametrize("width,height", [(0, 1), (1, 0), (-2, 3)])
    def test_rejects_empty_footprint(self, width, height):
        with pytest.raises(InvalidArgumentError):
            MapObject("a", 0, 0, width, height)

    def test_rejects_empty_id(self):
        with pytest.raises(InvalidArgumentError):
            MapObject("", 0, 0)


class TestSerialization:
    """JSON form stored in the backing store."""

    def test_to_dict_keys(self):
        obj = MapObject("tower-1", 3, 4, 2, 2, type="tower", metadata='{"hp": 10}')
        data = obj.to_dict()

        assert set(data) == {"id", "x", "y", "width", "height", "type", "metadata", "updatedAt"}
        assert data["metadata"] == '{"hp": 10}'

    def test_json_round_trip_preserves_everything(self):
        stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        obj = MapObject("tower-1", -3, 4, 2, 5, type="tower", metadata="blob", updated_at=stamp)

        assert MapObject.from_json(obj.to_json()) == obj

    def test_touched_refreshes_timestamp_only(self):
        old = datetime(2020, 1, 1, tzinfo=timezone.utc)
        obj = MapObject("a", 1, 2, updated_at=old)

        fresh = obj.touched()

        assert fresh.updated_at > old
        assert (fresh.id, fresh.x, fresh.y) == (obj.id, obj.x, obj.y)
