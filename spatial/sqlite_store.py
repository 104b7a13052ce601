# spatial/sqlite_store.py

"""SQLite backing store: records and geo points in one database file."""

import sqlite3
from typing import Optional

import aiosqlite

from core.exceptions import StoreConnectionError, StoreError, StoreUnavailableError
from core.logging import get_logger

from .geo import GeoPoint, haversine_m, radius_bbox
from .store import BackingStore, ChannelHub, ChannelSubscription

_NOT_INITIALIZED_ERROR = "SQLite store not initialized"


class SqliteBackingStore(BackingStore):
    """SQLite-backed records and geo points, with in-process pub/sub.

    The radius search pre-filters on a lon/lat bounding box in SQL and
    refines with the haversine distance.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None
        self._hub = ChannelHub()
        self.logger = get_logger(f"{__name__}.SqliteBackingStore")

    async def initialize(self) -> None:
        """Initialize the database connection and schema."""
        try:
            self._db = await aiosqlite.connect(self.db_path)
        except sqlite3.OperationalError as e:
            raise StoreConnectionError(f"Cannot open {self.db_path}: {e}") from e

        await self._db.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """
        )
        await self._db.execute(
            """
            CREATE TABLE IF NOT EXISTS geo_points (
                geo_key TEXT NOT NULL,
                member TEXT NOT NULL,
                lon REAL NOT NULL,
                lat REAL NOT NULL,
                PRIMARY KEY (geo_key, member)
            )
        """
        )
        await self._db.execute(
            "CREATE INDEX IF NOT EXISTS geo_points_lon_lat ON geo_points (geo_key, lon, lat)"
        )
        await self._db.commit()

        self.logger.info("sqlite_store.initialized", db_path=self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        self._hub.close_all()
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if not self._db:
            raise StoreUnavailableError(_NOT_INITIALIZED_ERROR)
        return self._db

    async def get(self, key: str) -> Optional[str]:
        db = self._conn()
        cursor = await db.execute("SELECT value FROM records WHERE key = ?", (key,))
        row = await cursor.fetchone()
        await cursor.close()
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        db = self._conn()
        await db.execute(
            "INSERT INTO records (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
        await db.commit()

    async def geo_add(self, geo_key: str, member: str, lon: float, lat: float) -> None:
        db = self._conn()
        await db.execute(
            "INSERT INTO geo_points (geo_key, member, lon, lat) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(geo_key, member) DO UPDATE SET lon = excluded.lon, lat = excluded.lat",
            (geo_key, member, lon, lat),
        )
        await db.commit()

    async def geo_radius(
        self, geo_key: str, lon: float, lat: float, radius_m: float
    ) -> list[str]:
        db = self._conn()
        center = GeoPoint(lon, lat)
        min_lon, min_lat, max_lon, max_lat = radius_bbox(center, radius_m)

        cursor = await db.execute(
            """
            SELECT member, lon, lat FROM geo_points
            WHERE geo_key = ? AND lon BETWEEN ? AND ? AND lat BETWEEN ? AND ?
        """,
            (geo_key, min_lon, max_lon, min_lat, max_lat),
        )
        rows = await cursor.fetchall()
        await cursor.close()

        return [
            member
            for member, p_lon, p_lat in rows
            if haversine_m(center, GeoPoint(p_lon, p_lat)) <= radius_m
        ]

    async def raise_to(self, key: str, value: float) -> float:
        db = self._conn()
        await db.execute(
            "INSERT INTO records (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET "
            "value = MAX(CAST(value AS REAL), CAST(excluded.value AS REAL))",
            (key, repr(float(value))),
        )
        cursor = await db.execute("SELECT value FROM records WHERE key = ?", (key,))
        row = await cursor.fetchone()
        await cursor.close()
        await db.commit()
        return float(row[0])

    async def delete_atomic(self, key: str, geo_key: str, member: str) -> bool:
        db = self._conn()
        try:
            cursor = await db.execute("DELETE FROM records WHERE key = ?", (key,))
            existed = cursor.rowcount > 0
            await cursor.close()
            await db.execute(
                "DELETE FROM geo_points WHERE geo_key = ? AND member = ?", (geo_key, member)
            )
            await db.commit()
        except sqlite3.Error:
            await db.rollback()
            raise

        self.logger.debug("sqlite_store.deleted", key=key, existed=existed)
        return existed

    async def publish(self, channel: str, message: str) -> int:
        self._conn()
        return self._hub.publish(channel, message)

    def subscribe(self, channel: str) -> ChannelSubscription:
        self._conn()
        return self._hub.subscribe(channel)

    async def count_records(self) -> int:
        """Total number of stored records (all maps)."""
        db = self._conn()
        cursor = await db.execute("SELECT COUNT(*) FROM records")
        result = await cursor.fetchone()
        await cursor.close()
        return result[0] if result else 0

    async def clear(self) -> None:
        """Remove every record and geo point (for testing)."""
        db = self._conn()
        try:
            await db.execute("DELETE FROM records")
            await db.execute("DELETE FROM geo_points")
            await db.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to clear store: {e}") from e
