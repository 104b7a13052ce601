"""Pytest configuration and shared fixtures."""

import pytest

from core.logging import configure_logging
from core.retry import RetryPolicy
from spatial.geo import CoordinateTransform
from spatial.index import SpatialObjectIndex
from spatial.sqlite_store import SqliteBackingStore
from spatial.store import MemoryBackingStore

MAP_ID = "test-map"


@pytest.fixture(scope="session", autouse=True)
def structured_logging():
    """Route every component log through the structlog pipeline."""
    configure_logging("DEBUG")


@pytest.fixture
def map_id():
    """Map namespace used by index tests."""
    return MAP_ID


@pytest.fixture
def transform():
    """Transform for a 1000x1000 tile map anchored at (0, 0)."""
    return CoordinateTransform(1000, 1000, 0.0, 0.0)


@pytest.fixture
def fast_retry():
    """Retry policy with the production attempt count and no backoff delay."""
    return RetryPolicy(attempts=3, base_delay=0.0)


@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path."""
    return str(tmp_path / "test_tilemap.db")


@pytest.fixture
async def memory_store():
    """In-process backing store."""
    store = MemoryBackingStore()
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def sqlite_store(temp_db_path):
    """Create and initialize a SQLite backing store for testing."""
    store = SqliteBackingStore(db_path=temp_db_path)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, temp_db_path):
    """Each backing store implementation in turn."""
    if request.param == "sqlite":
        backing = SqliteBackingStore(db_path=temp_db_path)
    else:
        backing = MemoryBackingStore()
    await backing.initialize()
    yield backing
    await backing.close()


@pytest.fixture
async def index(store, transform, fast_retry):
    """Spatial object index over each backing store."""
    spatial_index = SpatialObjectIndex(store, transform, retry_policy=fast_retry)
    yield spatial_index
    await spatial_index.close()
