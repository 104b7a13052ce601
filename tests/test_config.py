"""Tests for settings loading."""

import pytest
import structlog
from pydantic import ValidationError

from core.config import TilemapConfig
from core.logging import configure_from, configure_logging
from spatial.geo import CoordinateTransform
from spatial.index import SpatialObjectIndex
from spatial.sqlite_store import SqliteBackingStore
from spatial.store import MemoryBackingStore, create_store


def test_defaults(monkeypatch):
    for name in ("TILEMAP_MAP_WIDTH", "TILEMAP_STORE_BACKEND", "TILEMAP_RETRY_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)

    cfg = TilemapConfig(_env_file=None)

    assert cfg.map_width == 1000
    assert cfg.map_height == 1000
    assert cfg.retry_attempts == 3
    assert cfg.retry_base_delay == pytest.approx(0.05)
    assert cfg.store_backend == "memory"


def test_env_override(monkeypatch):
    monkeypatch.setenv("TILEMAP_MAP_WIDTH", "256")
    monkeypatch.setenv("TILEMAP_STORE_BACKEND", "sqlite")

    cfg = TilemapConfig(_env_file=None)

    assert cfg.map_width == 256
    assert cfg.store_backend == "sqlite"


def test_rejects_non_positive_map_size():
    with pytest.raises(ValidationError):
        TilemapConfig(_env_file=None, map_width=0)


def test_create_store_picks_backend(tmp_path):
    memory = create_store(TilemapConfig(_env_file=None, store_backend="memory"))
    sqlite = create_store(
        TilemapConfig(
            _env_file=None,
            store_backend="sqlite",
            sqlite_path=str(tmp_path / "cfg.db"),
        )
    )

    assert isinstance(memory, MemoryBackingStore)
    assert isinstance(sqlite, SqliteBackingStore)
    assert sqlite.db_path.endswith("cfg.db")


def test_index_from_config():
    cfg = TilemapConfig(
        _env_file=None,
        map_width=500,
        map_height=400,
        lon_span=0.5,
        retry_attempts=4,
        candidate_margin_tiles=3.0,
    )

    index = SpatialObjectIndex.from_config(MemoryBackingStore(), cfg)

    assert index.transform == CoordinateTransform(500, 400, 0.0, 0.0, 0.5, 0.1)
    assert index.retry_policy.attempts == 4
    assert index.candidate_margin_tiles == 3.0


def test_logging_from_config():
    cfg = TilemapConfig(_env_file=None, log_level="DEBUG", log_json=False)

    configure_from(cfg)
    try:
        assert isinstance(
            structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer
        )
    finally:
        configure_logging("DEBUG")
