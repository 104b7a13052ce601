# core/config.py

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TilemapConfig(BaseSettings):
    """Configuration for the tile map state engine."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="TILEMAP_")

    # Map geometry
    map_width: int = Field(default=1000, gt=0)
    map_height: int = Field(default=1000, gt=0)

    # Geo projection used by the radius index
    origin_lon: float = 0.0
    origin_lat: float = 0.0
    lon_span: float = Field(default=0.1, gt=0)
    lat_span: float = Field(default=0.1, gt=0)

    # Backing store
    store_backend: Literal["memory", "sqlite"] = "memory"
    sqlite_path: str = "tilemap.db"

    # Retries (per store call)
    retry_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=0.05, ge=0)  # seconds

    # Spatial queries
    candidate_margin_tiles: float = Field(default=1.0, ge=0)
    tile_search_factor: float = Field(default=2.0, gt=0)

    # Logging
    log_level: str = "INFO"
    log_json: bool = True


# Global config instance
config = TilemapConfig()
