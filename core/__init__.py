"""Shared configuration, logging, errors and retry policy."""

from .config import TilemapConfig
from .exceptions import (
    InvalidArgumentError,
    NotFoundError,
    OutOfRangeError,
    StorageException,
    StorageFailure,
    StoreConnectionError,
    StoreError,
    StoreTimeoutError,
    StoreUnavailableError,
    TilemapException,
    TransientStoreError,
)
from .retry import RetryPolicy, is_transient

__all__ = [
    "TilemapConfig",
    "RetryPolicy",
    "is_transient",
    # Exceptions
    "TilemapException",
    "InvalidArgumentError",
    "OutOfRangeError",
    "NotFoundError",
    "StorageException",
    "StorageFailure",
    "StoreError",
    "StoreUnavailableError",
    "TransientStoreError",
    "StoreTimeoutError",
    "StoreConnectionError",
]
