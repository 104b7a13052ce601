# core/exceptions.py

"""Exception hierarchy for the tile map state engine."""


class TilemapException(Exception):
    """Base exception for all tile map errors."""

    pass


# Contract violations (raised synchronously, never retried)
class InvalidArgumentError(TilemapException):
    """Raised for bad geometry, non-positive dimensions or missing required input."""

    pass


class OutOfRangeError(TilemapException):
    """Raised when a coordinate or rectangle lies outside the grid bounds."""

    pass


class NotFoundError(TilemapException):
    """Raised when a requested region id does not exist."""

    pass


# Storage Exceptions
class StorageException(TilemapException):
    """Base exception for backing store operations."""

    pass


class StorageFailure(StorageException):
    """Raised to index callers when a store call failed for good.

    Either a transient error exhausted every retry attempt, or the store
    reported a non-transient error. The original error is chained as
    ``__cause__``.
    """

    pass


class StoreError(StorageException):
    """Raised by a backing store for a logical, non-retryable failure."""

    pass


class StoreUnavailableError(StoreError):
    """Raised when a store is used before initialize() or after close()."""

    pass


class TransientStoreError(StorageException):
    """Base for retry-worthy store errors."""

    pass


class StoreTimeoutError(TransientStoreError):
    """Raised when a store call timed out."""

    pass


class StoreConnectionError(TransientStoreError):
    """Raised when the store connection dropped or could not be established."""

    pass
