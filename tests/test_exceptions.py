"""Tests for custom exception hierarchy."""

import pytest

from core.exceptions import (
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


class TestExceptionHierarchy:
    """Test exception inheritance hierarchy."""

    def test_tilemap_exception_is_base(self):
        """TilemapException is the base for all custom exceptions."""
        assert issubclass(InvalidArgumentError, TilemapException)
        assert issubclass(OutOfRangeError, TilemapException)
        assert issubclass(NotFoundError, TilemapException)
        assert issubclass(StorageException, TilemapException)

    def test_storage_exception_hierarchy(self):
        """Storage exceptions inherit properly."""
        assert issubclass(StorageFailure, StorageException)
        assert issubclass(StoreError, StorageException)
        assert issubclass(StoreUnavailableError, StoreError)
        assert issubclass(TransientStoreError, StorageException)

    def test_transient_errors(self):
        """Timeouts and connection errors are transient, logical store errors are not."""
        assert issubclass(StoreTimeoutError, TransientStoreError)
        assert issubclass(StoreConnectionError, TransientStoreError)
        assert not issubclass(StoreError, TransientStoreError)

    def test_contract_errors_are_not_storage_errors(self):
        """Contract violations never look like storage problems."""
        for exc_type in (InvalidArgumentError, OutOfRangeError, NotFoundError):
            assert not issubclass(exc_type, StorageException)


class TestExceptionUsage:
    """Test that exceptions can be raised and caught properly."""

    def test_catch_by_parent_type(self):
        """Exceptions can be caught by their parent type."""
        try:
            raise StoreTimeoutError("timed out")
        except StorageException as e:
            assert "timed out" in str(e)
        else:
            pytest.fail("Exception not caught by parent type")

    def test_storage_failure_chains_cause(self):
        """StorageFailure keeps the store error as its cause."""
        try:
            try:
                raise StoreConnectionError("connection reset")
            except StoreConnectionError as e:
                raise StorageFailure("object.get failed") from e
        except StorageFailure as e:
            assert isinstance(e.__cause__, StoreConnectionError)
            assert "connection reset" in str(e.__cause__)

    def test_out_of_range_error(self):
        """OutOfRangeError works correctly."""
        with pytest.raises(OutOfRangeError) as exc_info:
            raise OutOfRangeError("x=-1 outside [0, 10)")

        assert "x=-1" in str(exc_info.value)

    def test_empty_message(self):
        """Exceptions can be raised without messages."""
        exc = TilemapException()
        # Should not raise when converting to string
        str(exc)
