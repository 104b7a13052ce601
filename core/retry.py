# core/retry.py

"""Retry policy applied to every individual backing store call."""

import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import StorageFailure, StoreError, TransientStoreError
from .logging import get_logger

if TYPE_CHECKING:
    from .config import TilemapConfig

T = TypeVar("T")

logger = get_logger(__name__)

# SQLite reports lock contention as a plain OperationalError
_TRANSIENT_SQLITE_MARKERS = ("database is locked", "database is busy", "disk i/o error")


def is_transient(exc: BaseException) -> bool:
    """Classify an exception as retry-worthy (timeouts and connectivity only)."""
    if isinstance(exc, (TransientStoreError, TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, sqlite3.OperationalError):
        message = str(exc).lower()
        return any(marker in message for marker in _TRANSIENT_SQLITE_MARKERS)
    return False


def is_store_error(exc: BaseException) -> bool:
    """True for errors that originate in the backing store itself."""
    return isinstance(exc, (StoreError, sqlite3.Error)) or is_transient(exc)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential-backoff retry for transient store errors.

    The delay after failed attempt ``n`` is ``base_delay * 2 ** (n - 1)``.
    Only transient errors are retried. Cancellation is never retried and
    propagates as ``asyncio.CancelledError``.
    """

    attempts: int = 3
    base_delay: float = 0.05  # seconds

    @classmethod
    def from_config(cls, config: "TilemapConfig") -> "RetryPolicy":
        return cls(attempts=config.retry_attempts, base_delay=config.retry_base_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str = "store.call",
    ) -> T:
        """Run one store call under the policy.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            name: Operation name used in log records

        Returns:
            Whatever the operation returns

        Raises:
            StorageFailure: Transient errors exhausted every attempt, or the
                store raised a non-transient error
        """
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(is_transient),
                stop=stop_after_attempt(self.attempts),
                wait=wait_exponential(multiplier=self.base_delay, exp_base=2, min=0),
                before_sleep=self._log_retry(name),
                reraise=True,
            ):
                with attempt:
                    return await operation()
        except Exception as e:
            if not is_store_error(e):
                raise
            logger.error(
                "store.call_failed",
                operation=name,
                transient=is_transient(e),
                error=str(e),
            )
            raise StorageFailure(f"{name} failed: {e}") from e

        raise RuntimeError("retry loop exited without a result")

    def _log_retry(self, name: str) -> Callable[[RetryCallState], None]:
        def before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "store.retry",
                operation=name,
                attempt=retry_state.attempt_number,
                max_attempts=self.attempts,
                delay=retry_state.next_action.sleep if retry_state.next_action else None,
                error=str(exc),
            )

        return before_sleep
