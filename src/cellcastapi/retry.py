import logging
import threading
import time
from typing import Callable, TypeVar

from cellcastapi.config import Configuration
from cellcastapi.errors import ApiError, RequestCancelled, TransportError

logger = logging.getLogger("cellcastapi.retry")

T = TypeVar("T")


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, TransportError):
        return True
    if isinstance(error, ApiError):
        return error.retryable
    return False


class RetryPolicy:
    def __init__(
        self,
        max_retries: int,
        backoff_base_ms: int,
        enabled: bool = True,
        max_backoff_ms: int | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.max_retries = max_retries
        self.backoff_base_ms = backoff_base_ms
        self.max_backoff_ms = max_backoff_ms
        self.enabled = enabled
        self._sleep = sleep or time.sleep

    @classmethod
    def from_config(
        cls, config: Configuration, sleep: Callable[[float], None] | None = None
    ) -> "RetryPolicy":
        return cls(
            max_retries=config.max_retries,
            backoff_base_ms=config.retry_backoff_base_ms,
            enabled=config.auto_retry_failed,
            max_backoff_ms=config.max_backoff_ms,
            sleep=sleep,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1 if self.enabled else 1

    def delay_for(self, attempt: int, error: BaseException | None = None) -> float:
        """Seconds to wait after failed ``attempt`` (1-indexed)."""
        delay_ms = float(self.backoff_base_ms * 2 ** (attempt - 1))
        retry_after = getattr(error, "retry_after", None)
        if retry_after:
            delay_ms = max(delay_ms, float(retry_after) * 1000)
        if self.max_backoff_ms is not None:
            delay_ms = min(delay_ms, float(self.max_backoff_ms))
        return delay_ms / 1000

    def call(self, func: Callable[[], T], cancel: threading.Event | None = None) -> T:
        attempt = 0
        while True:
            if cancel is not None and cancel.is_set():
                raise RequestCancelled("Request cancelled before dispatch")
            attempt += 1
            try:
                return func()
            except Exception as e:
                if not is_retryable(e) or attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt, e)
                logger.warning(
                    f"Request failed (attempt {attempt}/{self.max_attempts}): "
                    f"{type(e).__name__} - {e}. Retrying in {delay:.2f} seconds"
                )
                self._wait(delay, cancel, e)

    def _wait(self, delay: float, cancel: threading.Event | None, error: Exception) -> None:
        if cancel is None:
            self._sleep(delay)
            return
        if cancel.wait(delay):
            raise RequestCancelled("Request cancelled while waiting to retry") from error
