"""Per-call timing and the observability sink used for non-fatal events."""

from __future__ import annotations

import logging
import time
from types import TracebackType
from typing import Optional, Protocol

from .context import RequestContext

logger = logging.getLogger(__name__)


class Timing:
    """Scoped timer for one operation; logs duration and outcome when the block exits.

    Each call site creates its own instance::

        with Timing("ors.matrix", ctx):
            ...
    """

    def __init__(self, operation: str, ctx: Optional[RequestContext] = None) -> None:
        self.operation = operation
        self.request_id = ctx.request_id if ctx is not None else "-"
        self._started = 0.0
        self.elapsed_ms: Optional[int] = None

    def __enter__(self) -> "Timing":
        self._started = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.elapsed_ms = int((time.perf_counter() - self._started) * 1000)
        if exc is not None:
            logger.info(
                f"req_id={self.request_id} op={self.operation} dur={self.elapsed_ms}ms err={exc}"
            )
        else:
            logger.info(f"req_id={self.request_id} op={self.operation} dur={self.elapsed_ms}ms")


class ObservabilitySink(Protocol):
    def cache_write_failed(self, cache: str, error: Exception) -> None:
        ...

    def upstream_retry(self, operation: str, attempt: int, error: Exception, backoff_seconds: float) -> None:
        ...


class LoggingSink:
    """Default sink: non-fatal events become log records."""

    def cache_write_failed(self, cache: str, error: Exception) -> None:
        logger.warning(f"{cache} cache write failed: {error}")

    def upstream_retry(self, operation: str, attempt: int, error: Exception, backoff_seconds: float) -> None:
        logger.debug(
            f"{operation} failed with a transient error, retrying in {backoff_seconds:.2f}s "
            f"(attempt {attempt}): {error}"
        )


class RecordingSink(LoggingSink):
    """Sink that also keeps events in memory; useful for surfacing degraded-mode warnings."""

    def __init__(self) -> None:
        self.cache_failures: list[tuple[str, Exception]] = []
        self.retries: list[tuple[str, int]] = []

    def cache_write_failed(self, cache: str, error: Exception) -> None:
        super().cache_write_failed(cache, error)
        self.cache_failures.append((cache, error))

    def upstream_retry(self, operation: str, attempt: int, error: Exception, backoff_seconds: float) -> None:
        super().upstream_retry(operation, attempt, error, backoff_seconds)
        self.retries.append((operation, attempt))
