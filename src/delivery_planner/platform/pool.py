"""Bounded concurrent fan-out with cancel-on-first-failure."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Sequence, TypeVar

from ..config import settings
from ..errors import Cancelled
from .context import RequestContext

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def fan_out(
    items: Sequence[T],
    worker: Callable[[T, RequestContext], R],
    ctx: RequestContext,
    *,
    max_workers: int | None = None,
    label: str = "fan-out",
) -> list[R]:
    """Run ``worker`` over ``items`` with at most ``max_workers`` in flight.

    The first failing worker cancels a scope shared by all workers; queued
    workers then never start and running ones stop at their next attempt
    boundary. Every dispatched worker is drained before results are inspected.
    Results come back in input order. On failure the representative error is
    the first non-cancellation error in input order.
    """
    if not items:
        return []

    limit = max_workers or settings.max_parallel_requests
    scope = ctx.child()
    results: list[R | None] = [None] * len(items)
    errors: dict[int, Exception] = {}

    def run(item: T) -> R:
        try:
            scope.raise_if_done()
            return worker(item, scope)
        except Exception:
            scope.cancel()
            raise

    with ThreadPoolExecutor(max_workers=min(limit, len(items))) as executor:
        future_to_index = {executor.submit(run, item): index for index, item in enumerate(items)}
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as exc:
                errors[index] = exc

    if errors:
        logger.warning(f"{label}: {len(errors)}/{len(items)} workers failed")
        raise _representative_error(errors)

    return results  # type: ignore[return-value]


def _representative_error(errors: dict[int, Exception]) -> Exception:
    ordered = [errors[index] for index in sorted(errors)]
    for error in ordered:
        if not isinstance(error, Cancelled):
            return error
    return ordered[0]
