"""Pairwise distance matrix construction with bounded per-origin fan-out."""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from ...config import settings
from ...errors import UpstreamPermanent
from ...models.domain import DistanceResult, RouteKey
from ...platform.context import RequestContext
from ...platform.obs import Timing
from ...platform.pool import fan_out
from ..distance.provider import DistanceProvider, LookupKind

logger = logging.getLogger(__name__)


def lookup_many(
    provider: DistanceProvider,
    origin: str,
    destinations: Sequence[str],
    ctx: RequestContext,
) -> dict[str, DistanceResult]:
    """One origin against many destinations, using the provider's lookup variant."""
    if provider.kind is LookupKind.BATCH:
        return provider.resolve_many(origin, destinations, ctx)  # type: ignore[attr-defined]

    results: dict[str, DistanceResult] = {}
    for destination in destinations:
        ctx.raise_if_done()
        results[destination] = provider.resolve(origin, destination, ctx)
    return results


def build_pairwise_matrix(
    provider: DistanceProvider,
    locations: Sequence[str],
    ctx: RequestContext,
    *,
    known_rows: Optional[Mapping[str, Mapping[str, DistanceResult]]] = None,
    max_workers: Optional[int] = None,
) -> dict[RouteKey, DistanceResult]:
    """Distances for every ordered pair of distinct ``locations``.

    Rows already present in ``known_rows`` are reused as-is; every other origin
    gets one lookup against all other locations. Any failing origin fails the
    whole build and no partial matrix is returned.
    """
    known_rows = known_rows or {}
    unique = list(dict.fromkeys(locations))
    pending = [origin for origin in unique if origin not in known_rows]

    def resolve_row(origin: str, scope: RequestContext) -> dict[str, DistanceResult]:
        targets = [t for t in unique if t != origin]
        return lookup_many(provider, origin, targets, scope)

    with Timing("planning.pairwise_matrix", ctx):
        rows = fan_out(
            pending,
            resolve_row,
            ctx,
            max_workers=max_workers or settings.max_parallel_requests,
            label="pairwise matrix",
        )

    matrix: dict[RouteKey, DistanceResult] = {}
    for origin, row in [*known_rows.items(), *zip(pending, rows)]:
        if origin not in unique:
            continue
        for target in unique:
            if target == origin:
                continue
            if target not in row:
                raise UpstreamPermanent(f"missing pairwise distance from {origin!r} to {target!r}")
            matrix[RouteKey(origin, target)] = row[target]

    logger.debug(f"pairwise matrix built for {len(unique)} locations ({len(pending)} origins resolved)")
    return matrix
