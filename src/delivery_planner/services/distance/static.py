"""Fixed-table distance provider for offline runs, demos and tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping, Optional

from ...errors import UpstreamPermanent, ValidationError
from ...models.domain import DistanceResult, RouteKey, normalize_location
from ...platform.context import RequestContext
from .provider import LookupKind


class StaticDistanceProvider:
    """Single-lookup provider answering from an in-memory (origin, destination) table."""

    kind = LookupKind.SINGLE

    def __init__(self, table: Mapping[RouteKey, DistanceResult], *, symmetric: bool = False) -> None:
        self._table: dict[RouteKey, DistanceResult] = {}
        for key, result in table.items():
            origin, destination = normalize_location(key[0]), normalize_location(key[1])
            self._table[RouteKey(origin, destination)] = result
            if symmetric:
                self._table.setdefault(RouteKey(destination, origin), result)
        self.calls = 0

    @classmethod
    def from_pairs(
        cls, pairs: Iterable[tuple[str, str, int, int]], *, symmetric: bool = False
    ) -> "StaticDistanceProvider":
        return cls(
            {RouteKey(origin, dest): DistanceResult(meters, seconds) for origin, dest, meters, seconds in pairs},
            symmetric=symmetric,
        )

    @classmethod
    def from_json(cls, path: Path, *, symmetric: bool = False) -> "StaticDistanceProvider":
        """Load ``[{"from", "to", "meters", "seconds"}, ...]`` records."""
        with path.open("r", encoding="utf-8") as handle:
            records = json.load(handle)
        return cls.from_pairs(
            ((r["from"], r["to"], int(r["meters"]), int(r["seconds"])) for r in records),
            symmetric=symmetric,
        )

    def resolve(
        self, origin: str, destination: str, ctx: Optional[RequestContext] = None
    ) -> DistanceResult:
        if ctx is not None:
            ctx.raise_if_done()
        norm_origin, norm_destination = normalize_location(origin or ""), normalize_location(destination or "")
        if not norm_origin or not norm_destination:
            raise ValidationError("origin and destination must be non-empty")
        self.calls += 1
        try:
            return self._table[RouteKey(norm_origin, norm_destination)]
        except KeyError:
            raise UpstreamPermanent(f"missing pair {norm_origin!r} -> {norm_destination!r}") from None
