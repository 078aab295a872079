"""Distance provider contracts and the provider variants used by the planners."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Protocol, Sequence

from ...models.domain import Coordinates, DistanceResult
from ...platform.context import RequestContext


class LookupKind(str, Enum):
    """How a provider answers lookups; fixed when the provider is constructed."""

    SINGLE = "single"
    BATCH = "batch"


class DistanceProvider(Protocol):
    kind: LookupKind

    def resolve(
        self, origin: str, destination: str, ctx: Optional[RequestContext] = None
    ) -> DistanceResult:
        ...


class BatchDistanceProvider(DistanceProvider, Protocol):
    def resolve_many(
        self, origin: str, destinations: Sequence[str], ctx: Optional[RequestContext] = None
    ) -> dict[str, DistanceResult]:
        ...


class GeocodeSource(Protocol):
    def search(self, address: str, ctx: RequestContext) -> Coordinates:
        ...


class MatrixSource(Protocol):
    def compute_row(
        self, origin: Coordinates, destinations: Sequence[Coordinates], ctx: RequestContext
    ) -> list[DistanceResult]:
        ...
