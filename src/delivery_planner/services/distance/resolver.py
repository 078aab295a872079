"""Cache-aside distance resolution backed by geocoding and matrix services.

``DistanceResolver`` coordinates:
  - address normalization
  - persistent geocode caching
  - persistent distance caching
  - bounded concurrent geocoding of cache misses
  - a single origin->many matrix request for distance misses

It is safe for concurrent use.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Sequence

from ...config import settings
from ...errors import CacheError, UpstreamPermanent, ValidationError
from ...models.domain import Coordinates, DistanceResult, normalize_location
from ...platform.context import RequestContext
from ...platform.obs import LoggingSink, ObservabilitySink, Timing
from ...platform.pool import fan_out
from .cache import DistanceCache, GeoCache
from .provider import GeocodeSource, LookupKind, MatrixSource

logger = logging.getLogger(__name__)


class DistanceResolver:
    kind = LookupKind.BATCH

    def __init__(
        self,
        geocoder: GeocodeSource,
        matrix: MatrixSource,
        *,
        distance_cache: Optional[DistanceCache] = None,
        geo_cache: Optional[GeoCache] = None,
        sink: Optional[ObservabilitySink] = None,
        max_parallel_requests: Optional[int] = None,
        strict_cache_writes: Optional[bool] = None,
    ) -> None:
        self.geocoder = geocoder
        self.matrix = matrix
        self.distance_cache = distance_cache
        self.geo_cache = geo_cache
        self.sink = sink or LoggingSink()
        self.max_parallel_requests = max_parallel_requests or settings.max_parallel_requests
        self.strict_cache_writes = (
            settings.strict_cache_writes if strict_cache_writes is None else strict_cache_writes
        )

    def resolve(
        self, origin: str, destination: str, ctx: Optional[RequestContext] = None
    ) -> DistanceResult:
        norm_origin = normalize_location(origin or "")
        norm_destination = normalize_location(destination or "")
        if not norm_origin or not norm_destination:
            raise ValidationError("origin and destination must be non-empty")

        results = self.resolve_many(norm_origin, [norm_destination], ctx)
        if norm_destination not in results:
            # Only reachable when origin and destination normalize to the same place.
            return DistanceResult(0, 0)
        return results[norm_destination]

    def resolve_many(
        self,
        origin: str,
        destinations: Sequence[str],
        ctx: Optional[RequestContext] = None,
    ) -> dict[str, DistanceResult]:
        """Distances from ``origin`` to every destination, keyed by normalized destination.

        Either every requested destination is present in the result or the call
        raises; partial results never escape.
        """
        ctx = ctx or RequestContext.background()
        norm_origin = normalize_location(origin or "")
        if not norm_origin:
            raise ValidationError("origin must be non-empty")

        wanted: list[str] = []
        for destination in destinations:
            norm = normalize_location(destination or "")
            if not norm:
                raise ValidationError(f"destination must be non-empty (origin {norm_origin!r})")
            if norm != norm_origin and norm not in wanted:
                wanted.append(norm)
        if not wanted:
            return {}

        with Timing("resolver.resolve_many", ctx):
            hits: dict[str, DistanceResult] = {}
            if self.distance_cache is not None:
                hits = self.distance_cache.get_many(norm_origin, wanted, ctx)

            misses = [d for d in wanted if d not in hits]
            if not misses:
                return {d: hits[d] for d in wanted}

            coords = self._coordinates_for([norm_origin, *misses], ctx)
            fetched = self._fetch_row(norm_origin, misses, coords, ctx)
            self._write_back(self.distance_cache, lambda c: c.put_many(norm_origin, fetched, ctx))

            out = dict(hits)
            out.update(fetched)
            return out

    def _coordinates_for(self, addresses: Sequence[str], ctx: RequestContext) -> dict[str, Coordinates]:
        cached: dict[str, Coordinates] = {}
        if self.geo_cache is not None:
            cached = self.geo_cache.get_many(addresses, ctx)

        missing = [a for a in dict.fromkeys(addresses) if a not in cached]
        fresh: dict[str, Coordinates] = {}
        if missing:
            fresh = self.geocode_many(missing, ctx)
            self._write_back(self.geo_cache, lambda c: c.put_many(fresh, ctx))

        coords = dict(cached)
        coords.update(fresh)
        return coords

    def geocode_many(self, addresses: Sequence[str], ctx: RequestContext) -> dict[str, Coordinates]:
        """Geocode addresses concurrently (deduplicated, bounded fan-out)."""
        unique = list(dict.fromkeys(normalize_location(a) for a in addresses))
        with Timing("resolver.geocode_many", ctx):
            found = fan_out(
                unique,
                lambda address, scope: self.geocoder.search(address, scope),
                ctx,
                max_workers=self.max_parallel_requests,
                label="geocode",
            )
        return dict(zip(unique, found))

    def _fetch_row(
        self,
        origin: str,
        destinations: Sequence[str],
        coords: Mapping[str, Coordinates],
        ctx: RequestContext,
    ) -> dict[str, DistanceResult]:
        if origin not in coords:
            raise UpstreamPermanent(f"missing coordinate for origin {origin!r}")
        missing_coords = [d for d in destinations if d not in coords]
        if missing_coords:
            raise UpstreamPermanent(f"missing coordinate for destinations: {', '.join(missing_coords)}")

        row = self.matrix.compute_row(coords[origin], [coords[d] for d in destinations], ctx)
        if len(row) != len(destinations):
            returned = len(row)
            raise UpstreamPermanent(
                f"matrix service returned {returned} results for {len(destinations)} destinations: "
                f"{', '.join(destinations[returned:])}"
            )
        return dict(zip(destinations, row))

    def _write_back(self, cache, write) -> None:
        """Best-effort cache write; failures go to the sink unless strict mode is on."""
        if cache is None:
            return
        try:
            write(cache)
        except CacheError as exc:
            if self.strict_cache_writes:
                raise
            self.sink.cache_write_failed(cache.name, exc)
