"""Cache-aside front ends over the geocode and distance stores.

Keys are expected to be normalized by the caller. Both caches drop blank keys,
deduplicate lookups and report any backend failure as ``CacheError``.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

from ...errors import CacheError, ValidationError
from ...models.domain import Coordinates, DistanceResult, RouteKey
from ...persistence.cache_store import DistanceStore, GeocodeStore
from ...platform.context import RequestContext
from ...platform.obs import Timing


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(value.strip() for value in values if value and value.strip()))


class GeoCache:
    name = "geocode"

    def __init__(self, store: GeocodeStore) -> None:
        self.store = store

    def get_many(self, addresses: Iterable[str], ctx: Optional[RequestContext] = None) -> dict[str, Coordinates]:
        wanted = _unique(addresses)
        if not wanted:
            return {}
        with Timing("geocode.cache.get_many", ctx):
            try:
                return self.store.get_many(wanted)
            except CacheError:
                raise
            except Exception as exc:
                raise CacheError(f"get geocode cache: {exc}") from exc

    def put_many(self, entries: Mapping[str, Coordinates], ctx: Optional[RequestContext] = None) -> None:
        if not entries:
            return
        for address in entries:
            if not address.strip():
                raise ValidationError("insert geocode cache: empty address key")
        with Timing("geocode.cache.put_many", ctx):
            try:
                self.store.put_many(dict(entries))
            except CacheError:
                raise
            except Exception as exc:
                raise CacheError(f"insert geocode cache: {exc}") from exc


class DistanceCache:
    name = "distance"

    def __init__(self, store: DistanceStore) -> None:
        self.store = store

    def get_many(
        self,
        origin: str,
        destinations: Iterable[str],
        ctx: Optional[RequestContext] = None,
    ) -> dict[str, DistanceResult]:
        """Cached results for one origin, keyed by destination. Misses are simply absent."""
        if not origin.strip():
            raise ValidationError("get distance cache: origin must not be empty")
        wanted = _unique(destinations)
        if not wanted:
            return {}

        with Timing("distance.cache.get_many", ctx):
            try:
                rows = self.store.get_many([RouteKey(origin, destination) for destination in wanted])
            except CacheError:
                raise
            except Exception as exc:
                raise CacheError(f"get distance cache: {exc}") from exc
        return {key.destination: result for key, result in rows.items() if key.origin == origin}

    def put_many(
        self,
        origin: str,
        results: Mapping[str, DistanceResult],
        ctx: Optional[RequestContext] = None,
    ) -> None:
        if not origin.strip():
            raise ValidationError("insert distance cache: origin must not be empty")
        if not results:
            return
        for destination in results:
            if not destination.strip():
                raise ValidationError("insert distance cache: empty destination key")

        with Timing("distance.cache.put_many", ctx):
            try:
                self.store.put_many({RouteKey(origin, dest): result for dest, result in results.items()})
            except CacheError:
                raise
            except Exception as exc:
                raise CacheError(f"insert distance cache: {exc}") from exc
