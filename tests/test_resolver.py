import threading

import pytest

from delivery_planner.errors import CacheError, NotFound, UpstreamPermanent, ValidationError
from delivery_planner.models.domain import Coordinates, DistanceResult, RouteKey
from delivery_planner.persistence.cache_store import InMemoryDistanceStore, InMemoryGeocodeStore
from delivery_planner.platform.context import RequestContext
from delivery_planner.platform.obs import RecordingSink
from delivery_planner.services.distance.cache import DistanceCache, GeoCache
from delivery_planner.services.distance.provider import LookupKind
from delivery_planner.services.distance.resolver import DistanceResolver

POSITIONS = {"HUB": 0, "A": 1, "B": 3, "C": 6}


class FakeGeocoder:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def search(self, address, ctx):
        with self._lock:
            self.calls.append(address)
        if address not in POSITIONS:
            raise NotFound(address)
        return Coordinates(lon=float(POSITIONS[address]), lat=0.0)


class FakeMatrix:
    def __init__(self, drop_last: bool = False) -> None:
        self.calls: list[tuple[Coordinates, list[Coordinates]]] = []
        self.drop_last = drop_last

    def compute_row(self, origin, destinations, ctx):
        self.calls.append((origin, list(destinations)))
        row = []
        for dest in destinations:
            meters = int(abs(dest.lon - origin.lon) * 1000)
            row.append(DistanceResult(meters, meters // 10))
        return row[:-1] if self.drop_last else row


class FailingWrites(InMemoryDistanceStore):
    def put_many(self, entries):
        raise OSError("read-only replica")


class FailingReads(InMemoryDistanceStore):
    def get_many(self, keys):
        raise OSError("timeout")


def _resolver(distance_store=None, geo_store=None, matrix=None, **kwargs):
    geocoder = FakeGeocoder()
    matrix = matrix or FakeMatrix()
    resolver = DistanceResolver(
        geocoder,
        matrix,
        distance_cache=DistanceCache(distance_store if distance_store is not None else InMemoryDistanceStore()),
        geo_cache=GeoCache(geo_store if geo_store is not None else InMemoryGeocodeStore()),
        max_parallel_requests=5,
        **kwargs,
    )
    return resolver, geocoder, matrix


def test_resolver_is_a_batch_provider():
    resolver, _, _ = _resolver()
    assert resolver.kind is LookupKind.BATCH


def test_all_cache_hits_make_no_upstream_calls():
    store = InMemoryDistanceStore(
        {RouteKey("HUB", "A"): DistanceResult(10, 1), RouteKey("HUB", "B"): DistanceResult(20, 2)}
    )
    resolver, geocoder, matrix = _resolver(distance_store=store)

    result = resolver.resolve_many("HUB", ["A", "B"], RequestContext.background())

    assert result == {"A": DistanceResult(10, 1), "B": DistanceResult(20, 2)}
    assert geocoder.calls == []
    assert matrix.calls == []


def test_partial_hits_fetch_only_misses_and_write_back():
    distance_store = InMemoryDistanceStore({RouteKey("HUB", "A"): DistanceResult(10, 1)})
    geo_store = InMemoryGeocodeStore()
    resolver, geocoder, matrix = _resolver(distance_store=distance_store, geo_store=geo_store)

    result = resolver.resolve_many("HUB", ["A", "B", "C"], RequestContext.background())

    assert result == {
        "A": DistanceResult(10, 1),
        "B": DistanceResult(3000, 300),
        "C": DistanceResult(6000, 600),
    }
    assert sorted(geocoder.calls) == ["B", "C", "HUB"]
    assert len(matrix.calls) == 1
    assert len(matrix.calls[0][1]) == 2
    assert len(distance_store) == 3
    assert len(geo_store) == 3

    again = resolver.resolve_many("HUB", ["B", "C"], RequestContext.background())
    assert again == {"B": DistanceResult(3000, 300), "C": DistanceResult(6000, 600)}
    assert len(matrix.calls) == 1


def test_cached_coordinates_skip_geocoding():
    geo_store = InMemoryGeocodeStore({"HUB": Coordinates(0.0, 0.0), "B": Coordinates(3.0, 0.0)})
    resolver, geocoder, _ = _resolver(geo_store=geo_store)

    resolver.resolve_many("HUB", ["B", "C"], RequestContext.background())

    assert geocoder.calls == ["C"]


def test_normalizes_dedupes_and_drops_origin():
    resolver, _, matrix = _resolver()

    result = resolver.resolve_many("  HUB ", ["A", "A ", " HUB", "B"], RequestContext.background())

    assert set(result) == {"A", "B"}
    assert len(matrix.calls[0][1]) == 2


def test_only_origin_requested_returns_empty():
    resolver, geocoder, matrix = _resolver()
    assert resolver.resolve_many("HUB", ["HUB", " HUB "]) == {}
    assert geocoder.calls == [] and matrix.calls == []


@pytest.mark.parametrize("origin,destinations", [("", ["A"]), ("HUB", ["A", "  "])])
def test_empty_addresses_are_rejected(origin, destinations):
    resolver, _, _ = _resolver()
    with pytest.raises(ValidationError):
        resolver.resolve_many(origin, destinations)


def test_resolve_single_pair_and_same_place():
    resolver, geocoder, _ = _resolver()

    assert resolver.resolve("HUB", "B") == DistanceResult(3000, 300)
    calls = len(geocoder.calls)
    assert resolver.resolve("A", " A ") == DistanceResult(0, 0)
    assert len(geocoder.calls) == calls
    with pytest.raises(ValidationError):
        resolver.resolve("HUB", "")


def test_cache_write_failure_is_not_fatal_by_default():
    sink = RecordingSink()
    resolver, _, _ = _resolver(distance_store=FailingWrites(), sink=sink, strict_cache_writes=False)

    result = resolver.resolve_many("HUB", ["A"], RequestContext.background())

    assert result == {"A": DistanceResult(1000, 100)}
    assert [name for name, _ in sink.cache_failures] == ["distance"]


def test_cache_write_failure_raises_in_strict_mode():
    resolver, _, _ = _resolver(distance_store=FailingWrites(), strict_cache_writes=True)
    with pytest.raises(CacheError):
        resolver.resolve_many("HUB", ["A"], RequestContext.background())


def test_cache_read_failure_aborts_before_upstream():
    resolver, geocoder, matrix = _resolver(distance_store=FailingReads())
    with pytest.raises(CacheError):
        resolver.resolve_many("HUB", ["A"], RequestContext.background())
    assert geocoder.calls == [] and matrix.calls == []


def test_unknown_address_fails_whole_lookup():
    resolver, _, matrix = _resolver()
    with pytest.raises(NotFound):
        resolver.resolve_many("HUB", ["A", "Atlantis"], RequestContext.background())
    assert matrix.calls == []


def test_short_matrix_row_is_an_error():
    resolver, _, _ = _resolver(matrix=FakeMatrix(drop_last=True))
    with pytest.raises(UpstreamPermanent, match="C"):
        resolver.resolve_many("HUB", ["B", "C"], RequestContext.background())


def test_geocode_many_dedupes_addresses():
    resolver, geocoder, _ = _resolver()
    found = resolver.geocode_many(["A", " A", "B"], RequestContext.background())
    assert found == {"A": Coordinates(1.0, 0.0), "B": Coordinates(3.0, 0.0)}
    assert sorted(geocoder.calls) == ["A", "B"]
