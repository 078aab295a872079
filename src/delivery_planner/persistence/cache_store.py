"""Storage backends for the geocode and distance caches."""

from __future__ import annotations

import threading
from typing import Iterable, Mapping, Protocol

from ..models.domain import Coordinates, DistanceResult, RouteKey


class GeocodeStore(Protocol):
    """address -> coordinates, unique on address."""

    def get_many(self, addresses: Iterable[str]) -> dict[str, Coordinates]:
        ...

    def put_many(self, entries: Mapping[str, Coordinates]) -> None:
        ...


class DistanceStore(Protocol):
    """(origin, destination) -> distance, unique on the pair."""

    def get_many(self, keys: Iterable[RouteKey]) -> dict[RouteKey, DistanceResult]:
        ...

    def put_many(self, entries: Mapping[RouteKey, DistanceResult]) -> None:
        ...


class InMemoryGeocodeStore:
    def __init__(self, initial: Mapping[str, Coordinates] | None = None) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, Coordinates] = dict(initial or {})

    def get_many(self, addresses: Iterable[str]) -> dict[str, Coordinates]:
        with self._lock:
            return {address: self._rows[address] for address in addresses if address in self._rows}

    def put_many(self, entries: Mapping[str, Coordinates]) -> None:
        with self._lock:
            self._rows.update(entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)


class InMemoryDistanceStore:
    def __init__(self, initial: Mapping[RouteKey, DistanceResult] | None = None) -> None:
        self._lock = threading.Lock()
        self._rows: dict[RouteKey, DistanceResult] = dict(initial or {})

    def get_many(self, keys: Iterable[RouteKey]) -> dict[RouteKey, DistanceResult]:
        with self._lock:
            return {key: self._rows[key] for key in keys if key in self._rows}

    def put_many(self, entries: Mapping[RouteKey, DistanceResult]) -> None:
        with self._lock:
            self._rows.update(entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
