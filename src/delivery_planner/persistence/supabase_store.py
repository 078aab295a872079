"""Supabase-backed cache stores.

Tables (unique constraints required for upserts):
    distance_cache(origin, destination, distance_meters, duration_seconds) unique (origin, destination)
    geocode_cache(address, lon, lat) unique (address)
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Mapping

from ..errors import CacheError
from ..models.domain import Coordinates, DistanceResult, RouteKey


class SupabaseGeocodeStore:
    table = "geocode_cache"

    def __init__(self, client: Any) -> None:
        if client is None:
            raise ValueError("Supabase client is required for the geocode cache.")
        self.client = client

    def get_many(self, addresses: Iterable[str]) -> dict[str, Coordinates]:
        wanted = list(dict.fromkeys(addresses))
        if not wanted:
            return {}
        try:
            response = self.client.table(self.table).select("address,lon,lat").in_("address", wanted).execute()
        except Exception as exc:
            raise CacheError(f"get geocode cache: query {self.table} table: {exc}") from exc

        try:
            return {
                row["address"]: Coordinates(lon=float(row["lon"]), lat=float(row["lat"]))
                for row in (response.data or [])
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise CacheError(f"get geocode cache: malformed row: {exc}") from exc

    def put_many(self, entries: Mapping[str, Coordinates]) -> None:
        if not entries:
            return
        rows = [{"address": address, "lon": coord.lon, "lat": coord.lat} for address, coord in entries.items()]
        try:
            self.client.table(self.table).upsert(rows, on_conflict="address").execute()
        except Exception as exc:
            raise CacheError(f"insert geocode cache: {exc}") from exc


class SupabaseDistanceStore:
    table = "distance_cache"

    def __init__(self, client: Any) -> None:
        if client is None:
            raise ValueError("Supabase client is required for the distance cache.")
        self.client = client

    def get_many(self, keys: Iterable[RouteKey]) -> dict[RouteKey, DistanceResult]:
        by_origin: dict[str, list[str]] = defaultdict(list)
        for key in dict.fromkeys(keys):
            by_origin[key.origin].append(key.destination)

        out: dict[RouteKey, DistanceResult] = {}
        for origin, destinations in by_origin.items():
            try:
                response = (
                    self.client.table(self.table)
                    .select("destination,distance_meters,duration_seconds")
                    .eq("origin", origin)
                    .in_("destination", destinations)
                    .execute()
                )
            except Exception as exc:
                raise CacheError(f"get distance cache: query {self.table} table: {exc}") from exc

            try:
                for row in response.data or []:
                    out[RouteKey(origin, row["destination"])] = DistanceResult(
                        int(row["distance_meters"]), int(row["duration_seconds"])
                    )
            except (KeyError, TypeError, ValueError) as exc:
                raise CacheError(f"get distance cache: malformed row: {exc}") from exc
        return out

    def put_many(self, entries: Mapping[RouteKey, DistanceResult]) -> None:
        if not entries:
            return
        rows = [
            {
                "origin": key.origin,
                "destination": key.destination,
                "distance_meters": result.distance_meters,
                "duration_seconds": result.duration_seconds,
            }
            for key, result in entries.items()
        ]
        try:
            self.client.table(self.table).upsert(rows, on_conflict="origin,destination").execute()
        except Exception as exc:
            raise CacheError(f"insert distance cache: {exc}") from exc
