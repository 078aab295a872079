"""Greedy nearest-neighbor route construction.

The algorithm minimizes immediate travel duration at each step; it does not
attempt global route optimization.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Mapping

from ...errors import UpstreamPermanent, ValidationError
from ...models.domain import DistanceResult, RouteKey, RoutePlan, RouteStop, Truck, normalize_location


def _leg(distances: Mapping[RouteKey, DistanceResult], origin: str, destination: str) -> DistanceResult:
    if origin == destination:
        return DistanceResult(0, 0)
    try:
        return distances[RouteKey(origin, destination)]
    except KeyError:
        raise UpstreamPermanent(f"missing distance result from {origin!r} to {destination!r}") from None


def nearest_neighbor_route(
    truck: Truck,
    depart_at: datetime,
    distances: Mapping[RouteKey, DistanceResult],
    return_to_start: bool = False,
) -> RoutePlan:
    """Order the truck's destinations by repeatedly visiting the closest one.

    Ties on duration go to the lexicographically smallest destination, so the
    result depends only on the distance values.
    """
    start = normalize_location(truck.start_location or "")
    if not start:
        raise ValidationError(f"truck {truck.truck_id} start location must be non-empty")

    by_destination: dict[str, list[int]] = {}
    for package in truck.packages:
        by_destination.setdefault(normalize_location(package.destination), []).append(package.package_id)

    remaining = set(by_destination)
    current = start
    clock = depart_at
    total_distance = 0
    total_duration = 0
    stops: list[RouteStop] = []

    while remaining:
        candidates = sorted(remaining)
        legs = {d: _leg(distances, current, d) for d in candidates}
        best = min(candidates, key=lambda d: (legs[d].duration_seconds, d))
        leg = legs[best]

        clock += timedelta(seconds=leg.duration_seconds)
        total_distance += leg.distance_meters
        total_duration += leg.duration_seconds
        stops.append(RouteStop(destination=best, arrive_at=clock, package_ids=tuple(by_destination[best])))

        remaining.discard(best)
        current = best

    if return_to_start and stops:
        back = _leg(distances, current, start)
        total_distance += back.distance_meters
        total_duration += back.duration_seconds

    return RoutePlan(
        truck_id=truck.truck_id,
        depart_at=depart_at,
        stops=tuple(stops),
        total_distance_meters=total_distance,
        total_duration_seconds=total_duration,
    )
