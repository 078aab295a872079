"""Destination-to-truck assignment by hub-distance banding.

Destinations are sorted by hub distance and chunked across trucks to produce a
deterministic, reasonably balanced distribution without solving a full VRP.
"""

from __future__ import annotations

import math
from typing import Mapping, Sequence

from ...errors import ValidationError
from ...models.domain import DistanceResult, Package, Truck


def sort_by_hub_distance(destinations: Sequence[str], hub_distances: Mapping[str, DistanceResult]) -> list[str]:
    missing = [d for d in destinations if d not in hub_distances]
    if missing:
        raise ValidationError(f"missing hub distance for {', '.join(sorted(missing))}")
    return sorted(destinations, key=lambda d: (hub_distances[d].distance_meters, d))


def assign_packages_by_distance(
    trucks: Sequence[Truck],
    packages_by_destination: Mapping[str, Sequence[Package]],
    hub_distances: Mapping[str, DistanceResult],
) -> list[list[str]]:
    """Load each truck with one contiguous band of hub-distance-sorted destinations.

    Truck ``i`` receives sorted positions ``[i*chunk, min((i+1)*chunk, n))`` with
    ``chunk = ceil(n / len(trucks))``. Loading fails fast with CapacityExceeded;
    there is no rebalancing. Returns the destination band of every truck.
    """
    if not trucks:
        raise ValidationError("truck list must not be empty")

    ordered = sort_by_hub_distance(list(packages_by_destination), hub_distances)
    bands: list[list[str]] = [[] for _ in trucks]
    if not ordered:
        return bands

    chunk_size = math.ceil(len(ordered) / len(trucks))
    for index, truck in enumerate(trucks):
        start = index * chunk_size
        if start >= len(ordered):
            break
        band = ordered[start:start + chunk_size]
        for destination in band:
            truck.load_many(list(packages_by_destination[destination]))
        bands[index] = band

    return bands
