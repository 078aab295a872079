"""Domain models for packages, trucks and planned routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import NamedTuple, Optional

from ..errors import CapacityExceeded, ValidationError


def normalize_location(value: str) -> str:
    """Collapse whitespace runs so equivalent addresses share one cache key."""
    return " ".join(value.split())


@dataclass(slots=True)
class Package:
    """A single delivery unit with one destination address."""

    package_id: int
    destination: str
    loaded_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Coordinates:
    """Immutable geographic coordinates (longitude, latitude)."""

    lon: float
    lat: float

    def as_list(self) -> list[float]:
        return [self.lon, self.lat]


@dataclass(frozen=True, slots=True)
class DistanceResult:
    distance_meters: int
    duration_seconds: int

    def __post_init__(self) -> None:
        if self.distance_meters < 0 or self.duration_seconds < 0:
            raise ValidationError(
                f"Distance results must be non-negative, got "
                f"{self.distance_meters}m / {self.duration_seconds}s"
            )


class RouteKey(NamedTuple):
    """Composite (origin, destination) key for pairwise lookups and the distance cache."""

    origin: str
    destination: str


@dataclass(frozen=True, slots=True)
class RouteStop:
    destination: str
    arrive_at: datetime
    package_ids: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class RoutePlan:
    """Planned route for one truck. Pure planning data, applied by Truck.apply_plan."""

    truck_id: int
    depart_at: datetime
    stops: tuple[RouteStop, ...]
    total_distance_meters: int
    total_duration_seconds: int

    def package_ids(self) -> list[int]:
        return [pid for stop in self.stops for pid in stop.package_ids]


@dataclass(slots=True)
class Truck:
    """Delivery truck holding packages; created fresh for every planning request."""

    truck_id: int
    capacity: int
    start_location: str
    depart_at: Optional[datetime] = None
    packages: list[Package] = field(default_factory=list)

    def load(self, package: Package) -> None:
        if len(self.packages) >= self.capacity:
            raise CapacityExceeded(self.truck_id, self.capacity)
        self.packages.append(package)

    def load_many(self, packages: list[Package]) -> None:
        for package in packages:
            self.load(package)

    def clear(self) -> None:
        self.packages = []

    def apply_plan(self, plan: RoutePlan) -> None:
        """Stamp loaded/delivered timestamps on the loaded packages from a plan."""
        if plan.truck_id != self.truck_id:
            raise ValidationError(
                f"RoutePlan truck_id {plan.truck_id} does not match Truck {self.truck_id}"
            )

        self.depart_at = plan.depart_at
        for package in self.packages:
            package.loaded_at = plan.depart_at
            package.delivered_at = None

        delivered = {pid: stop.arrive_at for stop in plan.stops for pid in stop.package_ids}
        for package in self.packages:
            if package.package_id in delivered:
                package.delivered_at = delivered[package.package_id]
