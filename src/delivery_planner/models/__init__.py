"""Domain models."""

from .domain import (
    Coordinates,
    DistanceResult,
    Package,
    RouteKey,
    RoutePlan,
    RouteStop,
    Truck,
    normalize_location,
)

__all__ = [
    "Coordinates",
    "DistanceResult",
    "Package",
    "RouteKey",
    "RoutePlan",
    "RouteStop",
    "Truck",
    "normalize_location",
]
