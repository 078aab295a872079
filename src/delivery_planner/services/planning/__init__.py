"""Package assignment and route planning."""

from .assigner import assign_packages_by_distance
from .planner import nearest_neighbor_route
from .service import PlanDeliveriesRequest, PlanOrchestrator

__all__ = [
    "assign_packages_by_distance",
    "nearest_neighbor_route",
    "PlanDeliveriesRequest",
    "PlanOrchestrator",
]
