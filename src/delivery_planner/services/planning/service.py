"""Delivery planning orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...config import settings
from ...errors import PackageSourceError, PlanningError, UpstreamPermanent, ValidationError
from ...models.domain import DistanceResult, Package, RoutePlan, Truck, normalize_location
from ...platform.context import RequestContext
from ...platform.obs import Timing
from ...data.packages_repository import PackageSource
from ..distance.provider import DistanceProvider
from .assigner import assign_packages_by_distance
from .matrix import build_pairwise_matrix, lookup_many
from .planner import nearest_neighbor_route

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PlanDeliveriesRequest:
    hub: str
    truck_count: int
    truck_capacity: int
    depart_at: datetime
    return_to_start: bool = False


class PlanOrchestrator:
    """Runs one planning request end to end: load, assign, resolve, route, apply."""

    def __init__(
        self,
        packages: PackageSource,
        provider: DistanceProvider,
        *,
        max_parallel_requests: Optional[int] = None,
        max_truck_count: Optional[int] = None,
        max_truck_capacity: Optional[int] = None,
    ) -> None:
        self.packages = packages
        self.provider = provider
        self.max_parallel_requests = max_parallel_requests or settings.max_parallel_requests
        self.max_truck_count = max_truck_count or settings.max_truck_count
        self.max_truck_capacity = max_truck_capacity or settings.max_truck_capacity

    def _validate(self, request: PlanDeliveriesRequest) -> str:
        hub = normalize_location(request.hub or "")
        if not hub:
            raise ValidationError("hub is required")
        if not 1 <= request.truck_count <= self.max_truck_count:
            raise ValidationError(f"truck_count must be between 1 and {self.max_truck_count}")
        if not 1 <= request.truck_capacity <= self.max_truck_capacity:
            raise ValidationError(f"truck_capacity must be between 1 and {self.max_truck_capacity}")
        return hub

    def _load_packages(self) -> dict[str, list[Package]]:
        try:
            packages = self.packages.list()
        except PlanningError:
            raise
        except Exception as exc:
            raise PackageSourceError(f"list packages: {exc}") from exc

        by_destination: dict[str, list[Package]] = {}
        for package in packages:
            destination = normalize_location(package.destination or "")
            if not destination:
                raise ValidationError(f"package_id={package.package_id} has empty destination")
            by_destination.setdefault(destination, []).append(package)
        return by_destination

    def _hub_distances(self, hub: str, destinations: list[str], ctx: RequestContext) -> dict[str, DistanceResult]:
        """Hub -> destination distances; a destination equal to the hub is a zero leg."""
        away = [d for d in destinations if d != hub]
        row = lookup_many(self.provider, hub, away, ctx) if away else {}
        missing = [d for d in away if d not in row]
        if missing:
            raise UpstreamPermanent(f"missing hub distance for {', '.join(missing)}")

        distances = {d: row[d] for d in away}
        if len(away) < len(destinations):
            distances[hub] = DistanceResult(0, 0)
        return distances

    def plan_deliveries(
        self, request: PlanDeliveriesRequest, ctx: Optional[RequestContext] = None
    ) -> list[RoutePlan]:
        ctx = ctx or RequestContext.with_timeout(settings.plan_timeout_seconds)
        hub = self._validate(request)

        with Timing("planning.plan_deliveries", ctx):
            by_destination = self._load_packages()
            trucks = [
                Truck(truck_id=i + 1, capacity=request.truck_capacity, start_location=hub)
                for i in range(request.truck_count)
            ]
            destinations = sorted(by_destination)
            hub_distances = self._hub_distances(hub, destinations, ctx)

            bands = assign_packages_by_distance(trucks, by_destination, hub_distances)
            logger.info(
                f"req_id={ctx.request_id} assigned {len(destinations)} destinations to "
                f"{sum(1 for band in bands if band)}/{len(trucks)} trucks"
            )

            matrix = {}
            if destinations:
                matrix = build_pairwise_matrix(
                    self.provider,
                    [hub, *destinations],
                    ctx,
                    known_rows={hub: hub_distances},
                    max_workers=self.max_parallel_requests,
                )

            plans: list[RoutePlan] = []
            for truck in trucks:
                plan = nearest_neighbor_route(truck, request.depart_at, matrix, request.return_to_start)
                truck.apply_plan(plan)
                plans.append(plan)

        return plans
