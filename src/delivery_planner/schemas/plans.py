"""Planning request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import settings
from ..models.domain import RoutePlan


class PlanRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hub: Optional[str] = Field(
        default=None,
        description="Hub address all trucks depart from. Falls back to the configured default hub.",
    )
    truck_count: int = Field(default=settings.default_truck_count, ge=1, le=settings.max_truck_count)
    truck_capacity: int = Field(default=settings.default_truck_capacity, ge=1, le=settings.max_truck_capacity)
    depart_at: Optional[datetime] = Field(default=None, description="Departure time; defaults to now (UTC).")
    return_to_start: bool = Field(default=False, description="Include the leg back to the hub in totals.")


class PlanStopModel(BaseModel):
    destination: str
    arrive_at: datetime
    package_ids: List[int]


class PlanModel(BaseModel):
    truck_id: int
    depart_at: datetime
    total_distance_meters: int
    total_duration_seconds: int
    stops: List[PlanStopModel]

    @classmethod
    def from_plan(cls, plan: RoutePlan) -> "PlanModel":
        return cls(
            truck_id=plan.truck_id,
            depart_at=plan.depart_at,
            total_distance_meters=plan.total_distance_meters,
            total_duration_seconds=plan.total_duration_seconds,
            stops=[
                PlanStopModel(destination=s.destination, arrive_at=s.arrive_at, package_ids=list(s.package_ids))
                for s in plan.stops
            ],
        )


class PlanListResponse(BaseModel):
    plans: List[PlanModel]
