"""Planning endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status

from ...config import settings
from ...errors import (
    CacheError,
    CapacityExceeded,
    DeadlineExceeded,
    NotFound,
    PackageSourceError,
    PlanningError,
    UpstreamPermanent,
    ValidationError,
)
from ...platform.context import RequestContext
from ...schemas.plans import PlanListResponse, PlanModel, PlanRequest
from ...services.factory import get_orchestrator
from ...services.planning.service import PlanDeliveriesRequest, PlanOrchestrator

router = APIRouter(prefix="/plans", tags=["plans"])

_STATUS_BY_ERROR: tuple[tuple[type[PlanningError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (CapacityExceeded, status.HTTP_409_CONFLICT),
    (NotFound, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (UpstreamPermanent, status.HTTP_502_BAD_GATEWAY),
    (CacheError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PackageSourceError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (DeadlineExceeded, status.HTTP_504_GATEWAY_TIMEOUT),
)


def status_for(exc: PlanningError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@router.post("", response_model=PlanListResponse, status_code=status.HTTP_200_OK)
def plan(payload: PlanRequest, orchestrator: PlanOrchestrator = Depends(get_orchestrator)) -> PlanListResponse:
    hub = (payload.hub or "").strip() or (settings.default_hub or "").strip()
    if not hub:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="hub is required")

    request = PlanDeliveriesRequest(
        hub=hub,
        truck_count=payload.truck_count,
        truck_capacity=payload.truck_capacity,
        depart_at=payload.depart_at or datetime.now(timezone.utc),
        return_to_start=payload.return_to_start,
    )
    ctx = RequestContext.with_timeout(settings.plan_timeout_seconds)
    try:
        plans = orchestrator.plan_deliveries(request, ctx)
    except PlanningError as exc:
        code = status_for(exc)
        if code >= 500:
            logging.error(f"req_id={ctx.request_id} planning failed: {exc}")
        raise HTTPException(status_code=code, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"req_id={ctx.request_id} error planning deliveries: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to plan deliveries",
        ) from exc

    return PlanListResponse(plans=[PlanModel.from_plan(p) for p in plans])
