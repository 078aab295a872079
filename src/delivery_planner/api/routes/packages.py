"""Package endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import PlanningError
from ...schemas.packages import PackageListResponse, PackageModel
from ...services.factory import get_orchestrator
from ...services.planning.service import PlanOrchestrator

router = APIRouter(prefix="/packages", tags=["packages"])


@router.get("", response_model=PackageListResponse, status_code=status.HTTP_200_OK)
def list_packages(orchestrator: PlanOrchestrator = Depends(get_orchestrator)) -> PackageListResponse:
    try:
        packages = orchestrator.packages.list()
    except PlanningError as exc:
        logging.error(f"list packages failed: {exc}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return PackageListResponse(
        packages=[
            PackageModel(
                package_id=p.package_id,
                destination=p.destination,
                loaded_at=p.loaded_at,
                delivered_at=p.delivered_at,
            )
            for p in packages
        ]
    )
