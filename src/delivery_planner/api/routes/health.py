"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_osrm_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.distance.osrm_client import check_health as osrm_health_check
    return osrm_health_check


@router.get("/health/routing", status_code=status.HTTP_200_OK)
def health_routing() -> dict:
    """Report the configured routing backends and, for OSRM, whether it answers."""
    result: dict = {
        "matrix_provider": settings.matrix_provider,
        "geocoder_configured": bool(settings.ors_api_key),
        "persistent_cache": bool(settings.supabase_url and settings.supabase_key),
    }
    if settings.matrix_provider == "osrm":
        result["healthy"] = _get_osrm_health_check()()
    else:
        result["healthy"] = bool(settings.ors_api_key)
    return result
