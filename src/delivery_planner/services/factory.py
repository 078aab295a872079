"""Build the distance provider, package source and orchestrator from settings."""

from __future__ import annotations

import logging
from functools import lru_cache

from ..config import settings
from ..data.packages_repository import JsonFilePackageRepository, PackageSource, SupabasePackageRepository
from ..db.supabase import get_supabase_client
from ..persistence.cache_store import InMemoryDistanceStore, InMemoryGeocodeStore
from ..persistence.supabase_store import SupabaseDistanceStore, SupabaseGeocodeStore
from .distance.cache import DistanceCache, GeoCache
from .distance.ors_client import ORSClient
from .distance.osrm_client import OSRMClient
from .distance.provider import MatrixSource
from .distance.resolver import DistanceResolver
from .planning.service import PlanOrchestrator

logger = logging.getLogger(__name__)


def build_distance_resolver() -> DistanceResolver:
    geocoder = ORSClient()
    matrix: MatrixSource = geocoder
    if settings.matrix_provider == "osrm":
        matrix = OSRMClient()

    client = get_supabase_client()
    if client is not None:
        geo_cache = GeoCache(SupabaseGeocodeStore(client))
        distance_cache = DistanceCache(SupabaseDistanceStore(client))
    else:
        logger.info("Supabase not configured - using in-process geocode/distance caches")
        geo_cache = GeoCache(InMemoryGeocodeStore())
        distance_cache = DistanceCache(InMemoryDistanceStore())

    return DistanceResolver(geocoder, matrix, distance_cache=distance_cache, geo_cache=geo_cache)


def build_package_source() -> PackageSource:
    client = get_supabase_client()
    if client is not None:
        return SupabasePackageRepository(client)
    return JsonFilePackageRepository()


@lru_cache(maxsize=1)
def get_orchestrator() -> PlanOrchestrator:
    return PlanOrchestrator(build_package_source(), build_distance_resolver())
