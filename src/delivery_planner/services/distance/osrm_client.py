"""HTTP client for the OSRM table service, used as an alternative matrix source."""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from ...config import settings
from ...errors import UpstreamPermanent
from ...models.domain import Coordinates, DistanceResult
from ...platform.context import RequestContext
from ...platform.obs import Timing
from .http import RetryingHttpClient, decode_json
from .ors_client import parse_matrix_row

logger = logging.getLogger(__name__)


class OSRMClient:
    """MatrixSource backed by ``/table/v1/{profile}`` with a single source row."""

    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        http: RetryingHttpClient | None = None,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.base_url = self.base_url.rstrip("/")
        self.profile = profile or settings.osrm_profile
        self.http = http or RetryingHttpClient(headers={"Accept": "application/json"})

    def compute_row(
        self,
        origin: Coordinates,
        destinations: Sequence[Coordinates],
        ctx: RequestContext,
    ) -> list[DistanceResult]:
        if not destinations:
            return []

        coordinate_str = ";".join(f"{c.lon},{c.lat}" for c in (origin, *destinations))
        params = {
            "annotations": "duration,distance",
            "sources": "0",
            "destinations": ";".join(str(i) for i in range(1, len(destinations) + 1)),
        }
        url = f"{self.base_url}/table/v1/{self.profile}/{coordinate_str}"

        with Timing("osrm.table", ctx):
            try:
                response = self.http.get(url, ctx, params=params, operation="osrm table")
            except UpstreamPermanent as exc:
                if exc.status_code == httpx.codes.REQUEST_URI_TOO_LONG:
                    raise UpstreamPermanent(
                        f"OSRM request URL too large ({len(destinations) + 1} coordinates)",
                        status_code=exc.status_code,
                    ) from exc
                raise

            data = decode_json(response, "osrm table")
            if isinstance(data, dict) and data.get("code") not in (None, "Ok"):
                raise UpstreamPermanent(
                    f"osrm table: request failed: {data.get('message', data.get('code'))}"
                )
            return parse_matrix_row(data, len(destinations), "osrm table")

    def close(self) -> None:
        self.http.close()


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health by making a minimal two-coordinate table request."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{base.rstrip('/')}/table/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"annotations": "duration"}, timeout=5.0)
        response.raise_for_status()
        data = response.json()
        return "durations" in data and isinstance(data.get("durations"), list)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning(f"OSRM health check failed: {exc}")
        return False
