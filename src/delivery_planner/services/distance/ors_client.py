"""HTTP client for the OpenRouteService geocoding and matrix endpoints."""

from __future__ import annotations

import math
from typing import Any, Sequence

from ...config import settings
from ...errors import NotFound, UpstreamPermanent
from ...models.domain import Coordinates, DistanceResult
from ...platform.context import RequestContext
from ...platform.obs import Timing
from .http import RetryingHttpClient, decode_json


def round_metric(value: float) -> int:
    """Round a non-negative float metric half away from zero."""
    return int(math.floor(value + 0.5))


def parse_matrix_row(payload: Any, expected: int, operation: str) -> list[DistanceResult]:
    """Validate a single-source matrix response and convert it to results in order."""
    if not isinstance(payload, dict):
        raise UpstreamPermanent(f"{operation}: unexpected response type {type(payload).__name__}")

    distances = payload.get("distances")
    durations = payload.get("durations")
    if not isinstance(distances, list) or not isinstance(durations, list):
        raise UpstreamPermanent(f"{operation}: response missing distances/durations")
    if len(distances) != 1 or len(durations) != 1:
        raise UpstreamPermanent(
            f"{operation}: expected 1 source row; got distances={len(distances)} durations={len(durations)}"
        )

    row_distances, row_durations = distances[0], durations[0]
    if (
        not isinstance(row_distances, list)
        or not isinstance(row_durations, list)
        or len(row_distances) != expected
        or len(row_durations) != expected
    ):
        raise UpstreamPermanent(
            f"{operation}: row lengths do not match destinations "
            f"(distances={len(row_distances or [])} durations={len(row_durations or [])} destinations={expected})"
        )

    results: list[DistanceResult] = []
    for index, (meters, seconds) in enumerate(zip(row_distances, row_durations)):
        if meters is None or seconds is None:
            raise UpstreamPermanent(f"{operation}: matrix returned no route for destination #{index + 1}")
        results.append(DistanceResult(round_metric(float(meters)), round_metric(float(seconds))))
    return results


class ORSClient:
    """OpenRouteService adapter implementing both GeocodeSource and MatrixSource."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        profile: str | None = None,
        country: str | None = None,
        http: RetryingHttpClient | None = None,
    ) -> None:
        api_key = api_key or settings.ors_api_key
        if not api_key:
            raise ValueError("ORS API key is not configured.")
        self.base_url = (base_url or settings.ors_base_url).rstrip("/")
        self.profile = profile or settings.ors_profile
        self.country = country if country is not None else settings.geocode_country
        self.http = http or RetryingHttpClient(
            headers={"Authorization": api_key, "Accept": "application/json"}
        )

    def search(self, address: str, ctx: RequestContext) -> Coordinates:
        """Geocode one address, returning the best match."""
        params: dict[str, Any] = {"text": address, "size": 1}
        if self.country:
            params["boundary.country"] = self.country

        with Timing("ors.geocode", ctx):
            response = self.http.get(
                f"{self.base_url}/geocode/search", ctx, params=params, operation="ors geocode"
            )
            payload = decode_json(response, "ors geocode")

            features = payload.get("features") if isinstance(payload, dict) else None
            if not features:
                raise NotFound(address)

            coordinates = (features[0].get("geometry") or {}).get("coordinates")
            if not isinstance(coordinates, list) or len(coordinates) != 2:
                raise UpstreamPermanent(f"ors geocode: invalid coordinate format for {address!r}")
            return Coordinates(lon=float(coordinates[0]), lat=float(coordinates[1]))

    def compute_row(
        self,
        origin: Coordinates,
        destinations: Sequence[Coordinates],
        ctx: RequestContext,
    ) -> list[DistanceResult]:
        """Distance/duration from one origin to many destinations, in request order."""
        if not destinations:
            return []

        locations = [origin.as_list(), *(coord.as_list() for coord in destinations)]
        body = {
            "locations": locations,
            "sources": [0],
            "destinations": list(range(1, len(locations))),
            "metrics": ["distance", "duration"],
        }

        with Timing("ors.matrix", ctx):
            response = self.http.post(
                f"{self.base_url}/v2/matrix/{self.profile}", ctx, json=body, operation="ors matrix"
            )
            return parse_matrix_row(decode_json(response, "ors matrix"), len(destinations), "ors matrix")

    def close(self) -> None:
        self.http.close()
