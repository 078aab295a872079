from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from delivery_planner.config import settings
from delivery_planner.data.packages_repository import InMemoryPackageRepository
from delivery_planner.errors import (
    CacheError,
    CapacityExceeded,
    DeadlineExceeded,
    NotFound,
    UpstreamPermanent,
    ValidationError,
)
from delivery_planner.main import create_app
from delivery_planner.models.domain import Package
from delivery_planner.services.distance.static import StaticDistanceProvider
from delivery_planner.services.factory import get_orchestrator
from delivery_planner.services.planning.service import PlanOrchestrator

PAIRS = [
    ("HUB", "A", 1000, 300),
    ("HUB", "B", 2000, 600),
    ("HUB", "C", 1500, 450),
    ("A", "C", 700, 210),
    ("A", "B", 800, 240),
    ("B", "C", 900, 270),
]


def _orchestrator() -> PlanOrchestrator:
    packages = InMemoryPackageRepository([Package(1, "A"), Package(2, "B"), Package(3, "C")])
    return PlanOrchestrator(packages, StaticDistanceProvider.from_pairs(PAIRS, symmetric=True))


@pytest.fixture
def orchestrator() -> PlanOrchestrator:
    return _orchestrator()


@pytest.fixture
def api_client(orchestrator: PlanOrchestrator) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    return TestClient(app)


def test_health_endpoints(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "matrix_provider", "ors")
    monkeypatch.setattr(settings, "ors_api_key", "key")

    assert api_client.get("/api/health").json() == {"status": "ok"}
    routing = api_client.get("/api/health/routing").json()
    assert routing["matrix_provider"] == "ors"
    assert routing["healthy"] is True


def test_list_packages(api_client: TestClient):
    response = api_client.get("/api/packages")
    assert response.status_code == 200
    body = response.json()
    assert [p["package_id"] for p in body["packages"]] == [1, 2, 3]
    assert body["packages"][0]["loaded_at"] is None


def test_plan_endpoint_returns_routes(api_client: TestClient):
    payload = {"hub": "HUB", "truck_count": 1, "truck_capacity": 5, "depart_at": "2024-05-01T08:00:00Z"}

    response = api_client.post("/api/plans", json=payload)

    assert response.status_code == 200
    plans = response.json()["plans"]
    assert len(plans) == 1
    assert [s["destination"] for s in plans[0]["stops"]] == ["A", "C", "B"]
    assert plans[0]["total_duration_seconds"] == 780
    assert plans[0]["total_distance_meters"] == 2600

    packages = api_client.get("/api/packages").json()["packages"]
    assert all(p["loaded_at"] is not None for p in packages)


def test_plan_endpoint_uses_default_hub(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "default_hub", "HUB")
    response = api_client.post("/api/plans", json={"truck_count": 2})
    assert response.status_code == 200
    assert [p["truck_id"] for p in response.json()["plans"]] == [1, 2]


def test_plan_endpoint_requires_hub(api_client: TestClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "default_hub", None)
    response = api_client.post("/api/plans", json={"truck_count": 2})
    assert response.status_code == 400


@pytest.mark.parametrize("payload", [{"hub": "HUB", "truck_count": 0}, {"hub": "HUB", "truck_capacity": 101}])
def test_plan_endpoint_rejects_out_of_range_values(api_client: TestClient, payload):
    assert api_client.post("/api/plans", json=payload).status_code == 422


@pytest.mark.parametrize(
    "error,status_code",
    [
        (ValidationError("bad hub"), 400),
        (CapacityExceeded(1, 2), 409),
        (NotFound("Atlantis"), 422),
        (UpstreamPermanent("HTTP 401"), 502),
        (CacheError("cache down"), 503),
        (DeadlineExceeded("too slow"), 504),
        (RuntimeError("unexpected"), 500),
    ],
)
def test_plan_endpoint_maps_errors(api_client: TestClient, orchestrator, monkeypatch, error, status_code):
    def boom(request, ctx=None):
        raise error

    monkeypatch.setattr(orchestrator, "plan_deliveries", boom)

    response = api_client.post("/api/plans", json={"hub": "HUB"})

    assert response.status_code == status_code


def test_plan_endpoint_defaults_departure_to_now(api_client: TestClient):
    before = datetime.now(timezone.utc)
    response = api_client.post("/api/plans", json={"hub": "HUB", "truck_count": 1})
    assert response.status_code == 200
    depart_at = datetime.fromisoformat(response.json()["plans"][0]["depart_at"].replace("Z", "+00:00"))
    assert depart_at >= before.replace(microsecond=0)
