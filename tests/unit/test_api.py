"""
Unit Tests - HTTP API
"""
import pytest
from fastapi.testclient import TestClient

from indicator_engine.engine.orchestrator import IndicatorEngine
from indicator_engine.serving.api.main import create_api_app
from indicator_engine.serving.api.routes.indicators import get_indicator_engine

from tests.conftest import FakeRecordSource, FakeSnapshotStore


@pytest.fixture
def engine(full_records, engine_settings) -> IndicatorEngine:
    return IndicatorEngine(FakeRecordSource(full_records), FakeSnapshotStore(), engine_settings)


@pytest.fixture
def client(engine) -> TestClient:
    app = create_api_app()
    app.dependency_overrides[get_indicator_engine] = lambda: engine
    return TestClient(app)


class TestIndicatorRoutes:
    """Tests for the indicator endpoints"""

    def test_run_batch(self, client):
        """A run returns the batch report"""
        response = client.post("/api/v1/indicators/acme/run", params={"period": "7d", "period_end": "2025-03-31"})

        assert response.status_code == 200
        data = response.json()
        assert data["tenant_id"] == "acme"
        assert data["period_label"] == "7d"
        assert data["period_end"].startswith("2025-03-31T23:59:59")
        assert data["errors"] == []
        assert len(data["success"]) + len(data["skipped"]) == 10

    def test_invalid_period(self, client):
        """Unknown period labels are a client error"""
        response = client.post("/api/v1/indicators/acme/run", params={"period": "14d"})

        assert response.status_code == 422

    def test_read_back(self, client):
        """Stored indicators are listed after a run"""
        client.post("/api/v1/indicators/acme/run", params={"period": "30d", "period_end": "2025-03-31"})

        response = client.get("/api/v1/indicators/acme", params={"period": "30d"})

        assert response.status_code == 200
        results = response.json()
        assert len(results) == 10
        assert {"id", "value", "direction", "priority", "payload", "period"} <= set(results[0])
        assert results[0]["payload"]["kind"] == results[0]["id"]

    def test_alerts_only(self, client):
        """The alert filter keeps triggered indicators only"""
        client.post("/api/v1/indicators/acme/run", params={"period": "30d", "period_end": "2025-03-31"})

        response = client.get("/api/v1/indicators/acme", params={"alerts_only": True})

        assert response.status_code == 200
        assert all(result["alert_triggered"] for result in response.json())

    def test_unknown_tenant_is_empty(self, client):
        """A tenant without snapshots gets an empty list"""
        response = client.get("/api/v1/indicators/nobody")

        assert response.status_code == 200
        assert response.json() == []

    def test_database_not_initialized(self):
        """Without a database the engine dependency answers 503"""
        client = TestClient(create_api_app())

        response = client.get("/api/v1/indicators/acme")

        assert response.status_code == 503


class TestServiceRoutes:
    """Tests for health and info endpoints"""

    def test_liveness(self, client):
        """Liveness does not touch the database"""
        response = client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_health_reports_database(self, client):
        """Health degrades when the database is unavailable"""
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["checks"]["database"]["status"] == "unhealthy"

    def test_info(self, client):
        """Info lists the catalog size"""
        response = client.get("/api/v1/info")

        assert response.status_code == 200
        assert response.json()["indicators_per_run"] == 10
