"""Tests for the FastAPI application entry point."""

from fastapi.testclient import TestClient

from funnel.main import app


class TestHealthCheck:
    def test_health(self):
        """[P1] /health reports the service as healthy."""
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "engagement-funnel"}

    def test_runs_router_is_mounted(self):
        assert app.url_path_for("start_run") == "/api/v1/runs"
        assert app.url_path_for("get_run", run_id="abc") == "/api/v1/runs/abc"
        assert app.url_path_for("stop_run", run_id="abc") == "/api/v1/runs/abc/stop"
