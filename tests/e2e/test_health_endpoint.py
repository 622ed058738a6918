"""End-to-end tests for health endpoint."""

from fastapi.testclient import TestClient

from src.main import app


class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_endpoint_response_format(self, test_client):
        """Test GET /health returns 200 with a status body."""
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_health_endpoint_with_client(self):
        """Health needs no settings, so it works without fixtures."""
        client = TestClient(app)
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_health_is_not_rate_limited(self, test_client):
        """The sliding-window gate only guards the chat endpoint."""
        for _ in range(30):
            assert test_client.get("/health").status_code == 200
