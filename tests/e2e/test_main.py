"""End-to-end tests for main application."""

import pytest
from fastapi.testclient import TestClient

from src.config import ConfigurationError
from src.main import app, lifespan


class TestMainApplication:
    """Test FastAPI application initialization."""

    def test_app_metadata(self):
        """Test application metadata."""
        assert app.title == "Web Context Chat API"
        assert app.description is not None
        assert app.version == "0.1.0"

    def test_root_endpoint(self, test_client):
        """Test root endpoint."""
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json() == {
            "message": "Web Context Chat API",
            "model": "groq:llama-3.3-70b-versatile",
            "version": "0.1.0",
        }

    def test_cors_preflight(self, test_client):
        """Test that browser preflight requests to the chat endpoint are allowed."""
        response = test_client.options(
            "/api/chat",
            headers={
                "Origin": "https://chat.example.com",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_app_routes(self):
        """Test that all expected routes are registered."""
        routes = [route.path for route in app.routes]

        assert "/" in routes
        assert "/health" in routes
        assert "/api/chat" in routes


class TestLifespan:
    """Test application startup and shutdown."""

    def test_startup_configures_logging(self, mock_settings, mock_logfire):
        with TestClient(app) as client:
            assert client.get("/health").status_code == 200

        mock_logfire.configure.assert_called_once()
        messages = [call.args[0] for call in mock_logfire.info.call_args_list]
        assert "Application startup complete" in messages
        assert "Application shutdown complete" in messages

    def test_startup_fails_without_gate_store(self, mock_settings, mock_logfire, monkeypatch):
        monkeypatch.setattr(mock_settings, "rate_limit_gate_enabled", True)

        with pytest.raises(ConfigurationError):
            with TestClient(app):
                pass

    @pytest.mark.asyncio
    async def test_sentry_initialized_with_dsn(self, mock_settings, mock_logfire, monkeypatch):
        monkeypatch.setattr(mock_settings, "sentry_dsn", "https://key@sentry.example.com/1")
        init_calls = []
        monkeypatch.setattr("src.main.sentry_sdk.init", lambda **kwargs: init_calls.append(kwargs))

        async with lifespan(app):
            pass

        assert init_calls[0]["dsn"] == "https://key@sentry.example.com/1"
        assert init_calls[0]["send_default_pii"] is False
