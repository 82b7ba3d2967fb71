"""Integration tests for GET /health."""

import os
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from errors import register_error_handlers
from routes.health_routes import router as health_router

# Ensure a MONGODB_URI is present so AppSettings can be instantiated
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")


def _build_test_app(mongo_ok: bool = True, registry=None) -> FastAPI:
    """
    Build a minimal FastAPI app with a mocked DB injected via lifespan.
    No real network connections are made.
    """
    mock_db = MagicMock()
    if mongo_ok:
        mock_db.client.admin.command = AsyncMock(return_value={"ok": 1})
    else:
        mock_db.client.admin.command = AsyncMock(
            side_effect=Exception("connection refused")
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.db = mock_db
        if registry is not None:
            app.state.registry = registry
        yield

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(health_router)
    return app


class TestHealthEndpoint:
    def test_healthy_when_mongo_ok(self):
        app = _build_test_app(mongo_ok=True)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["checks"]["mongodb"] == "ok"

    def test_unhealthy_when_mongo_fails(self):
        app = _build_test_app(mongo_ok=False)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 503
        body = resp.json()
        assert body["status"] == "unhealthy"
        assert body["checks"]["mongodb"] == "error"

    def test_reports_active_clients(self):
        registry = MagicMock()
        registry.__len__.return_value = 3
        app = _build_test_app(registry=registry)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.json()["checks"]["active_clients"] == "3"

    def test_response_shape(self):
        app = _build_test_app()
        with TestClient(app) as client:
            resp = client.get("/health")
        body = resp.json()
        assert "status" in body
        assert "checks" in body
        assert "mongodb" in body["checks"]
        assert "active_clients" not in body["checks"]

    def test_openapi_documents_health_shape(self):
        schema = _build_test_app().openapi()
        responses = schema["paths"]["/health"]["get"]["responses"]
        for status in ("200", "503"):
            ref = responses[status]["content"]["application/json"]["schema"]["$ref"]
            assert ref == "#/components/schemas/HealthResponse"
