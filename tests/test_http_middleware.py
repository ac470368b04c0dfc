# tests/test_http_middleware.py
"""Tests for wabot/transport/middleware.py: request ID, error handling."""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from wabot.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
)


def _build_app(raise_for: set[str] | None = None):
    """Build a minimal FastAPI app with middleware for testing."""
    app = FastAPI()
    # Last added runs first: RequestID -> ErrorHandling -> RequestLogging
    app.add_middleware(RequestLoggingMiddleware, enabled=True)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    raise_for = raise_for or set()

    @app.get("/test")
    def test_endpoint():
        if "/test" in raise_for:
            raise RuntimeError("boom")
        return {"ok": True}

    @app.post("/webhook")
    def webhook_endpoint():
        if "/webhook" in raise_for:
            raise RuntimeError("webhook boom")
        return {"ok": True}

    return app


# ============================================================================
# RequestIDMiddleware
# ============================================================================

class TestRequestIDMiddleware:
    def test_generates_request_id(self):
        client = TestClient(_build_app())
        resp = client.get("/test")
        assert resp.status_code == 200
        # UUID has 36 chars with dashes
        assert len(resp.headers["X-Request-ID"]) >= 32

    def test_preserves_existing_request_id(self):
        client = TestClient(_build_app())
        resp = client.get("/test", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"


# ============================================================================
# ErrorHandlingMiddleware
# ============================================================================

class TestErrorHandlingMiddleware:
    def test_normal_request_passes_through(self):
        client = TestClient(_build_app(), raise_server_exceptions=False)
        resp = client.get("/test")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    def test_webhook_error_returns_200(self):
        client = TestClient(_build_app(raise_for={"/webhook"}), raise_server_exceptions=False)
        resp = client.post("/webhook")
        assert resp.status_code == 200
        assert resp.json() == {"status": "error"}

    def test_generic_error_returns_500(self):
        client = TestClient(_build_app(raise_for={"/test"}), raise_server_exceptions=False)
        resp = client.get("/test", headers={"X-Request-ID": "req-500"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error", "request_id": "req-500"}


# ============================================================================
# RequestLoggingMiddleware
# ============================================================================

class TestRequestLoggingMiddleware:
    def _app(self):
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware, enabled=True)

        @app.get("/health")
        def health():
            return {"status": "ok"}

        @app.get("/test")
        def test_endpoint():
            return {"ok": True}

        return app

    def test_logs_completed_request(self, caplog):
        client = TestClient(self._app())
        with caplog.at_level(logging.INFO, logger="wabot.transport.middleware"):
            client.get("/test")
        assert any("Request completed: GET /test status=200" in r.getMessage() for r in caplog.records)

    def test_health_is_quiet(self, caplog):
        client = TestClient(self._app())
        with caplog.at_level(logging.INFO, logger="wabot.transport.middleware"):
            client.get("/health")
        assert not any("/health" in r.getMessage() for r in caplog.records)
