# wabot/transport/middleware.py
"""
HTTP middleware for the webhook server.

Registration order in ``create_app`` (outermost first):
    RequestID -> ErrorHandling -> RequestLogging -> routes
"""
from __future__ import annotations

import time
import uuid
from typing import Callable, Iterable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from wabot.infra.logging_config import LogContext, get_logger

logger = get_logger(__name__)

WEBHOOK_PATH = "/webhook"
QUIET_PATHS = frozenset({"/health"})


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagate X-Request-ID, generating one when the caller sent none"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request; liveness probes are not logged"""

    def __init__(
        self,
        app: ASGIApp,
        enabled: bool = True,
        quiet_paths: Iterable[str] = QUIET_PATHS,
    ):
        super().__init__(app)
        self.enabled = enabled
        self.quiet_paths = frozenset(quiet_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or request.url.path in self.quiet_paths:
            return await call_next(request)

        log_ctx = LogContext(logger, request_id=getattr(request.state, "request_id", None))
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            log_ctx.error(
                f"Request failed: {request.method} {request.url.path} "
                f"error={exc.__class__.__name__} "
                f"duration={(time.perf_counter() - start) * 1000:.2f}ms",
                exc_info=True,
            )
            raise

        log_ctx.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} "
            f"duration={(time.perf_counter() - start) * 1000:.2f}ms"
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn unhandled exceptions into JSON responses"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            request_id = getattr(request.state, "request_id", "unknown")
            LogContext(logger, request_id=request_id).error(
                f"Unhandled exception: {exc.__class__.__name__}: {exc}",
                exc_info=True,
            )

            # Meta redelivers a webhook batch on any non-200
            if request.url.path == WEBHOOK_PATH:
                return JSONResponse(content={"status": "error"}, status_code=200)

            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "request_id": request_id},
            )
