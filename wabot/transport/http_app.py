# wabot/transport/http_app.py
"""
HTTP surface of a bot.

Endpoints:
- GET  /webhook  Cloud API verification handshake
- POST /webhook  inbound message batches
- GET  /health   liveness
- GET  /metrics  in-process dispatch metrics
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request

from wabot.config import settings, warn_on_risky_config
from wabot.infra.http_client import close_sender_session
from wabot.infra.logging_config import get_logger
from wabot.infra.metrics import get_metrics_collector
from wabot.transport.meta_webhook import webhook_receive, webhook_verify
from wabot.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    WEBHOOK_PATH,
)

if TYPE_CHECKING:
    from wabot.bot import WhatsAppBot

logger = get_logger(__name__)


def create_app(bot: "WhatsAppBot", *, enable_request_logging: bool | None = None) -> FastAPI:
    """Build the FastAPI app serving ``bot``. Closes the bot's registrations."""

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        # STARTUP
        logger.info(f"Starting webhook server: env={settings.app_env}")

        # Validate production configuration
        if settings.is_production:
            missing = settings.validate_required_for_production()
            if missing:
                logger.critical(f"Missing required production settings: {missing}")
                raise RuntimeError(f"Missing production config: {missing}")

        for msg in warn_on_risky_config(settings):
            logger.warning(f"[config] {msg}")
        logger.info(
            f"Registered: middlewares={len(bot.middlewares)}, "
            f"message handlers={len(bot.handlers.get('message', []))}"
        )

        yield

        # SHUTDOWN
        await close_sender_session()
        logger.info("Webhook server stopped")

    bot.freeze()

    app = FastAPI(
        title="wabot",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.bot = bot

    if enable_request_logging is None:
        enable_request_logging = settings.enable_request_logging

    # Last added runs first: RequestID -> ErrorHandling -> RequestLogging
    app.add_middleware(RequestLoggingMiddleware, enabled=enable_request_logging)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get(WEBHOOK_PATH)
    async def verify(request: Request):
        return await webhook_verify(request, verify_token=bot.verify_token)

    @app.post(WEBHOOK_PATH)
    async def receive(request: Request):
        return await webhook_receive(request, bot, app_secret=bot.app_secret)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics():
        return get_metrics_collector().get_metrics()

    return app
