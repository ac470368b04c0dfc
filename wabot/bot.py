# wabot/bot.py
"""
WhatsApp Cloud API bot: the dispatcher plus outbound delivery and the
webhook server.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from wabot.config import Settings
from wabot.core.dispatcher import Dispatcher
from wabot.core.errors import ConfigurationError
from wabot.core.middleware import ErrorHandler
from wabot.core.ports import SessionStore
from wabot.infra.logging_config import get_logger, mask_chat_id, setup_logging
from wabot.infra.metrics import AppMetrics
from wabot.infra.session_store import create_session_store
from wabot.transport.meta_sender import MetaSendError, build_payload, messages_url, post_message

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = get_logger(__name__)


class WhatsAppBot(Dispatcher):
    def __init__(
        self,
        *,
        access_token: str | None,
        phone_number_id: str | None,
        verify_token: str | None,
        session_store: SessionStore | None = None,
        error_handler: ErrorHandler | None = None,
        api_version: str = "v23.0",
        app_secret: str | None = None,
        serialize_conversations: bool = True,
    ) -> None:
        if not access_token or not phone_number_id or not verify_token:
            raise ConfigurationError(
                "WhatsAppBot requires access_token, phone_number_id, and verify_token"
            )
        super().__init__(
            session_store=session_store,
            error_handler=error_handler,
            serialize_conversations=serialize_conversations,
        )
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.verify_token = verify_token
        self.api_version = api_version
        self.app_secret = app_secret

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "WhatsAppBot":
        """Build a bot from environment configuration (see ``wabot.config``)."""
        kwargs: dict[str, Any] = {
            "access_token": settings.whatsapp_access_token,
            "phone_number_id": settings.whatsapp_phone_number_id,
            "verify_token": settings.whatsapp_verify_token,
            "api_version": settings.whatsapp_api_version,
            "app_secret": settings.whatsapp_app_secret,
            "serialize_conversations": settings.serialize_conversations,
        }
        kwargs.update(overrides)
        if "session_store" not in kwargs:
            kwargs["session_store"] = create_session_store(settings)
        return cls(**kwargs)

    @property
    def messages_url(self) -> str:
        return messages_url(self.phone_number_id, self.api_version)

    async def send_message(self, to: str, text_or_payload: Any) -> Any:
        """
        Send text or a structured payload to ``to``.

        Never raises for delivery problems: returns the Graph API response
        body on success, the ``MetaSendError`` on failure, and None when
        there is no recipient or the payload is neither str nor dict.
        """
        if not to:
            logger.error("send_message: recipient (to) is missing")
            return None

        payload = build_payload(to, text_or_payload)
        if payload is None:
            logger.error(
                f"send_message: unsupported payload type {type(text_or_payload).__name__}"
            )
            return None

        try:
            return await post_message(self.messages_url, payload, access_token=self.access_token)
        except MetaSendError as exc:
            AppMetrics.delivery_failed(exc.retryable)
            logger.warning(
                f"Delivery failed: to={mask_chat_id(to)}, status={exc.status}, "
                f"retryable={exc.retryable}"
            )
            return exc

    def build_app(self, **kwargs: Any) -> "FastAPI":
        from wabot.transport.http_app import create_app
        return create_app(self, **kwargs)

    def start(self, port: int | None = None, host: str | None = None) -> None:
        """Serve the webhook with uvicorn (blocking)."""
        import uvicorn
        from wabot.config import settings

        setup_logging(level=settings.log_level, use_json=settings.is_production)
        port = port or settings.port
        host = host or settings.host
        logger.info(f"WhatsApp bot listening on {host}:{port}")
        uvicorn.run(
            self.build_app(),
            host=host,
            port=port,
            log_level=settings.log_level.lower(),
            access_log=not settings.is_production,  # RequestLoggingMiddleware covers prod
            server_header=False,
            date_header=False,
        )
