# wabot/transport/meta_sender.py
"""
WhatsApp Cloud API outbound sender.

Posts message payloads to the Graph API ``/{phone_number_id}/messages``
endpoint and classifies failures (MetaSendError.retryable):

- Token expired/invalid  → NOT retryable (needs human intervention)
- Template required       → NOT retryable (outside 24h window)
- Invalid recipient       → NOT retryable (number not on WhatsApp)
- Rate limiting (429)     → retryable  (backoff then retry)
- Network / timeout       → retryable  (transient)
- Unknown server error    → retryable  (optimistic)

HTTP session lifecycle:
- Uses the shared sender session from wabot.infra.http_client.
- Call close_sender_session() during application shutdown.
"""
from __future__ import annotations

import asyncio

import aiohttp

from wabot.infra.http_client import get_sender_session
from wabot.infra.logging_config import get_logger, mask_chat_id
from wabot.infra.metrics import AppMetrics

logger = get_logger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def messages_url(phone_number_id: str, api_version: str) -> str:
    """Build the Graph API messages endpoint URL."""
    return f"{GRAPH_API_BASE}/{api_version}/{phone_number_id}/messages"


def _auth_headers(access_token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }


def build_payload(to: str, text_or_payload) -> dict | None:
    """
    Wrap a string as a text message, or merge a structured payload over the
    ``messaging_product`` / ``to`` envelope. Returns None for anything else.
    """
    if isinstance(text_or_payload, str):
        return {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": text_or_payload},
        }
    if isinstance(text_or_payload, dict):
        return {
            "messaging_product": "whatsapp",
            "to": to,
            **text_or_payload,
        }
    return None


# ---------------------------------------------------------------------------
# Error type
# ---------------------------------------------------------------------------

class MetaSendError(Exception):
    """Error sending message via the Graph API.

    Attributes:
        status:     HTTP status code (0 for connection-level errors).
        error_code: Meta-specific error code from the response body.
        retryable:  Whether a retry could succeed.
    """

    def __init__(
        self,
        status: int,
        error_code: int | None,
        message: str,
        *,
        retryable: bool = False,
    ):
        self.status = status
        self.error_code = error_code
        self.retryable = retryable
        super().__init__(f"Meta API error {status} (code={error_code}): {message}")


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------

async def _safe_response_json(resp: aiohttp.ClientResponse) -> dict | None:
    """Parse JSON from response, returning None if body is not valid JSON."""
    try:
        return await resp.json(content_type=None)
    except Exception:
        logger.warning(f"Meta API returned non-JSON body: status={resp.status}")
        return None


def _classify(status: int, body: dict | None, to: str) -> MetaSendError:
    error = (body or {}).get("error", {})
    error_code = error.get("code")
    error_msg = error.get("message", "Unknown error")
    error_subcode = error.get("error_subcode")

    if status == 401 or error_code == 190:
        logger.error(f"Meta API auth error: status={status}, code={error_code}")
        return MetaSendError(status, error_code, error_msg, retryable=False)

    if status == 429 or error_code in (4, 80007):
        logger.warning(f"Meta API rate limit: status={status}, code={error_code}")
        return MetaSendError(status, error_code, error_msg, retryable=True)

    if error_subcode == 2388049:
        logger.warning(f"Meta API: template required (outside 24h window): to={mask_chat_id(to)}")
        return MetaSendError(status, error_code, error_msg, retryable=False)

    if error_code == 131026:
        logger.warning(f"Meta API: recipient not on WhatsApp: to={mask_chat_id(to)}")
        return MetaSendError(status, error_code, error_msg, retryable=False)

    logger.error(
        f"Meta API error: status={status}, code={error_code}, subcode={error_subcode}"
    )
    return MetaSendError(status, error_code, error_msg, retryable=True)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def post_message(url: str, payload: dict, *, access_token: str) -> dict:
    """
    POST one message payload.

    Returns:
        Graph API response body (contains the message id)

    Raises:
        MetaSendError: On API or connection errors (check .retryable)
    """
    to = payload.get("to", "")
    try:
        session = get_sender_session()
        async with session.post(url, json=payload, headers=_auth_headers(access_token)) as resp:
            body = await _safe_response_json(resp)

            if resp.status in (200, 201) and body is not None:
                msg_id = (body.get("messages") or [{}])[0].get("id", "unknown")
                logger.info(f"Message sent: to={mask_chat_id(to)}, msg_id={msg_id[:20]}")
                AppMetrics.message_sent(payload.get("type", "unknown"))
                return body

            raise _classify(resp.status, body, to)

    except MetaSendError:
        raise
    except aiohttp.ClientError as exc:
        logger.error(f"Meta API connection error: {type(exc).__name__}", exc_info=True)
        raise MetaSendError(0, None, type(exc).__name__, retryable=True) from exc
    except asyncio.TimeoutError as exc:
        logger.error("Meta API timeout")
        raise MetaSendError(0, None, "timeout", retryable=True) from exc
