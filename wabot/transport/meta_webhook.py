# wabot/transport/meta_webhook.py
"""
WhatsApp Cloud API webhook handling.

Handles:
- GET  /webhook: verification handshake (hub.verify_token + hub.challenge)
- POST /webhook: inbound message batches, dispatched concurrently

Status updates (delivery/read receipts) are logged and skipped. Payload
signatures (X-Hub-Signature-256) are checked only when an app secret is
configured.
"""
from __future__ import annotations

import hashlib
import hmac
import time
from typing import TYPE_CHECKING

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from wabot.infra.logging_config import get_logger
from wabot.infra.metrics import AppMetrics, inc_counter

if TYPE_CHECKING:
    from wabot.core.dispatcher import Dispatcher

logger = get_logger(__name__)

WHATSAPP_OBJECT = "whatsapp_business_account"


# -------------------------------------------------------------------------
# Payload parsing
# -------------------------------------------------------------------------

def extract_events(payload: dict) -> list[dict]:
    """
    Flatten ``entry[].changes[].value.messages[]`` into one ordered list.

    {
      "object": "whatsapp_business_account",
      "entry": [{
        "changes": [{
          "value": {"messages": [{"from": "...", "type": "text", "text": {"body": "Hi"}}]},
          "field": "messages"
        }]
      }]
    }
    """
    events: list[dict] = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}

            for status in value.get("statuses") or []:
                logger.debug(
                    f"Status update: id={str(status.get('id', ''))[:20]}, "
                    f"status={status.get('status')}"
                )

            events.extend(value.get("messages") or [])
    return events


# -------------------------------------------------------------------------
# Verification
# -------------------------------------------------------------------------

def verify_subscription(
    mode: str | None,
    token: str | None,
    challenge: str | None,
    expected_token: str | None,
) -> str | None:
    """Return the challenge to echo back, or None when verification fails."""
    if mode == "subscribe" and expected_token and token == expected_token:
        return challenge or ""
    return None


def verify_signature(body: bytes, signature_header: str | None, app_secret: str | None) -> bool:
    """
    Verify X-Hub-Signature-256 against the raw payload.
    Returns True if valid or if no app secret is configured.
    """
    if not app_secret:
        return True

    if not signature_header:
        logger.warning("Webhook: missing X-Hub-Signature-256 header")
        return False

    # Header format: "sha256=<hex digest>"
    if not signature_header.startswith("sha256="):
        logger.warning("Webhook: invalid signature format")
        return False

    computed = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature_header[7:], computed)


# -------------------------------------------------------------------------
# Route handlers
# -------------------------------------------------------------------------

async def webhook_verify(request: Request, *, verify_token: str | None) -> PlainTextResponse:
    challenge = verify_subscription(
        request.query_params.get("hub.mode"),
        request.query_params.get("hub.verify_token"),
        request.query_params.get("hub.challenge"),
        verify_token,
    )
    if challenge is not None:
        logger.info("Webhook verification successful")
        return PlainTextResponse(content=challenge, status_code=200)

    logger.warning(
        f"Webhook verification failed: mode={request.query_params.get('hub.mode')}"
    )
    AppMetrics.webhook_validation_failed()
    raise HTTPException(status_code=403, detail="Verification failed")


async def webhook_receive(
    request: Request,
    dispatcher: "Dispatcher",
    *,
    app_secret: str | None = None,
) -> JSONResponse:
    """
    Dispatch every message of the delivery, then acknowledge.

    Non-WhatsApp objects get 404. Per-event failures are logged by the
    dispatcher and never turn into a non-200 response, so the platform
    does not redeliver the whole batch.
    """
    start_time = time.time()
    body = await request.body()

    if not verify_signature(body, request.headers.get("X-Hub-Signature-256"), app_secret):
        logger.error("Webhook: signature verification failed")
        AppMetrics.webhook_validation_failed()
        raise HTTPException(status_code=403, detail="Invalid signature")

    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Webhook: invalid JSON payload")
        inc_counter("webhook_malformed_payload")
        raise HTTPException(status_code=400, detail="Invalid JSON")

    if not isinstance(payload, dict) or payload.get("object") != WHATSAPP_OBJECT:
        logger.debug("Webhook: ignoring non-whatsapp object")
        raise HTTPException(status_code=404, detail="Not a WhatsApp event")

    events = extract_events(payload)
    if events:
        await dispatcher.handle_batch(events)

    elapsed_ms = (time.time() - start_time) * 1000
    logger.info(f"Webhook processed: events={len(events)}, elapsed={elapsed_ms:.0f}ms")
    return JSONResponse({"status": "ok", "processed": len(events)}, status_code=200)
