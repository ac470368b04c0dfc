# wabot/middlewares/logger.py
from __future__ import annotations

import time

from wabot.core.context import Context
from wabot.core.middleware import Middleware, Proceed
from wabot.infra.logging_config import LogContext, get_logger


def logger(name: str = "wabot.events") -> Middleware:
    """
    Middleware logging every inbound event and how long the rest of the
    chain took. Register it first so it wraps everything else.
    """
    log = get_logger(name)

    async def log_event(ctx: Context, proceed: Proceed) -> None:
        log_ctx = LogContext(
            log,
            chat_id=ctx.chat_id,
            message_id=ctx.message_id,
            event_type=ctx.event_type,
        )
        log_ctx.info(
            f"Event received: has_text={ctx.text is not None}, "
            f"attachments={len(ctx.attachments) + len(ctx.audio) + len(ctx.video)}"
        )
        start_time = time.time()
        await proceed()
        elapsed_ms = (time.time() - start_time) * 1000
        log_ctx.info(f"Event processed: handled={ctx.handled}, elapsed={elapsed_ms:.0f}ms")

    return log_event
