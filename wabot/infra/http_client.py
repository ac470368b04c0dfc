# wabot/infra/http_client.py
"""
Shared HTTP client session for outbound Graph API calls.

A single lazy-initialized aiohttp.ClientSession avoids per-message session
creation and TCP connection churn (total=25 s, connect=5 s, pool limit=20).

Call ``close_sender_session()`` once during application shutdown.
"""
from __future__ import annotations

import aiohttp

from wabot.infra.logging_config import get_logger

logger = get_logger(__name__)

_session: aiohttp.ClientSession | None = None


def get_sender_session() -> aiohttp.ClientSession:
    """Session for outbound message delivery."""
    global _session
    if _session is None or _session.closed:
        _session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=25, connect=5),
            connector=aiohttp.TCPConnector(
                keepalive_timeout=30,
                limit=20,
                enable_cleanup_closed=True,
            ),
        )
        logger.debug("HTTP sender session created")
    return _session


async def close_sender_session() -> None:
    """Gracefully close the managed session.  Call during app shutdown."""
    global _session
    session, _session = _session, None
    if session is not None and not session.closed:
        await session.close()
        logger.debug("HTTP sender session closed")
