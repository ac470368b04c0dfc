# tests/test_logger_middleware.py
"""Tests for wabot/middlewares/logger.py"""
from __future__ import annotations

import logging

import pytest

from tests.fakes import RecordingBot, make_text_event
from wabot.middlewares import logger


@pytest.mark.asyncio
async def test_logs_event_and_keeps_chain_going(caplog):
    bot = RecordingBot()
    bot.use(logger("wabot.test_events"))
    bot.command("/start", lambda ctx: ctx.reply("Welcome!"))

    with caplog.at_level(logging.INFO, logger="wabot.test_events"):
        ctx = await bot.handle_event(make_text_event("/start", sender="972500000001"))

    assert ctx.handled
    assert bot.texts() == ["Welcome!"]
    records = [r for r in caplog.records if r.name == "wabot.test_events"]
    messages = [r.getMessage() for r in records]
    assert messages[0].startswith("Event received: has_text=True")
    assert messages[1].startswith("Event processed: handled=True")
    assert records[-1].chat_id == "972500000001"
