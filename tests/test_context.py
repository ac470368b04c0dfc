# tests/test_context.py
"""Tests for wabot/core/context.py: text normalization, attachments, replies."""
from __future__ import annotations

import pytest

from wabot.core.context import Context, extract_text


class TestExtractText:
    def test_plain_text_body(self):
        assert extract_text({"type": "text", "text": {"body": "hello"}}) == "hello"

    def test_button_reply_id_wins_over_title(self):
        event = {"interactive": {"button_reply": {"id": "yes_id", "title": "Yes"}}}
        assert extract_text(event) == "yes_id"

    def test_button_reply_title_when_no_id(self):
        event = {"interactive": {"button_reply": {"title": "Yes"}}}
        assert extract_text(event) == "Yes"

    def test_interactive_wins_over_text_body(self):
        event = {
            "interactive": {"button_reply": {"id": "a"}},
            "text": {"body": "b"},
        }
        assert extract_text(event) == "a"

    def test_quick_reply_button_text(self):
        assert extract_text({"type": "button", "button": {"text": "Stop"}}) == "Stop"

    def test_media_event_has_no_text(self):
        assert extract_text({"type": "image", "image": {"id": "M1"}}) is None

    def test_empty_body_is_none(self):
        assert extract_text({"type": "text", "text": {"body": ""}}) is None

    def test_list_reply_is_not_text(self):
        event = {"interactive": {"type": "list_reply", "list_reply": {"id": "row1"}}}
        assert extract_text(event) is None


class TestAttachments:
    def test_partitioned_by_kind(self, bot):
        event = {
            "from": "1",
            "type": "image",
            "image": {"id": "I"},
            "document": {"id": "D"},
            "audio": {"id": "A"},
            "video": {"id": "V"},
        }
        ctx = Context(bot, event, "1")
        assert ctx.images == [{"id": "I"}]
        assert ctx.files == [{"id": "D"}]
        assert ctx.audio == [{"id": "A"}]
        assert ctx.video == [{"id": "V"}]
        assert ctx.attachments == [{"id": "I"}, {"id": "D"}]

    def test_text_event_has_no_attachments(self, bot, text_event):
        ctx = Context(bot, text_event("hi"), "123")
        assert ctx.attachments == []
        assert ctx.images == ctx.files == ctx.audio == ctx.video == []


class TestReplies:
    @pytest.mark.asyncio
    async def test_reply_sends_and_marks_handled(self, bot, text_event):
        ctx = Context(bot, text_event("hi"), "123")
        assert ctx.handled is False

        result = await ctx.reply("Welcome")

        assert ctx.handled is True
        assert bot.sent == [("123", "Welcome")]
        assert result == {"messages": [{"id": "wamid.1"}]}

    @pytest.mark.asyncio
    async def test_handled_set_before_delivery(self, text_event):
        seen = {}

        class FailingBot:
            async def send_message(self, to, payload):
                seen["handled"] = ctx.handled
                return RuntimeError("delivery failed")

        ctx = Context(FailingBot(), text_event("hi"), "123")
        result = await ctx.reply("x")

        assert seen["handled"] is True
        assert isinstance(result, RuntimeError)
        assert ctx.handled is True

    @pytest.mark.asyncio
    async def test_reply_with_photo_merges_extra(self, bot, text_event):
        ctx = Context(bot, text_event("hi"), "123")
        await ctx.reply_with_photo(
            "https://x/p.jpg",
            {"image": {"link": "https://x/q.jpg", "caption": "c"}, "biz_opaque_callback_data": "k"},
        )
        _, payload = bot.sent[0]
        assert payload == {
            "messaging_product": "whatsapp",
            "type": "image",
            "image": {"link": "https://x/q.jpg", "caption": "c"},
            "biz_opaque_callback_data": "k",
        }

    @pytest.mark.asyncio
    async def test_reply_with_photo_without_extra(self, bot, text_event):
        ctx = Context(bot, text_event("hi"), "123")
        await ctx.reply_with_photo("https://x/p.jpg")
        assert bot.sent[0][1]["image"] == {"link": "https://x/p.jpg"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,kind", [
        ("reply_with_document", "document"),
        ("reply_with_audio", "audio"),
        ("reply_with_video", "video"),
    ])
    async def test_media_replies(self, bot, text_event, method, kind):
        ctx = Context(bot, text_event("hi"), "123")
        await getattr(ctx, method)("https://x/file")
        assert ctx.handled is True
        assert bot.sent == [("123", {
            "messaging_product": "whatsapp",
            "type": kind,
            kind: {"link": "https://x/file"},
        })]

    def test_mark_handled_is_sticky(self, bot, text_event):
        ctx = Context(bot, text_event("hi"), "123")
        ctx.mark_handled()
        ctx.mark_handled()
        assert ctx.handled is True
