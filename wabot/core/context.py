# wabot/core/context.py
"""
Per-event context handed to middleware, handlers and scene steps.

A Context is built once per inbound WhatsApp message, owns that
conversation's session for the duration of one dispatch and is discarded
afterwards.
"""
from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from wabot.core.ports import MessageSender
    from wabot.core.scenes import Scene


def _dig(event: dict, *path: str) -> Any:
    node: Any = event
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def extract_text(event: dict) -> Optional[str]:
    """
    Normalized text of an inbound event.

    Reply-button id wins over its title, then the plain text body, then the
    quick-reply button text. Empty strings count as absent.
    """
    for path in (
        ("interactive", "button_reply", "id"),
        ("interactive", "button_reply", "title"),
        ("text", "body"),
        ("button", "text"),
    ):
        value = _dig(event, *path)
        if value:
            return value
    return None


def _media(event: dict, kind: str) -> list[dict]:
    item = event.get(kind)
    return [item] if item else []


class Context:
    """
    Mutable view of one inbound event.

    ``handled`` is monotonic: :meth:`mark_handled` sets it and nothing
    clears it. ``error_routed`` records that the error handler already ran
    for this event. ``scene_stopped`` is set by ``Scene.leave`` so the scene
    middleware does not re-enter a scene that was left in the same turn.
    """

    def __init__(self, bot: "MessageSender", event: dict, chat_id: str):
        self.bot = bot
        self.event = event
        self.chat_id = chat_id
        self.text: Optional[str] = extract_text(event)

        self.images = _media(event, "image")
        self.files = _media(event, "document")
        self.audio = _media(event, "audio")
        self.video = _media(event, "video")
        self.attachments = self.images + self.files

        self.session: dict = {}
        self.scene: Optional["Scene"] = None
        self.scene_stopped = False
        self.match: Optional[re.Match] = None
        self.error_routed = False
        self._handled = False

    @property
    def event_type(self) -> Optional[str]:
        return self.event.get("type")

    @property
    def message_id(self) -> Optional[str]:
        return self.event.get("id")

    @property
    def handled(self) -> bool:
        return self._handled

    def mark_handled(self) -> None:
        self._handled = True

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    async def reply(self, text_or_payload: Any) -> Any:
        """Reply with text or a prebuilt message payload (e.g. ``Markup.keyboard``)."""
        self.mark_handled()
        return await self.bot.send_message(self.chat_id, text_or_payload)

    async def reply_with_photo(self, url: str, extra: dict | None = None) -> Any:
        """
        Reply with an image by URL.

        Fields of ``extra`` are merged over the image payload (shallow,
        ``extra`` wins), which allows attaching interactive elements.
        """
        self.mark_handled()
        payload = {
            "messaging_product": "whatsapp",
            "type": "image",
            "image": {"link": url},
        }
        if extra:
            payload.update(extra)
        return await self.bot.send_message(self.chat_id, payload)

    async def reply_with_document(self, url: str) -> Any:
        return await self._reply_with_media("document", url)

    async def reply_with_audio(self, url: str) -> Any:
        return await self._reply_with_media("audio", url)

    async def reply_with_video(self, url: str) -> Any:
        return await self._reply_with_media("video", url)

    async def _reply_with_media(self, media_type: str, url: str) -> Any:
        self.mark_handled()
        return await self.bot.send_message(self.chat_id, {
            "messaging_product": "whatsapp",
            "type": media_type,
            media_type: {"link": url},
        })

    def __repr__(self) -> str:
        return (
            f"Context(chat_id={self.chat_id!r}, type={self.event_type!r}, "
            f"text={self.text!r}, handled={self._handled})"
        )
