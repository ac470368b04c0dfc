# wabot/markup.py
"""
Payload builders for WhatsApp interactive elements.

The Cloud API only renders reply buttons: a single row of at most three.
"""
from __future__ import annotations

from typing import Any, Sequence

from wabot.core.errors import MarkupError

MAX_REPLY_BUTTONS = 3


def _button(btn: Any) -> dict:
    if isinstance(btn, dict):
        label = btn.get("text")
    else:
        label = btn
    if not isinstance(label, str) or not label:
        raise MarkupError(f"Button needs a non-empty text, got {btn!r}")
    return {"type": "reply", "reply": {"id": label, "title": label}}


class Markup:
    @staticmethod
    def url_button(*args: Any, **kwargs: Any) -> dict:
        """Not supported by WhatsApp. Put links in the message text instead."""
        raise MarkupError(
            "WhatsApp does not support URL buttons. Use reply buttons or include links in message text."
        )

    @staticmethod
    def keyboard(text: str, button_rows: Sequence[Sequence[Any]]) -> dict:
        """
        Reply-button message.

        ``button_rows`` must hold exactly one row of up to three buttons,
        each ``{"text": "Yes"}`` or a plain string. The label is used as both
        the button id and its title, so a tap arrives as ``ctx.text == label``.

            ctx.reply(Markup.keyboard("Choose:", [[{"text": "Yes"}, "No"]]))
        """
        if not isinstance(button_rows, (list, tuple)) or len(button_rows) != 1:
            raise MarkupError(
                'WhatsApp reply buttons only support a single row. Use [[{"text": ...}, ...]].'
            )
        row = button_rows[0]
        if len(row) > MAX_REPLY_BUTTONS:
            raise MarkupError(
                f"WhatsApp reply buttons only support up to {MAX_REPLY_BUTTONS} buttons per row."
            )
        return {
            "type": "interactive",
            "interactive": {
                "type": "button",
                "body": {"text": text},
                "action": {"buttons": [_button(btn) for btn in row]},
            },
        }
