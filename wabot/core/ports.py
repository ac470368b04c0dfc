# wabot/core/ports.py
from __future__ import annotations
from typing import Any, Optional, Protocol


class SessionStore(Protocol):
    """Per-conversation key/value persistence.

    ``get`` returns ``None`` (or an empty dict) for unknown conversations.
    Implementations must tolerate concurrent calls for different ids.
    """
    async def get(self, chat_id: str) -> Optional[dict]: ...
    async def set(self, chat_id: str, session: dict) -> None: ...
    async def clear(self, chat_id: str) -> None: ...


class MessageSender(Protocol):
    async def send_message(self, to: str, text_or_payload: Any) -> Any:
        """
        Deliver a string (wrapped as a text message) or a structured payload.
        Returns the delivery result or the error; never raises.
        """
        ...
