# wabot/infra/session_store.py
"""
Session stores: in-memory and a single JSON file keyed by conversation id.

Both implement ``wabot.core.ports.SessionStore``. Sessions must stay
JSON-serializable; the file store round-trips them through ``json``.
"""
from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import TYPE_CHECKING

from wabot.infra.logging_config import get_logger, mask_chat_id

if TYPE_CHECKING:
    from wabot.config import Settings

logger = get_logger(__name__)


class MemorySessionStore:
    """Per-process store. Copies on get/set so callers never share a dict."""

    def __init__(self) -> None:
        self.sessions: dict[str, dict] = {}

    async def get(self, chat_id: str) -> dict:
        return copy.deepcopy(self.sessions.get(chat_id, {}))

    async def set(self, chat_id: str, session: dict) -> None:
        self.sessions[chat_id] = copy.deepcopy(session)

    async def clear(self, chat_id: str) -> None:
        self.sessions.pop(chat_id, None)


class FileSessionStore:
    """
    All sessions in one JSON object, read and rewritten on every change.

    No locking across processes; within one event loop each call runs to
    completion without yielding.
    """

    def __init__(self, file_path: str | Path = "sessions.json") -> None:
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            self._write({})
            logger.info(f"Session file created: {self.file_path}")

    def _read(self) -> dict:
        try:
            return json.loads(self.file_path.read_text(encoding="utf-8") or "{}")
        except FileNotFoundError:
            return {}

    def _write(self, sessions: dict) -> None:
        self.file_path.write_text(json.dumps(sessions, indent=2), encoding="utf-8")

    async def get(self, chat_id: str) -> dict:
        return self._read().get(chat_id, {})

    async def set(self, chat_id: str, session: dict) -> None:
        sessions = self._read()
        sessions[chat_id] = session
        try:
            self._write(sessions)
        except (TypeError, ValueError):
            logger.error(
                f"Session is not JSON-serializable: chat={mask_chat_id(chat_id)}",
                exc_info=True,
            )
            raise

    async def clear(self, chat_id: str) -> None:
        sessions = self._read()
        if sessions.pop(chat_id, None) is not None:
            self._write(sessions)


def create_session_store(settings: "Settings") -> MemorySessionStore | FileSessionStore:
    if settings.session_backend == "file":
        return FileSessionStore(settings.session_file)
    return MemorySessionStore()
