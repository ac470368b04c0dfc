# wabot/__init__.py
"""
WhatsApp Cloud API bot framework: middleware, command/hears matching and
scene-based multi-step conversations with per-conversation sessions.

    from wabot import WhatsAppBot, Markup, Scene, SceneManager
"""
from wabot.bot import WhatsAppBot  # noqa: F401
from wabot.core import (  # noqa: F401
    ConfigurationError,
    Context,
    Dispatcher,
    MarkupError,
    Scene,
    SceneManager,
)
from wabot.infra.session_store import FileSessionStore, MemorySessionStore  # noqa: F401
from wabot.markup import Markup  # noqa: F401
from wabot.transport.meta_sender import MetaSendError  # noqa: F401

__version__ = "0.3.0"
