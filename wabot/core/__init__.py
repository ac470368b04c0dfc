# wabot/core/__init__.py
"""
Dispatch core -- provider-agnostic.

Canonical imports:
    from wabot.core import Dispatcher, Context, Scene, SceneManager
    from wabot.core.ports import SessionStore
"""
from wabot.core.context import Context  # noqa: F401
from wabot.core.dispatcher import Dispatcher, resolve_category  # noqa: F401
from wabot.core.errors import (  # noqa: F401
    ConfigurationError,
    MarkupError,
    RegistrationClosedError,
)
from wabot.core.matcher import AnyOf, Literal, Pattern  # noqa: F401
from wabot.core.middleware import MiddlewareChain  # noqa: F401
from wabot.core.scenes import Scene, SceneManager  # noqa: F401
