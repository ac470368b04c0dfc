# wabot/core/errors.py
from __future__ import annotations


class ConfigurationError(ValueError):
    """Missing or invalid credentials detected while constructing a bot."""


class MarkupError(ValueError):
    """Keyboard layout that the WhatsApp Cloud API cannot render."""


class RegistrationClosedError(RuntimeError):
    """Handler or middleware registered after the dispatcher was frozen."""
