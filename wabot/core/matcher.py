# wabot/core/matcher.py
"""
Trigger matching for ``command`` / ``hears`` registrations.

Triggers are normalized once at registration time into one of three
variants and matched with a single ``match`` call:

    Literal("/start")                  exact equality
    Pattern(re.compile(r"test"))       ``re.search``
    AnyOf((Literal("hi"), Pattern(...)))   first element that matches wins
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from wabot.core.callbacks import invoke
from wabot.core.context import Context


@dataclass(frozen=True)
class Literal:
    value: str

    def match(self, text: str) -> Optional[str]:
        return self.value if text == self.value else None


@dataclass(frozen=True)
class Pattern:
    regex: re.Pattern

    def match(self, text: str) -> Optional[re.Match]:
        return self.regex.search(text)


@dataclass(frozen=True)
class AnyOf:
    options: tuple[Union[Literal, Pattern], ...]

    def match(self, text: str) -> Union[str, re.Match, None]:
        for option in self.options:
            found = option.match(text)
            if found is not None:
                return found
        return None


Trigger = Union[Literal, Pattern, AnyOf]


def command_trigger(cmd: Any) -> Trigger:
    """Normalize a ``command`` trigger: a string or a list/tuple of strings."""
    if isinstance(cmd, str):
        return Literal(cmd)
    if isinstance(cmd, (list, tuple)) and all(isinstance(c, str) for c in cmd):
        return AnyOf(tuple(Literal(c) for c in cmd))
    raise TypeError(
        f"command() accepts a string or a list of strings, got {type(cmd).__name__}"
    )


def _hears_option(pattern: Any) -> Union[Literal, Pattern]:
    if isinstance(pattern, str):
        return Literal(pattern)
    if isinstance(pattern, re.Pattern):
        return Pattern(pattern)
    raise TypeError(
        f"hears() accepts strings and compiled regular expressions, got {type(pattern).__name__}"
    )


def hears_trigger(pattern: Any) -> Trigger:
    """Normalize a ``hears`` trigger: string, compiled regex, or a list mixing both."""
    if isinstance(pattern, (list, tuple)):
        return AnyOf(tuple(_hears_option(p) for p in pattern))
    return _hears_option(pattern)


class TriggerHandler:
    """
    Handler registered under the ``message`` category for one trigger.

    Skips events without text or already handled. On a match the context
    is marked handled before the callback runs, so a failing callback never
    lets a later registration claim the same event.
    """

    def __init__(self, trigger: Trigger, callback: Callable[[Context], Any]):
        self.trigger = trigger
        self.callback = callback

    async def __call__(self, ctx: Context) -> None:
        if ctx.text is None or ctx.handled:
            return
        found = self.trigger.match(ctx.text)
        if found is None:
            return
        ctx.mark_handled()
        if isinstance(found, re.Match):
            ctx.match = found
        await invoke(self.callback, ctx)

    def __repr__(self) -> str:
        return f"TriggerHandler({self.trigger!r})"
