# wabot/core/callbacks.py
from __future__ import annotations

import inspect
from typing import Any, Callable


async def invoke(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a user callback that may be a plain function or a coroutine function."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
