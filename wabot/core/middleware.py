# wabot/core/middleware.py
"""
Ordered middleware chain with an index-based runner.

Each middleware is called as ``fn(ctx, proceed)``. ``proceed()`` advances
the chain to the next registered entry; a ``proceed`` whose position was
already reached does nothing, so calling it twice never runs downstream
middleware twice. A middleware that never calls ``proceed`` stops the chain.

The optional ``terminal`` stage runs when the last middleware proceeds, so
code after ``await proceed()`` sees its outcome. Errors raised by the
terminal stage are never routed by the chain; they propagate to the caller.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from wabot.core.callbacks import invoke
from wabot.core.context import Context
from wabot.infra.logging_config import get_logger

logger = get_logger(__name__)

Proceed = Callable[[], Awaitable[None]]
Middleware = Callable[[Context, Proceed], Any]
ErrorHandler = Callable[[BaseException, Context], Any]
Terminal = Callable[[], Awaitable[None]]


class _ChainRun:
    """State of one ``MiddlewareChain.run`` call."""

    def __init__(
        self,
        entries: tuple[Middleware, ...],
        ctx: Context,
        terminal: Optional[Terminal],
    ):
        self.entries = entries
        self.ctx = ctx
        self.terminal = terminal
        self.terminal_error: Optional[BaseException] = None
        self.position = -1
        self.completed = False

    def proceed_from(self, position: int) -> Proceed:
        async def proceed() -> None:
            await self.advance(position + 1)
        return proceed

    async def advance(self, position: int) -> None:
        if position <= self.position:
            return
        self.position = position
        if position < len(self.entries):
            await invoke(self.entries[position], self.ctx, self.proceed_from(position))
            return

        self.completed = True
        if self.terminal is not None:
            try:
                await self.terminal()
            except Exception as exc:
                self.terminal_error = exc
                raise


class MiddlewareChain:
    def __init__(self) -> None:
        self._entries: list[Middleware] = []

    def use(self, fn: Middleware) -> None:
        self._entries.append(fn)

    def __len__(self) -> int:
        return len(self._entries)

    async def run(
        self,
        ctx: Context,
        error_handler: Optional[ErrorHandler] = None,
        terminal: Optional[Terminal] = None,
    ) -> bool:
        """
        Execute the chain for ``ctx``, then ``terminal`` if every middleware
        passed control on.

        Returns True when the chain ran to the end, False when it was
        short-circuited or a middleware error was routed to
        ``error_handler``. Without an error handler, errors propagate to
        the caller.
        """
        chain = _ChainRun(tuple(self._entries), ctx, terminal)
        try:
            await chain.advance(0)
        except Exception as exc:
            if error_handler is None or exc is chain.terminal_error:
                raise
            logger.debug(
                f"Middleware error routed to error handler: {exc.__class__.__name__}"
            )
            ctx.mark_handled()
            ctx.error_routed = True
            await invoke(error_handler, exc, ctx)
            return False
        return chain.completed
