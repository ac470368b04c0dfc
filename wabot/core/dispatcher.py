# wabot/core/dispatcher.py
"""
Event dispatcher: runs one inbound event end-to-end.

Workflow per event:
    build context -> load session -> middleware chain
    -> category handlers (terminal stage of the chain, reached only when
       every middleware proceeded) -> persist session

Registrations (middleware, handlers, error handler) are owned by the
dispatcher instance. ``freeze()`` closes registration once the bot starts
serving traffic.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Optional

from wabot.core.callbacks import invoke
from wabot.core.context import Context
from wabot.core.errors import RegistrationClosedError
from wabot.core.locks import ConversationLocks
from wabot.core.matcher import TriggerHandler, command_trigger, hears_trigger
from wabot.core.middleware import ErrorHandler, Middleware, MiddlewareChain
from wabot.core.ports import SessionStore
from wabot.infra.logging_config import LogContext, get_logger, mask_chat_id
from wabot.infra.metrics import AppMetrics
from wabot.infra.session_store import MemorySessionStore

logger = get_logger(__name__)

MESSAGE_CATEGORY = "message"
_MESSAGE_EVENT_TYPES = frozenset({"text", "interactive"})

Handler = Callable[[Context], Any]


def resolve_category(event_type: Optional[str]) -> str:
    """Text and reply-button events share the ``message`` category."""
    if event_type in _MESSAGE_EVENT_TYPES:
        return MESSAGE_CATEGORY
    return event_type or "unknown"


class Dispatcher:
    """
    Provider-agnostic dispatch core.

    Subclasses supply ``send_message``; the dispatcher passes itself to every
    Context as the bot used for replies.
    """

    def __init__(
        self,
        *,
        session_store: SessionStore | None = None,
        error_handler: ErrorHandler | None = None,
        serialize_conversations: bool = True,
    ) -> None:
        self.session_store: SessionStore = (
            session_store if session_store is not None else MemorySessionStore()
        )
        self.error_handler = error_handler
        self.middlewares = MiddlewareChain()
        self.handlers: dict[str, list[Handler]] = {MESSAGE_CATEGORY: []}
        self._locks = ConversationLocks() if serialize_conversations else None
        self._frozen = False

    async def send_message(self, to: str, text_or_payload: Any) -> Any:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._frozen:
            raise RegistrationClosedError(
                "Registrations are closed once the bot is serving webhooks"
            )

    def freeze(self) -> None:
        self._frozen = True

    def catch(self, fn: ErrorHandler) -> ErrorHandler:
        """Set the process-wide error handler. A second call replaces the first."""
        self.error_handler = fn
        return fn

    def use(self, fn: Middleware) -> Middleware:
        self._check_open()
        self.middlewares.use(fn)
        return fn

    def on(self, category: str, fn: Handler) -> Handler:
        self._check_open()
        self.handlers.setdefault(category, []).append(fn)
        return fn

    def command(self, cmd: str | list[str], fn: Handler | None = None):
        """
        Register ``fn`` for text exactly equal to ``cmd`` (or any of a list).

        Without ``fn`` returns a decorator.
        """
        trigger = command_trigger(cmd)
        if fn is None:
            return lambda f: self._register_trigger(trigger, f)
        return self._register_trigger(trigger, fn)

    def hears(self, pattern: Any, fn: Handler | None = None):
        """
        Register ``fn`` for a string, a compiled regex (``search``), or a
        list mixing both. Without ``fn`` returns a decorator.
        """
        trigger = hears_trigger(pattern)
        if fn is None:
            return lambda f: self._register_trigger(trigger, f)
        return self._register_trigger(trigger, fn)

    def _register_trigger(self, trigger, fn: Handler) -> Handler:
        self.on(MESSAGE_CATEGORY, TriggerHandler(trigger, fn))
        return fn

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle_event(self, event: dict) -> Context | None:
        """
        Dispatch one raw Cloud API message object.

        Errors go to the error handler (at most once per event) when one is
        set; otherwise they propagate. Either way the session of this turn
        is not persisted, except for middleware errors the chain routed.
        """
        chat_id = event.get("from")
        if not chat_id:
            logger.warning(f"Dropping event without sender: type={event.get('type')}")
            return None

        ctx = Context(self, event, chat_id)
        category = resolve_category(ctx.event_type)
        log_ctx = LogContext(
            logger,
            chat_id=chat_id,
            message_id=ctx.message_id,
            event_type=ctx.event_type,
        )
        AppMetrics.event_dispatched(category)

        try:
            with AppMetrics.track_dispatch_time(category):
                if self._locks is None:
                    await self._dispatch(ctx, category)
                else:
                    async with self._locks.hold(chat_id):
                        await self._dispatch(ctx, category)
        except Exception as exc:
            routable = self.error_handler is not None and not ctx.error_routed
            AppMetrics.dispatch_error(category, routed=routable)
            if not routable:
                raise
            log_ctx.warning(
                f"Dispatch failed, routing to error handler: {exc.__class__.__name__}: {exc}",
                exc_info=True,
            )
            ctx.error_routed = True
            await invoke(self.error_handler, exc, ctx)
            return ctx

        log_ctx.debug(f"Event dispatched: category={category}, handled={ctx.handled}")
        return ctx

    async def _dispatch(self, ctx: Context, category: str) -> None:
        ctx.session = await self.session_store.get(ctx.chat_id) or {}

        async def run_handlers() -> None:
            for fn in self.handlers.get(category, ()):
                if ctx.handled:
                    break
                await invoke(fn, ctx)

        await self.middlewares.run(ctx, self.error_handler, terminal=run_handlers)

        await self.session_store.set(ctx.chat_id, ctx.session)

    async def handle_batch(self, events: Iterable[dict]) -> list:
        """
        Dispatch all events of one webhook delivery concurrently.

        A failing event is logged and returned as its exception; the other
        events are unaffected.
        """
        events = list(events)
        results = await asyncio.gather(
            *(self.handle_event(event) for event in events),
            return_exceptions=True,
        )
        for event, result in zip(events, results):
            if isinstance(result, BaseException):
                logger.error(
                    f"Unhandled error dispatching event: from={mask_chat_id(event.get('from'))}, "
                    f"type={event.get('type')}",
                    exc_info=result,
                )
        return results
