# wabot/core/scenes.py
"""
Multi-step conversational flows.

A conversation's position in a scene lives entirely in its session:

    session["__scene"]  name of the active scene (absent when none)
    session["step"]     index of the step that receives the next message
                        (missing, non-int or negative values are reset to 0)

Step return convention:
    None / anything else  input accepted, advance (only when the event had text)
    False                 input rejected, stay on this step
    changing "step" or calling ``ctx.scene.leave(ctx)`` jumps explicitly
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Sequence

from wabot.core.callbacks import invoke
from wabot.core.context import Context
from wabot.core.middleware import Proceed
from wabot.infra.logging_config import get_logger
from wabot.infra.metrics import AppMetrics

logger = get_logger(__name__)

SCENE_KEY = "__scene"
STEP_KEY = "step"

Step = Callable[[Context], Any]


def _current_step(session: dict) -> int:
    step = session.get(STEP_KEY)
    if isinstance(step, bool) or not isinstance(step, int) or step < 0:
        return 0
    return step


class Scene:
    def __init__(self, name: str, steps: Sequence[Step]):
        self._name = name
        self._steps: tuple[Step, ...] = tuple(steps)

    @property
    def name(self) -> str:
        return self._name

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    async def enter(self, ctx: Context) -> None:
        """Start the scene and run step 0 in the same turn."""
        ctx.session[SCENE_KEY] = self._name
        ctx.session[STEP_KEY] = 0
        ctx.scene = self
        AppMetrics.scene_entered(self._name)
        logger.debug(f"Scene entered: {self._name}")
        await self.handle(ctx)

    async def leave(self, ctx: Context) -> None:
        """
        Leave the scene.

        Clears the *whole* session, not just the scene keys: anything the
        application stored before entering is gone afterwards.
        """
        ctx.session.clear()
        ctx.scene = None
        ctx.scene_stopped = True
        AppMetrics.scene_left(self._name)
        logger.debug(f"Scene left: {self._name}")

    async def handle(self, ctx: Context) -> None:
        step = _current_step(ctx.session)
        if step >= len(self._steps):
            await self.leave(ctx)
            return

        ctx.session[STEP_KEY] = step
        result = await invoke(self._steps[step], ctx)

        if ctx.session.get(STEP_KEY) == step and ctx.text is not None and result is not False:
            ctx.session[STEP_KEY] = step + 1
            if step + 1 >= len(self._steps):
                await self.leave(ctx)

    def __repr__(self) -> str:
        return f"Scene({self._name!r}, steps={len(self._steps)})"


class SceneManager:
    def __init__(self) -> None:
        self._scenes: dict[str, Scene] = {}

    def register(self, scene: Scene) -> None:
        self._scenes[scene.name] = scene

    def get(self, name: str) -> Scene | None:
        return self._scenes.get(name)

    def enter(self, name: str) -> Callable[[Context], Awaitable[None]]:
        """
        Handler that enters scene ``name``, usable directly as a callback:

            bot.command("/register", scenes.enter("registration"))
        """
        async def enter_scene(ctx: Context) -> None:
            scene = self._scenes.get(name)
            if scene is None:
                logger.warning(f"Cannot enter unknown scene '{name}'")
                return
            await scene.enter(ctx)

        return enter_scene

    def middleware(self) -> Callable[[Context, Proceed], Awaitable[None]]:
        """
        Middleware routing messages to the active scene.

        While a scene is active the chain stops here: later middleware and
        command/hears handlers do not see the event.
        """
        async def scene_middleware(ctx: Context, proceed: Proceed) -> None:
            scene_name = ctx.session.get(SCENE_KEY)
            scene = self._scenes.get(scene_name) if isinstance(scene_name, str) else None
            if scene is not None and not ctx.scene_stopped:
                ctx.scene = scene
                await scene.handle(ctx)
                return
            await proceed()

        return scene_middleware
