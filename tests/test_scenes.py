# tests/test_scenes.py
"""Tests for wabot/core/scenes.py: enter/handle/leave and the scene middleware."""
from __future__ import annotations

import pytest

from wabot.core.context import Context
from wabot.core.scenes import Scene, SceneManager
from wabot.infra.session_store import MemorySessionStore
from tests.fakes import RecordingBot, make_text_event


def _ask(ctx):
    return ctx.reply("What is your name?")


async def _take_name(ctx):
    if not ctx.text or not ctx.text.strip():
        await ctx.reply("Please enter your name.")
        return False
    await ctx.reply(f"Thanks, {ctx.text}!")


def _build(store=None, steps=None):
    bot = RecordingBot(session_store=store or MemorySessionStore())
    scenes = SceneManager()
    scenes.register(Scene("signup", steps or [_ask, _take_name]))
    bot.use(scenes.middleware())
    bot.command("/signup", scenes.enter("signup"))
    return bot, scenes


class TestSceneHandle:
    @pytest.mark.asyncio
    async def test_enter_runs_first_step_and_advances(self, bot, text_event):
        scene = Scene("s", [_ask, _take_name])
        ctx = Context(bot, text_event("/signup"), "123")

        await scene.enter(ctx)

        assert ctx.session == {"__scene": "s", "step": 1}
        assert ctx.scene is scene
        assert bot.texts() == ["What is your name?"]

    @pytest.mark.asyncio
    async def test_no_advance_without_text(self, bot):
        scene = Scene("s", [lambda c: None, lambda c: None])
        ctx = Context(bot, {"from": "1", "type": "image", "image": {}}, "1")
        ctx.session = {"__scene": "s", "step": 0}

        await scene.handle(ctx)

        assert ctx.session["step"] == 0

    @pytest.mark.asyncio
    async def test_false_keeps_step(self, bot, text_event):
        scene = Scene("s", [lambda c: None, lambda c: False])
        ctx = Context(bot, text_event("x"), "123")
        ctx.session = {"__scene": "s", "step": 1}

        await scene.handle(ctx)

        assert ctx.session == {"__scene": "s", "step": 1}

    @pytest.mark.asyncio
    async def test_explicit_jump_is_respected(self, bot, text_event):
        def jump(c):
            c.session["step"] = 2

        scene = Scene("s", [jump, lambda c: None, lambda c: None])
        ctx = Context(bot, text_event("x"), "123")
        ctx.session = {"__scene": "s", "step": 0}

        await scene.handle(ctx)

        assert ctx.session["step"] == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_step", [None, "1", -3, True])
    async def test_invalid_step_defaults_to_zero(self, bot, text_event, bad_step):
        ran = []
        scene = Scene("s", [lambda c: ran.append(0), lambda c: ran.append(1)])
        ctx = Context(bot, text_event("x"), "123")
        ctx.session = {"__scene": "s", "step": bad_step}

        await scene.handle(ctx)

        assert ran == [0]
        assert ctx.session["step"] == 1

    @pytest.mark.asyncio
    async def test_missing_step_advances_across_turns(self, bot, text_event):
        ran = []
        scene = Scene("s", [lambda c: ran.append(0), lambda c: ran.append(1), lambda c: None])
        session = {"__scene": "s"}

        for _ in range(2):
            ctx = Context(bot, text_event("x"), "123")
            ctx.session = session
            await scene.handle(ctx)

        assert ran == [0, 1]
        assert session == {"__scene": "s", "step": 2}

    @pytest.mark.asyncio
    async def test_out_of_bounds_leaves(self, bot, text_event):
        scene = Scene("s", [lambda c: None])
        ctx = Context(bot, text_event("x"), "123")
        ctx.session = {"__scene": "s", "step": 5, "other": 1}

        await scene.handle(ctx)

        assert ctx.session == {}
        assert ctx.scene_stopped is True

    @pytest.mark.asyncio
    async def test_leave_wipes_whole_session(self, bot, text_event):
        scene = Scene("s", [lambda c: None])
        ctx = Context(bot, text_event("x"), "123")
        ctx.session = {"__scene": "s", "step": 0, "cart": ["apple"]}
        ctx.scene = scene

        await scene.leave(ctx)

        assert ctx.session == {}
        assert ctx.scene is None
        assert ctx.scene_stopped is True


class TestSceneFlow:
    @pytest.mark.asyncio
    async def test_reprompt_then_complete(self):
        store = MemorySessionStore()
        bot, _ = _build(store)

        await bot.handle_event(make_text_event("/signup"))
        assert store.sessions["123"] == {"__scene": "signup", "step": 1}

        # text " " passes through, step 1 rejects it twice
        await bot.handle_event(make_text_event(" "))
        assert store.sessions["123"]["step"] == 1
        await bot.handle_event(make_text_event(None))
        assert store.sessions["123"]["step"] == 1

        await bot.handle_event(make_text_event("Ann"))

        assert store.sessions["123"] == {}
        assert bot.texts() == [
            "What is your name?",
            "Please enter your name.",
            "Please enter your name.",
            "Thanks, Ann!",
        ]

    @pytest.mark.asyncio
    async def test_active_scene_blocks_handlers(self):
        bot, _ = _build()
        other = []
        bot.hears("/signup", lambda c: other.append("hears"))
        bot.on("message", lambda c: other.append("fallback"))

        await bot.handle_event(make_text_event("/signup"))
        await bot.handle_event(make_text_event("/signup"))

        # second "/signup" went to the scene as the name
        assert other == []
        assert bot.texts()[-1] == "Thanks, /signup!"

    @pytest.mark.asyncio
    async def test_leave_inside_step_stops_scene_for_turn(self):
        calls = []

        async def quit_step(ctx):
            calls.append("quit")
            await ctx.scene.leave(ctx)

        bot, _ = _build(steps=[lambda c: None, quit_step])
        bot.on("message", lambda c: calls.append("fallback"))

        await bot.handle_event(make_text_event("/signup"))
        await bot.handle_event(make_text_event("bye"))

        assert calls == ["quit"]
        assert await bot.session_store.get("123") == {}

    @pytest.mark.asyncio
    async def test_unregistered_scene_falls_through(self):
        store = MemorySessionStore()
        await store.set("123", {"__scene": "gone", "step": 0})
        bot, _ = _build(store)
        calls = []
        bot.on("message", lambda c: calls.append(c.text))

        await bot.handle_event(make_text_event("hello"))

        assert calls == ["hello"]

    @pytest.mark.asyncio
    async def test_enter_unknown_scene_is_noop(self, bot, text_event):
        scenes = SceneManager()
        ctx = Context(bot, text_event("x"), "123")

        await scenes.enter("missing")(ctx)

        assert ctx.session == {}
        assert ctx.scene is None

    @pytest.mark.asyncio
    async def test_step_error_goes_to_error_handler(self):
        errors = []

        def broken(ctx):
            raise ValueError("bad step")

        bot, _ = _build(steps=[lambda c: None, broken])
        bot.catch(lambda err, ctx: errors.append(str(err)))

        await bot.handle_event(make_text_event("/signup"))
        await bot.handle_event(make_text_event("x"))

        assert errors == ["bad step"]
