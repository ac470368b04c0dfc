#!/usr/bin/env python3
"""
Registration Bot Example

Commands, button replies, media replies and a four-step registration scene.

Configure WHATSAPP_ACCESS_TOKEN, WHATSAPP_PHONE_NUMBER_ID and
WHATSAPP_VERIFY_TOKEN (environment or .env), then run from project root:
    python examples/registration_bot.py
"""
import re

from wabot import Markup, Scene, SceneManager, WhatsAppBot
from wabot.config import settings
from wabot.infra.logging_config import get_logger
from wabot.middlewares import logger as log_events

log = get_logger("registration_bot")

PHOTO_URL = "https://www.w3schools.com/w3images/lights.jpg"
DOC_URL = "https://www.w3.org/WAI/ER/tests/xhtml/testfiles/resources/pdf/dummy.pdf"
AUDIO_URL = "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-1.mp3"
VIDEO_URL = "https://www.w3schools.com/html/mov_bbb.mp4"

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")

bot = WhatsAppBot.from_settings(settings)


@bot.catch
async def on_error(err, ctx):
    log.error(f"Global error: {err!r}")
    await ctx.reply(f"An error occurred: {err}")


# --- Registration scene ---

async def ask_first_name(ctx):
    await ctx.reply("Welcome to registration! What is your first name?")


async def take_first_name(ctx):
    if not ctx.text:
        return False
    ctx.session["first_name"] = ctx.text
    await ctx.reply("What is your last name?")


async def take_last_name(ctx):
    if not ctx.text:
        await ctx.reply("Please enter your last name.")
        return False
    ctx.session["last_name"] = ctx.text
    await ctx.reply("What is your email address?")


async def take_email(ctx):
    if not ctx.text or not EMAIL_RE.search(ctx.text):
        await ctx.reply("Please enter a valid email address.")
        return False
    name = f"{ctx.session.get('first_name')} {ctx.session.get('last_name')}"
    await ctx.reply(f"Registration complete, {name}!")
    await ctx.scene.leave(ctx)


scenes = SceneManager()
scenes.register(Scene("registration", [ask_first_name, take_first_name, take_last_name, take_email]))

bot.use(log_events())
bot.use(scenes.middleware())

# --- Commands ---

bot.command(["/start", "/help"], lambda ctx: ctx.reply("Welcome! Type /registration to begin."))
bot.command("/registration", scenes.enter("registration"))
bot.hears(["hi", "hello", re.compile("test")], lambda ctx: ctx.reply("Hello! How can I assist you today?"))


@bot.hears("/keyboard")
async def keyboard(ctx):
    await ctx.reply(Markup.keyboard("Choose an option:", [[{"text": "Yes"}, {"text": "No"}]]))


@bot.hears("/photo")
async def photo(ctx):
    await ctx.reply_with_photo(PHOTO_URL)


bot.hears("Yes", lambda ctx: ctx.reply("You clicked Yes!"))
bot.hears("No", lambda ctx: ctx.reply("You clicked No!"))

# --- Media ---


async def on_image(ctx):
    await ctx.reply("You sent an image!")
    await ctx.reply_with_photo(PHOTO_URL)


async def on_document(ctx):
    if ctx.files:
        await ctx.reply("You sent a document!")
        await ctx.reply_with_document(DOC_URL)


bot.on("image", on_image)
bot.on("document", on_document)
bot.on("audio", lambda ctx: ctx.reply_with_audio(AUDIO_URL))
bot.on("video", lambda ctx: ctx.reply_with_video(VIDEO_URL))


async def echo(ctx):
    await ctx.reply(f"Echo: {ctx.text}")


bot.on("message", echo)


if __name__ == "__main__":
    bot.start()
