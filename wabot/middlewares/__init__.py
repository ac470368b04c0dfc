from wabot.middlewares.logger import logger  # noqa: F401
