import logging
from typing import Any, Protocol

from aiogram import Bot, Dispatcher

logger = logging.getLogger(__name__)

# Какие апдейты Telegram будет присылать на вебхук
ALLOWED_UPDATES = ["message", "callback_query", "inline_query"]


class UpdateDispatcher(Protocol):
    async def dispatch_update(self, update: dict[str, Any]) -> None: ...


class AiogramUpdateDispatcher:
    """Передает сырые апдейты из вебхука в aiogram Dispatcher."""

    def __init__(self, bot: Bot, dp: Dispatcher):
        self.bot = bot
        self.dp = dp

    async def dispatch_update(self, update: dict[str, Any]) -> None:
        await self.dp.feed_raw_update(self.bot, update)


# --- WEBHOOK MANAGEMENT ---

async def set_webhook(bot: Bot, url: str, secret_token: str) -> bool:
    logger.info(f"Setting webhook to {url}")
    return await bot.set_webhook(
        url,
        secret_token=secret_token,
        allowed_updates=ALLOWED_UPDATES,
    )


async def get_webhook_info(bot: Bot) -> dict[str, Any]:
    info = await bot.get_webhook_info()
    return info.model_dump(exclude_none=True)


async def delete_webhook(bot: Bot) -> bool:
    logger.info("Deleting webhook")
    return await bot.delete_webhook()
