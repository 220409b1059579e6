from aiogram import Router
from aiogram.types import Message, InlineKeyboardMarkup, InlineKeyboardButton, WebAppInfo
from aiogram.filters import CommandStart

from miniapp.config import settings

# Роутер с обработчиками бота, подключается к Dispatcher в main.py
router = Router()

def webapp_keyboard(url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🚀 Открыть Mini App", web_app=WebAppInfo(url=url))]
    ])

# Обработчик команды /start
@router.message(CommandStart())
async def command_start_handler(message: Message) -> None:
    """Приветствует пользователя и дает кнопку запуска Mini App."""
    await message.answer(
        "👋 Добро пожаловать! Нажмите кнопку ниже, чтобы открыть Mini App:",
        reply_markup=webapp_keyboard(settings.webapp_url),
    )
