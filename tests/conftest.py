# tests/conftest.py
"""
Общие фикстуры для тестов.
"""

from __future__ import annotations

import hashlib
import hmac
import os
from typing import Any, Callable, Iterable
from urllib.parse import urlencode

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("BOT_TOKEN", "123456:TEST-bot-token")
os.environ.setdefault("WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("APP_DOMAIN", "miniapp.test")

from fastapi.testclient import TestClient  # noqa: E402

from miniapp.config import settings  # noqa: E402
from miniapp.main import app, get_bot, get_update_dispatcher  # noqa: E402
from miniapp.models.profile import Profile  # noqa: E402
from miniapp.schemas import TelegramUser  # noqa: E402
from miniapp.services.profiles import get_profile_store  # noqa: E402


def telegram_hash(data_check_string: str, bot_token: str) -> str:
    """Подпись initData так, как это делает клиент Telegram."""
    secret_key = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    return hmac.new(secret_key, data_check_string.encode(), hashlib.sha256).hexdigest()


def sign_pairs(pairs: Iterable[tuple[str, str]], bot_token: str) -> str:
    """Возвращает raw initData (query string) с корректным hash в конце."""
    pairs = list(pairs)
    data_check_string = "\n".join(f"{k}={v}" for k, v in sorted(pairs))
    return urlencode(pairs + [("hash", telegram_hash(data_check_string, bot_token))])


# =============================================================================
# FAKES
# =============================================================================

class InMemoryProfileStore:
    """Хранилище профилей в памяти вместо PostgreSQL."""

    def __init__(self) -> None:
        self.profiles: dict[int, Profile] = {}
        self.healthy = True

    async def find_by_external_id(self, tg_id: int) -> Profile | None:
        return self.profiles.get(tg_id)

    async def upsert(self, user: TelegramUser) -> Profile:
        profile = self.profiles.get(user.id) or Profile(tg_id=user.id)
        profile.username = user.username
        profile.first_name = user.first_name
        profile.last_name = user.last_name
        self.profiles[user.id] = profile
        return profile

    async def count(self) -> int:
        return len(self.profiles)

    async def recent(self, limit: int = 5) -> list[Profile]:
        return list(self.profiles.values())[-limit:]

    async def ping(self) -> None:
        if not self.healthy:
            raise ConnectionError("database is down")


class RecordingDispatcher:
    """Запоминает апдейты вместо передачи их в aiogram."""

    def __init__(self) -> None:
        self.updates: list[dict[str, Any]] = []
        self.error: Exception | None = None

    async def dispatch_update(self, update: dict[str, Any]) -> None:
        if self.error is not None:
            raise self.error
        self.updates.append(update)


# =============================================================================
# ФИКСТУРЫ
# =============================================================================

@pytest.fixture
def bot_token() -> str:
    return settings.BOT_TOKEN


@pytest.fixture
def sign() -> Callable[..., str]:
    return sign_pairs


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def update_dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def mock_bot():
    from unittest.mock import AsyncMock, MagicMock

    bot = MagicMock()
    bot.set_webhook = AsyncMock(return_value=True)
    bot.delete_webhook = AsyncMock(return_value=True)
    bot.get_webhook_info = AsyncMock()
    return bot


@pytest.fixture
def client(profile_store, update_dispatcher, mock_bot):
    # Без контекстного менеджера lifespan не запускается: ни БД, ни Telegram не нужны
    app.dependency_overrides[get_profile_store] = lambda: profile_store
    app.dependency_overrides[get_update_dispatcher] = lambda: update_dispatcher
    app.dependency_overrides[get_bot] = lambda: mock_bot
    yield TestClient(app)
    app.dependency_overrides.clear()
