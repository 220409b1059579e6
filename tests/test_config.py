# tests/test_config.py
"""
Тесты настроек приложения.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from miniapp.config import Settings


def make_settings(**overrides) -> Settings:
    values = {
        "BOT_TOKEN": "1:token",
        "WEBHOOK_SECRET": "secret",
        "APP_DOMAIN": "app.example.com",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_defaults():
    s = make_settings()
    assert s.API_PORT == 3001
    assert s.AUTH_LIFETIME == 86400
    assert s.LOG_LEVEL == "INFO"


def test_database_url():
    s = make_settings(
        POSTGRES_USER="u", POSTGRES_PASSWORD="p", POSTGRES_HOST="db", POSTGRES_PORT=6543, POSTGRES_DB="d"
    )
    assert s.database_url == "postgresql+asyncpg://u:p@db:6543/d"


def test_webhook_url_defaults_to_app_domain():
    s = make_settings(WEBHOOK_URL=None)
    assert s.webapp_url == "https://app.example.com"
    assert s.webhook_url == "https://app.example.com/webhook"


def test_webhook_url_override():
    s = make_settings(WEBHOOK_URL="https://hooks.example.com/tg")
    assert s.webhook_url == "https://hooks.example.com/tg"


def test_cors_origins():
    s = make_settings()
    assert s.cors_origins == [
        "https://app.example.com",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


def test_required_fields(monkeypatch):
    monkeypatch.delenv("WEBHOOK_SECRET", raising=False)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, BOT_TOKEN="1:token", APP_DOMAIN="app.example.com")
