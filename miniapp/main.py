import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import uvicorn
from fastapi import FastAPI, Depends, HTTPException, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from aiogram import Bot, Dispatcher
from aiogram.types import BotCommand

from miniapp.config import settings
from miniapp.database import init_models
from miniapp.bot.handlers import router as bot_router
from miniapp.bot.dispatcher import (
    AiogramUpdateDispatcher,
    UpdateDispatcher,
    set_webhook,
    get_webhook_info,
    delete_webhook,
)
from miniapp.security import get_current_user, require_webhook_secret, verify_init_data
from miniapp.schemas import PingRequest, VerifiedClaim
from miniapp.services.profiles import ProfileStore, get_profile_store

# Настройка логирования
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# --- AIOGRAM SETUP ---
bot = Bot(token=settings.BOT_TOKEN)
dp = Dispatcher()
dp.include_router(bot_router)

async def set_bot_commands(bot_instance: Bot):
    commands = [
        BotCommand(command="start", description="Открыть Mini App"),
    ]
    await bot_instance.set_my_commands(commands)

# --- FASTAPI LIFESPAN ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Startup: Creating tables and setting up bot...")
    await init_models()
    await set_bot_commands(bot)
    yield
    logger.info("Shutdown: Closing bot session...")
    await bot.session.close()

# --- FASTAPI SETUP ---
app = FastAPI(title="Telegram Mini App API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- DEPENDENCIES ---
# В тестах подменяются через app.dependency_overrides

def get_bot() -> Bot:
    return bot

def get_update_dispatcher() -> UpdateDispatcher:
    return AiogramUpdateDispatcher(bot, dp)

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

# --- HEALTH ---

@app.get("/health")
@app.get("/api/health")
async def health_check():
    return {"status": "ok", "timestamp": utc_now_iso()}

@app.get("/api/health/detailed")
async def health_detailed(store: ProfileStore = Depends(get_profile_store)):
    """Проверка соединения с БД."""
    try:
        await store.ping()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "error",
                "timestamp": utc_now_iso(),
                "services": {"database": "disconnected", "api": "running"},
                "error": str(e),
            },
        )
    return {
        "status": "ok",
        "timestamp": utc_now_iso(),
        "services": {"database": "connected", "api": "running"},
    }

# --- MINI APP ---

@app.post("/api/ping")
async def ping(
    payload: PingRequest,
    store: ProfileStore = Depends(get_profile_store),
):
    """
    Проверяет initData от Mini App, сохраняет или обновляет профиль
    и отвечает понгом.
    """
    if not payload.initData:
        raise HTTPException(status_code=400, detail="initData is required")

    claim = verify_init_data(
        payload.initData,
        settings.BOT_TOKEN,
        now=time.time(),
        max_age=settings.AUTH_LIFETIME,
    )
    if claim is None:
        raise HTTPException(status_code=401, detail="Invalid Telegram data")

    try:
        await store.upsert(claim.user)
    except Exception:
        logger.exception(f"Profile upsert failed for tg_id={claim.user.id}")
        raise HTTPException(status_code=500, detail="Internal server error")

    return {
        "status": "ok",
        "message": "Pong! 🏓",
        "user": claim.user.model_dump(exclude_none=True),
        "timestamp": utc_now_iso(),
    }

@app.get("/me")
async def get_my_profile(claim: VerifiedClaim = Depends(get_current_user)):
    return {
        "status": "authenticated",
        "user": claim.user.model_dump(exclude_none=True),
    }

# --- TELEGRAM WEBHOOK ---

@app.post("/webhook", dependencies=[Depends(require_webhook_secret)])
async def telegram_webhook(
    update: dict[str, Any] = Body(...),
    dispatcher: UpdateDispatcher = Depends(get_update_dispatcher),
):
    try:
        await dispatcher.dispatch_update(update)
    except Exception:
        logger.exception("Webhook error")
        raise HTTPException(status_code=500, detail="Internal server error")
    return {"ok": True}

@app.post("/api/webhook/set")
async def webhook_set(bot_instance: Bot = Depends(get_bot)):
    """Регистрирует вебхук в Telegram (для настройки и разработки)."""
    try:
        result = await set_webhook(bot_instance, settings.webhook_url, settings.WEBHOOK_SECRET)
    except Exception as e:
        logger.error(f"Set webhook error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to set webhook: {e}")
    return {
        "success": result,
        "webhook_url": settings.webhook_url,
        "message": "Webhook set successfully",
    }

@app.get("/api/webhook/info")
async def webhook_info(bot_instance: Bot = Depends(get_bot)):
    try:
        return await get_webhook_info(bot_instance)
    except Exception as e:
        logger.error(f"Get webhook info error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get webhook info: {e}")

@app.delete("/api/webhook")
async def webhook_delete(bot_instance: Bot = Depends(get_bot)):
    try:
        result = await delete_webhook(bot_instance)
    except Exception as e:
        logger.error(f"Delete webhook error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete webhook: {e}")
    return {"success": result, "message": "Webhook deleted successfully"}

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.API_PORT)
