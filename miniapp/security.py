import hmac
import hashlib
import json
import logging
import time
from urllib.parse import parse_qsl

from fastapi import HTTPException, Header, status
from pydantic import ValidationError

from miniapp.config import settings
from miniapp.schemas import TelegramUser, VerifiedClaim

logger = logging.getLogger(__name__)

# Время жизни данных валидации (1 день).
# Чтобы старые перехваченные данные нельзя было использовать вечно.
AUTH_LIFETIME = 86400

WEBAPP_DATA_KEY = b"WebAppData"
WEBHOOK_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


class InitDataError(Exception):
    """Причина отказа в проверке initData. Наружу не отдается, только в лог."""


class MalformedInitData(InitDataError):
    pass


class MissingHash(InitDataError):
    pass


class SignatureMismatch(InitDataError):
    pass


class MissingUser(InitDataError):
    pass


class MalformedUser(InitDataError):
    pass


class StalePayload(InitDataError):
    pass


def build_data_check_string(pairs: list[tuple[str, str]]) -> str:
    """
    Формирует data_check_string: key=value, отсортированные по ключу,
    через \\n. Сортировка по кодам символов, без учета локали.
    """
    return "\n".join(f"{k}={v}" for k, v in sorted(pairs, key=lambda pair: pair[0]))


def compute_init_data_hash(data_check_string: str, bot_token: str) -> str:
    # Secret Key = HMAC-SHA256 от токена бота с ключом "WebAppData"
    secret_key = hmac.new(
        key=WEBAPP_DATA_KEY,
        msg=bot_token.encode(),
        digestmod=hashlib.sha256
    ).digest()

    return hmac.new(
        key=secret_key,
        msg=data_check_string.encode(),
        digestmod=hashlib.sha256
    ).hexdigest()


def _parse_auth_date(value: str | None) -> int:
    # Отсутствующая или битая дата превращается в 0 и дальше отсекается как устаревшая
    try:
        return int(value or 0)
    except ValueError:
        return 0


def check_init_data(
    init_data: str,
    bot_token: str,
    now: float,
    max_age: int = AUTH_LIFETIME,
) -> VerifiedClaim:
    """
    Валидирует initData от Telegram WebApp.
    Возвращает VerifiedClaim или бросает InitDataError с причиной отказа.
    """
    # 1. Парсим query string, сохраняя порядок и пустые значения
    try:
        pairs = parse_qsl(init_data, keep_blank_values=True)
    except (TypeError, ValueError) as e:
        raise MalformedInitData(f"Cannot parse initData: {e}") from e

    # 2. Достаем хеш и выкидываем все его вхождения
    received_hash = next((v for k, v in pairs if k == "hash"), None)
    if not received_hash:
        raise MissingHash("No hash found in initData")
    pairs = [(k, v) for k, v in pairs if k != "hash"]

    # 3-5. data_check_string и ожидаемый хеш
    try:
        calculated_hash = compute_init_data_hash(build_data_check_string(pairs), bot_token)
        hash_matches = hmac.compare_digest(
            calculated_hash.encode(), received_hash.encode()
        )
    except UnicodeEncodeError as e:
        raise SignatureMismatch("initData is not encodable") from e

    # 6. Сравнение хешей
    if not hash_matches:
        raise SignatureMismatch("Invalid hash signature")

    fields = {}
    for k, v in pairs:
        fields.setdefault(k, v)

    # 7. Данные пользователя приходят JSON-строкой
    user_data_json = fields.get("user")
    if user_data_json is None:
        raise MissingUser("No user data found")
    try:
        user = TelegramUser.model_validate(json.loads(user_data_json))
    except (ValueError, ValidationError, RecursionError) as e:
        raise MalformedUser(f"Invalid user payload: {e}") from e

    # 8-9. Проверка времени (auth_date)
    auth_date = _parse_auth_date(fields.get("auth_date"))
    if now - auth_date > max_age:
        raise StalePayload(f"InitData is outdated (auth_date={auth_date})")

    return VerifiedClaim(
        user=user,
        auth_date=auth_date,
        chat_instance=fields.get("chat_instance") or None,
        chat_type=fields.get("chat_type") or None,
    )


def verify_init_data(
    init_data: str,
    bot_token: str,
    now: float,
    max_age: int = AUTH_LIFETIME,
) -> VerifiedClaim | None:
    """
    Проверяет initData и возвращает VerifiedClaim, либо None при любом отказе.
    Причина отказа пишется в лог и не передается клиенту.
    """
    try:
        return check_init_data(init_data, bot_token, now, max_age)
    except InitDataError as e:
        logger.warning("initData rejected: %s: %s", type(e).__name__, e)
        return None


def verify_webhook_secret(provided: str | None, expected: str) -> bool:
    """Заголовок вебхука должен точно совпадать с настроенным секретом."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


# --- FASTAPI DEPENDENCIES ---
# Эти функции вставляются в аргументы эндпоинтов.

async def get_current_user(
    authorization: str = Header(..., description="String 'twa-init-data <initData>'")
) -> VerifiedClaim:
    """
    Извлекает initData из заголовка и валидирует её.
    Формат заголовка: Authorization: twa-init-data query_id=...&user=...
    """
    if not authorization.startswith("twa-init-data "):
        raise HTTPException(status_code=401, detail="Invalid header format")

    init_data_raw = authorization.split(" ", 1)[1]
    claim = verify_init_data(
        init_data_raw,
        settings.BOT_TOKEN,
        now=time.time(),
        max_age=settings.AUTH_LIFETIME,
    )
    if claim is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claim


async def require_webhook_secret(
    secret_token: str | None = Header(None, alias=WEBHOOK_SECRET_HEADER)
) -> None:
    if not verify_webhook_secret(secret_token, settings.WEBHOOK_SECRET):
        logger.warning("Webhook request with invalid secret token")
        raise HTTPException(status_code=401, detail="Invalid webhook secret")
