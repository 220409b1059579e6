from pydantic import BaseModel, ConfigDict, Field, StrictInt

# Модель пользователя внутри initData (Telegram присылает JSON внутри строки)
class TelegramUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Только настоящий int: true, "42" и 42.0 отклоняются
    id: StrictInt = Field(..., gt=0)
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    language_code: str | None = None
    is_premium: bool | None = None
    allows_write_to_pm: bool | None = None
    photo_url: str | None = None

# Результат успешной проверки initData. Создается только в security.verify_init_data
class VerifiedClaim(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: TelegramUser
    auth_date: int
    chat_instance: str | None = None
    chat_type: str | None = None

# Тело запроса от фронтенда: initData лежит строкой внутри JSON
class PingRequest(BaseModel):
    initData: str = Field("", description="Raw query string from Telegram WebApp")
