from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    BOT_TOKEN: str
    WEBHOOK_SECRET: str
    APP_DOMAIN: str
    # Если не задан, собирается из APP_DOMAIN
    WEBHOOK_URL: str | None = None
    API_PORT: int = 3001

    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "miniapp"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432

    # Окно свежести initData в секундах (24 часа)
    AUTH_LIFETIME: int = 86400

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def database_url(self) -> str:
        # Драйвер asyncpg для асинхронной работы
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def webapp_url(self) -> str:
        return f"https://{self.APP_DOMAIN}"

    @property
    def webhook_url(self) -> str:
        return self.WEBHOOK_URL or f"{self.webapp_url}/webhook"

    @property
    def cors_origins(self) -> list[str]:
        return [
            self.webapp_url,
            # localhost для разработки фронта
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]

settings = Settings()
