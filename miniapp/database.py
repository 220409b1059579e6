from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from miniapp.config import settings


class Base(DeclarativeBase):
    pass


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(url, echo=echo)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Объекты после commit остаются читаемыми без ленивой догрузки
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


async def create_tables(bind: AsyncEngine) -> None:
    # Импорт регистрирует модели в Base.metadata
    from miniapp.models.profile import Profile  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Боевое подключение к Postgres (asyncpg), SQL в лог при DEBUG
engine = make_engine(settings.database_url, echo=settings.DEBUG)
AsyncSessionLocal = make_session_factory(engine)


async def init_models():
    """Создает таблицу profiles, если ее еще нет."""
    await create_tables(engine)


async def get_db():
    """Сессия на один запрос: Depends(get_db)."""
    async with AsyncSessionLocal() as session:
        yield session
