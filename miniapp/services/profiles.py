import logging
from typing import Protocol

from fastapi import Depends
from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from miniapp.database import get_db
from miniapp.models.profile import Profile
from miniapp.schemas import TelegramUser

logger = logging.getLogger(__name__)


class ProfileStore(Protocol):
    """Хранилище профилей, ключ - Telegram ID пользователя (tg_id)."""

    async def find_by_external_id(self, tg_id: int) -> Profile | None: ...

    async def upsert(self, user: TelegramUser) -> Profile: ...

    async def count(self) -> int: ...

    async def recent(self, limit: int = 5) -> list[Profile]: ...

    async def ping(self) -> None: ...


class SqlAlchemyProfileStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_external_id(self, tg_id: int) -> Profile | None:
        result = await self.session.execute(select(Profile).where(Profile.tg_id == tg_id))
        return result.scalar_one_or_none()

    async def upsert(self, user: TelegramUser) -> Profile:
        """
        Создает профиль при первом входе, иначе обновляет имя и username.
        Если параллельный запрос успел вставить тот же tg_id, вставка
        откатывается и повторяется как обновление.
        """
        profile = await self.find_by_external_id(user.id)

        if profile is None:
            profile = Profile(tg_id=user.id)
            self._apply(profile, user)
            self.session.add(profile)
            try:
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                logger.info(f"Profile tg_id={user.id} created concurrently, updating instead")
                profile = await self.find_by_external_id(user.id)
                if profile is None:
                    raise
                await self._update(profile, user)
            else:
                logger.info(f"New profile: tg_id={user.id}")
        else:
            await self._update(profile, user)

        await self.session.refresh(profile)
        return profile

    async def _update(self, profile: Profile, user: TelegramUser) -> None:
        self._apply(profile, user)
        profile.updated_at = func.now()
        await self.session.commit()

    @staticmethod
    def _apply(profile: Profile, user: TelegramUser) -> None:
        profile.username = user.username
        profile.first_name = user.first_name
        profile.last_name = user.last_name

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(Profile))
        return result.scalar_one()

    async def recent(self, limit: int = 5) -> list[Profile]:
        query = select(Profile).order_by(Profile.created_at.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def ping(self) -> None:
        await self.session.execute(text("SELECT 1"))


# Dependency для FastAPI, в тестах подменяется через app.dependency_overrides
async def get_profile_store(db: AsyncSession = Depends(get_db)) -> ProfileStore:
    return SqlAlchemyProfileStore(db)
