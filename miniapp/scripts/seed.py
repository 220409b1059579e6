import asyncio
import sys

from miniapp.database import AsyncSessionLocal, init_models
from miniapp.schemas import TelegramUser
from miniapp.services.profiles import SqlAlchemyProfileStore

# Тестовые профили (в продакшене можно убрать)
SEED_USERS = [
    TelegramUser(id=123456789, username="testuser1", first_name="Test", last_name="User"),
    TelegramUser(id=987654321, username="testuser2", first_name="Demo", last_name="Account"),
]

async def seed_database() -> int:
    print("🌱 Seeding database...")
    await init_models()

    async with AsyncSessionLocal() as session:
        store = SqlAlchemyProfileStore(session)

        if await store.count() > 0:
            print("📊 Database already has data, skipping seed...")
            return 0

        for user in SEED_USERS:
            await store.upsert(user)

    print("✅ Database seeded successfully!")
    print(f"📊 Added {len(SEED_USERS)} test profiles")
    return len(SEED_USERS)

def main():
    try:
        asyncio.run(seed_database())
    except Exception as e:
        print(f"❌ Seed failed: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
