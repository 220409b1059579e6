import asyncio
import sys

from miniapp.database import AsyncSessionLocal
from miniapp.services.profiles import SqlAlchemyProfileStore

async def check_database_status():
    print("🔍 Checking database status...")

    async with AsyncSessionLocal() as session:
        store = SqlAlchemyProfileStore(session)

        await store.ping()
        print("✅ Database connection: OK")

        total = await store.count()
        print(f"📊 Total profiles: {total}")

        profiles = await store.recent(limit=5)
        if profiles:
            print("\n📋 Recent profiles:")
            for p in profiles:
                print(f"  • {p.first_name or 'Unknown'} (@{p.username or 'no-username'}) - ID: {p.tg_id}")

    print("\n✅ Database status check completed!")

def main():
    try:
        asyncio.run(check_database_status())
    except Exception as e:
        print(f"❌ Database status check failed: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
