import asyncio

from config.settings import Settings
from core.db import create_engine_and_sessionmaker, create_tables


async def main():
    """
    One-time script to create all tables in the configured database.
    Uses a temporary async engine built from DATABASE_URL.
    """
    db_url = Settings().DATABASE_URL
    engine, _ = create_engine_and_sessionmaker(db_url)
    if engine is None:
        raise RuntimeError(f"DATABASE_URL is not configured correctly: {db_url}")

    await create_tables(engine)
    await engine.dispose()
    print("Database schema created/updated successfully.")


if __name__ == "__main__":
    asyncio.run(main())
