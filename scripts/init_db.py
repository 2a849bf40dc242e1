"""Script to initialize the database for local development."""

import asyncio

from medgo.database import engine
from medgo.models import metadata


async def init_db() -> None:
    """Create all tables; use scripts/migrate.py for managed databases."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print(f"✓ Database initialized with {len(metadata.tables)} tables")


if __name__ == "__main__":
    asyncio.run(init_db())
