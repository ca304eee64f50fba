"""Script to initialize the database without running migrations."""

import asyncio

from medibook.database import engine
from medibook.models import metadata


async def init_db() -> None:
    """Initialize the database by creating all scheduling tables."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()

    print("✓ Database initialized successfully!")
    print(f"  Tables: {', '.join(sorted(metadata.tables))}")


if __name__ == "__main__":
    asyncio.run(init_db())
