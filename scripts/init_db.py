"""Create the scheduling tables directly from metadata (development only)."""

import asyncio
import sys

from clinicflow.database import engine
from clinicflow.models import metadata


async def init_db(reset: bool = False) -> None:
    """Create every table; with ``reset`` drop them first."""
    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(metadata.drop_all)
            print("✓ Existing tables dropped")
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print(f"✓ Database initialized ({len(metadata.tables)} tables)")


if __name__ == "__main__":
    asyncio.run(init_db(reset="--reset" in sys.argv[1:]))
