"""
Initialize the database: create all tables.
Run with: python -m scripts.init_db
"""

import asyncio
from lifeline.config import get_settings
from lifeline.database import build_engine, create_all


async def init():
    print("Creating database tables...")
    engine = build_engine(get_settings().database_url)
    await create_all(engine)
    print("All tables created successfully.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init())
