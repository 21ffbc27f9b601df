#!/usr/bin/env python3
"""Initialize database tables and seed the default rank ladder."""

import asyncio
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from mlm_engine.config.database import create_engine, create_session_maker
from mlm_engine.config.rank_rules import DEFAULT_RANKS
from mlm_engine.config.settings import settings
from mlm_engine.models import Base
from mlm_engine.repositories.rank_repository import RankRepository
from mlm_engine.utils.logging_config import configure_logging


async def init_database() -> None:
    """Create all database tables and missing default ranks."""
    logger.info("Connecting to database...")
    engine = create_engine(settings.database_url)

    async with engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    session_maker = create_session_maker(engine)
    async with session_maker() as session:
        created = await RankRepository(session).seed(DEFAULT_RANKS)
        await session.commit()

    await engine.dispose()
    logger.success(
        f"Database initialized, {len(created)} rank(s) seeded"
    )


if __name__ == "__main__":
    configure_logging(settings.log_level)
    asyncio.run(init_database())
