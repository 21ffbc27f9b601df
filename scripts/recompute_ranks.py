#!/usr/bin/env python3
"""
Resynchronize participant ranks, deepest participants first.

Run after bulk data changes (imported points, edited rank thresholds).
With --preview HANDLE, prints the qualification report of one
participant without writing anything.
"""

import argparse
import asyncio
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from mlm_engine.config.settings import settings
from mlm_engine.services.rank import RankQualificationEngine
from mlm_engine.utils.logging_config import configure_logging


def _session_maker() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        settings.database_url,
        echo=False,
        poolclass=NullPool,
    )
    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine, session_maker


async def recompute_ranks(dry_run: bool) -> None:
    logger.info("Starting bottom-to-top rank resync...")
    engine, session_maker = _session_maker()

    try:
        async with session_maker() as session:
            ranks = RankQualificationEngine(
                session, max_depth=settings.max_tree_depth
            )
            summary = await ranks.recompute_all()

            if dry_run:
                await session.rollback()
                logger.info("Dry run, changes rolled back")
            else:
                await session.commit()
    finally:
        await engine.dispose()

    logger.info(f"Participants processed: {summary.total}")
    for handle, old, new in summary.upgrades:
        logger.info(f"  UP   {handle}: {old or 'No rank'} -> {new}")
    for handle, old, new in summary.downgrades:
        logger.warning(f"  DOWN {handle}: {old or 'No rank'} -> {new}")
    logger.success(
        f"Upgrades: {len(summary.upgrades)}, downgrades: "
        f"{len(summary.downgrades)}, unchanged: {summary.unchanged}"
    )


async def preview(handle: str) -> None:
    engine, session_maker = _session_maker()
    try:
        async with session_maker() as session:
            report = await RankQualificationEngine(
                session, max_depth=settings.max_tree_depth
            ).preview_rank(handle)
    finally:
        await engine.dispose()

    if report is None:
        logger.error(f"Participant {handle} not found")
        sys.exit(1)

    logger.info(
        f"{report.handle}: {report.points} points, "
        f"current rank {report.current_rank or 'No rank'}"
    )
    if report.total_lines is not None:
        logger.info(f"Downline lines: {report.total_lines}")
    for check in report.checks:
        mark = "OK " if check.qualifies else "-- "
        logger.info(f"  {mark}{check.title}: {check.reason}")
    logger.info(f"Qualifies for: {report.rank_title} ({report.reason})")


def main():
    parser = argparse.ArgumentParser(
        description="Recompute participant ranks from the bottom of the tree up"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and report changes without committing them",
    )
    parser.add_argument(
        "--preview",
        metavar="HANDLE",
        help="Explain one participant's qualifying rank and exit",
    )
    args = parser.parse_args()

    configure_logging(settings.log_level)
    if args.preview:
        asyncio.run(preview(args.preview))
    else:
        asyncio.run(recompute_ranks(args.dry_run))


if __name__ == "__main__":
    main()
