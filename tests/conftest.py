"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from decimal import Decimal
from pathlib import Path

# Minimal environment for Settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from mlm_engine.config.rank_rules import DEFAULT_RANKS
from mlm_engine.models import (
    ApprovalRequest,
    ApprovalStatus,
    Base,
    FundingSource,
    Package,
    Participant,
)
from mlm_engine.repositories.rank_repository import RankRepository


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.refresh = AsyncMock()
    return session


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def ranks(session_maker):
    """Seed the default rank ladder; returns title -> rank ID."""
    async with session_maker() as session:
        await RankRepository(session).seed(DEFAULT_RANKS)
        await session.commit()
        ladder = await RankRepository(session).find_ordered_by_threshold()
    return {rank.title: rank.id for rank in ladder}


class DataFactory:
    """Creates committed rows for integration tests."""

    def __init__(self, session_maker, rank_ids):
        self.session_maker = session_maker
        self.rank_ids = rank_ids

    async def _add(self, entity):
        async with self.session_maker() as session:
            session.add(entity)
            await session.commit()
            await session.refresh(entity)
        return entity

    async def participant(
        self,
        handle,
        parent=None,
        points=0,
        rank=None,
        balance=Decimal("0"),
        is_active=True,
        current_package_id=None,
    ):
        return await self._add(
            Participant(
                handle=handle,
                parent_handle=parent,
                points=points,
                rank_id=self.rank_ids[rank] if rank else None,
                balance=balance,
                total_earnings=Decimal("0"),
                is_active=is_active,
                current_package_id=current_package_id,
            )
        )

    async def chain(self, *handles, **kwargs):
        """Participants where each one is referred by the previous one."""
        created = []
        parent = None
        for handle in handles:
            created.append(await self.participant(handle, parent=parent, **kwargs))
            parent = handle
        return created

    async def package(
        self,
        name="Starter",
        amount=Decimal("100"),
        direct=Decimal("10"),
        indirect=Decimal("20"),
        points=100,
        is_active=True,
    ):
        return await self._add(
            Package(
                name=name,
                amount=amount,
                direct_commission=direct,
                indirect_commission=indirect,
                reward_points=points,
                is_active=is_active,
            )
        )

    async def request(
        self, participant, package, funding_source=FundingSource.EXTERNAL
    ):
        return await self._add(
            ApprovalRequest(
                participant_id=participant.id,
                package_id=package.id,
                status=ApprovalStatus.PENDING.value,
                funding_source=funding_source.value,
            )
        )

    async def reload(self, model, id):
        async with self.session_maker() as session:
            return await session.get(model, id)


@pytest.fixture
def factory(session_maker, ranks):
    return DataFactory(session_maker, ranks)


@pytest.fixture
def make_factory(session_maker):
    """Factory builder for tests seeding their own rank ladder."""

    def build(rank_ids):
        return DataFactory(session_maker, rank_ids)

    return build
