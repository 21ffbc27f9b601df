"""
Base repository.

Generic data access for all engine repositories. Numeric counters are
mutated only through SQL-side increments so that concurrent approvals
touching the same row never lose an update.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.base import Base

# Generic type for model
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with generic async operations.

    Type Parameters:
        ModelType: SQLAlchemy model class

    Example:
        class RankRepository(BaseRepository[Rank]):
            def __init__(self, session: AsyncSession):
                super().__init__(Rank, session)
    """

    def __init__(
        self, model: type[ModelType], session: AsyncSession
    ) -> None:
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def get_by_id(
        self, id: int, refresh: bool = False
    ) -> ModelType | None:
        """
        Get entity by ID.

        Args:
            id: Entity ID
            refresh: Reload column values even if the entity is already
                in the identity map

        Returns:
            Entity or None if not found
        """
        return await self.session.get(
            self.model, id, populate_existing=refresh
        )

    async def get_by(self, **filters: Any) -> ModelType | None:
        """
        Get single entity by filters.

        Args:
            **filters: Column filters

        Returns:
            Matching entity or None
        """
        stmt = select(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by(self, **filters: Any) -> list[ModelType]:
        """
        Find entities by filters, ordered by primary key.

        Args:
            **filters: Column filters

        Returns:
            List of matching entities
        """
        stmt = (
            select(self.model)
            .filter_by(**filters)
            .order_by(self.model.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **data: Any) -> ModelType:
        """
        Create new entity.

        Args:
            **data: Entity data

        Returns:
            Created entity
        """
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(self, id: int, **data: Any) -> ModelType | None:
        """
        Set fields on an entity by ID.

        Args:
            id: Entity ID
            **data: Field values to assign

        Returns:
            Updated entity or None if not found
        """
        entity = await self.get_by_id(id)
        if not entity:
            return None

        for key, value in data.items():
            setattr(entity, key, value)

        await self.session.flush()
        return entity

    async def increment(self, id: int, **deltas: Any) -> bool:
        """
        Atomically add deltas to numeric columns (``col = col + :delta``).

        The addition happens inside the UPDATE statement, never as
        read-then-write, so concurrent increments are all preserved.
        In-session instances are synchronized with the stored values.

        Args:
            id: Entity ID
            **deltas: Column name to amount to add

        Returns:
            True if a row was updated, False if not found
        """
        if not deltas:
            return False

        values = {
            getattr(self.model, column): getattr(self.model, column) + delta
            for column, delta in deltas.items()
        }
        stmt = (
            update(self.model)
            .where(self.model.id == id)
            .values(values)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def count(self, **filters: Any) -> int:
        """
        Count entities matching filters.

        Args:
            **filters: Column filters

        Returns:
            Count of matching entities
        """
        stmt = select(func.count()).select_from(self.model)

        if filters:
            stmt = stmt.filter_by(**filters)

        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def exists(self, **filters: Any) -> bool:
        """
        Check if entity exists.

        Args:
            **filters: Column filters

        Returns:
            True if exists, False otherwise
        """
        return await self.count(**filters) > 0
