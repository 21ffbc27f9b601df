"""
Package repository.

Data access layer for Package model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.package import Package
from mlm_engine.repositories.base import BaseRepository


class PackageRepository(BaseRepository[Package]):
    """Package repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize package repository."""
        super().__init__(Package, session)

    async def get_active(self) -> list[Package]:
        """Get packages available for purchase."""
        return await self.find_by(is_active=True)
