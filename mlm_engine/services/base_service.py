"""
Base service class.

Provides common functionality for all service classes: session access
and a logger bound to the service name.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession


class BaseService:
    """
    Base service class.

    Services never commit: the caller (approval orchestrator or batch
    script) owns the transaction boundary.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
        """
        self.session = session
        self.logger = logger.bind(service=self.__class__.__name__)
