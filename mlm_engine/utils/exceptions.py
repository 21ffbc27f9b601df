"""
Engine exceptions.

Defines the error taxonomy of the approval flow and categorizes raw
infrastructure exceptions by handling strategy.
"""

import asyncio

from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError


class EngineError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, request_id: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.request_id = request_id

    def with_request(self, request_id: int) -> "EngineError":
        """Attach the approval request ID unless one is already set."""
        if self.request_id is None:
            self.request_id = request_id
        return self

    def __str__(self) -> str:
        if self.request_id is not None:
            return f"{self.message} (request_id={self.request_id})"
        return self.message


class ApprovalError(EngineError):
    """Raised by the approval flow; base of all approval failures."""
    pass


class ValidationError(ApprovalError):
    """Request not pending, participant/package inactive, insufficient funds."""
    pass


class NotFoundError(ApprovalError):
    """Missing request, participant or package."""
    pass


class TransactionInfrastructureError(ApprovalError):
    """Timeout or resource contention inside the atomic attempt."""
    pass


class FallbackExecutionError(TransactionInfrastructureError):
    """The non-atomic fallback failed after the atomic attempt failed."""

    def __init__(
        self,
        atomic_error: BaseException,
        fallback_error: BaseException,
        request_id: int | None = None,
    ) -> None:
        super().__init__(
            f"Atomic attempt failed ({type(atomic_error).__name__}: {atomic_error}); "
            f"fallback failed ({type(fallback_error).__name__}: {fallback_error})",
            request_id=request_id,
        )
        self.atomic_error = atomic_error
        self.fallback_error = fallback_error


class PersistenceError(ApprovalError):
    """Storage failure while executing or finalizing an approval."""
    pass


# Exception categories based on handling strategy

# Retry without atomicity - transactional resource exhausted or contended
INFRASTRUCTURE_ERRORS = (
    TimeoutError,
    asyncio.TimeoutError,
    OperationalError,   # Lock timeouts, "database is locked", dropped connections
    PoolTimeoutError,   # Connection pool exhausted
    TransactionInfrastructureError,
)


def is_infrastructure_error(exc: BaseException) -> bool:
    """
    Check if exception is an infrastructure failure.

    Args:
        exc: Exception to check

    Returns:
        True if the operation may be re-run without atomicity
    """
    if isinstance(exc, INFRASTRUCTURE_ERRORS):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated
