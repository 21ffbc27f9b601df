"""
Approval request validation and claim.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.approval_request import ApprovalRequest
from mlm_engine.models.enums import ApprovalStatus
from mlm_engine.models.package import Package
from mlm_engine.models.participant import Participant
from mlm_engine.repositories.approval_request_repository import (
    ApprovalRequestRepository,
)
from mlm_engine.repositories.package_repository import PackageRepository
from mlm_engine.repositories.participant_repository import (
    ParticipantRepository,
)
from mlm_engine.services.approval.context import ApprovalPlan
from mlm_engine.services.earnings_ledger import EarningsLedger
from mlm_engine.utils.db_decorators import with_rollback_on_error
from mlm_engine.utils.exceptions import NotFoundError, ValidationError


def eligibility_problem(
    request: ApprovalRequest, participant: Participant, package: Package
) -> str | None:
    """
    Check whether a pending request may be approved.

    Returns:
        Rejection reason, or None if eligible
    """
    if not participant.is_active:
        return f"Participant {participant.handle} is not active"
    if not package.is_active:
        return f"Package {package.name} is not active"
    if request.is_balance_funded and participant.balance < package.amount:
        return (
            f"Insufficient balance: {participant.balance} available, "
            f"{package.amount} required"
        )
    return None


async def _renewal_flags(
    session: AsyncSession, participant: Participant, package: Package
) -> tuple[bool, bool]:
    """(is_renewal, is_upgrade) of buying ``package``."""
    current_id = participant.current_package_id
    if current_id is None:
        return False, False
    if current_id == package.id:
        return True, False
    current = await PackageRepository(session).get_by_id(current_id)
    return False, current is not None and package.amount > current.amount


async def _fail(
    session: AsyncSession, request_id: int, note: str
) -> None:
    await ApprovalRequestRepository(session).set_status(
        request_id, ApprovalStatus.FAILED, note=note, expected=ApprovalStatus.PENDING
    )
    await session.commit()


@with_rollback_on_error
async def load_and_claim(session: AsyncSession, request_id: int) -> ApprovalPlan:
    """
    Validate a request and claim it for processing.

    Ineligible requests are moved to ``rejected`` and requests whose
    participant or package no longer exist to ``failed``. A request that
    is not pending is left untouched. The claim is committed before
    returning.

    Args:
        session: Session used for loading and the claim
        request_id: Approval request ID

    Returns:
        ApprovalPlan of the claimed request

    Raises:
        NotFoundError: Request, participant or package missing
        ValidationError: Request not pending, ineligible, or claimed by
            a concurrent caller
    """
    request_repo = ApprovalRequestRepository(session)

    request = await request_repo.get_by_id(request_id, refresh=True)
    if request is None:
        raise NotFoundError("Approval request not found", request_id)
    if not request.is_pending:
        raise ValidationError(
            f"Request is not pending (status: {request.status})", request_id
        )

    participant = await ParticipantRepository(session).get_by_id(
        request.participant_id
    )
    if participant is None:
        await _fail(session, request_id, "Participant not found")
        raise NotFoundError("Participant not found", request_id)

    package = await PackageRepository(session).get_by_id(request.package_id)
    if package is None:
        await _fail(session, request_id, "Package not found")
        raise NotFoundError("Package not found", request_id)

    problem = eligibility_problem(request, participant, package)
    if problem:
        await request_repo.set_status(
            request_id,
            ApprovalStatus.REJECTED,
            note=problem,
            expected=ApprovalStatus.PENDING,
        )
        await session.commit()
        logger.info(
            "Approval request rejected",
            extra={"request_id": request_id, "reason": problem},
        )
        raise ValidationError(problem, request_id)

    if await EarningsLedger(session).has_payouts(request_id):
        raise ValidationError(
            "Payouts already recorded for this request", request_id
        )

    is_renewal, is_upgrade = await _renewal_flags(session, participant, package)

    if not await request_repo.claim(request_id):
        raise ValidationError(
            "Request was claimed by another approval", request_id
        )
    await session.commit()

    return ApprovalPlan(
        request_id=request_id,
        participant_id=participant.id,
        package_id=package.id,
        balance_funded=request.is_balance_funded,
        is_renewal=is_renewal,
        is_upgrade=is_upgrade,
    )
