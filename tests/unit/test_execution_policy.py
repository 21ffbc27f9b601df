"""
Unit tests for the approval execution policy.

Tests cover:
- Primary success
- Fallback on infrastructure failure only
- Fallback guard
- Both strategies failing
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from mlm_engine.services.approval.context import ApprovalContext, ApprovalPlan
from mlm_engine.services.approval.execution import ExecutionPolicy
from mlm_engine.utils.exceptions import (
    FallbackExecutionError,
    TransactionInfrastructureError,
    ValidationError,
)


@pytest.fixture
def plan():
    return ApprovalPlan(
        request_id=5,
        participant_id=1,
        package_id=1,
        balance_funded=False,
        is_renewal=False,
        is_upgrade=False,
    )


@pytest.fixture
def primary():
    strategy = MagicMock()
    strategy.run = AsyncMock()
    return strategy


@pytest.fixture
def fallback():
    strategy = MagicMock()
    strategy.run = AsyncMock()
    return strategy


class TestExecutionPolicy:
    """Test strategy selection."""

    @pytest.mark.asyncio
    async def test_primary_success(self, plan, primary, fallback):
        context = ApprovalContext(plan=plan)
        primary.run.return_value = context

        outcome = await ExecutionPolicy(primary, fallback).execute(plan)

        assert outcome.context is context
        assert outcome.used_fallback is False
        fallback.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_on_infrastructure_error(self, plan, primary, fallback):
        primary.run.side_effect = TransactionInfrastructureError("timeout", 5)
        fallback.run.return_value = ApprovalContext(plan=plan)

        outcome = await ExecutionPolicy(primary, fallback).execute(plan)

        assert outcome.used_fallback is True
        fallback.run.assert_awaited_once_with(plan)

    @pytest.mark.asyncio
    async def test_raw_operational_error_triggers_fallback(
        self, plan, primary, fallback
    ):
        primary.run.side_effect = OperationalError(
            "UPDATE", {}, Exception("database is locked")
        )
        fallback.run.return_value = ApprovalContext(plan=plan)

        outcome = await ExecutionPolicy(primary, fallback).execute(plan)

        assert outcome.used_fallback is True

    @pytest.mark.asyncio
    async def test_business_error_not_retried(self, plan, primary, fallback):
        primary.run.side_effect = ValidationError("Insufficient balance", 5)

        with pytest.raises(ValidationError):
            await ExecutionPolicy(primary, fallback).execute(plan)

        fallback.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_fallback_configured(self, plan, primary):
        primary.run.side_effect = TransactionInfrastructureError("timeout", 5)

        with pytest.raises(TransactionInfrastructureError):
            await ExecutionPolicy(primary, None).execute(plan)

    @pytest.mark.asyncio
    async def test_both_failing(self, plan, primary, fallback):
        atomic_error = TransactionInfrastructureError("timeout", 5)
        primary.run.side_effect = atomic_error
        fallback.run.side_effect = RuntimeError("still down")

        with pytest.raises(FallbackExecutionError) as exc_info:
            await ExecutionPolicy(primary, fallback).execute(plan)

        assert exc_info.value.atomic_error is atomic_error
        assert isinstance(exc_info.value.fallback_error, RuntimeError)
        assert exc_info.value.request_id == 5

    @pytest.mark.asyncio
    async def test_guard_refusal(self, plan, primary, fallback):
        primary.run.side_effect = TransactionInfrastructureError("timeout", 5)
        guard = AsyncMock(return_value=False)

        with pytest.raises(FallbackExecutionError):
            await ExecutionPolicy(primary, fallback, guard).execute(plan)

        guard.assert_awaited_once_with(plan)
        fallback.run.assert_not_awaited()
