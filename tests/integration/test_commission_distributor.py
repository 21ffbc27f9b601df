"""
Integration tests for commission distribution.

Uses a four-tier ladder (Base < T1 < T2 < T3) so the eligible indirect
tiers are exactly T1, T2 and T3.
"""

from decimal import Decimal

import pytest
import pytest_asyncio

from mlm_engine.config.rank_rules import RankDefinition
from mlm_engine.models import EarningKind, Participant
from mlm_engine.repositories.rank_repository import RankRepository
from mlm_engine.services.commission import CommissionDistributor
from mlm_engine.services.earnings_ledger import EarningsLedger
from mlm_engine.services.rank import RankLadder


TIER_RANKS = (
    RankDefinition("Base", 0, "Entry"),
    RankDefinition("T1", 10, "Tier one"),
    RankDefinition("T2", 20, "Tier two"),
    RankDefinition("T3", 30, "Tier three"),
)


@pytest_asyncio.fixture
async def tiers(session_maker):
    async with session_maker() as session:
        created = await RankRepository(session).seed(TIER_RANKS)
        await session.commit()
    return {rank.title: rank.id for rank in created}


@pytest.fixture
def tier_factory(make_factory, tiers):
    return make_factory(tiers)


class TestDirectCommission:
    """Test payout to the direct referrer."""

    @pytest.mark.asyncio
    async def test_referrer_paid(self, tier_factory, session):
        sponsor, buyer = await tier_factory.chain("sponsor", "buyer")
        package = await tier_factory.package(direct=Decimal("10"))

        payout = await CommissionDistributor(session).pay_direct(buyer, package, 1)
        await session.commit()

        assert payout.handle == "sponsor"
        assert payout.kind == EarningKind.DIRECT
        reloaded = await tier_factory.reload(Participant, sponsor.id)
        assert reloaded.balance == Decimal("10")
        assert reloaded.total_earnings == Decimal("10")

    @pytest.mark.asyncio
    async def test_no_referrer_direct_only_noop(self, tier_factory, session):
        buyer = await tier_factory.participant("lonely")
        package = await tier_factory.package()

        result = await CommissionDistributor(session).distribute(
            buyer, package, 1, await RankLadder.load(session)
        )

        assert result.direct is None
        assert result.indirect == []
        assert result.unclaimed is None
        assert result.total_paid == Decimal("0")

    @pytest.mark.asyncio
    async def test_missing_referrer_record_skipped(self, tier_factory, session):
        buyer = await tier_factory.participant("buyer", parent="ghost")
        package = await tier_factory.package()

        assert await CommissionDistributor(session).pay_direct(buyer, package, 1) is None

    @pytest.mark.asyncio
    async def test_zero_direct_commission_no_entry(self, tier_factory, session):
        _, buyer = await tier_factory.chain("sponsor", "buyer")
        package = await tier_factory.package(direct=Decimal("0"))

        assert await CommissionDistributor(session).pay_direct(buyer, package, 1) is None


class TestIndirectCommission:
    """Test the ascending tier fill over real ancestors."""

    @pytest.mark.asyncio
    async def test_tier_fill_example(self, tier_factory, session):
        """T1 skipped, T2 occupant paid 40, T3 unclaimed 20."""
        top = await tier_factory.participant("top", rank="T2")
        await tier_factory.participant("middle", parent="top")
        # The direct referrer's rank never counts for indirect tiers
        await tier_factory.participant("sponsor", parent="middle", rank="T1")
        buyer = await tier_factory.participant("buyer", parent="sponsor")
        package = await tier_factory.package(indirect=Decimal("20"))
        distributor = CommissionDistributor(session)

        payouts, unclaimed = await distributor.pay_indirect(
            buyer, package, 7, await RankLadder.load(session)
        )
        await session.commit()

        assert [(p.handle, p.tier, p.amount) for p in payouts] == [
            ("top", "T2", Decimal("40"))
        ]
        assert "T1" in payouts[0].description
        assert unclaimed.amount == Decimal("20")
        assert unclaimed.tiers == ("T3",)
        assert (await tier_factory.reload(Participant, top.id)).balance == Decimal("40")

    @pytest.mark.asyncio
    async def test_nearest_occupant_wins(self, tier_factory, session):
        far = await tier_factory.participant("far", rank="T1")
        near = await tier_factory.participant("near", parent="far", rank="T1")
        await tier_factory.participant("sponsor", parent="near")
        buyer = await tier_factory.participant("buyer", parent="sponsor")
        package = await tier_factory.package(indirect=Decimal("5"))

        payouts, _ = await CommissionDistributor(session).pay_indirect(
            buyer, package, 1, await RankLadder.load(session)
        )

        assert [p.participant_id for p in payouts] == [near.id]
        assert far.id not in [p.participant_id for p in payouts]

    @pytest.mark.asyncio
    async def test_only_referrer_above_buyer(self, tier_factory, session):
        _, buyer = await tier_factory.chain("sponsor", "buyer")
        package = await tier_factory.package()

        payouts, unclaimed = await CommissionDistributor(session).pay_indirect(
            buyer, package, 1, await RankLadder.load(session)
        )

        assert payouts == []
        assert unclaimed is None


class TestLedgerEntries:
    """Every payout leaves one ledger entry."""

    @pytest.mark.asyncio
    async def test_distribution_recorded_and_conserved(self, tier_factory, session):
        await tier_factory.participant("t3", rank="T3")
        await tier_factory.participant("t1", parent="t3", rank="T1")
        await tier_factory.participant("sponsor", parent="t1")
        buyer = await tier_factory.participant("buyer", parent="sponsor")
        package = await tier_factory.package(
            direct=Decimal("10"), indirect=Decimal("20")
        )

        result = await CommissionDistributor(session).distribute(
            buyer, package, 3, await RankLadder.load(session)
        )
        await session.commit()

        ledger = EarningsLedger(session)
        entries = await ledger.entries_for_request(3)
        assert len(entries) == 3
        assert await ledger.total_for_request(3) == result.total_paid
        # t1 gets T1, t3 gets T3 plus the carried T2
        assert result.indirect_total == Decimal("60")
        assert result.unclaimed is None
        assert result.direct_total + result.indirect_total + result.unclaimed_total == (
            package.direct_commission + package.indirect_commission * 3
        )

    @pytest.mark.asyncio
    async def test_totals_by_kind(self, tier_factory, session):
        sponsor, buyer = await tier_factory.chain("sponsor", "buyer")
        package = await tier_factory.package(direct=Decimal("10"))
        distributor = CommissionDistributor(session)
        await distributor.pay_direct(buyer, package, 1)
        await distributor.pay_direct(buyer, package, 2)
        await session.commit()

        totals = await EarningsLedger(session).totals_for_participant(sponsor.id)

        assert totals == {
            "direct": Decimal("20"),
            "indirect": Decimal("0"),
            "total": Decimal("20"),
        }
