"""
Integration tests for rank qualification.

Tests cover:
- Base tier assignment and idempotent recompute
- Points-only promotion
- Downline line requirements (single streamed walk)
- Preview reports
- Bottom-to-top batch resync
"""

import pytest

from mlm_engine.models import Participant
from mlm_engine.services.rank import (
    RankIs,
    RankLadder,
    RankQualificationEngine,
    requires,
)
from mlm_engine.services.referral.graph import ReferralGraph


async def rank_of(factory, participant):
    reloaded = await factory.reload(Participant, participant.id)
    return reloaded.rank_id


class TestRecomputeRank:
    """Test single-participant recompute."""

    @pytest.mark.asyncio
    async def test_zero_points_gets_base_tier(self, factory, ranks, session):
        participant = await factory.participant("new")

        title = await RankQualificationEngine(session).recompute_rank(participant.id)
        await session.commit()

        assert title == "Consultant"
        assert await rank_of(factory, participant) == ranks["Consultant"]

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, factory, session):
        participant = await factory.participant("steady", points=1500)
        engine = RankQualificationEngine(session)

        first = await engine.recompute_rank(participant.id)
        second = await engine.recompute_rank(participant.id)

        assert first == second == "Manager"

    @pytest.mark.asyncio
    async def test_points_only_promotion(self, factory, ranks, session):
        participant = await factory.participant("climber", rank="Consultant")
        engine = RankQualificationEngine(session)
        assert await engine.recompute_rank(participant.id) == "Consultant"

        participant.points = 2000
        async with factory.session_maker() as other:
            await other.merge(participant)
            await other.commit()

        assert await engine.recompute_rank(participant.id) == "Sapphire Manager"
        await session.commit()
        assert await rank_of(factory, participant) == ranks["Sapphire Manager"]

    @pytest.mark.asyncio
    async def test_missing_participant(self, factory, session):
        assert await RankQualificationEngine(session).recompute_rank(999) is None


class TestHigherRankRequirements:
    """Test downline-shape requirements."""

    async def _diamond_candidate(self, factory, qualifying_lines, depth=1):
        root = await factory.participant("root", points=8000)
        for i in range(3):
            parent = "root"
            for level in range(depth):
                handle = f"line{i}-{level}"
                is_bottom = level == depth - 1
                points = 2000 if is_bottom and i < qualifying_lines else 0
                await factory.participant(handle, parent=parent, points=points)
                parent = handle
        return root

    @pytest.mark.asyncio
    async def test_three_qualifying_lines_make_diamond(self, factory, session):
        root = await self._diamond_candidate(factory, qualifying_lines=3)

        assert await RankQualificationEngine(session).recompute_rank(root.id) == "Diamond"

    @pytest.mark.asyncio
    async def test_qualifying_member_deep_in_line(self, factory, session):
        root = await self._diamond_candidate(factory, qualifying_lines=3, depth=4)

        assert await RankQualificationEngine(session).recompute_rank(root.id) == "Diamond"

    @pytest.mark.asyncio
    async def test_two_lines_fall_back_to_points_rank(self, factory, session):
        root = await self._diamond_candidate(factory, qualifying_lines=2)

        title = await RankQualificationEngine(session).recompute_rank(root.id)

        assert title == "Sapphire Manager"

    @pytest.mark.asyncio
    async def test_points_alone_without_requirements(self, factory, session):
        root = await factory.participant("root", points=8000)

        engine = RankQualificationEngine(session, requirements={})

        assert await engine.recompute_rank(root.id) == "Diamond"

    @pytest.mark.asyncio
    async def test_downline_streamed_once_for_all_tiers(self, factory, session):
        await factory.participant("root", points=60000)
        for i in range(3):
            await factory.participant(f"mid{i}", parent="root")
            await factory.participant(f"leaf{i}", parent=f"mid{i}", points=2000)

        graph = ReferralGraph(session)
        real_lines = graph.descendant_lines
        walks = []

        def counted_lines(handle):
            walks.append(handle)
            return real_lines(handle)

        async def materialized(handle):
            raise AssertionError(f"downline of {handle} built as a list")

        graph.descendant_lines = counted_lines
        graph.all_descendant_lines = materialized

        report = await RankQualificationEngine(session, graph=graph).preview_rank("root")

        assert report.rank_title == "Diamond"
        assert report.total_lines == 3
        assert walks == ["root"]
        checked = [c.title for c in report.checks if c.requirement is not None]
        assert checked == ["Ambassador", "Sapphire Diamond", "Diamond"]

    @pytest.mark.asyncio
    async def test_exact_rank_criterion(self, factory, session):
        root = await factory.participant("root", points=1000)
        await factory.participant("kid", parent="root", rank="Diamond")
        requirements = {"Manager": requires("Manager", [(1, RankIs("Ambassador"))])}

        engine = RankQualificationEngine(session, requirements=requirements)

        assert await engine.recompute_rank(root.id) == "Consultant"


class TestPreviewRank:
    """Test the explanation report."""

    @pytest.mark.asyncio
    async def test_preview_explains_without_writing(self, factory, session):
        root = await factory.participant("root", points=8000)
        await factory.participant("kid", parent="root", points=2000)

        report = await RankQualificationEngine(session).preview_rank("root")

        assert report.rank_title == "Sapphire Manager"
        assert report.total_lines == 1
        diamond = next(c for c in report.checks if c.title == "Diamond")
        assert not diamond.qualifies
        assert "1/3 lines with 2000+ points" in diamond.reason
        assert report.changed
        assert await rank_of(factory, root) is None

    @pytest.mark.asyncio
    async def test_preview_unknown_handle(self, factory, session):
        assert await RankQualificationEngine(session).preview_rank("nobody") is None

    @pytest.mark.asyncio
    async def test_empty_ladder(self, session):
        engine = RankQualificationEngine(session)
        participant = Participant(id=1, handle="solo", points=0, rank_id=None)

        report = await engine.evaluate(participant, RankLadder([]))

        assert report.rank is None


class TestRecomputeAll:
    """Test the deepest-first batch resync."""

    @pytest.mark.asyncio
    async def test_downline_ranks_settled_before_upline(self, factory, ranks, session):
        root = await factory.participant("root", points=24000)
        for i in range(3):
            await factory.participant(f"leader{i}", parent="root", points=8000)
            for j in range(3):
                await factory.participant(
                    f"member{i}{j}", parent=f"leader{i}", points=2000
                )

        summary = await RankQualificationEngine(session).recompute_all()
        await session.commit()

        assert summary.total == 13
        assert len(summary.upgrades) == 13
        assert summary.downgrades == []
        assert await rank_of(factory, root) == ranks["Sapphire Diamond"]

    @pytest.mark.asyncio
    async def test_second_resync_changes_nothing(self, factory, session):
        await factory.chain("a", "b", points=1000)
        engine = RankQualificationEngine(session)

        await engine.recompute_all()
        summary = await engine.recompute_all()

        assert summary.unchanged == 2
        assert summary.upgrades == []

    @pytest.mark.asyncio
    async def test_downgrade_reported(self, factory, session):
        await factory.participant("demoted", points=0, rank="Manager")

        summary = await RankQualificationEngine(session).recompute_all()

        assert summary.downgrades == [("demoted", "Manager", "Consultant")]
