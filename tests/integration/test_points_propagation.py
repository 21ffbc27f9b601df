"""Integration tests for reward points propagation."""

import pytest

from mlm_engine.models import Participant
from mlm_engine.repositories.participant_repository import ParticipantRepository
from mlm_engine.services.points_propagator import PointsPropagator


class TestPointsPropagation:
    """Test crediting points along the ancestor chain."""

    @pytest.mark.asyncio
    async def test_buyer_and_every_ancestor_credited_once(self, factory, session):
        a, b, c = await factory.chain("a", "b", "c")

        result = await PointsPropagator(session).add_points("c", 100)
        await session.commit()

        assert result.handles == ["c", "b", "a"]
        assert result.credited_count == 3
        for participant in (a, b, c):
            reloaded = await factory.reload(Participant, participant.id)
            assert reloaded.points == 100

    @pytest.mark.asyncio
    async def test_cycle_credits_each_participant_once(self, factory, session):
        x = await factory.participant("x", parent="y")
        y = await factory.participant("y", parent="x")
        await factory.participant("buyer", parent="x")

        result = await PointsPropagator(session).add_points("buyer", 10)
        await session.commit()

        assert result.credited_count == 3
        assert (await factory.reload(Participant, x.id)).points == 10
        assert (await factory.reload(Participant, y.id)).points == 10

    @pytest.mark.asyncio
    async def test_depth_cap_limits_credits(self, factory, session):
        names = [f"p{i:02d}" for i in range(13)]
        created = await factory.chain(*names)

        result = await PointsPropagator(session, max_depth=10).add_points(names[-1], 5)
        await session.commit()

        assert result.credited_count == 11
        assert (await factory.reload(Participant, created[0].id)).points == 0

    @pytest.mark.asyncio
    async def test_zero_points_is_noop(self, factory, session):
        buyer = await factory.participant("buyer")

        result = await PointsPropagator(session).add_points("buyer", 0)

        assert result.credited_count == 0
        assert (await factory.reload(Participant, buyer.id)).points == 0

    @pytest.mark.asyncio
    async def test_negative_points_rejected(self, factory, session):
        await factory.participant("buyer")

        with pytest.raises(ValueError):
            await PointsPropagator(session).add_points("buyer", -1)


class TestConcurrentIncrements:
    """Increments are applied in SQL, never from a stale read."""

    @pytest.mark.asyncio
    async def test_two_propagations_to_same_ancestor(self, factory, session_maker):
        root = await factory.participant("root")
        await factory.participant("left", parent="root")
        await factory.participant("right", parent="root")

        async with session_maker() as first, session_maker() as second:
            # Both sessions hold the ancestor as loaded before any increment
            stale_first = await ParticipantRepository(first).get_by_handle("root")
            stale_second = await ParticipantRepository(second).get_by_handle("root")
            assert stale_first.points == stale_second.points == 0

            await PointsPropagator(first).add_points("left", 50)
            await first.commit()

            await PointsPropagator(second).add_points("right", 50)
            await second.commit()

        assert (await factory.reload(Participant, root.id)).points == 100
