"""Tests for TriggerScheduler countdown, firing reasons and reset."""

import random

import pytest

from cogs.autoreply.core.config import DebugConfig
from cogs.autoreply.services.trigger_scheduler import TriggerScheduler, TriggerStateStore

from .conftest import GROUP_A, GROUP_B, LONELY, make_message


class FixedRandom(random.Random):
    """random() and randint() return preset values."""

    def __init__(self, value: float = 0.99, integer: int = None):
        super().__init__(0)
        self.value = value
        self.integer = integer

    def random(self):
        return self.value

    def randint(self, a, b):
        return self.integer if self.integer is not None else a


@pytest.fixture
def scheduler(queue_manager, slots):
    return TriggerScheduler(queue_manager, slots, rng=FixedRandom())


class TestCountdown:
    def test_counter_starts_at_first_trigger_count(self, scheduler):
        assert scheduler.counter(GROUP_A) == 2

    def test_step_decrements_then_fires_at_one(self, scheduler):
        assert scheduler.step(GROUP_A) is False
        assert scheduler.counter(GROUP_A) == 1
        assert scheduler.step(GROUP_A) is True
        assert scheduler.counter(GROUP_A) == 1

    def test_counter_never_reaches_zero(self, scheduler, slots):
        scheduler.reset(GROUP_A, slots.max_trigger_count)
        for _ in range(10):
            scheduler.step(GROUP_A)
            assert 1 <= scheduler.counter(GROUP_A) <= slots.max_trigger_count

    def test_decrements_by_exactly_one(self, scheduler):
        scheduler.reset(GROUP_A, 4)
        values = []
        for _ in range(3):
            scheduler.step(GROUP_A)
            values.append(scheduler.counter(GROUP_A))
        assert values == [3, 2, 1]


class TestReset:
    def test_suggestion_is_clamped(self, scheduler, slots):
        assert scheduler.reset(GROUP_A, 100) == slots.max_trigger_count
        assert scheduler.reset(GROUP_A, -5) == slots.min_trigger_count

    def test_no_suggestion_draws_in_bounds(self, queue_manager, slots):
        scheduler = TriggerScheduler(queue_manager, slots, rng=FixedRandom(integer=3))
        assert scheduler.reset(GROUP_A) == 3

    def test_default_rng_stays_in_bounds(self, queue_manager, slots):
        scheduler = TriggerScheduler(queue_manager, slots, rng=random.Random(7))
        for _ in range(20):
            assert slots.min_trigger_count <= scheduler.reset(GROUP_A) <= slots.max_trigger_count


class TestEvaluate:
    @pytest.mark.asyncio
    async def test_not_due_while_counting_down(self, scheduler, queue_manager):
        await queue_manager.enqueue(make_message(GROUP_A))
        decision = await scheduler.evaluate(GROUP_A)
        assert decision.due is False
        assert decision.counter == 1

    @pytest.mark.asyncio
    async def test_due_when_countdown_reaches_one(self, scheduler):
        await scheduler.evaluate(GROUP_A)
        decision = await scheduler.evaluate(GROUP_A)
        assert decision.due is True
        assert "countdown" in decision.reasons

    @pytest.mark.asyncio
    async def test_due_when_slot_is_full(self, scheduler, queue_manager):
        scheduler.reset(GROUP_A, 4)
        for channel in (GROUP_A, GROUP_B, GROUP_B, GROUP_B):
            await queue_manager.enqueue(make_message(channel))
        decision = await scheduler.evaluate(GROUP_A)
        assert decision.due is True
        assert decision.reasons == ["slot_full"]

    @pytest.mark.asyncio
    async def test_reset_suppresses_again_with_long_history(self, scheduler, queue_manager, slots):
        for _ in range(slots.slot_size * 3):
            await queue_manager.enqueue(make_message(LONELY))
        scheduler.reset(LONELY, 4)

        decisions = []
        for _ in range(4):
            await queue_manager.enqueue(make_message(LONELY))
            decisions.append((await scheduler.evaluate(LONELY)).due)

        assert decisions == [False, False, False, True]

    @pytest.mark.asyncio
    async def test_mention_fires_when_draw_succeeds(self, queue_manager, slots):
        scheduler = TriggerScheduler(queue_manager, slots, rng=FixedRandom(value=0.1))
        scheduler.reset(GROUP_A, 4)
        decision = await scheduler.evaluate(GROUP_A, addressed=True)
        assert decision.reasons == ["mentioned"]

    @pytest.mark.asyncio
    async def test_mention_ignored_when_draw_fails(self, scheduler):
        scheduler.reset(GROUP_A, 4)
        decision = await scheduler.evaluate(GROUP_A, addressed=True)
        assert decision.due is False

    @pytest.mark.asyncio
    async def test_test_mode_always_fires(self, queue_manager, slots):
        scheduler = TriggerScheduler(queue_manager, slots, DebugConfig(test_mode=True), rng=FixedRandom())
        scheduler.reset(GROUP_A, 4)
        decision = await scheduler.evaluate(GROUP_A)
        assert decision.reasons == ["test_mode"]


class TestStateStore:
    def test_least_recent_channel_is_evicted(self):
        store = TriggerStateStore(max_channels=2)
        store.set("a", 3)
        store.set("b", 3)
        store.get("a")
        store.set("c", 3)
        assert "b" not in store
        assert "a" in store
        assert len(store) == 2

    def test_evicted_channel_restarts(self, queue_manager, slots):
        scheduler = TriggerScheduler(
            queue_manager, slots, state=TriggerStateStore(max_channels=1), rng=FixedRandom()
        )
        scheduler.reset(GROUP_A, 4)
        scheduler.reset(GROUP_B, 4)
        assert scheduler.counter(GROUP_A) == slots.first_trigger_count
