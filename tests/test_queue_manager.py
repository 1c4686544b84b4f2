"""Tests for QueueManager: marks, windows, slots and clearing."""

import pytest

from cogs.autoreply.models.message import MarkType

from .conftest import GROUP_A, GROUP_B, LONELY, PRIVATE, make_message


# ---------------------------------------------------------------------------
# enqueue
# ---------------------------------------------------------------------------

class TestEnqueue:
    @pytest.mark.asyncio
    async def test_new_message_is_stored_and_marked(self, queue_manager):
        msg = make_message()
        assert await queue_manager.enqueue(msg) is True
        assert queue_manager.get_mark(msg.message_id) is MarkType.ADDED
        assert await queue_manager.window(GROUP_A, 3) == [msg]

    @pytest.mark.asyncio
    async def test_enqueue_is_idempotent(self, queue_manager):
        msg = make_message()
        await queue_manager.enqueue(msg)
        assert await queue_manager.enqueue(msg) is False
        assert len(await queue_manager.window(GROUP_A, 3)) == 1

    @pytest.mark.asyncio
    async def test_command_mark_outside_self_report_is_rejected(self, queue_manager):
        msg = make_message(content="!ping")
        queue_manager.set_mark(msg.message_id, MarkType.COMMAND)
        assert await queue_manager.enqueue(msg) is False
        assert await queue_manager.window(GROUP_A, 3) == []

    @pytest.mark.asyncio
    async def test_self_reported_mark_is_accepted_once(self, queue_manager):
        msg = make_message(content="bot reply")
        queue_manager.set_mark(msg.message_id, MarkType.LLM)
        assert await queue_manager.enqueue(msg) is True
        assert await queue_manager.enqueue(msg) is False

    @pytest.mark.asyncio
    async def test_clear_command_is_never_stored(self, queue_manager):
        assert await queue_manager.enqueue(make_message(content="!clearmemory -target all")) is False

    @pytest.mark.asyncio
    async def test_gate_is_open_after_enqueue(self, queue_manager):
        await queue_manager.enqueue(make_message())
        assert queue_manager.gate.is_open(GROUP_A)


class TestMarks:
    def test_unknown_never_overwrites(self, queue_manager):
        queue_manager.set_mark("x", MarkType.LLM)
        queue_manager.set_mark("x", MarkType.UNKNOWN)
        assert queue_manager.get_mark("x") is MarkType.LLM

    def test_oldest_marks_are_evicted(self, queue_manager):
        queue_manager.slots.max_tracked_marks = 2
        for message_id in ("a", "b", "c"):
            queue_manager.set_mark(message_id, MarkType.ADDED)
        assert queue_manager.get_mark("a") is MarkType.UNKNOWN
        assert queue_manager.get_mark("c") is MarkType.ADDED


# ---------------------------------------------------------------------------
# windows
# ---------------------------------------------------------------------------

class TestWindows:
    @pytest.mark.asyncio
    async def test_window_is_capped_and_ascending(self, queue_manager):
        messages = [make_message(minutes=m) for m in (5, 1, 4, 2, 3, 6)]
        for msg in messages:
            await queue_manager.enqueue(msg)
        window = await queue_manager.window(GROUP_A, 3)
        assert len(window) == 4
        stamps = [m.timestamp for m in window]
        assert stamps == sorted(stamps)
        assert window[-1].timestamp == max(m.timestamp for m in messages)

    @pytest.mark.asyncio
    async def test_mixed_window_merges_by_time(self, queue_manager):
        a1 = make_message(GROUP_A, minutes=1)
        b1 = make_message(GROUP_B, minutes=2)
        a2 = make_message(GROUP_A, minutes=3)
        for msg in (a2, b1, a1):
            await queue_manager.enqueue(msg)
        window = await queue_manager.mixed_window([GROUP_A, GROUP_B], 3)
        assert [m.message_id for m in window] == [a1.message_id, b1.message_id, a2.message_id]

    @pytest.mark.asyncio
    async def test_slot_window_never_exceeds_slot_size_plus_one(self, queue_manager):
        for i in range(5):
            await queue_manager.enqueue(make_message(GROUP_A))
            await queue_manager.enqueue(make_message(GROUP_B))
        window = await queue_manager.slot_window(GROUP_A)
        assert len(window) == queue_manager.slot_size + 1

    @pytest.mark.asyncio
    async def test_fullness(self, queue_manager):
        for i in range(3):
            await queue_manager.enqueue(make_message(GROUP_A))
        assert not await queue_manager.is_window_full(GROUP_A)
        await queue_manager.enqueue(make_message(GROUP_B))
        assert await queue_manager.is_slot_full(GROUP_A)
        await queue_manager.enqueue(make_message(GROUP_A))
        assert await queue_manager.is_window_full(GROUP_A)

    @pytest.mark.asyncio
    async def test_fullness_starts_over_when_slot_is_consumed(self, queue_manager):
        for i in range(5):
            await queue_manager.enqueue(make_message(GROUP_A))
        assert await queue_manager.is_window_full(GROUP_A)
        queue_manager.consume(GROUP_B)
        assert queue_manager.pending(GROUP_A) == 0
        assert not await queue_manager.is_window_full(GROUP_A)
        assert not await queue_manager.is_slot_full(GROUP_A)
        assert len(await queue_manager.window(GROUP_A, 3)) == 4

    @pytest.mark.asyncio
    async def test_self_reported_echo_is_not_pending(self, queue_manager):
        queue_manager.set_mark("own", MarkType.LLM)
        assert await queue_manager.enqueue(make_message(GROUP_A, message_id="own")) is True
        assert queue_manager.pending(GROUP_A) == 0

    def test_channel_outside_slots_is_not_allowed(self, queue_manager):
        assert queue_manager.is_channel_allowed(GROUP_A)
        assert not queue_manager.is_channel_allowed("999")


# ---------------------------------------------------------------------------
# clearing
# ---------------------------------------------------------------------------

class TestClearing:
    @pytest.mark.asyncio
    async def test_clear_all_keeps_private(self, queue_manager):
        await queue_manager.enqueue(make_message(GROUP_A))
        await queue_manager.enqueue(make_message(PRIVATE))
        assert await queue_manager.clear_all() is True
        assert await queue_manager.window(GROUP_A, 3) == []
        assert len(await queue_manager.window(PRIVATE, 3)) == 1

    @pytest.mark.asyncio
    async def test_clear_private_all_keeps_groups(self, queue_manager):
        await queue_manager.enqueue(make_message(LONELY))
        await queue_manager.enqueue(make_message(PRIVATE))
        assert await queue_manager.clear_private_all() is True
        assert await queue_manager.window(PRIVATE, 3) == []
        assert len(await queue_manager.window(LONELY, 3)) == 1

    @pytest.mark.asyncio
    async def test_clear_by_sender(self, queue_manager):
        await queue_manager.enqueue(make_message(GROUP_A, sender_id="1"))
        await queue_manager.enqueue(make_message(GROUP_B, sender_id="2"))
        assert await queue_manager.clear_by_sender("1") is True
        assert await queue_manager.window(GROUP_A, 3) == []
        assert len(await queue_manager.window(GROUP_B, 3)) == 1

    @pytest.mark.asyncio
    async def test_clear_empty_channel_reports_false(self, queue_manager):
        assert await queue_manager.clear_channel(GROUP_A) is False
