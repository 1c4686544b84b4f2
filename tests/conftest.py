"""Shared fixtures for the auto-reply tests."""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from cogs.autoreply.core.channel_gate import ChannelGate
from cogs.autoreply.core.config import SettingsConfig, SlotConfig
from cogs.autoreply.models.message import ChatMessage, MarkType
from cogs.autoreply.services.queue_manager import QueueManager
from cogs.autoreply.storage.message_storage import MessageStorage

GROUP_A = "100"
GROUP_B = "200"
LONELY = "300"
PRIVATE = "private:42"

BASE_TIME = datetime(2024, 12, 16, 12, 0, tzinfo=timezone.utc)

_ids = count(1)


def make_message(channel_id: str = GROUP_A, content: str = "hello", *, sender_id: str = "7",
                 sender_name: str = "alice", minutes: int = None, message_id: str = None) -> ChatMessage:
    """Build a message; timestamps advance one minute per message unless given."""
    n = next(_ids)
    return ChatMessage(
        message_id=message_id or f"m{n}",
        channel_id=channel_id,
        sender_id=sender_id,
        content=content,
        timestamp=BASE_TIME + timedelta(minutes=n if minutes is None else minutes),
        sender_name=sender_name,
    )


@pytest.fixture
def slots():
    return SlotConfig(
        slot_contains=[{GROUP_A, GROUP_B}, {LONELY}, {PRIVATE}],
        slot_size=3,
        first_trigger_count=2,
        min_trigger_count=2,
        max_trigger_count=4,
        at_react_probability=0.5,
    )


@pytest.fixture
def settings():
    return SettingsConfig(self_report={MarkType.LLM}, clear_command="clearmemory")


@pytest.fixture
def storage(tmp_path):
    return MessageStorage(str(tmp_path / "store"), persist=False)


@pytest.fixture
def queue_manager(storage, slots, settings):
    return QueueManager(storage, slots, settings, ChannelGate(timeout=0.5))
