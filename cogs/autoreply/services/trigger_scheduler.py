"""Per-channel countdown deciding when the bot speaks."""

import logging
import random
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import List, Optional

from ..core.config import DebugConfig, SlotConfig
from .queue_manager import QueueManager

logger = logging.getLogger(__name__)


@dataclass
class TriggerDecision:
    """Outcome of evaluating one inbound message."""
    due: bool
    counter: int
    reasons: List[str] = field(default_factory=list)


class TriggerStateStore:
    """
    Trigger counters keyed by channel.

    Least recently touched channels are evicted once ``max_channels`` is
    exceeded; an evicted channel starts over from the first trigger count.
    """

    def __init__(self, max_channels: int = 500):
        self.max_channels = max_channels
        self._counters: "OrderedDict[str, int]" = OrderedDict()

    def get(self, channel_id: str) -> Optional[int]:
        value = self._counters.get(channel_id)
        if value is not None:
            self._counters.move_to_end(channel_id)
        return value

    def set(self, channel_id: str, value: int) -> None:
        self._counters[channel_id] = value
        self._counters.move_to_end(channel_id)
        while len(self._counters) > self.max_channels:
            evicted_id, _ = self._counters.popitem(last=False)
            logger.debug(f"Evicted trigger state for channel {evicted_id}")

    def __contains__(self, channel_id: str) -> bool:
        return channel_id in self._counters

    def __len__(self) -> int:
        return len(self._counters)


class TriggerScheduler:
    """
    Hybrid deterministic/probabilistic gate for backend invocation.

    Each channel holds a counter in ``[1, max_trigger_count]``. A message
    arriving while the counter is above 1 decrements it; a message arriving
    at 1 fires. A channel also fires when its window or slot is over
    capacity, when the bot is addressed and a random draw succeeds, or when
    debug test mode is on.
    """

    def __init__(
        self,
        queue_manager: QueueManager,
        slots: SlotConfig,
        debug: Optional[DebugConfig] = None,
        state: Optional[TriggerStateStore] = None,
        rng: Optional[random.Random] = None
    ):
        self.queue_manager = queue_manager
        self.slots = slots
        self.debug = debug or DebugConfig()
        self.state = state or TriggerStateStore(slots.max_tracked_channels)
        self.rng = rng or random.Random()

    def _clamp(self, value: int) -> int:
        return max(self.slots.min_trigger_count, min(value, self.slots.max_trigger_count))

    def counter(self, channel_id: str) -> int:
        """Current counter, seeded from the first trigger count."""
        value = self.state.get(channel_id)
        if value is None:
            value = max(1, min(self.slots.first_trigger_count, self.slots.max_trigger_count))
        return value

    def step(self, channel_id: str) -> bool:
        """Count one message down. Returns True when the counter has reached 1."""
        value = self.counter(channel_id)
        if value > 1:
            value -= 1
            self.state.set(channel_id, value)
            logger.info(f"Channel {channel_id}: {value} messages until next reply")
            return False
        self.state.set(channel_id, 1)
        return True

    async def evaluate(self, channel_id: str, addressed: bool = False) -> TriggerDecision:
        """
        Decide whether the channel is due after a new message.

        Args:
            channel_id: Channel the message arrived on
            addressed: The message mentions the bot (self, everyone, or here)

        Returns:
            TriggerDecision with the reasons that made it due
        """
        reasons = []
        if self.step(channel_id):
            reasons.append("countdown")
        if await self.queue_manager.is_window_full(channel_id):
            reasons.append("window_full")
        if await self.queue_manager.is_slot_full(channel_id):
            reasons.append("slot_full")
        if addressed and self.rng.random() < self.slots.at_react_probability:
            reasons.append("mentioned")
        if self.debug.test_mode:
            reasons.append("test_mode")

        return TriggerDecision(due=bool(reasons), counter=self.counter(channel_id), reasons=reasons)

    def reset(self, channel_id: str, suggestion: Optional[int] = None) -> int:
        """
        Set the counter after an invocation and start the slot's fullness count over.

        Args:
            channel_id: Channel that was answered
            suggestion: Model-suggested countdown, clamped to the configured bounds

        Returns:
            The new counter value
        """
        if suggestion is not None:
            value = self._clamp(suggestion)
        else:
            value = self.rng.randint(self.slots.min_trigger_count, self.slots.max_trigger_count)
        self.state.set(channel_id, value)
        self.queue_manager.consume(channel_id)
        logger.info(f"Channel {channel_id}: next reply in {value} messages")
        return value
