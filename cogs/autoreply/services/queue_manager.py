"""Per-channel and per-slot message windows with mark-based dedup."""

import heapq
import logging
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional, Set

from ..core.channel_gate import ChannelGate
from ..core.config import SettingsConfig, SlotConfig
from ..models.message import ChatMessage, MarkType, is_private_channel
from ..storage.message_storage import MessageStorage

logger = logging.getLogger(__name__)


def _fold(text: str, limit: int = 200) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


class QueueManager:
    """
    Bounded message windows for channels and slots.

    A slot is a configured set of channel ids whose windows are merged into
    one time-ordered context. Every window read returns at most
    ``limit + 1`` entries. Fullness counts only the messages that arrived
    since the channel was last answered, so stored history never keeps a
    channel permanently over capacity.
    """

    def __init__(
        self,
        storage: MessageStorage,
        slots: SlotConfig,
        settings: SettingsConfig,
        gate: Optional[ChannelGate] = None
    ):
        """
        Initialize queue manager.

        Args:
            storage: Backing store for messages
            slots: Slot grouping and window size
            settings: Self-report marks and clear command
            gate: Per-channel gate shared with readers
        """
        self.storage = storage
        self.slots = slots
        self.settings = settings
        self.gate = gate or ChannelGate()
        self._marks: "OrderedDict[str, MarkType]" = OrderedDict()
        self._pending: Dict[str, int] = {}

    @property
    def slot_size(self) -> int:
        return self.slots.slot_size

    def is_channel_allowed(self, channel_id: str) -> bool:
        return self.slots.find_slot(channel_id) is not None

    # ==================== Marks ====================

    def get_mark(self, message_id: str) -> MarkType:
        return self._marks.get(message_id, MarkType.UNKNOWN)

    def set_mark(self, message_id: str, mark: MarkType) -> None:
        """Record a mark. A marked message never goes back to UNKNOWN."""
        if mark is MarkType.UNKNOWN:
            if message_id in self._marks:
                logger.debug(f"Ignoring attempt to unmark message {message_id}")
            return
        self._marks[message_id] = mark
        self._marks.move_to_end(message_id)
        while len(self._marks) > self.slots.max_tracked_marks:
            self._marks.popitem(last=False)

    # ==================== Ingestion ====================

    def _accepts(self, message: ChatMessage) -> bool:
        mark = self.get_mark(message.message_id)
        if mark is not MarkType.UNKNOWN and mark not in self.settings.self_report:
            return False
        if self.settings.clear_command and self.settings.clear_command in message.content:
            return False
        return True

    async def enqueue(self, message: ChatMessage) -> bool:
        """
        Add a message to its channel window.

        Args:
            message: Inbound message

        Returns:
            True if the message was stored, False if it was filtered out
        """
        channel_id = message.channel_id
        self.gate.begin(channel_id)
        try:
            if not self._accepts(message):
                logger.debug(f"Skipped message {message.message_id} ({self.get_mark(message.message_id).value})")
                return False
            echoed = self.get_mark(message.message_id) is not MarkType.UNKNOWN
            self.set_mark(message.message_id, MarkType.ADDED)
            message.mark = MarkType.ADDED
            await self.storage.append(message)
            if not echoed:
                self._pending[channel_id] = self._pending.get(channel_id, 0) + 1
            logger.info(f"New message queued, channel = {channel_id}, content = {_fold(message.content)}")
            return True
        finally:
            self.gate.end(channel_id)

    # ==================== Windows ====================

    async def window(self, channel_id: str, limit: int) -> List[ChatMessage]:
        """Most recent ``limit + 1`` messages of one channel, oldest first."""
        return await self.storage.recent(channel_id, limit + 1)

    async def mixed_window(self, channel_ids: Iterable[str], limit: int) -> List[ChatMessage]:
        """Merge the windows of ``channel_ids`` by timestamp, capped at ``limit + 1``."""
        windows = [await self.window(channel_id, limit) for channel_id in channel_ids]
        merged = list(heapq.merge(*windows, key=lambda m: m.timestamp))
        return merged[-(limit + 1):]

    async def slot_window(self, channel_id: str) -> List[ChatMessage]:
        """Context for a due channel: its slot's merged window."""
        await self.gate.wait(channel_id)
        slot = self.slots.find_slot(channel_id)
        if slot is None:
            return []
        return await self.mixed_window(sorted(slot), self.slot_size)

    # ==================== Fullness ====================

    def pending(self, channel_id: str) -> int:
        """Messages queued on ``channel_id`` since it was last answered."""
        return self._pending.get(channel_id, 0)

    def consume(self, channel_id: str) -> None:
        """Mark the slot of ``channel_id`` as answered; its pending counts start over."""
        slot = self.slots.find_slot(channel_id) or {channel_id}
        for member in slot:
            self._pending.pop(member, None)

    def _forget_pending(self, predicate: Callable[[str], bool]) -> None:
        for channel_id in [c for c in self._pending if predicate(c)]:
            del self._pending[channel_id]

    async def is_window_full(self, channel_id: str) -> bool:
        return self.pending(channel_id) > self.slot_size

    async def is_slot_full(self, channel_id: str) -> bool:
        slot: Optional[Set[str]] = self.slots.find_slot(channel_id)
        if slot is None:
            return False
        return sum(self.pending(member) for member in slot) > self.slot_size

    # ==================== Clearing ====================

    async def clear_channel(self, channel_id: str) -> bool:
        self._pending.pop(channel_id, None)
        cleared = await self.storage.remove_channel(channel_id)
        if cleared:
            logger.info(f"Cleared memory for channel {channel_id}")
        return cleared

    async def clear_by_sender(self, sender_id: str) -> bool:
        cleared = await self.storage.remove_sender(sender_id)
        if cleared:
            logger.info(f"Cleared memory for sender {sender_id}")
        return cleared

    async def clear_all(self) -> bool:
        """Clear every group channel. Private channels are left alone."""
        self._forget_pending(lambda c: not is_private_channel(c))
        cleared = await self.storage.remove_channels(lambda c: not is_private_channel(c))
        if cleared:
            logger.info("Cleared memory for all group channels")
        return cleared

    async def clear_private_all(self) -> bool:
        """Clear every private channel. Group channels are left alone."""
        self._forget_pending(is_private_channel)
        cleared = await self.storage.remove_channels(is_private_channel)
        if cleared:
            logger.info("Cleared memory for all private channels")
        return cleared
