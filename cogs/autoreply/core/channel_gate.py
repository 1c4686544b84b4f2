"""Per-channel gate ordering an enqueue before the window read that follows it."""

import asyncio
import logging
from typing import Dict

logger = logging.getLogger(__name__)


class ChannelGate:
    """
    One asyncio.Event per channel.

    ``begin`` closes the gate while a message is being written, ``end`` opens
    it again, and ``wait`` parks readers until it is open. Waiters on an
    asyncio.Event are woken in the order they started waiting.
    """

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._events: Dict[str, asyncio.Event] = {}

    def _event(self, channel_id: str) -> asyncio.Event:
        event = self._events.get(channel_id)
        if event is None:
            event = asyncio.Event()
            event.set()
            self._events[channel_id] = event
        return event

    def begin(self, channel_id: str) -> None:
        self._event(channel_id).clear()

    def end(self, channel_id: str) -> None:
        self._event(channel_id).set()

    def is_open(self, channel_id: str) -> bool:
        event = self._events.get(channel_id)
        return event is None or event.is_set()

    async def wait(self, channel_id: str) -> None:
        """Block until the pending enqueue for ``channel_id`` has completed."""
        event = self._events.get(channel_id)
        if event is None or event.is_set():
            return
        try:
            await asyncio.wait_for(event.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"⚠️ Gate for channel {channel_id} still closed after {self.timeout}s, reading anyway"
            )
