"""JSON-based persistent storage for channel message windows."""

import json
import asyncio
import bisect
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional
from datetime import datetime
import logging

from ..models.message import ChatMessage
from .serializers import serialize_message, deserialize_message

logger = logging.getLogger(__name__)


class MessageStorage:
    """
    Backing store for queued chat messages.

    Messages are kept per channel in timestamp order in an in-memory cache
    and mirrored to a single JSON file when persistence is enabled.
    """

    def __init__(
        self,
        storage_dir: str = "data/autoreply",
        persist: bool = True,
        max_messages_per_channel: int = 1000
    ):
        """
        Initialize storage with a directory path.

        Args:
            storage_dir: Directory to store the JSON message file
            persist: Mirror the cache to disk after each change
            max_messages_per_channel: Oldest messages beyond this are dropped
        """
        self.persist = persist
        self.max_messages_per_channel = max_messages_per_channel
        self.storage_dir = Path(storage_dir)
        self.messages_file = self.storage_dir / "messages.json"
        self._channels: Dict[str, List[ChatMessage]] = {}

        if self.persist:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            self._channels = self._load_all_messages()

    def _load_all_messages(self) -> Dict[str, List[ChatMessage]]:
        """Load all channel messages from disk."""
        if not self.messages_file.exists():
            return {}
        try:
            with open(self.messages_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            channels = {}
            for channel_id, items in data.items():
                messages = [deserialize_message(item) for item in items]
                messages.sort(key=lambda m: m.timestamp)
                channels[str(channel_id)] = messages
            logger.info(f"Loaded {sum(len(m) for m in channels.values())} stored messages")
            return channels
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed to load stored messages: {e}")
            return {}

    def _sync_save(self, snapshot: Dict[str, List[Dict]]) -> None:
        """Synchronous version of save for use in executor."""
        try:
            with open(self.messages_file, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Sync save failed for {self.messages_file}: {e}")

    async def _save(self) -> None:
        if not self.persist:
            return
        snapshot = {
            channel_id: [serialize_message(m) for m in messages]
            for channel_id, messages in self._channels.items()
        }
        # Run file I/O in thread pool to avoid blocking
        await asyncio.get_event_loop().run_in_executor(None, self._sync_save, snapshot)

    async def append(self, message: ChatMessage) -> None:
        """Insert a message into its channel, keeping timestamp order."""
        messages = self._channels.setdefault(message.channel_id, [])
        bisect.insort(messages, message, key=lambda m: m.timestamp)

        while len(messages) > self.max_messages_per_channel:
            messages.pop(0)

        await self._save()

    async def recent(self, channel_id: str, limit: int) -> List[ChatMessage]:
        """
        Get the newest messages of a channel.

        Args:
            channel_id: Channel to read
            limit: Maximum number of messages

        Returns:
            Up to ``limit`` messages, oldest first
        """
        if limit <= 0:
            return []
        return list(self._channels.get(channel_id, [])[-limit:])

    async def channel_ids(self) -> List[str]:
        return [c for c, messages in self._channels.items() if messages]

    async def remove_channel(self, channel_id: str) -> bool:
        """Drop every message of a channel. Returns whether anything was removed."""
        removed = bool(self._channels.pop(channel_id, None))
        if removed:
            await self._save()
        return removed

    async def remove_channels(self, predicate: Callable[[str], bool]) -> bool:
        """Drop every channel whose id matches ``predicate``."""
        targets = [c for c, messages in self._channels.items() if messages and predicate(c)]
        for channel_id in targets:
            del self._channels[channel_id]
        if targets:
            await self._save()
        return bool(targets)

    async def remove_sender(self, sender_id: str) -> bool:
        """Drop every message sent by ``sender_id`` in any channel."""
        removed = 0
        for channel_id, messages in self._channels.items():
            kept = [m for m in messages if m.sender_id != sender_id]
            removed += len(messages) - len(kept)
            self._channels[channel_id] = kept
        if removed:
            await self._save()
        return removed > 0

    def _scoped(self, channel_ids: Optional[Iterable[str]]) -> List[List[ChatMessage]]:
        if channel_ids is None:
            return list(self._channels.values())
        return [self._channels[c] for c in channel_ids if c in self._channels]

    async def search(
        self,
        query: str,
        sender_id: Optional[str] = None,
        channel_ids: Optional[Iterable[str]] = None
    ) -> List[ChatMessage]:
        """Case-insensitive substring search, newest first. Searches every channel unless ``channel_ids`` is given."""
        needle = query.lower()
        results = [
            m for messages in self._scoped(channel_ids) for m in messages
            if needle in m.content.lower() and (sender_id is None or m.sender_id == sender_id)
        ]
        results.sort(key=lambda m: m.timestamp, reverse=True)
        return results

    async def search_between(
        self,
        start: datetime,
        end: datetime,
        channel_ids: Optional[Iterable[str]] = None
    ) -> List[ChatMessage]:
        """Messages whose timestamp falls in ``[start, end]``, newest first."""
        results = [
            m for messages in self._scoped(channel_ids) for m in messages
            if start <= m.timestamp <= end
        ]
        results.sort(key=lambda m: m.timestamp, reverse=True)
        return results
