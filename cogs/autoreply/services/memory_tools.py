"""
Memory operations the model can request with ``"status": "function"``.

Each call produces a synthetic assistant turn that is appended to the
conversation before the model is asked again.
"""

import json
import time
import logging
import re
from datetime import datetime, time as dt_time, timezone
from difflib import SequenceMatcher
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..core.config import SlotConfig
from ..core.exceptions import ChatException
from ..core.numbers import coerce_int
from ..models.message import ChatMessage
from ..models.response import FunctionCall
from ..storage.message_storage import MessageStorage

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
CORE_MEMORY_LIMIT = 5000
CORE_MEMORY_LABELS = ("persona", "human")
CHANNEL_SCOPED = {"search_conversation", "search_conversation_with_date"}


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _format_message(message: ChatMessage) -> str:
    stamp = message.timestamp.strftime("%Y-%m-%d %H:%M:%S")
    return f"[{stamp}] {message.sender_name}<{message.sender_id}>: {message.content}"


def _parse_date(value: str) -> datetime:
    """Parse 'YYYY-MM-DD' as a UTC date."""
    return datetime.strptime(str(value).strip(), "%Y-%m-%d").replace(tzinfo=timezone.utc)


class MemoryTools:
    """Registry and in-process state for archival and core memory."""

    def __init__(self, storage: MessageStorage, slots: Optional[SlotConfig] = None):
        self.storage = storage
        self.slots = slots
        self.archival: List[str] = []
        self.core: Dict[str, str] = {label: "" for label in CORE_MEMORY_LABELS}
        self.last_modified: Optional[datetime] = None

        self._registry: Dict[str, Tuple[Callable, Tuple[str, ...]]] = {
            "insertArchivalMemory": (self.insert_archival_memory, ("content",)),
            "searchArchivalMemory": (self.search_archival_memory, ("query", "page", "start")),
            "appendCoreMemory": (self.append_core_memory, ("label", "content")),
            "modifyCoreMemory": (self.modify_core_memory, ("label", "old_content", "new_content")),
            "searchConversation": (self.search_conversation, ("query", "user_id", "page")),
            "searchConversationWithDate": (self.search_conversation_with_date, ("query", "start", "end", "page")),
        }
        for name in list(self._registry):
            self._registry[_snake_case(name)] = self._registry[name]

    @property
    def names(self) -> List[str]:
        return [name for name in self._registry if not name.islower()]

    def _touch(self) -> None:
        self.last_modified = datetime.now(timezone.utc)

    # ==================== Archival memory ====================

    async def insert_archival_memory(self, content: str) -> str:
        self.archival.append(str(content))
        self._touch()
        return f"Inserted archival memory #{len(self.archival)}"

    async def search_archival_memory(self, query: str, page: Any = 0, start: Any = 0) -> List[str]:
        """Archival entries ranked by text similarity to ``query``."""
        page = coerce_int(page, "page")
        start = coerce_int(start, "start")
        needle = str(query).lower()
        ranked = sorted(
            self.archival,
            key=lambda entry: SequenceMatcher(None, needle, entry.lower()).ratio(),
            reverse=True
        )
        offset = start + page * PAGE_SIZE
        return ranked[offset:offset + PAGE_SIZE]

    # ==================== Core memory ====================

    def _check_label(self, label: str) -> str:
        label = str(label).strip().lower()
        if label not in self.core:
            raise ValueError(f"Unknown core memory section: {label} (expected one of {CORE_MEMORY_LABELS})")
        return label

    def _store_core(self, label: str, value: str) -> None:
        if len(value) > CORE_MEMORY_LIMIT:
            raise ValueError(
                f"Core memory section '{label}' would exceed {CORE_MEMORY_LIMIT} characters ({len(value)})"
            )
        self.core[label] = value
        self._touch()

    async def append_core_memory(self, label: str, content: str) -> str:
        label = self._check_label(label)
        current = self.core[label]
        self._store_core(label, f"{current}\n{content}" if current else str(content))
        return f"Appended to {label}"

    async def modify_core_memory(self, label: str, old_content: str, new_content: str) -> str:
        label = self._check_label(label)
        current = self.core[label]
        if old_content not in current:
            raise ValueError(f"Content not found in core memory section '{label}'")
        self._store_core(label, current.replace(old_content, new_content))
        return f"Modified {label}"

    def render_core_memory(self) -> str:
        """Core memory block for the system prompt."""
        modified = self.last_modified.strftime("%Y-%m-%d %I:%M:%S %p %Z") if self.last_modified else "never"
        lines = [
            f"### Memory [last modified: {modified}]",
            f"{len(self.archival)} total memories you created are stored in archival memory "
            f"(use functions to access them)",
            "",
            "Core memory shown below (limited in size, additional information stored in archival / recall memory):",
        ]
        for label in CORE_MEMORY_LABELS:
            value = self.core[label]
            lines.append(f'<{label} characters="{len(value)}/{CORE_MEMORY_LIMIT}">')
            if value:
                lines.append(value)
            lines.append(f"</{label}>")
        return "\n".join(lines)

    # ==================== Conversation search ====================

    async def search_conversation(
        self,
        query: str,
        user_id: Optional[str] = None,
        page: Any = 0,
        *,
        channels: Optional[Set[str]] = None
    ) -> List[str]:
        """Case-insensitive text search over stored messages, newest first."""
        page = coerce_int(page, "page")
        sender = str(user_id) if user_id not in (None, "") else None
        results = await self.storage.search(str(query), sender_id=sender, channel_ids=channels)
        return [_format_message(m) for m in results[page * PAGE_SIZE:(page + 1) * PAGE_SIZE]]

    async def search_conversation_with_date(
        self,
        query: str,
        start: str,
        end: str,
        page: Any = 0,
        *,
        channels: Optional[Set[str]] = None
    ) -> List[str]:
        """Stored messages between two 'YYYY-MM-DD' dates (inclusive), optionally filtered by text."""
        page = coerce_int(page, "page")
        start_at = _parse_date(start)
        end_at = datetime.combine(_parse_date(end).date(), dt_time.max, tzinfo=timezone.utc)
        results = await self.storage.search_between(start_at, end_at, channel_ids=channels)
        needle = str(query or "").lower()
        if needle:
            results = [m for m in results if needle in m.content.lower()]
        return [_format_message(m) for m in results[page * PAGE_SIZE:(page + 1) * PAGE_SIZE]]

    # ==================== Dispatch ====================

    def _bind(self, param_names: Tuple[str, ...], params: Any) -> Dict[str, Any]:
        if params is None:
            return {}
        if isinstance(params, list):
            if len(params) > len(param_names):
                raise TypeError(f"Expected at most {len(param_names)} arguments, got {len(params)}")
            return dict(zip(param_names, params))
        if isinstance(params, dict):
            kwargs = {}
            for key, value in params.items():
                snake = _snake_case(str(key))
                if snake not in param_names:
                    raise TypeError(f"Unexpected argument: {key}")
                kwargs[snake] = value
            return kwargs
        # A single bare value goes to the first parameter
        return {param_names[0]: params}

    def channel_scope(self, channel_id: Optional[str]) -> Optional[Set[str]]:
        """Channels a conversation search may read: the slot of ``channel_id``."""
        if channel_id is None:
            return None
        slot = self.slots.find_slot(channel_id) if self.slots else None
        return set(slot) if slot else {channel_id}

    async def execute(self, call: FunctionCall, channel_id: Optional[str] = None) -> Dict[str, str]:
        """
        Run one requested function.

        Args:
            call: Function name and parameters from the model
            channel_id: Channel the turn is answering; limits conversation search to its slot

        Returns:
            Assistant turn carrying ``{"status", "name", "result", "time"}``
        """
        entry = self._registry.get(call.name)
        status = "OK"
        if entry is None:
            status, result = "ERROR", f"Unknown function: {call.name}"
        else:
            func, param_names = entry
            try:
                kwargs = self._bind(param_names, call.params)
                if _snake_case(call.name) in CHANNEL_SCOPED:
                    kwargs["channels"] = self.channel_scope(channel_id)
                result = await func(**kwargs)
            except (TypeError, ValueError, ChatException) as e:
                status, result = "ERROR", str(e)

        if status == "OK":
            logger.info(f"Function {call.name} executed")
        else:
            logger.warning(f"⚠️ Function {call.name} failed: {result}")

        payload = {
            "status": status,
            "name": call.name,
            "result": result,
            "time": int(time.time() * 1000),
        }
        return {"role": "assistant", "content": json.dumps(payload, ensure_ascii=False)}
