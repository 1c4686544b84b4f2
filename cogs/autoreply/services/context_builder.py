"""Prompt assembly from the system prompt file and a slot window."""

import logging
from pathlib import Path
from typing import List, Optional

from ..models.message import ChatMessage
from .memory_tools import MemoryTools

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a member of a Discord community. Read the conversation and answer with a single JSON object: "
    '{"status": "success" | "skip" | "function", "replyTo": "<channel id>", "finalReply": "<text>", '
    '"select": <message id to quote or -1>, "nextReplyIn": <messages to wait>, "logic": "<reasoning>", '
    '"functions": [{"name": "...", "params": {...}}], "execute": ["<bot command>"]}. '
    "Mention people with @name and use emoji with [emoji:name]."
)


class ContextBuilder:
    """Builds the system prompt and the rendered conversation for one turn."""

    def __init__(self, system_prompt_file: Optional[str] = None, tools: Optional[MemoryTools] = None):
        self.system_prompt_file = system_prompt_file
        self.tools = tools
        self._base_prompt = self._load_prompt()

    def _load_prompt(self) -> str:
        if not self.system_prompt_file:
            return DEFAULT_SYSTEM_PROMPT
        path = Path(self.system_prompt_file)
        if not path.exists():
            logger.warning(f"⚠️ System prompt file not found: {path}. Using default prompt.")
            return DEFAULT_SYSTEM_PROMPT
        return path.read_text(encoding="utf-8").strip() or DEFAULT_SYSTEM_PROMPT

    def reload(self) -> None:
        self._base_prompt = self._load_prompt()

    def system_prompt(self) -> str:
        """Base prompt followed by the core memory block when tools are enabled."""
        if self.tools is None:
            return self._base_prompt
        return f"{self._base_prompt}\n\n{self.tools.render_core_memory()}"

    @staticmethod
    def render_message(message: ChatMessage) -> str:
        stamp = message.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        return (
            f"[{message.message_id}][{stamp} from_channel={message.channel_id}] "
            f"{message.sender_name}<{message.sender_id}>: {message.content}"
        )

    def user_prompt(self, window: List[ChatMessage], channel_id: str) -> str:
        """
        Render a slot window as the user turn.

        Args:
            window: Messages in ascending time order
            channel_id: Channel that triggered this turn

        Returns:
            One line per message, followed by the triggering channel
        """
        lines = [self.render_message(m) for m in window]
        lines.append(f"[current_channel={channel_id}]")
        return "\n".join(lines)
