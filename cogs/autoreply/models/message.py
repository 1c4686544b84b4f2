"""Inbound message models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

PRIVATE_PREFIX = "private:"


class MarkType(Enum):
    """Classification tag that keeps a message from being reprocessed."""
    UNKNOWN = "unknown"
    ADDED = "added"
    COMMAND = "command"
    LOGIC_REDIRECT = "logic_redirect"
    LLM = "llm"


def is_private_channel(channel_id: str) -> bool:
    """Private (direct message) channels use the ``private:<user id>`` form."""
    return channel_id.startswith(PRIVATE_PREFIX)


@dataclass
class ChatMessage:
    """A single inbound chat message."""

    message_id: str
    channel_id: str
    sender_id: str
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sender_name: str = ""
    mark: MarkType = MarkType.UNKNOWN

    @property
    def is_private(self) -> bool:
        return is_private_channel(self.channel_id)


@dataclass
class MentionInfo:
    """How an inbound message addresses the bot."""

    self_mentioned: bool = False
    everyone: bool = False
    here: bool = False

    def is_addressed(self, bot_online: bool = True) -> bool:
        # "here" only reaches members that are online
        return self.self_mentioned or self.everyone or (self.here and bot_online)


@dataclass
class Member:
    """Member directory entry used for mention resolution."""

    display_name: str
    member_id: str
