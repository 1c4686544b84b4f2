"""Serialization utilities for stored chat messages."""

from typing import Dict, Any
from datetime import datetime, timezone

from ..models.message import ChatMessage, MarkType


def serialize_message(message: ChatMessage) -> Dict[str, Any]:
    """
    Serialize a message for JSON storage.

    Converts the datetime timestamp to an ISO format string and the mark to
    its enum value.

    Args:
        message: Message to serialize

    Returns:
        Serialized dictionary safe for JSON
    """
    return {
        "message_id": message.message_id,
        "channel_id": message.channel_id,
        "sender_id": message.sender_id,
        "sender_name": message.sender_name,
        "content": message.content,
        "timestamp": message.timestamp.isoformat(),
        "mark": message.mark.value,
    }


def deserialize_message(data: Dict[str, Any]) -> ChatMessage:
    """
    Deserialize a message from JSON storage.

    Converts ISO format timestamp strings back to aware datetime objects;
    naive values are taken as UTC.

    Args:
        data: Deserialized dictionary from JSON

    Returns:
        ChatMessage with proper types
    """
    timestamp = data.get("timestamp")
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp)
    elif isinstance(timestamp, (int, float)):
        timestamp = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    else:
        timestamp = datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    try:
        mark = MarkType(data.get("mark", MarkType.ADDED.value))
    except ValueError:
        mark = MarkType.ADDED

    return ChatMessage(
        message_id=str(data["message_id"]),
        channel_id=str(data["channel_id"]),
        sender_id=str(data.get("sender_id", "")),
        sender_name=data.get("sender_name", ""),
        content=data.get("content", ""),
        timestamp=timestamp,
        mark=mark,
    )
