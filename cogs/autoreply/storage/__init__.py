"""Storage module - Persistent data layer."""

from .message_storage import MessageStorage
from .serializers import serialize_message, deserialize_message

__all__ = [
    "MessageStorage",
    "serialize_message",
    "deserialize_message",
]
