"""Models module - Data structures."""

from .message import ChatMessage, MarkType, Member, MentionInfo, PRIVATE_PREFIX, is_private_channel
from .response import (
    AdapterResponse,
    EmojiToken,
    FailResponse,
    FunctionCall,
    FunctionCallResponse,
    InterpretedResponse,
    MentionAllToken,
    MentionToken,
    QuoteToken,
    SkipResponse,
    SuccessResponse,
    TextToken,
    Token,
    Usage,
)

__all__ = [
    'ChatMessage',
    'MarkType',
    'Member',
    'MentionInfo',
    'PRIVATE_PREFIX',
    'is_private_channel',
    'AdapterResponse',
    'EmojiToken',
    'FailResponse',
    'FunctionCall',
    'FunctionCallResponse',
    'InterpretedResponse',
    'MentionAllToken',
    'MentionToken',
    'QuoteToken',
    'SkipResponse',
    'SuccessResponse',
    'TextToken',
    'Token',
    'Usage',
]
