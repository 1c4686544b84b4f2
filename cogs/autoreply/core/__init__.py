"""Core module - Framework-independent logic."""

from .config import (
    AutoReplyConfig,
    BackendConfig,
    BotConfig,
    DebugConfig,
    EmojiConfig,
    SamplingParameters,
    SettingsConfig,
    SlotConfig,
    StorageConfig,
)
from .channel_gate import ChannelGate
from .exceptions import (
    ChatException,
    ConfigurationException,
    ProviderException,
    AdaptersExhaustedException,
    ResponseParseException,
    NumberCoercionException,
)
from .numbers import coerce_int

__all__ = [
    'AutoReplyConfig',
    'BackendConfig',
    'BotConfig',
    'DebugConfig',
    'EmojiConfig',
    'SamplingParameters',
    'SettingsConfig',
    'SlotConfig',
    'StorageConfig',
    'ChannelGate',
    'ChatException',
    'ConfigurationException',
    'ProviderException',
    'AdaptersExhaustedException',
    'ResponseParseException',
    'NumberCoercionException',
    'coerce_int',
]
