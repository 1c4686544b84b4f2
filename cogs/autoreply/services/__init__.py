"""Services module - Business logic."""

from .adapter_switcher import AdapterSwitcher
from .auto_reply_service import AutoReplyService, DeliverySink
from .context_builder import ContextBuilder
from .emoji_manager import EmojiManager, SequenceMatcherSimilarity, SimilarityBackend
from .markup import DiscordMarkup, MarkupTokenizer
from .memory_tools import MemoryTools
from .queue_manager import QueueManager
from .response_interpreter import ResponseInterpreter
from .trigger_scheduler import TriggerDecision, TriggerScheduler, TriggerStateStore

__all__ = [
    'AdapterSwitcher',
    'AutoReplyService',
    'DeliverySink',
    'ContextBuilder',
    'EmojiManager',
    'SequenceMatcherSimilarity',
    'SimilarityBackend',
    'DiscordMarkup',
    'MarkupTokenizer',
    'MemoryTools',
    'QueueManager',
    'ResponseInterpreter',
    'TriggerDecision',
    'TriggerScheduler',
    'TriggerStateStore',
]
