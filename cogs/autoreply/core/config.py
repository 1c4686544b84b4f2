"""
Configuration Management for Auto-Reply Module
==============================================

Handles loading and managing auto-reply configuration from INI files.
Secrets are read from the environment (``.env`` is loaded by bot.py).
"""

import os
import configparser
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple
from dataclasses import dataclass, field
import logging

from .exceptions import ConfigurationException
from ..models.message import MarkType

logger = logging.getLogger(__name__)


NAME_SOURCES = ("display_name", "name")
BACKEND_KINDS = ("openai", "custom", "cloudflare", "ollama", "groq")
MULTIMODAL_MODES = ("none", "native")
IMAGE_DETAILS = ("low", "high", "auto")
SELF_REPORT_MARKS = {
    "command": MarkType.COMMAND,
    "logic_redirect": MarkType.LOGIC_REDIRECT,
    "llm": MarkType.LLM,
}


@dataclass
class SlotConfig:
    """Channel grouping and trigger cadence."""
    slot_contains: List[Set[str]] = field(default_factory=list)
    slot_size: int = 20
    first_trigger_count: int = 2
    min_trigger_count: int = 2
    max_trigger_count: int = 4
    at_react_probability: float = 0.5
    max_tracked_channels: int = 500
    max_tracked_marks: int = 10000

    def find_slot(self, channel_id: str) -> Optional[Set[str]]:
        """Return the first slot that contains ``channel_id``."""
        for slot in self.slot_contains:
            if channel_id in slot:
                return slot
        return None


@dataclass
class BackendConfig:
    """Configuration for a single language-model backend."""
    name: str
    kind: str
    url: str = ""
    api_key: str = ""
    model: str = ""
    enabled: bool = True
    timeout: float = 60.0

    def is_valid(self) -> bool:
        """Check if the backend configuration is usable."""
        return bool(self.kind and self.model)


@dataclass
class SamplingParameters:
    """Sampling parameters shared by every backend."""
    temperature: float = 1.0
    max_tokens: int = 4096
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    stop: List[str] = field(default_factory=list)
    other_parameters: List[Tuple[str, str]] = field(default_factory=list)
    multimodal: str = "none"
    image_detail: str = "low"


@dataclass
class SettingsConfig:
    """Reply behaviour settings."""
    allow_error_format: bool = True
    self_report: Set[MarkType] = field(default_factory=set)
    clear_command: str = "clearmemory"
    logic_redirect_enabled: bool = False
    logic_redirect_target: str = ""
    max_function_depth: int = 3


@dataclass
class BotConfig:
    """Bot identity settings."""
    name_source: str = "display_name"
    system_prompt_file: str = "config/system_prompt.md"


@dataclass
class EmojiConfig:
    """Emoji name table settings."""
    table_file: str = "config/emoji_table.json"
    fallback_id: str = "0"
    similarity_cutoff: float = 0.0


@dataclass
class StorageConfig:
    """Message store settings."""
    directory: str = "data/autoreply"
    persist: bool = True
    max_messages_per_channel: int = 1000


@dataclass
class DebugConfig:
    """Debug flags."""
    test_mode: bool = False
    debug_as_info: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration."""
    log_level: str = "INFO"


class AutoReplyConfig:
    """
    Main configuration class for the auto-reply module.

    Loads configuration from INI file and environment variables.
    Provides typed access to all configuration values.
    """

    DEFAULT_CONFIG_PATH = "config/autoreply_config.ini"

    def __init__(self, config_path: str = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config = self._new_parser()

        self.slots = SlotConfig()
        self.backends: List[BackendConfig] = []
        self.backend_priority: List[str] = []
        self.parameters = SamplingParameters()
        self.settings = SettingsConfig()
        self.bot = BotConfig()
        self.emoji = EmojiConfig()
        self.storage = StorageConfig()
        self.debug = DebugConfig()
        self.logging = LoggingConfig()

        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment."""
        config_file = Path(self.config_path)

        if config_file.exists():
            self._config.read(config_file, encoding='utf-8')
            logger.info(f"Loaded configuration from {self.config_path}")
        else:
            logger.warning(f"Configuration file not found: {self.config_path}. Using defaults.")

        self._load_slot_config()
        self._load_backend_configs()
        self._load_parameters()
        self._load_settings()
        self._load_bot_config()
        self._load_emoji_config()
        self._load_storage_config()
        self._load_debug_config()
        self._load_logging_config()

    def _load_slot_config(self) -> None:
        """Load memory slot configuration."""
        section = 'memory_slot'

        slots = []
        raw_slots = self._get(section, 'slot_contains', '') or ''
        for line in raw_slots.splitlines():
            members = {c.strip() for c in line.split(',') if c.strip()}
            if members:
                slots.append(members)

        min_count = self._getint(section, 'min_trigger_count', 2)
        max_count = self._getint(section, 'max_trigger_count', 4)
        if min_count < 1 or max_count < min_count:
            raise ConfigurationException(
                'memory_slot.min_trigger_count',
                f"Trigger bounds must satisfy 1 <= min <= max (got {min_count}, {max_count})"
            )

        self.slots = SlotConfig(
            slot_contains=slots,
            slot_size=self._getint(section, 'slot_size', 20),
            first_trigger_count=self._getint(section, 'first_trigger_count', min_count),
            min_trigger_count=min_count,
            max_trigger_count=max_count,
            at_react_probability=self._getfloat(section, 'at_react_probability', 0.5),
            max_tracked_channels=self._getint(section, 'max_tracked_channels', 500),
            max_tracked_marks=self._getint(section, 'max_tracked_marks', 10000),
        )

    def _load_backend_configs(self) -> None:
        """Load backend roster from [backend.*] sections."""
        priority_str = self._get('backends', 'priority', '') or ''
        self.backend_priority = [p.strip() for p in priority_str.split(',') if p.strip()]

        backends = []
        for section in self._config.sections():
            if not section.startswith('backend.'):
                continue
            name = section.split('.', 1)[1]
            kind = (self._get(section, 'kind', '') or '').strip().lower()
            if kind not in BACKEND_KINDS:
                raise ConfigurationException(
                    f'{section}.kind',
                    f"Unsupported backend kind: {kind!r} (expected one of {BACKEND_KINDS})"
                )

            api_key = self._get(section, 'api_key', '') or ''
            api_key_env = self._get(section, 'api_key_env', None)
            if api_key_env:
                api_key = os.getenv(api_key_env, api_key)
                if not api_key:
                    logger.warning(f"No API key found in environment variable {api_key_env} for backend {name}")

            backend = BackendConfig(
                name=name,
                kind=kind,
                url=self._get(section, 'url', '') or '',
                api_key=api_key,
                model=self._get(section, 'model', '') or '',
                enabled=self._getboolean(section, 'enabled', True),
                timeout=self._getfloat(section, 'timeout', 60.0),
            )
            backends.append(backend)
            logger.debug(f"Added backend: {name} ({backend.kind})")

        self.backends = backends
        self._sort_backends_by_priority()
        logger.info(f"Loaded {len(self.backends)} backend configurations")

    def _sort_backends_by_priority(self) -> None:
        """Sort backends list by configured priority."""
        def get_priority(backend: BackendConfig) -> int:
            try:
                return self.backend_priority.index(backend.name)
            except ValueError:
                return len(self.backend_priority)  # Unlisted backends go last

        self.backends.sort(key=get_priority)

    def _load_parameters(self) -> None:
        """Load sampling parameters."""
        section = 'parameters'

        stop_str = self._get(section, 'stop', '') or ''
        other = []
        if self._config.has_section('parameters.other'):
            for key in self._config.options('parameters.other'):
                other.append((key, self._get('parameters.other', key, '')))

        multimodal = (self._get(section, 'multimodal', 'none') or 'none').strip().lower()
        if multimodal not in MULTIMODAL_MODES:
            raise ConfigurationException(
                'parameters.multimodal',
                f"Unsupported multimodal value: {multimodal} (expected one of {MULTIMODAL_MODES})"
            )
        detail = (self._get(section, 'image_detail', 'low') or 'low').strip().lower()
        if detail not in IMAGE_DETAILS:
            raise ConfigurationException(
                'parameters.image_detail',
                f"Unsupported image_detail value: {detail} (expected one of {IMAGE_DETAILS})"
            )

        self.parameters = SamplingParameters(
            temperature=self._getfloat(section, 'temperature', 1.0),
            max_tokens=self._getint(section, 'max_tokens', 4096),
            top_p=self._getfloat(section, 'top_p', 1.0),
            frequency_penalty=self._getfloat(section, 'frequency_penalty', 0.0),
            presence_penalty=self._getfloat(section, 'presence_penalty', 0.0),
            stop=[s.strip() for s in stop_str.split(',') if s.strip()],
            other_parameters=other,
            multimodal=multimodal,
            image_detail=detail,
        )

    def _load_settings(self) -> None:
        """Load reply behaviour settings."""
        section = 'settings'

        self_report = set()
        raw = self._get(section, 'self_report', '') or ''
        for item in (i.strip().lower() for i in raw.split(',')):
            if not item:
                continue
            if item not in SELF_REPORT_MARKS:
                raise ConfigurationException(
                    'settings.self_report',
                    f"Unsupported self_report mark: {item} (expected any of {sorted(SELF_REPORT_MARKS)})"
                )
            self_report.add(SELF_REPORT_MARKS[item])

        self.settings = SettingsConfig(
            allow_error_format=self._getboolean(section, 'allow_error_format', True),
            self_report=self_report,
            clear_command=self._get(section, 'clear_command', 'clearmemory'),
            logic_redirect_enabled=self._getboolean(section, 'logic_redirect_enabled', False),
            logic_redirect_target=self._get(section, 'logic_redirect_target', '') or '',
            max_function_depth=self._getint(section, 'max_function_depth', 3),
        )

    def _load_bot_config(self) -> None:
        """Load bot identity settings."""
        section = 'bot'

        name_source = (self._get(section, 'name_source', 'display_name') or '').strip().lower()
        if name_source not in NAME_SOURCES:
            raise ConfigurationException(
                'bot.name_source',
                f"Unsupported name_source value: {name_source} (expected one of {NAME_SOURCES})"
            )

        self.bot = BotConfig(
            name_source=name_source,
            system_prompt_file=self._get(section, 'system_prompt_file', 'config/system_prompt.md'),
        )

    def _load_emoji_config(self) -> None:
        section = 'emoji'
        self.emoji = EmojiConfig(
            table_file=self._get(section, 'table_file', 'config/emoji_table.json'),
            fallback_id=self._get(section, 'fallback_id', '0'),
            similarity_cutoff=self._getfloat(section, 'similarity_cutoff', 0.0),
        )

    def _load_storage_config(self) -> None:
        section = 'storage'
        self.storage = StorageConfig(
            directory=self._get(section, 'directory', 'data/autoreply'),
            persist=self._getboolean(section, 'persist', True),
            max_messages_per_channel=self._getint(section, 'max_messages_per_channel', 1000),
        )

    def _load_debug_config(self) -> None:
        section = 'debug'
        self.debug = DebugConfig(
            test_mode=self._getboolean(section, 'test_mode', False),
            debug_as_info=self._getboolean(section, 'debug_as_info', False),
        )

    def _load_logging_config(self) -> None:
        section = 'logging'
        self.logging = LoggingConfig(
            log_level=self._get(section, 'log_level', 'INFO'),
        )

    def get_enabled_backends(self) -> List[BackendConfig]:
        """Get list of enabled backends in priority order."""
        return [b for b in self.backends if b.enabled and b.is_valid()]

    def all_channel_ids(self) -> Set[str]:
        """Every channel id that belongs to some slot."""
        channels: Set[str] = set()
        for slot in self.slots.slot_contains:
            channels |= slot
        return channels

    @staticmethod
    def _new_parser() -> configparser.ConfigParser:
        parser = configparser.ConfigParser()
        # Passthrough parameter names are case sensitive
        parser.optionxform = str
        return parser

    # Helper methods for config parsing
    def _get(self, section: str, key: str, fallback: str = None) -> str:
        """Get a string value from config."""
        try:
            return self._config.get(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback

    def _getint(self, section: str, key: str, fallback: int = 0) -> int:
        """Get an integer value from config."""
        try:
            return self._config.getint(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def _getfloat(self, section: str, key: str, fallback: float = 0.0) -> float:
        """Get a float value from config."""
        try:
            return self._config.getfloat(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def _getboolean(self, section: str, key: str, fallback: bool = False) -> bool:
        """Get a boolean value from config."""
        try:
            return self._config.getboolean(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def reload(self) -> None:
        """Reload configuration from file."""
        self._config = self._new_parser()
        self._load_config()
        logger.info("Configuration reloaded")
