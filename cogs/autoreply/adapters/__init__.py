"""Adapters module - one backend adapter per vendor protocol."""

from typing import Dict, Type

from ..core.config import BackendConfig, SamplingParameters
from ..core.exceptions import ConfigurationException
from .base import BaseAdapter, decode_parameter_value, extract_content
from .cloudflare_adapter import CloudflareAdapter
from .groq_adapter import GroqAdapter
from .ollama_adapter import OllamaAdapter
from .openai_adapter import CustomAdapter, OpenAIAdapter

ADAPTER_KINDS: Dict[str, Type[BaseAdapter]] = {
    "openai": OpenAIAdapter,
    "custom": CustomAdapter,
    "cloudflare": CloudflareAdapter,
    "ollama": OllamaAdapter,
    "groq": GroqAdapter,
}


def create_adapter(entry: BackendConfig, parameters: SamplingParameters, debug: bool = False) -> BaseAdapter:
    """Build the adapter for ``entry.kind``. Unknown kinds are a configuration error."""
    adapter_cls = ADAPTER_KINDS.get(entry.kind)
    if adapter_cls is None:
        raise ConfigurationException(
            f"backend.{entry.name}.kind",
            f"Unsupported backend kind: {entry.kind!r} (expected one of {sorted(ADAPTER_KINDS)})"
        )
    return adapter_cls(entry, parameters, debug=debug)


__all__ = [
    "ADAPTER_KINDS",
    "BaseAdapter",
    "CloudflareAdapter",
    "CustomAdapter",
    "GroqAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
    "create_adapter",
    "decode_parameter_value",
    "extract_content",
]
