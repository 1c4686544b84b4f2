"""Ordered backend roster with failover."""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..adapters import BaseAdapter, create_adapter
from ..core.config import BackendConfig, SamplingParameters
from ..core.exceptions import (
    AdaptersExhaustedException,
    ConfigurationException,
    ProviderException,
)
from ..models.response import AdapterResponse

logger = logging.getLogger(__name__)

AdapterFactory = Callable[..., BaseAdapter]


class AdapterSwitcher:
    """
    Hands out the current backend adapter and fails over to the next one.

    The current index persists across turns: once a backend fails, the
    following turns start from the backend that last worked.
    """

    def __init__(
        self,
        entries: List[BackendConfig],
        parameters: SamplingParameters,
        factory: AdapterFactory = create_adapter,
        debug: bool = False
    ):
        self.factory = factory
        self.debug = debug
        self.entries: List[BackendConfig] = list(entries)
        self.parameters = parameters
        self.current_index = 0
        self._adapters: Dict[int, BaseAdapter] = {}

        logger.info(f"✅ Adapter switcher ready with {len(self.entries)} backend(s)")

    def update_config(self, entries: List[BackendConfig], parameters: SamplingParameters) -> None:
        """Replace the roster and parameters; cached adapters are rebuilt on demand."""
        self.entries = list(entries)
        self.parameters = parameters
        self._adapters = {}
        if self.current_index >= len(self.entries):
            self.current_index = 0
        logger.info(f"🔄 Adapter roster updated: {[e.name for e in self.entries]}")

    def get_adapter(self) -> Tuple[int, BaseAdapter]:
        """
        Get the adapter at the current index.

        Returns:
            Tuple of (index, adapter)

        Raises:
            ConfigurationException: If no backend is configured
        """
        if not self.entries:
            raise ConfigurationException("backends", "No enabled backend configured")
        index = self.current_index
        adapter = self._adapters.get(index)
        if adapter is None:
            adapter = self.factory(self.entries[index], self.parameters, debug=self.debug)
            self._adapters[index] = adapter
        return index, adapter

    def advance(self) -> int:
        """Move to the next backend, wrapping around."""
        self.current_index = (self.current_index + 1) % max(len(self.entries), 1)
        return self.current_index

    async def call(
        self,
        system_prompt: str,
        user_prompt: str,
        history: Optional[List[Dict]] = None
    ) -> Tuple[int, AdapterResponse]:
        """
        Call backends in order until one answers.

        Args:
            system_prompt: System prompt text
            user_prompt: Rendered conversation
            history: Extra turns appended after the user prompt

        Returns:
            Tuple of (index of the answering backend, response)

        Raises:
            AdaptersExhaustedException: If every backend failed
        """
        last_error: Optional[Exception] = None
        attempts = len(self.entries)
        for _ in range(max(attempts, 1)):
            index, adapter = self.get_adapter()
            try:
                response = await adapter.call(system_prompt, user_prompt, history=history)
                return index, response
            except ProviderException as e:
                last_error = e
                logger.warning(f"⚠️ Backend {adapter.name} failed: {e}")
                next_index = self.advance()
                if attempts > 1:
                    logger.info(f"🔄 Switching to backend {self.entries[next_index].name}")

        logger.error(f"❌ All {attempts} backends failed")
        raise AdaptersExhaustedException(attempts, last_error)
