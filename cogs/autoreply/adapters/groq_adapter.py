"""Groq adapter using the official async SDK."""

import time
import inspect
import logging
from typing import Any, Dict, List, Optional

from groq import APIError, AsyncGroq
from groq.resources.chat.completions import AsyncCompletions

from ..core.config import SamplingParameters
from ..core.exceptions import ProviderException
from ..models.response import AdapterResponse, Usage
from .base import BaseAdapter

logger = logging.getLogger(__name__)

# Keyword arguments AsyncCompletions.create accepts; anything else goes through extra_body
SDK_PARAMETERS = frozenset(inspect.signature(AsyncCompletions.create).parameters) - {"self"}


class GroqAdapter(BaseAdapter):
    """Groq chat completions through ``AsyncGroq``."""

    kind = "groq"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._client: Optional[AsyncGroq] = None

    @property
    def client(self) -> AsyncGroq:
        if self._client is None:
            kwargs = {"api_key": self.entry.api_key, "timeout": self.entry.timeout}
            if self.entry.url:
                kwargs["base_url"] = self.entry.url
            self._client = AsyncGroq(**kwargs)
        return self._client

    def build_request(self, messages: List[Dict[str, Any]], parameters: SamplingParameters) -> Dict[str, Any]:
        body = super().build_request(messages, parameters)
        extra = {key: body.pop(key) for key in list(body) if key not in SDK_PARAMETERS}
        if extra:
            body["extra_body"] = {**body.get("extra_body", {}), **extra}
        return body

    async def _send(self, body: Dict[str, Any]) -> Any:
        start_time = time.time()
        try:
            response = await self.client.chat.completions.create(**body)
        except APIError as e:
            logger.warning(f"⚠️ Groq {self.entry.model} failed: {e}")
            raise ProviderException(self.name, "Groq API error", e)
        except TypeError as e:
            logger.warning(f"⚠️ Groq {self.entry.model} rejected the request: {e}")
            raise ProviderException(self.name, "Groq request rejected", e)
        logger.info(f"✅ Groq {self.entry.model} responded in {time.time() - start_time:.2f}s")
        return response

    def normalize(self, raw: Any) -> AdapterResponse:
        usage = None
        if raw.usage is not None:
            usage = Usage(
                prompt_tokens=raw.usage.prompt_tokens or 0,
                completion_tokens=raw.usage.completion_tokens or 0,
                total_tokens=raw.usage.total_tokens or 0,
            )
        return AdapterResponse(content=raw.choices[0].message.content, usage=usage)
