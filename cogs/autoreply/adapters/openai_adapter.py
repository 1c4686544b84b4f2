"""OpenAI-compatible chat completion adapters."""

from typing import Any, Dict

from ..models.response import AdapterResponse, Usage
from .base import BaseAdapter
from .transport import send_request

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIAdapter(BaseAdapter):
    """OpenAI chat completions. ``url`` may be a base URL or the full endpoint."""

    kind = "openai"

    @property
    def endpoint(self) -> str:
        url = (self.entry.url or OPENAI_URL).rstrip("/")
        if not url.endswith("/chat/completions"):
            url = f"{url}/chat/completions"
        return url

    async def _send(self, body: Dict[str, Any]) -> Any:
        return await send_request(
            self.name, self.endpoint, self.entry.api_key, body,
            timeout=self.entry.timeout, debug=self.debug
        )

    def normalize(self, raw: Any) -> AdapterResponse:
        return AdapterResponse(
            content=raw["choices"][0]["message"]["content"],
            usage=Usage.from_dict(raw.get("usage")),
        )


class CustomAdapter(OpenAIAdapter):
    """Any OpenAI-compatible service; the configured URL is used as-is."""

    kind = "custom"

    @property
    def endpoint(self) -> str:
        return self.entry.url
