"""Cloudflare Workers AI adapter."""

from typing import Any, Dict, List

from ..core.config import SamplingParameters
from ..models.response import AdapterResponse
from .base import BaseAdapter, decode_other_parameters
from .transport import send_request


class CloudflareAdapter(BaseAdapter):
    """
    Workers AI ``/ai/run/<model>`` endpoint.

    ``url`` is the account's ``.../ai/run`` base. The text-generation
    response carries only ``result.response``; no token usage is returned.
    """

    kind = "cloudflare"
    provides_usage = False

    def build_request(self, messages: List[Dict[str, Any]], parameters: SamplingParameters) -> Dict[str, Any]:
        body = {
            "messages": messages,
            "temperature": parameters.temperature,
            "max_tokens": parameters.max_tokens,
            "top_p": parameters.top_p,
            "frequency_penalty": parameters.frequency_penalty,
            "presence_penalty": parameters.presence_penalty,
        }
        body.update(decode_other_parameters(parameters.other_parameters))
        return body

    async def _send(self, body: Dict[str, Any]) -> Any:
        url = f"{self.entry.url.rstrip('/')}/{self.entry.model}"
        return await send_request(
            self.name, url, self.entry.api_key, body,
            timeout=self.entry.timeout, debug=self.debug
        )

    def normalize(self, raw: Any) -> AdapterResponse:
        return AdapterResponse(content=raw["result"]["response"], usage=None)
