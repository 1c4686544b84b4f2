"""Ollama ``/api/chat`` adapter."""

from typing import Any, Dict, List

from ..core.config import SamplingParameters
from ..models.response import AdapterResponse, Usage
from .base import BaseAdapter, decode_other_parameters
from .transport import send_request

OLLAMA_URL = "http://localhost:11434"


class OllamaAdapter(BaseAdapter):
    """Local Ollama server; sampling parameters travel in ``options``."""

    kind = "ollama"

    def build_request(self, messages: List[Dict[str, Any]], parameters: SamplingParameters) -> Dict[str, Any]:
        options = {
            "temperature": parameters.temperature,
            "num_predict": parameters.max_tokens,
            "top_p": parameters.top_p,
            "frequency_penalty": parameters.frequency_penalty,
            "presence_penalty": parameters.presence_penalty,
        }
        if parameters.stop:
            options["stop"] = parameters.stop
        options.update(decode_other_parameters(parameters.other_parameters))
        return {
            "model": self.entry.model,
            "messages": messages,
            "stream": False,
            "options": options,
        }

    async def _send(self, body: Dict[str, Any]) -> Any:
        url = f"{(self.entry.url or OLLAMA_URL).rstrip('/')}/api/chat"
        return await send_request(
            self.name, url, self.entry.api_key, body,
            timeout=self.entry.timeout, debug=self.debug
        )

    def normalize(self, raw: Any) -> AdapterResponse:
        prompt_tokens = int(raw.get("prompt_eval_count") or 0)
        completion_tokens = int(raw.get("eval_count") or 0)
        return AdapterResponse(
            content=raw["message"]["content"],
            usage=Usage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )
