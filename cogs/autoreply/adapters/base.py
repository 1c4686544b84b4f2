"""Backend adapter contract shared by every vendor."""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import json5

from ..core.config import BackendConfig, SamplingParameters
from ..core.exceptions import ProviderException
from ..models.response import AdapterResponse

logger = logging.getLogger(__name__)

# <img base64="..." /> or <img src="..." />, optionally with both attributes
IMAGE_MARKER_RE = re.compile(
    r'<img\s+(base64|src)\s*=\s*\\?"([^\\"]+)\\?"'
    r'(?:\s+(base64|src)\s*=\s*\\?"([^\\"]+)\\?")?\s*/>'
)

ACKNOWLEDGEMENT = "Resolve OK"


def decode_parameter_value(raw: str) -> Any:
    """
    Decode a free-form passthrough parameter.

    Tried as JSON5 first, then as a boolean literal, then as a number;
    anything else is kept as the stripped string.
    """
    value = raw.strip()
    try:
        return json5.loads(value)
    except ValueError:
        pass
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def decode_other_parameters(pairs: List[tuple]) -> Dict[str, Any]:
    return {key.strip(): decode_parameter_value(value) for key, value in pairs if key.strip()}


def extract_content(text: str, detail: str) -> List[Dict[str, Any]]:
    """
    Split text on inline image markers.

    Returns an ordered list of ``{"type": "text"}`` and ``{"type": "image_url"}``
    parts; a base64 attribute wins over a src attribute on the same marker.
    """
    parts: List[Dict[str, Any]] = []
    last_index = 0
    for match in IMAGE_MARKER_RE.finditer(text):
        if match.start() > last_index:
            parts.append({"type": "text", "text": text[last_index:match.start()]})
        attributes = {match.group(1): match.group(2)}
        if match.group(3):
            attributes.setdefault(match.group(3), match.group(4))
        url = attributes.get("base64") or attributes.get("src")
        parts.append({"type": "image_url", "image_url": {"url": url, "detail": detail}})
        last_index = match.end()
    if last_index < len(text):
        parts.append({"type": "text", "text": text[last_index:]})
    return parts


class BaseAdapter(ABC):
    """
    Translates between the internal request/response shape and one vendor
    protocol.

    Subclasses implement ``_send`` (one request) and ``normalize`` (pull the
    content and usage out of the vendor response).
    """

    kind: str = ""
    provides_usage: bool = True

    def __init__(self, entry: BackendConfig, parameters: SamplingParameters, debug: bool = False):
        self.entry = entry
        self.parameters = parameters
        self.debug = debug
        logger.info(f"Adapter registered: {self.entry.name} ({self.kind}, {self.entry.model})")

    @property
    def name(self) -> str:
        return self.entry.name

    def create_messages(
        self,
        system_prompt: str,
        user_prompt: str,
        parameters: SamplingParameters,
        history: Optional[List[Dict[str, Any]]] = None
    ) -> List[Dict[str, Any]]:
        """Build the chat message list, splitting out images when multimodal."""
        if parameters.multimodal == "native":
            detail = parameters.image_detail
            messages = [
                {"role": "system", "content": extract_content(system_prompt, detail)},
                {"role": "assistant", "content": [{"type": "text", "text": ACKNOWLEDGEMENT}]},
                {"role": "user", "content": extract_content(user_prompt, detail)},
            ]
        else:
            messages = [
                {"role": "system", "content": system_prompt},
                {"role": "assistant", "content": ACKNOWLEDGEMENT},
                {"role": "user", "content": user_prompt},
            ]
        messages.extend(history or [])
        return messages

    def build_request(self, messages: List[Dict[str, Any]], parameters: SamplingParameters) -> Dict[str, Any]:
        """OpenAI-style request body; passthrough parameters override the fixed ones."""
        body = {
            "model": self.entry.model,
            "messages": messages,
            "temperature": parameters.temperature,
            "max_tokens": parameters.max_tokens,
            "top_p": parameters.top_p,
            "frequency_penalty": parameters.frequency_penalty,
            "presence_penalty": parameters.presence_penalty,
        }
        if parameters.stop:
            body["stop"] = parameters.stop
        body.update(decode_other_parameters(parameters.other_parameters))
        return body

    async def call(
        self,
        system_prompt: str,
        user_prompt: str,
        parameters: Optional[SamplingParameters] = None,
        history: Optional[List[Dict[str, Any]]] = None
    ) -> AdapterResponse:
        """
        Run one completion.

        Args:
            system_prompt: System prompt text
            user_prompt: Rendered conversation
            parameters: Sampling parameters (defaults to the adapter's)
            history: Extra turns appended after the user prompt

        Returns:
            AdapterResponse with raw content and optional usage

        Raises:
            ProviderException: If the request or the response envelope fails
        """
        params = parameters or self.parameters
        messages = self.create_messages(system_prompt, user_prompt, params, history)
        body = self.build_request(messages, params)
        raw = await self._send(body)
        try:
            return self.normalize(raw)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderException(self.name, f"Unexpected response shape from {self.kind}", e)

    @abstractmethod
    async def _send(self, body: Dict[str, Any]) -> Any:
        """Send one request and return the decoded vendor response."""

    @abstractmethod
    def normalize(self, raw: Any) -> AdapterResponse:
        """Extract content and usage from a vendor response."""
