"""
Response Interpreter
====================

Turns loose model output into exactly one of ``SuccessResponse``,
``SkipResponse`` or ``FailResponse``. ``"status": "function"`` replies are
executed against the memory tools and the model is asked again, up to
``settings.max_function_depth`` rounds.
"""

import asyncio
import json
import logging
import re
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import json5

from ..core.config import SettingsConfig
from ..core.exceptions import NumberCoercionException
from ..core.numbers import coerce_int
from ..models.message import Member, is_private_channel
from ..models.response import (
    AdapterResponse,
    EmojiToken,
    FailResponse,
    FunctionCall,
    FunctionCallResponse,
    InterpretedResponse,
    QuoteToken,
    SkipResponse,
    SuccessResponse,
    Usage,
)
from .emoji_manager import EmojiManager
from .markup import MarkupTokenizer
from .memory_tools import MemoryTools

logger = logging.getLogger(__name__)

# Each group contributes its first non-empty field; groups are concatenated
STRICT_REPLY_FIELDS: Tuple[Tuple[str, ...], ...] = (
    ("finalReply", "finReply", "reply"),
)
LENIENT_REPLY_FIELDS: Tuple[Tuple[str, ...], ...] = STRICT_REPLY_FIELDS + (
    ("msg", "text", "message", "answer"),
)
QUOTE_FIELDS = ("select", "quote")
ADDRESS_FIELDS = ("replyTo", "session_id")
NO_QUOTE = -1

BackendRequest = Callable[[List[Dict[str, Any]]], Awaitable[AdapterResponse]]


class ResolveState(Enum):
    AWAITING = "awaiting"
    EXECUTING = "executing"
    RESPONDING = "responding"


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def _first_present(data: Dict[str, Any], fields: Iterable[str]) -> Any:
    for name in fields:
        value = data.get(name)
        if _present(value):
            return value
    return None


def _merge_usage(total: Optional[Usage], usage: Optional[Usage]) -> Optional[Usage]:
    if usage is None:
        return total
    if total is None:
        return Usage(usage.prompt_tokens, usage.completion_tokens, usage.total_tokens)
    return Usage(
        prompt_tokens=total.prompt_tokens + usage.prompt_tokens,
        completion_tokens=total.completion_tokens + usage.completion_tokens,
        total_tokens=total.total_tokens + usage.total_tokens,
    )


def extract_json_candidate(content: str) -> Optional[str]:
    """Text from the first ``{`` to the last ``}``, or None."""
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end < start:
        return None
    return content[start:end + 1]


def normalize_address(address: str) -> Optional[str]:
    """Private addresses are kept whole; others keep their first run of digits."""
    address = address.strip()
    if is_private_channel(address):
        return address
    match = re.search(r"\d+", address)
    return match.group(0) if match else None


class ResponseInterpreter:
    """Validates model output and resolves mentions, emoji and quotes."""

    def __init__(
        self,
        settings: SettingsConfig,
        emoji_manager: EmojiManager,
        tools: Optional[MemoryTools] = None,
        debug_as_info: bool = False
    ):
        """
        Initialize the interpreter.

        Args:
            settings: Strict/lenient mode and function depth limit
            emoji_manager: Emoji name table
            tools: Memory operations for ``"status": "function"`` replies
            debug_as_info: Log raw model output at INFO instead of DEBUG
        """
        self.settings = settings
        self.emoji_manager = emoji_manager
        self.tools = tools
        self._dump_level = logging.INFO if debug_as_info else logging.DEBUG

    @property
    def reply_fields(self) -> Tuple[Tuple[str, ...], ...]:
        return LENIENT_REPLY_FIELDS if self.settings.allow_error_format else STRICT_REPLY_FIELDS

    # ==================== One pass ====================

    async def interpret(
        self,
        raw: Any,
        channel_id: str,
        members: Iterable[Member] = (),
        usage: Optional[Usage] = None
    ) -> InterpretedResponse:
        """
        Interpret one model output.

        Args:
            raw: Model output; non-string content is serialized first
            channel_id: Channel that triggered the turn
            members: Member directory for mention resolution
            usage: Token usage to carry into the result

        Returns:
            Success, Skip, FunctionCall or Fail response
        """
        content = raw if isinstance(raw, str) else json.dumps(raw, ensure_ascii=False)
        logger.log(self._dump_level, f"Model output for channel {channel_id}:\n{content}")

        candidate = extract_json_candidate(content)
        if candidate is None:
            return FailResponse(raw_content=content, reason="no JSON found", usage=usage)

        try:
            data = json5.loads(candidate)
        except ValueError as e:
            return FailResponse(raw_content=content, reason=f"JSON parse error: {e}", usage=usage)
        if not isinstance(data, dict):
            return FailResponse(raw_content=content, reason="JSON value is not an object", usage=usage)

        try:
            return await self._interpret_object(data, content, channel_id, members, usage)
        except NumberCoercionException as e:
            return FailResponse(raw_content=content, reason=e.reason, usage=usage)

    async def _interpret_object(
        self,
        data: Dict[str, Any],
        content: str,
        channel_id: str,
        members: Iterable[Member],
        usage: Optional[Usage]
    ) -> InterpretedResponse:
        status = data.get("status")
        logic = str(data.get("logic") or "")
        suggestion = None
        if _present(data.get("nextReplyIn")):
            suggestion = coerce_int(data["nextReplyIn"], "nextReplyIn")

        if status == "skip":
            return SkipResponse(next_trigger_suggestion=suggestion, logic=logic, usage=usage)

        if status == "function":
            calls = self._parse_calls(data.get("functions"))
            if not calls:
                return FailResponse(raw_content=content, reason="function status without functions", usage=usage)
            return FunctionCallResponse(calls=calls, raw_content=content, usage=usage)

        if status != "success":
            return FailResponse(raw_content=content, reason=f"invalid status value: {status!r}", usage=usage)

        commands = self._parse_commands(data.get("execute"))
        text = self._assemble_reply(data)
        if not self.settings.allow_error_format and text is None:
            return FailResponse(raw_content=content, reason="reply field missing", usage=usage)
        if text is None and not commands:
            return FailResponse(raw_content=content, reason="no reply text and no commands", usage=usage)
        text = text or ""

        quote = None
        quote_value = _first_present(data, QUOTE_FIELDS)
        if quote_value is not None:
            quote_number = coerce_int(quote_value, "select")
            if quote_number != NO_QUOTE:
                quote = str(quote_number)

        address = channel_id
        address_value = _first_present(data, ADDRESS_FIELDS)
        if address_value is not None:
            normalized = normalize_address(str(address_value))
            if normalized is None:
                logger.warning(f"⚠️ Ignoring unusable reply address {address_value!r}")
            else:
                address = normalized

        tokens = await self._tokenize(text, members)
        if quote is not None:
            tokens.insert(0, QuoteToken(message_id=quote))

        return SuccessResponse(
            text=text,
            address=address,
            quote=quote,
            next_trigger_suggestion=suggestion,
            logic=logic,
            commands=commands,
            usage=usage,
            tokens=tokens,
        )

    def _assemble_reply(self, data: Dict[str, Any]) -> Optional[str]:
        parts = []
        for group in self.reply_fields:
            value = _first_present(data, group)
            if value is not None:
                parts.append(str(value))
        return "".join(parts) if parts else None

    @staticmethod
    def _parse_commands(value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if isinstance(value, list):
            return [str(c) for c in value if _present(c)]
        return [str(value)]

    @staticmethod
    def _parse_calls(value: Any) -> List[FunctionCall]:
        if not isinstance(value, list):
            return []
        calls = []
        for item in value:
            if isinstance(item, dict) and _present(item.get("name")):
                calls.append(FunctionCall(name=str(item["name"]), params=item.get("params") or {}))
        return calls

    async def _tokenize(self, text: str, members: Iterable[Member]) -> list:
        tokens = MarkupTokenizer(members).tokenize(text)
        emoji_tokens = [t for t in tokens if isinstance(t, EmojiToken)]
        if emoji_tokens:
            ids = await asyncio.gather(*(self.emoji_manager.resolve(t.name) for t in emoji_tokens))
            for token, emoji_id in zip(emoji_tokens, ids):
                token.emoji_id = emoji_id
        return tokens

    # ==================== Function loop ====================

    async def resolve(
        self,
        request: BackendRequest,
        channel_id: str,
        members: Iterable[Member] = ()
    ) -> InterpretedResponse:
        """
        Ask the backend and interpret, running requested functions in between.

        Args:
            request: Coroutine sending the conversation plus extra turns to a backend
            channel_id: Channel that triggered the turn
            members: Member directory for mention resolution

        Returns:
            Success, Skip or Fail response
        """
        members = list(members)
        history: List[Dict[str, Any]] = []
        usage: Optional[Usage] = None
        depth = 0
        state = ResolveState.AWAITING
        interpreted: Optional[InterpretedResponse] = None

        while True:
            if state is ResolveState.AWAITING:
                response = await request(list(history))
                usage = _merge_usage(usage, response.usage)
                interpreted = await self.interpret(response.content, channel_id, members, usage)
                if isinstance(interpreted, FunctionCallResponse):
                    state = ResolveState.EXECUTING
                else:
                    state = ResolveState.RESPONDING

            elif state is ResolveState.EXECUTING:
                if self.tools is None:
                    return FailResponse(
                        raw_content=interpreted.raw_content,
                        reason="function calls are not available",
                        usage=usage
                    )
                if depth >= self.settings.max_function_depth:
                    return FailResponse(
                        raw_content=interpreted.raw_content,
                        reason=f"function call depth exceeded ({self.settings.max_function_depth})",
                        usage=usage
                    )
                depth += 1
                history.append({"role": "assistant", "content": interpreted.raw_content})
                for call in interpreted.calls:
                    history.append(await self.tools.execute(call, channel_id))
                logger.info(f"🔄 Executed {len(interpreted.calls)} function(s), round {depth}")
                state = ResolveState.AWAITING

            else:
                return interpreted
