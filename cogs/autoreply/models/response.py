"""Backend and interpreted response models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class Usage:
    """Token accounting reported by a backend."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Usage"]:
        """Build from an OpenAI-style ``usage`` object."""
        if not data:
            return None
        prompt = int(data.get("prompt_tokens") or 0)
        completion = int(data.get("completion_tokens") or 0)
        total = int(data.get("total_tokens") or prompt + completion)
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


@dataclass
class AdapterResponse:
    """Normalized result of one backend call."""

    content: Any
    usage: Optional[Usage] = None


@dataclass
class FunctionCall:
    """A memory operation requested by the model."""

    name: str
    params: Dict[str, Any] = field(default_factory=dict)


# ==================== Markup tokens ====================

@dataclass
class TextToken:
    text: str


@dataclass
class MentionToken:
    member_id: str
    name: str


@dataclass
class MentionAllToken:
    pass


@dataclass
class EmojiToken:
    name: str
    emoji_id: Optional[str] = None


@dataclass
class QuoteToken:
    message_id: str


Token = Union[TextToken, MentionToken, MentionAllToken, EmojiToken, QuoteToken]


# ==================== Interpreted responses ====================

@dataclass
class SuccessResponse:
    """The model produced a reply (and/or commands)."""

    text: str
    address: str
    quote: Optional[str] = None
    next_trigger_suggestion: Optional[int] = None
    logic: str = ""
    commands: List[str] = field(default_factory=list)
    usage: Optional[Usage] = None
    tokens: List[Token] = field(default_factory=list)
    status: str = "success"


@dataclass
class SkipResponse:
    """The model chose not to reply this turn."""

    next_trigger_suggestion: Optional[int] = None
    logic: str = ""
    usage: Optional[Usage] = None
    status: str = "skip"


@dataclass
class FunctionCallResponse:
    """The model asked for memory operations before answering."""

    calls: List[FunctionCall] = field(default_factory=list)
    raw_content: str = ""
    usage: Optional[Usage] = None
    status: str = "function"


@dataclass
class FailResponse:
    """Model output could not be interpreted."""

    raw_content: str
    reason: str
    usage: Optional[Usage] = None
    status: str = "fail"


InterpretedResponse = Union[SuccessResponse, SkipResponse, FunctionCallResponse, FailResponse]
