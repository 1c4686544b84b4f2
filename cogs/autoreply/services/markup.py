"""
Reply markup: tokenizer and Discord renderer.

The tokenizer walks the reply once, left to right, and emits a token
stream. Text that has already become a token (or was Discord markup to
begin with) is never scanned again.
"""

import re
from typing import Iterable, List, Optional, Tuple

from ..models.message import Member
from ..models.response import (
    EmojiToken,
    MentionAllToken,
    MentionToken,
    QuoteToken,
    TextToken,
    Token,
)

EMOJI_RE = re.compile(r"\[(?:emoji|表情)\s*[:：]\s*([^\]]+)\]")

# <@123>, <@!123>, <@&123>, <#123>, <:name:123>, <a:name:123>, <t:123:R>
DISCORD_MARKUP_RE = re.compile(r"<(?:@[!&]?\d+|#\d+|a?:\w+:\d+|t:-?\d+(?::[a-zA-Z])?)>")

MENTION_ALL_ALIASES = ("everyone", "all")


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


class MarkupTokenizer:
    """Single-pass tokenizer for mentions, mention-all and emoji tokens."""

    def __init__(self, members: Iterable[Member] = ()):
        # Longest name first so "@Alice2" is not read as "@Alice" + "2"
        self.members = sorted(
            (m for m in members if m.display_name),
            key=lambda m: len(m.display_name),
            reverse=True
        )

    def _match_member(self, text: str, start: int) -> Optional[Member]:
        for member in self.members:
            if text.startswith(member.display_name, start):
                return member
        return None

    def _match_mention_all(self, text: str, start: int) -> Optional[str]:
        for alias in MENTION_ALL_ALIASES:
            end = start + len(alias)
            if text[start:end].lower() == alias and (end == len(text) or not _is_word_char(text[end])):
                return alias
        return None

    def tokenize(self, text: str) -> List[Token]:
        """
        Split reply text into tokens.

        Args:
            text: Reply text as produced by the model

        Returns:
            Ordered tokens; adjacent plain text is merged into one TextToken
        """
        tokens: List[Token] = []
        buffer: List[str] = []

        def flush():
            if buffer:
                tokens.append(TextToken("".join(buffer)))
                buffer.clear()

        i = 0
        while i < len(text):
            char = text[i]

            if char == "<":
                match = DISCORD_MARKUP_RE.match(text, i)
                if match:
                    buffer.append(match.group(0))
                    i = match.end()
                    continue

            elif char == "[":
                match = EMOJI_RE.match(text, i)
                if match:
                    flush()
                    tokens.append(EmojiToken(name=match.group(1).strip()))
                    i = match.end()
                    continue

            elif char == "@":
                member = self._match_member(text, i + 1)
                if member:
                    flush()
                    tokens.append(MentionToken(member_id=member.member_id, name=member.display_name))
                    i += 1 + len(member.display_name)
                    continue
                alias = self._match_mention_all(text, i + 1)
                if alias:
                    flush()
                    tokens.append(MentionAllToken())
                    i += 1 + len(alias)
                    continue

            buffer.append(char)
            i += 1

        flush()
        return tokens


def emoji_markup_name(name: str) -> str:
    """Discord custom emoji names only allow word characters."""
    cleaned = re.sub(r"\W", "_", name)
    return cleaned if len(cleaned) >= 2 else f"{cleaned}_"


class DiscordMarkup:
    """Renders a token stream as Discord message text."""

    def render(self, tokens: List[Token]) -> Tuple[str, Optional[str]]:
        """
        Render tokens.

        Returns:
            Tuple of (message text, id of the message to quote or None)
        """
        parts = []
        quote_id = None
        for token in tokens:
            if isinstance(token, TextToken):
                parts.append(token.text)
            elif isinstance(token, MentionToken):
                parts.append(f"<@{token.member_id}>")
            elif isinstance(token, MentionAllToken):
                parts.append("@everyone")
            elif isinstance(token, EmojiToken):
                if token.emoji_id:
                    parts.append(f"<:{emoji_markup_name(token.name)}:{token.emoji_id}>")
                else:
                    parts.append(f":{token.name}:")
            elif isinstance(token, QuoteToken):
                quote_id = token.message_id
        return "".join(parts), quote_id

    @staticmethod
    def plain_text(tokens: List[Token]) -> str:
        """Readable form for logs and diagnostic reports."""
        parts = []
        for token in tokens:
            if isinstance(token, TextToken):
                parts.append(token.text)
            elif isinstance(token, MentionToken):
                parts.append(f"@{token.name}")
            elif isinstance(token, MentionAllToken):
                parts.append("@everyone")
            elif isinstance(token, EmojiToken):
                parts.append(f"[emoji:{token.name}]")
            elif isinstance(token, QuoteToken):
                parts.append(f"[quote:{token.message_id}]")
        return "".join(parts)
