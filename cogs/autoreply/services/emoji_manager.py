"""Emoji name table with exact and nearest-name lookup."""

import json
import logging
from difflib import SequenceMatcher
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol

logger = logging.getLogger(__name__)


class SimilarityBackend(Protocol):
    """Finds the candidate closest to a name."""

    async def closest(self, name: str, candidates: Iterable[str]) -> Optional[str]:
        ...


class SequenceMatcherSimilarity:
    """Ranks candidates by ``difflib.SequenceMatcher`` ratio."""

    def __init__(self, cutoff: float = 0.0):
        self.cutoff = cutoff

    async def closest(self, name: str, candidates: Iterable[str]) -> Optional[str]:
        best_name = None
        best_ratio = -1.0
        needle = name.lower()
        for candidate in candidates:
            ratio = SequenceMatcher(None, needle, candidate.lower()).ratio()
            if ratio > best_ratio:
                best_name, best_ratio = candidate, ratio
        if best_name is None or best_ratio < self.cutoff:
            return None
        return best_name


class EmojiManager:
    """
    Resolves emoji names used by the model to emoji ids.

    The table file is either a JSON object ``{"name": "id"}`` or a list of
    ``{"name": ..., "id": ...}`` entries.
    """

    def __init__(
        self,
        table_file: Optional[str] = None,
        fallback_id: str = "0",
        similarity: Optional[SimilarityBackend] = None,
        table: Optional[Dict[str, str]] = None
    ):
        self.fallback_id = fallback_id
        self.similarity = similarity or SequenceMatcherSimilarity()
        self.table: Dict[str, str] = dict(table) if table is not None else {}
        if table is None and table_file:
            self.table = self._load_table(Path(table_file))

    @staticmethod
    def _load_table(path: Path) -> Dict[str, str]:
        if not path.exists():
            logger.warning(f"⚠️ Emoji table not found: {path}. Emoji tokens will use the fallback id.")
            return {}
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            table = {str(k): str(v) for k, v in data.items()}
        else:
            table = {str(item["name"]): str(item["id"]) for item in data}
        logger.info(f"✅ Loaded {len(table)} emoji names from {path}")
        return table

    async def get_id_by_name(self, name: str) -> Optional[str]:
        return self.table.get(name)

    async def get_name_by_similarity(self, name: str) -> Optional[str]:
        if not self.table:
            return None
        return await self.similarity.closest(name, self.table.keys())

    async def resolve(self, name: str) -> str:
        """
        Resolve an emoji name to an id.

        Exact name first, then the nearest name in the table, then the
        fallback id.
        """
        emoji_id = await self.get_id_by_name(name)
        if emoji_id is not None:
            return emoji_id
        similar = await self.get_name_by_similarity(name)
        if similar is not None:
            logger.debug(f"Emoji '{name}' resolved to nearest name '{similar}'")
            return self.table[similar]
        logger.debug(f"Emoji '{name}' not found, using fallback id")
        return self.fallback_id
