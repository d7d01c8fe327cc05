from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from cmem.core.digest import MAX_RESULTS, PREVIEW_CHARS, format_confirmation, format_digest
from cmem.core.memory import Memory, utc_now
from cmem.core.schemas import AddMemoryArgs, SearchMemoriesArgs
from cmem.metrics import mark_path
from cmem.storage.errors import BackendUnavailable
from cmem.storage.fallback import InMemoryFallbackStore
from cmem.storage.redis_primary import RedisPrimaryStore

logger = logging.getLogger(__name__)


class StorePath(str, enum.Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class WriteResult:
    memory: Memory
    path: StorePath


@dataclass(frozen=True)
class SearchResult:
    query: str
    user_id: str
    matches: Sequence[Memory]  # newest first, untruncated
    path: StorePath

    @property
    def total(self) -> int:
        return len(self.matches)


def rank_newest_first(memories: List[Memory]) -> List[Memory]:
    # stable: equal timestamps keep scan order
    return sorted(memories, key=lambda m: m.timestamp, reverse=True)


class MemoryService:
    """
    Add and search memories against the primary store, degrading to the
    in-process fallback store whenever the backend is unavailable.

    Each call is served entirely by one store. Which one is reported on the
    returned result; the text responses do not reveal it.
    """

    def __init__(
        self,
        primary: RedisPrimaryStore,
        fallback: InMemoryFallbackStore,
        clock: Callable[[], datetime] = utc_now,
        max_results: int = MAX_RESULTS,
        preview_chars: int = PREVIEW_CHARS,
    ) -> None:
        self.primary = primary
        self.fallback = fallback
        self.clock = clock
        self.max_results = int(max_results)
        self.preview_chars = int(preview_chars)

    def add_memory(self, content: str, user_id: Optional[str] = None) -> WriteResult:
        args = AddMemoryArgs(content=content, userId=user_id)
        memory = Memory.create(args.content, args.user_id, now=self.clock())

        try:
            self.primary.put(memory)
        except BackendUnavailable as e:
            logger.warning("backend unavailable, writing memory %s to fallback: %s", memory.id, e)
            self.fallback.append(memory)
            mark_path("add-memory", StorePath.FALLBACK.value)
            return WriteResult(memory, StorePath.FALLBACK)

        mark_path("add-memory", StorePath.PRIMARY.value)
        return WriteResult(memory, StorePath.PRIMARY)

    def search_memories(self, query: str, user_id: Optional[str] = None) -> SearchResult:
        args = SearchMemoriesArgs(query=query, userId=user_id)
        q = args.query.lower()

        try:
            found = self._scan_primary(args.user_id, q)
            path = StorePath.PRIMARY
        except BackendUnavailable as e:
            logger.warning("backend search failed, using fallback: %s", e)
            found = self.fallback.matching(args.user_id, lambda m: m.matches(q))
            path = StorePath.FALLBACK

        mark_path("search-memories", path.value)
        logger.info("search %r for %s: %d results (%s)", args.query, args.user_id, len(found), path.value)
        return SearchResult(args.query, args.user_id, rank_newest_first(found), path)

    def _scan_primary(self, user_id: str, query_lower: str) -> List[Memory]:
        ids = self.primary.memory_ids(user_id)
        fetched = [self.primary.get(user_id, mid) for mid in ids]
        # dangling index entries and unreadable records come back as None
        present = [m for m in fetched if m is not None]
        return [m for m in present if m.matches(query_lower)]

    def add_memory_text(self, content: str, user_id: Optional[str] = None) -> str:
        res = self.add_memory(content, user_id)
        return format_confirmation(res.memory, self.preview_chars)

    def search_memories_text(self, query: str, user_id: Optional[str] = None) -> str:
        return format_digest(self.search_memories(query, user_id), limit=self.max_results)
