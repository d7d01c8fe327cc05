from __future__ import annotations

import threading
from typing import Callable, List

from cmem.core.memory import Memory


class InMemoryFallbackStore:
    """
    Process-local substitute for the primary store.
    Append-only and never persisted; entries written here are never
    replayed into the primary store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: List[Memory] = []

    def append(self, memory: Memory) -> None:
        with self._lock:
            self._items.append(memory)

    def matching(self, user_id: str, predicate: Callable[[Memory], bool]) -> List[Memory]:
        with self._lock:
            snapshot = list(self._items)
        return [m for m in snapshot if m.user_id == user_id and predicate(m)]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
