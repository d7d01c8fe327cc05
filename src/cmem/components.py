from __future__ import annotations

from typing import Tuple

from cmem.config import Settings
from cmem.core.service import MemoryService
from cmem.storage import InMemoryFallbackStore, RedisPrimaryStore


def build_components(settings: Settings) -> Tuple[MemoryService, RedisPrimaryStore, InMemoryFallbackStore]:
    """One shared backend handle and one fallback store per process."""
    primary = RedisPrimaryStore.from_settings(settings)
    fallback = InMemoryFallbackStore()
    service = MemoryService(primary, fallback, max_results=settings.max_results)
    return service, primary, fallback
