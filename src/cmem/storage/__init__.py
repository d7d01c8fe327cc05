from .errors import BackendUnavailable
from .fallback import InMemoryFallbackStore
from .redis_primary import RedisPrimaryStore

__all__ = ["BackendUnavailable", "InMemoryFallbackStore", "RedisPrimaryStore"]
