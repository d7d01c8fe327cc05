from __future__ import annotations

import logging
from typing import List, Optional

import redis

from cmem.config import Settings
from cmem.core.memory import Memory
from cmem.storage.errors import BackendUnavailable

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (redis.RedisError, OSError)


def _decodable(members, key: str) -> List[str]:
    out: List[str] = []
    for m in members or ():
        if isinstance(m, bytes):
            try:
                m = m.decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("skipping undecodable index member in %s", key)
                continue
        out.append(m)
    return out


class RedisPrimaryStore:
    """
    Per-user memory storage on a Redis-protocol backend (Redis, DragonflyDB).

    Layout:
      memory:<user_id>:<id>  -> JSON record
      search:<user_id>       -> set of memory ids
    """

    def __init__(self, client: redis.Redis, prefix: str = "") -> None:
        self.r = client
        self.prefix = prefix

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisPrimaryStore":
        opts = dict(
            decode_responses=True,
            socket_connect_timeout=settings.connect_timeout_s,
            socket_timeout=settings.command_timeout_s,
        )
        if settings.redis_url:
            client = redis.Redis.from_url(settings.redis_url, **opts)
        else:
            client = redis.Redis(
                host=settings.redis_host,
                port=settings.redis_port,
                db=settings.redis_db,
                password=settings.redis_password,
                **opts,
            )
        return cls(client, prefix=settings.key_prefix)

    def _k(self, key: str) -> str:
        return f"{self.prefix}:{key}" if self.prefix else key

    def memory_key(self, user_id: str, memory_id: str) -> str:
        return self._k(f"memory:{user_id}:{memory_id}")

    def index_key(self, user_id: str) -> str:
        return self._k(f"search:{user_id}")

    def put(self, memory: Memory) -> None:
        # SET then SADD, not a transaction: a failure in between leaves a
        # record with no index entry, which search never sees.
        mkey = self.memory_key(memory.user_id, memory.id)
        try:
            self.r.set(mkey, memory.to_record())
            self.r.sadd(self.index_key(memory.user_id), memory.id)
        except _BACKEND_ERRORS as e:
            raise BackendUnavailable("put", e) from e
        logger.debug("stored %s", mkey)

    def memory_ids(self, user_id: str) -> List[str]:
        key = self.index_key(user_id)
        try:
            try:
                ids = self.r.smembers(key)
            except UnicodeDecodeError:
                # some member is not UTF-8: re-read undecoded and drop those
                raw = self.r.execute_command("SMEMBERS", key, NEVER_DECODE=True)
                ids = _decodable(raw, key)
        except _BACKEND_ERRORS as e:
            raise BackendUnavailable("memory_ids", e) from e
        return sorted(ids or ())

    def get(self, user_id: str, memory_id: str) -> Optional[Memory]:
        mkey = self.memory_key(user_id, memory_id)
        try:
            raw = self.r.get(mkey)
        except _BACKEND_ERRORS as e:
            raise BackendUnavailable("get", e) from e
        except UnicodeDecodeError:
            logger.debug("undecodable record %s", mkey)
            return None
        if raw is None:
            return None
        mem = Memory.from_record(raw)
        if mem is None:
            logger.debug("unreadable record %s", mkey)
        return mem

    def ping(self) -> bool:
        try:
            return bool(self.r.ping())
        except _BACKEND_ERRORS as e:
            logger.warning("backend ping failed: %s", e)
            return False
