from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


def _opt(env: Mapping[str, str], name: str) -> Optional[str]:
    v = env.get(name, "").strip()
    return v or None


@dataclass(frozen=True)
class Settings:
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    redis_url: Optional[str] = None
    connect_timeout_s: float = 10.0
    command_timeout_s: float = 5.0
    key_prefix: str = ""
    bearer_token: Optional[str] = None
    max_results: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            env = os.environ
        return cls(
            redis_host=env.get("DRAGONFLY_HOST", "localhost"),
            redis_port=int(env.get("DRAGONFLY_PORT", "6379")),
            redis_db=int(env.get("DRAGONFLY_DB", "0")),
            redis_password=_opt(env, "DRAGONFLY_PASSWORD"),
            redis_url=_opt(env, "CMEM_REDIS_URL"),
            connect_timeout_s=float(env.get("CMEM_CONNECT_TIMEOUT_S", "10")),
            command_timeout_s=float(env.get("CMEM_COMMAND_TIMEOUT_S", "5")),
            key_prefix=env.get("CMEM_KEY_PREFIX", "").strip(),
            bearer_token=_opt(env, "MCP_BEARER_TOKEN"),
            max_results=int(env.get("CMEM_MAX_RESULTS", "10")),
            log_level=env.get("CMEM_LOG_LEVEL", "INFO").upper(),
        )
