from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, Optional, Set, Union

import pytest
import redis

from cmem.core.service import MemoryService
from cmem.storage import InMemoryFallbackStore, RedisPrimaryStore


def _decode(v):
    return v.decode("utf-8") if isinstance(v, bytes) else v


class FakeRedis:
    """
    Dict-backed stand-in for the handful of redis.Redis commands the primary
    store uses. `down` fails every command; `failing` fails named commands.
    Raw bytes may be planted in `kv`/`sets`; they are decoded on read the way
    a `decode_responses=True` client does, so invalid UTF-8 raises.
    """

    def __init__(self) -> None:
        self.kv: Dict[str, Union[str, bytes]] = {}
        self.sets: Dict[str, Set[Union[str, bytes]]] = {}
        self.down = False
        self.failing: Set[str] = set()
        self.calls: list[str] = []

    def _cmd(self, name: str) -> None:
        self.calls.append(name)
        if self.down or name in self.failing:
            raise redis.ConnectionError(f"fake outage on {name}")

    def set(self, key: str, value: str) -> bool:
        self._cmd("set")
        self.kv[key] = value
        return True

    def get(self, key: str) -> Optional[str]:
        self._cmd("get")
        return _decode(self.kv.get(key))

    def sadd(self, key: str, *members: str) -> int:
        self._cmd("sadd")
        s = self.sets.setdefault(key, set())
        before = len(s)
        s.update(members)
        return len(s) - before

    def smembers(self, key: str) -> Set[str]:
        self._cmd("smembers")
        return {_decode(m) for m in self.sets.get(key, set())}

    def execute_command(self, *args, **options):
        name = str(args[0]).lower()
        self._cmd(name)
        assert name == "smembers" and options.get("NEVER_DECODE")
        return {m if isinstance(m, bytes) else m.encode("utf-8") for m in self.sets.get(args[1], set())}

    def ping(self) -> bool:
        self._cmd("ping")
        return True

    def scan_iter(self, match: str) -> Iterator[str]:
        self._cmd("scan")
        prefix = match.rstrip("*")
        keys = [k for k in list(self.kv) + list(self.sets) if k.startswith(prefix)]
        return iter(keys)

    def delete(self, *keys: str) -> int:
        self._cmd("delete")
        n = 0
        for k in keys:
            n += int(self.kv.pop(k, None) is not None)
            n += int(self.sets.pop(k, None) is not None)
        return n


class StepClock:
    """Each call returns a time one minute after the previous one."""

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(minutes=1)) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        t = self.now
        self.now = self.now + self.step
        return t


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def primary(fake_redis: FakeRedis) -> RedisPrimaryStore:
    return RedisPrimaryStore(fake_redis)


@pytest.fixture
def fallback() -> InMemoryFallbackStore:
    return InMemoryFallbackStore()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def service(primary: RedisPrimaryStore, fallback: InMemoryFallbackStore, clock: StepClock) -> MemoryService:
    return MemoryService(primary, fallback, clock=clock)
