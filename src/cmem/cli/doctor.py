from __future__ import annotations

import hashlib
import json
import platform
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

import redis

from cmem import __version__
from cmem.config import Settings
from cmem.core.memory import Memory
from cmem.core.service import MemoryService, StorePath
from cmem.storage import BackendUnavailable, InMemoryFallbackStore, RedisPrimaryStore

DOCTOR_PREFIX = "cmem_doctor"


@dataclass
class CheckResult:
    name: str
    ok: bool
    details: Dict[str, Any]


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _write(path: str, s: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(s)


class UnreachablePrimary:
    """Primary store stand-in whose every call fails, to drive the fallback path."""

    def put(self, memory: Memory) -> None:
        raise BackendUnavailable("put", ConnectionError("doctor: forced outage"))

    def memory_ids(self, user_id: str) -> List[str]:
        raise BackendUnavailable("memory_ids", ConnectionError("doctor: forced outage"))

    def get(self, user_id: str, memory_id: str) -> Optional[Memory]:
        raise BackendUnavailable("get", ConnectionError("doctor: forced outage"))

    def ping(self) -> bool:
        return False


def _round_trip(service: MemoryService, user_id: str, expect: StorePath) -> CheckResult:
    marker = f"doctor probe {int(time.time() * 1000)}"
    w = service.add_memory(marker, user_id)
    s = service.search_memories(marker.upper(), user_id)
    found = any(m.id == w.memory.id for m in s.matches)
    return CheckResult(
        f"{expect.value}_round_trip",
        bool(found and w.path == expect and s.path == expect),
        {"write_path": w.path.value, "search_path": s.path.value, "found": found},
    )


def run_doctor(settings: Settings, user_id: str, report_out: str, strict: bool) -> int:
    env: Dict[str, Any] = {
        "timestamp_utc": _now_iso(),
        "os": f"{platform.system()} {platform.release()} ({platform.machine()})",
        "python": platform.python_version(),
        "redis_url": settings.redis_url or f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}",
        "redis_py": redis.__version__,
        "connect_timeout_s": settings.connect_timeout_s,
        "command_timeout_s": settings.command_timeout_s,
    }

    checks: List[CheckResult] = []

    primary = RedisPrimaryStore.from_settings(replace(settings, key_prefix=DOCTOR_PREFIX))
    reachable = primary.ping()
    checks.append(
        CheckResult(
            "backend_available",
            (reachable or not strict),
            {"ping": reachable, "mode": ("primary" if reachable else ("strict" if strict else "degraded_fallback"))},
        )
    )

    if reachable:
        for k in primary.r.scan_iter(f"{DOCTOR_PREFIX}:*"):
            primary.r.delete(k)
        checks.append(_round_trip(MemoryService(primary, InMemoryFallbackStore()), user_id, StorePath.PRIMARY))
        for k in primary.r.scan_iter(f"{DOCTOR_PREFIX}:*"):
            primary.r.delete(k)

    checks.append(_round_trip(MemoryService(UnreachablePrimary(), InMemoryFallbackStore()), user_id, StorePath.FALLBACK))

    ok_all = all(c.ok for c in checks)
    summary = {"cmem_version": __version__, "timestamp_utc": _now_iso(), "ok": bool(ok_all)}

    report = {
        "summary": summary,
        "environment": env,
        "checks": [{"name": c.name, "ok": c.ok, "details": c.details} for c in checks],
    }
    blob = json.dumps(report, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    summary["report_signature"] = hashlib.sha256(blob.encode("utf-8")).hexdigest()[:16]

    _write(report_out, json.dumps(report, indent=2, ensure_ascii=False))
    print(f"cmem doctor: {'PASS' if ok_all else 'FAIL'} ({report_out})")

    return 0 if ok_all else (1 if strict else 0)
