from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

DEFAULT_USER_ID = "quinn_may"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_memory_id() -> str:
    # 64 random bits; collisions are not checked
    return uuid.uuid4().hex[:16]


def as_utc(ts: datetime) -> datetime:
    # naive datetimes are taken to be UTC already
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    return as_utc(ts).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(raw: str) -> datetime:
    s = raw.strip()
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(s))


@dataclass(frozen=True)
class Memory:
    id: str
    content: str
    user_id: str
    timestamp: datetime

    @classmethod
    def create(cls, content: str, user_id: str, now: Optional[datetime] = None) -> "Memory":
        return cls(
            id=new_memory_id(),
            content=content,
            user_id=user_id,
            timestamp=as_utc(now) if now is not None else utc_now(),
        )

    def matches(self, query_lower: str) -> bool:
        return query_lower in self.content.lower()

    def to_record(self) -> str:
        return json.dumps(
            {
                "id": self.id,
                "content": self.content,
                "userId": self.user_id,
                "timestamp": format_timestamp(self.timestamp),
            },
            ensure_ascii=False,
        )

    @classmethod
    def from_record(cls, raw: Optional[str]) -> Optional["Memory"]:
        """
        Decode a stored record. Anything unreadable is treated as absent:
        bad JSON, a non-object payload, missing fields or a bad timestamp.
        """
        if not raw:
            return None
        try:
            d = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(d, dict):
            return None

        mid = d.get("id")
        content = d.get("content")
        user_id = d.get("userId")
        ts_raw = d.get("timestamp")
        if not isinstance(mid, str) or not isinstance(content, str):
            return None
        if not isinstance(user_id, str) or not isinstance(ts_raw, str):
            return None

        try:
            ts = parse_timestamp(ts_raw)
        except ValueError:
            return None

        return cls(id=mid, content=content, user_id=user_id, timestamp=ts)
