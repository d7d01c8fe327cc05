from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from cmem.core.memory import Memory
from cmem.storage import BackendUnavailable, RedisPrimaryStore


def _m(mid: str = "abc", user_id: str = "u1", content: str = "likes tea") -> Memory:
    return Memory(id=mid, content=content, user_id=user_id, timestamp=datetime(2024, 5, 1, tzinfo=timezone.utc))


def test_put_writes_record_then_index(primary, fake_redis):
    primary.put(_m())
    assert fake_redis.calls == ["set", "sadd"]
    assert json.loads(fake_redis.kv["memory:u1:abc"])["content"] == "likes tea"
    assert fake_redis.sets["search:u1"] == {"abc"}


def test_prefix_namespaces_keys(fake_redis):
    store = RedisPrimaryStore(fake_redis, prefix="t")
    store.put(_m())
    assert "t:memory:u1:abc" in fake_redis.kv
    assert "t:search:u1" in fake_redis.sets


def test_get_missing_and_corrupt_records_are_none(primary, fake_redis):
    assert primary.get("u1", "nope") is None
    fake_redis.kv["memory:u1:bad"] = "{oops"
    assert primary.get("u1", "bad") is None


def test_undecodable_records_are_none(primary, fake_redis):
    fake_redis.kv["memory:u1:bin"] = b"\xff\xfe not utf8"
    assert primary.get("u1", "bin") is None


def test_undecodable_index_members_are_skipped(primary, fake_redis):
    primary.put(_m("good"))
    fake_redis.sets["search:u1"].add(b"\xff\xfe")
    assert primary.memory_ids("u1") == ["good"]


def test_round_trip(primary):
    m = _m()
    primary.put(m)
    assert primary.memory_ids("u1") == ["abc"]
    assert primary.get("u1", "abc") == m
    assert primary.memory_ids("someone-else") == []


@pytest.mark.parametrize("failing", ["set", "sadd"])
def test_write_errors_become_backend_unavailable(primary, fake_redis, failing):
    fake_redis.failing.add(failing)
    with pytest.raises(BackendUnavailable) as ei:
        primary.put(_m())
    assert ei.value.op == "put"


def test_sadd_failure_leaves_unindexed_record(primary, fake_redis):
    fake_redis.failing.add("sadd")
    with pytest.raises(BackendUnavailable):
        primary.put(_m())
    assert "memory:u1:abc" in fake_redis.kv
    assert "search:u1" not in fake_redis.sets


def test_read_errors_become_backend_unavailable(primary, fake_redis):
    fake_redis.down = True
    with pytest.raises(BackendUnavailable):
        primary.memory_ids("u1")
    with pytest.raises(BackendUnavailable):
        primary.get("u1", "abc")


def test_ping(primary, fake_redis):
    assert primary.ping() is True
    fake_redis.down = True
    assert primary.ping() is False
