from datetime import timedelta

import jwt
import pytest

from storefront.config import Settings
from storefront.sessions import (
    InMemorySessionStore,
    RedisSessionStore,
    build_session_store,
    issue_token,
    resolve_token,
    revoke_token,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, seconds, value):
        self.data[key] = value
        self.ttls[key] = seconds

    def delete(self, key):
        self.data.pop(key, None)


@pytest.fixture
def config():
    return Settings(session_secret="sessions-test-secret-of-at-least-32-bytes", session_ttl_days=30)


def test_memory_store_expires_entries():
    clock = FakeClock()
    store = InMemorySessionStore(clock=clock)
    store.set("a", 1, timedelta(seconds=10))
    assert store.get("a") == 1

    clock.now += 11
    assert store.get("a") is None
    assert len(store) == 0


def test_memory_store_purge_expired():
    clock = FakeClock()
    store = InMemorySessionStore(clock=clock)
    store.set("short", 1, timedelta(seconds=5))
    store.set("long", 2, timedelta(days=1))

    clock.now += 6
    assert store.purge_expired() == 1
    assert store.get("long") == 2


def test_memory_store_delete():
    store = InMemorySessionStore()
    store.set("a", 1, timedelta(minutes=1))
    store.delete("a")
    store.delete("missing")
    assert store.get("a") is None


def test_token_round_trip_and_revoke(config):
    store = InMemorySessionStore()
    token = issue_token(store, 42, config)
    assert resolve_token(store, token, config) == 42

    revoke_token(store, token, config)
    assert resolve_token(store, token, config) is None


def test_token_signed_with_other_secret_is_rejected(config):
    store = InMemorySessionStore()
    issue_token(store, 42, config)
    forged = jwt.encode({"sid": "whatever"}, "other", algorithm="HS256")
    assert resolve_token(store, forged, config) is None
    assert resolve_token(store, "garbage", config) is None


def test_token_without_live_session_is_rejected(config):
    store = InMemorySessionStore()
    token = issue_token(store, 7, config)
    other_store = InMemorySessionStore()
    assert resolve_token(other_store, token, config) is None


def test_redis_store_uses_expiring_keys():
    client = FakeRedis()
    store = RedisSessionStore(client)
    store.set("abc", 5, timedelta(days=30))

    assert client.ttls["session:abc"] == 30 * 24 * 60 * 60
    assert store.get("abc") == 5
    store.delete("abc")
    assert store.get("abc") is None
    assert store.purge_expired() == 0


def test_build_session_store_memory():
    assert isinstance(build_session_store(Settings(session_backend="memory")), InMemorySessionStore)


def test_build_session_store_rejects_unknown_backend():
    with pytest.raises(ValueError):
        build_session_store(Settings(session_backend="memcached"))
