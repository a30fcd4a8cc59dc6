import base64

import pytest

from shopify_app_auth.models import AssociatedUser, Session
from shopify_app_auth.store import (
    InMemorySessionStore,
    InMemoryUserSessionStore,
    RedisSessionStore,
    RedisUserSessionStore,
    UserSessionStore,
)

KEY = base64.b64encode(b"k" * 32).decode("ascii")


def _offline(shop="shop1.myshopify.com", scope="read_products"):
    return Session(shop=shop, access_token="offline-token", scope=scope)


def _online(user_id=42, shop="shop1.myshopify.com", expires_at=None):
    return Session(
        shop=shop,
        access_token="online-token",
        scope="read_products",
        is_online=True,
        associated_user=AssociatedUser(id=user_id, email="owner@example.com"),
        expires_at=expires_at,
    )


class FakePipeline:
    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def set(self, key, value):
        self._ops.append(("set", key, value))

    def setex(self, key, ttl, value):
        self._ops.append(("setex", key, value))
        self._redis.ttls[key] = ttl

    def delete(self, key):
        self._ops.append(("delete", key, None))

    def get(self, key):
        return self._redis.data.get(key)

    def multi(self):
        self._ops = []

    def execute(self):
        for op, key, value in self._ops:
            if op == "delete":
                self._redis.data.pop(key, None)
            else:
                self._redis.data[key] = value.encode("utf-8")
        self._redis.transactions += 1


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.transactions = 0
        self.watched = []

    def pipeline(self, transaction=False):
        assert transaction
        return FakePipeline(self)

    def get(self, key):
        return self.data.get(key)

    def delete(self, key):
        self.data.pop(key, None)

    def transaction(self, func, *watches):
        self.watched.extend(watches)
        pipe = FakePipeline(self)
        func(pipe)
        pipe.execute()


def test_session_ids_follow_offline_and_online_keys():
    assert _offline().id == "shop1.myshopify.com"
    assert _online().id == "shop1.myshopify.com_42"


def test_offline_session_cannot_carry_user():
    with pytest.raises(ValueError):
        Session(shop="shop1.myshopify.com", associated_user=AssociatedUser(id=1))


def test_in_memory_store_round_trip_and_upsert():
    store = InMemorySessionStore()
    session_id = store.store(_offline())
    assert store.retrieve(session_id) == _offline()

    store.store(_offline(scope="read_products,write_orders"))
    assert len(store) == 1
    assert store.retrieve(session_id).scope.to_list() == ["read_products", "write_orders"]


def test_in_memory_store_miss_returns_none():
    assert InMemorySessionStore().retrieve("missing.myshopify.com") is None


def test_in_memory_store_is_not_user_indexed():
    assert not isinstance(InMemorySessionStore(), UserSessionStore)
    assert isinstance(InMemoryUserSessionStore(), UserSessionStore)


def test_in_memory_user_store_indexes_by_user_id():
    store = InMemoryUserSessionStore()
    session = _online()
    store.store(session)
    store.store(session)

    assert store.retrieve(session.id) == session
    assert store.retrieve_by_user_id(42) == session
    assert store.retrieve_by_user_id("42") == session
    assert len(store) == 1
    assert store.user_index_size == 1


def test_in_memory_user_store_delete_clears_index():
    store = InMemoryUserSessionStore()
    session = _online()
    store.store(session)
    store.delete(session.id)

    assert store.retrieve(session.id) is None
    assert store.retrieve_by_user_id(42) is None


def test_online_session_requires_user():
    with pytest.raises(ValueError):
        Session(shop="shop1.myshopify.com", access_token="x", is_online=True)


def test_online_session_never_takes_the_offline_key():
    store = InMemorySessionStore()
    store.store(_offline())
    store.store(_online())

    assert store.retrieve("shop1.myshopify.com").access_token == "offline-token"
    assert len(store) == 2


def test_in_memory_user_store_delete_of_stale_session_keeps_newer_index():
    store = InMemoryUserSessionStore()
    stale = _online(shop="shop1.myshopify.com")
    live = _online(shop="shop2.myshopify.com")
    store.store(stale)
    store.store(live)

    store.delete(stale.id)

    assert store.retrieve(stale.id) is None
    assert store.retrieve_by_user_id(42) == live
    assert store.user_index_size == 1


def test_redis_store_round_trip_encrypts_payload():
    redis = FakeRedis()
    store = RedisSessionStore(client=redis, encryption_key=KEY)
    session = _offline()

    session_id = store.store(session)

    raw = redis.data["shopify_session:shop1.myshopify.com"]
    assert b"offline-token" not in raw
    assert store.retrieve(session_id) == session
    assert store.retrieve("other.myshopify.com") is None


def test_redis_store_sets_ttl_for_expiring_sessions(monkeypatch):
    redis = FakeRedis()
    store = RedisUserSessionStore(client=redis, encryption_key=KEY)
    monkeypatch.setattr(store, "now", lambda: 1_700_000_000)

    store.store(_online(expires_at=1_700_000_000 + 3600))

    assert redis.ttls["shopify_session:shop1.myshopify.com_42"] == 3600
    assert redis.ttls["shopify_user_session:42"] == 3600


def test_redis_user_store_writes_index_in_one_transaction():
    redis = FakeRedis()
    store = RedisUserSessionStore(client=redis, encryption_key=KEY)
    session = _online()

    store.store(session)
    store.store(session)

    assert redis.transactions == 2
    assert redis.data["shopify_user_session:42"] == b"shop1.myshopify.com_42"
    assert store.retrieve_by_user_id(42) == session
    assert len([k for k in redis.data if k.startswith("shopify_session:")]) == 1

    store.delete(session.id)
    assert store.retrieve_by_user_id(42) is None
    assert redis.data == {}


def test_redis_store_rejects_short_key():
    with pytest.raises(ValueError):
        RedisSessionStore(client=FakeRedis(), encryption_key=base64.b64encode(b"x").decode())


def test_redis_user_store_delete_of_stale_session_keeps_newer_index():
    redis = FakeRedis()
    store = RedisUserSessionStore(client=redis, encryption_key=KEY)
    stale = _online(shop="shop1.myshopify.com")
    live = _online(shop="shop2.myshopify.com")
    store.store(stale)
    store.store(live)

    store.delete(stale.id)

    assert store.retrieve(stale.id) is None
    assert store.retrieve_by_user_id(42) == live
    assert redis.watched == ["shopify_user_session:42"]


def test_redis_store_delete_of_offline_session():
    redis = FakeRedis()
    store = RedisUserSessionStore(client=redis, encryption_key=KEY)
    store.store(_offline())

    store.delete("shop1.myshopify.com")

    assert redis.data == {}
    assert redis.watched == []
