"""Unit tests for RedisReplicaStore backed by fakeredis."""

from __future__ import annotations

from unittest.mock import AsyncMock

import fakeredis
import fakeredis.aioredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from codex_sync.domain.exceptions.sync_exceptions import (
    NetworkError,
    QuotaExceededError,
    SyncStorageError,
)
from codex_sync.infrastructure.redis import redis_key
from codex_sync.infrastructure.storage.redis_store import RedisReplicaStore


@pytest.fixture
def redis_client():
    return fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


def test_redis_key():
    assert redis_key("codex", "remote") == "codex:remote"
    assert redis_key("codex", "", "remote") == "codex:remote"


@pytest.mark.asyncio
async def test_roundtrip_uses_one_hash(redis_client):
    store = RedisReplicaStore(redis_client, prefix="test")
    await store.set({"links": "[]", "syncMetadata": {"version": 3}})

    assert store.key == "test:remote"
    assert await redis_client.hgetall("test:remote") == {
        "links": '"[]"',
        "syncMetadata": '{"version":3}',
    }
    assert await store.get(["links", "syncMetadata", "missing"]) == {
        "links": "[]",
        "syncMetadata": {"version": 3},
    }


@pytest.mark.asyncio
async def test_remove_and_clear(redis_client):
    store = RedisReplicaStore(redis_client)
    await store.set({"a": 1, "b": 2})

    await store.remove(["a"])
    assert await store.get(["a", "b"]) == {"b": 2}

    await store.clear()
    assert await redis_client.exists(store.key) == 0


@pytest.mark.asyncio
async def test_bytes_in_use(redis_client):
    store = RedisReplicaStore(redis_client)
    await store.set({"links": "[]"})

    assert await store.get_bytes_in_use() == len("links") + len('"[]"')
    assert await store.get_bytes_in_use(["other"]) == 0


@pytest.mark.asyncio
async def test_quota_enforced_before_write(redis_client):
    store = RedisReplicaStore(redis_client, quota_bytes_per_item=16)

    with pytest.raises(QuotaExceededError):
        await store.set({"links": "x" * 64})

    assert await redis_client.exists(store.key) == 0


@pytest.mark.asyncio
async def test_connection_error_maps_to_network_error():
    client = AsyncMock()
    client.hmget.side_effect = RedisConnectionError("Connection refused")
    store = RedisReplicaStore(client)

    with pytest.raises(NetworkError) as exc_info:
        await store.get(["links"])

    assert exc_info.value.error_type == "network_error"
    assert exc_info.value.details["operation"] == "get"


@pytest.mark.asyncio
async def test_other_redis_errors_map_to_storage_error():
    client = AsyncMock()
    client.hset.side_effect = ResponseError("WRONGTYPE")
    store = RedisReplicaStore(client)

    with pytest.raises(SyncStorageError):
        await store.set({"links": "[]"})
