"""Replica storage backends."""

from codex_sync.infrastructure.storage.factory import build_replica_stores
from codex_sync.infrastructure.storage.file_store import JsonFileReplicaStore
from codex_sync.infrastructure.storage.memory_store import MemoryReplicaStore
from codex_sync.infrastructure.storage.redis_store import RedisReplicaStore

__all__ = [
    "JsonFileReplicaStore",
    "MemoryReplicaStore",
    "RedisReplicaStore",
    "build_replica_stores",
]
