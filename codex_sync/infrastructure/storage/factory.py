"""Build the local and remote replica stores from configuration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from codex_sync.infrastructure.storage.file_store import JsonFileReplicaStore
from codex_sync.infrastructure.storage.memory_store import MemoryReplicaStore
from codex_sync.infrastructure.storage.redis_store import RedisReplicaStore

if TYPE_CHECKING:
    import redis.asyncio as aioredis

    from codex_sync.config import AppConfig
    from codex_sync.sync.protocols import ReplicaStore

logger = logging.getLogger(__name__)


def build_replica_stores(
    cfg: AppConfig,
    *,
    redis_client: aioredis.Redis | None = None,
) -> tuple[ReplicaStore, ReplicaStore]:
    """Return ``(local, remote)`` stores for the configured backends.

    Raises:
        ValueError: If the redis backend is selected without a client.
    """
    storage = cfg.storage
    local = JsonFileReplicaStore(storage.local_path, area="local")
    limits = {
        "quota_bytes": storage.remote_quota_bytes,
        "quota_bytes_per_item": storage.remote_quota_bytes_per_item,
        "max_items": storage.remote_max_items,
    }

    remote: ReplicaStore
    if storage.remote_backend == "memory":
        remote = MemoryReplicaStore("remote", **limits)
    elif storage.remote_backend == "redis":
        if redis_client is None:
            msg = "REMOTE_BACKEND=redis requires a Redis client"
            raise ValueError(msg)
        remote = RedisReplicaStore(redis_client, prefix=cfg.redis.prefix, area="remote", **limits)
    else:
        remote = JsonFileReplicaStore(storage.remote_path, area="remote", **limits)

    logger.info(
        "replica_stores_built",
        extra={"local_path": str(local.path), "remote_backend": storage.remote_backend},
    )
    return local, remote
