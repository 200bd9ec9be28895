"""Network-backed replica area stored in one Redis hash per namespace.

Values are JSON-encoded per field. Connection and timeout failures surface
as ``NetworkError``; any other Redis failure as ``SyncStorageError``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from codex_sync.domain.exceptions.sync_exceptions import NetworkError, SyncStorageError
from codex_sync.infrastructure.redis import redis_key
from codex_sync.infrastructure.storage.quota import QuotaPolicy, bytes_in_use
from codex_sync.sync.codec import dumps_compact

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class RedisReplicaStore:
    def __init__(
        self,
        client: aioredis.Redis,
        *,
        prefix: str = "codex",
        area: str = "remote",
        quota_bytes: int | None = None,
        quota_bytes_per_item: int | None = None,
        max_items: int | None = None,
    ) -> None:
        self._client = client
        self.area = area
        self.key = redis_key(prefix, area)
        self.quota_bytes = quota_bytes
        self.quota_bytes_per_item = quota_bytes_per_item
        self.max_items = max_items
        self._policy = QuotaPolicy(quota_bytes, quota_bytes_per_item, max_items)

    @staticmethod
    def _wrap(exc: RedisError, operation: str) -> Exception:
        details = {"details": str(exc), "operation": operation}
        if isinstance(exc, RedisConnectionError | RedisTimeoutError):
            return NetworkError("Network error while accessing sync storage.", details)
        return SyncStorageError("Failed to access remote sync storage.", details)

    @staticmethod
    def _decode(raw: str | bytes | None) -> Any:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    async def _load_all(self) -> dict[str, Any]:
        raw = await self._client.hgetall(self.key)
        return {
            (field.decode() if isinstance(field, bytes) else field): self._decode(value)
            for field, value in raw.items()
        }

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        wanted = list(keys)
        if not wanted:
            return {}
        try:
            values = await self._client.hmget(self.key, wanted)
        except RedisError as exc:
            raise self._wrap(exc, "get") from exc
        return {
            key: self._decode(value) for key, value in zip(wanted, values) if value is not None
        }

    async def set(self, items: Mapping[str, Any]) -> None:
        if not items:
            return
        try:
            if not self._policy.unbounded:
                self._policy.check(await self._load_all(), items)
            await self._client.hset(
                self.key, mapping={key: dumps_compact(value) for key, value in items.items()}
            )
        except RedisError as exc:
            raise self._wrap(exc, "set") from exc
        logger.debug("redis_store_written", extra={"key": self.key, "keys": sorted(items)})

    async def remove(self, keys: Iterable[str]) -> None:
        doomed = list(keys)
        if not doomed:
            return
        try:
            await self._client.hdel(self.key, *doomed)
        except RedisError as exc:
            raise self._wrap(exc, "remove") from exc

    async def clear(self) -> None:
        try:
            await self._client.delete(self.key)
        except RedisError as exc:
            raise self._wrap(exc, "clear") from exc

    async def get_bytes_in_use(self, keys: Iterable[str] | None = None) -> int:
        try:
            data = await self._load_all()
        except RedisError as exc:
            raise self._wrap(exc, "get_bytes_in_use") from exc
        return bytes_in_use(data, keys)
