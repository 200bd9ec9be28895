"""In-process replica area.

Used as the default remote in tests and for ephemeral sessions. With quota
limits set it behaves like a browser sync area, failing writes that would
exceed per-item bytes, total bytes or item count.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Iterable, Mapping
from typing import Any

from codex_sync.infrastructure.storage.quota import QuotaPolicy, bytes_in_use


class MemoryReplicaStore:
    def __init__(
        self,
        area: str = "local",
        *,
        quota_bytes: int | None = None,
        quota_bytes_per_item: int | None = None,
        max_items: int | None = None,
        initial: Mapping[str, Any] | None = None,
    ) -> None:
        self.area = area
        self.quota_bytes = quota_bytes
        self.quota_bytes_per_item = quota_bytes_per_item
        self.max_items = max_items
        self._policy = QuotaPolicy(quota_bytes, quota_bytes_per_item, max_items)
        self._data: dict[str, Any] = copy.deepcopy(dict(initial or {}))

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        # Every call suspends, like a real backend would.
        await asyncio.sleep(0)
        return {key: copy.deepcopy(self._data[key]) for key in keys if key in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        await asyncio.sleep(0)
        self._policy.check(self._data, items)
        self._data.update(copy.deepcopy(dict(items)))

    async def remove(self, keys: Iterable[str]) -> None:
        await asyncio.sleep(0)
        for key in keys:
            self._data.pop(key, None)

    async def clear(self) -> None:
        await asyncio.sleep(0)
        self._data.clear()

    async def get_bytes_in_use(self, keys: Iterable[str] | None = None) -> int:
        await asyncio.sleep(0)
        return bytes_in_use(self._data, keys)

    def snapshot(self) -> dict[str, Any]:
        """Copy of everything stored, for inspection."""
        return copy.deepcopy(self._data)
