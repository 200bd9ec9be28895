"""Durable replica area kept in a single JSON object file.

Writes go to a temporary file that is then renamed over the original, so a
crash never leaves a half-written replica. Blocking file I/O runs in a
worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from codex_sync.infrastructure.storage.quota import QuotaPolicy, bytes_in_use

logger = logging.getLogger(__name__)


class JsonFileReplicaStore:
    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        area: str = "local",
        quota_bytes: int | None = None,
        quota_bytes_per_item: int | None = None,
        max_items: int | None = None,
    ) -> None:
        self.path = Path(path).expanduser()
        self.area = area
        self.quota_bytes = quota_bytes
        self.quota_bytes_per_item = quota_bytes_per_item
        self.max_items = max_items
        self._policy = QuotaPolicy(quota_bytes, quota_bytes_per_item, max_items)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not text.strip():
            return {}
        data = json.loads(text)
        if not isinstance(data, dict):
            msg = f"{self.path} does not hold a JSON object"
            raise ValueError(msg)
        return data

    def _write(self, data: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        wanted = list(keys)
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return {key: data[key] for key in wanted if key in data}

    async def set(self, items: Mapping[str, Any]) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            self._policy.check(data, items)
            data.update(items)
            await asyncio.to_thread(self._write, data)
        logger.debug(
            "file_store_written",
            extra={"area": self.area, "path": str(self.path), "keys": sorted(items)},
        )

    async def remove(self, keys: Iterable[str]) -> None:
        doomed = list(keys)
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if not any(key in data for key in doomed):
                return
            for key in doomed:
                data.pop(key, None)
            await asyncio.to_thread(self._write, data)

    async def clear(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write, {})

    async def get_bytes_in_use(self, keys: Iterable[str] | None = None) -> int:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return bytes_in_use(data, keys)
