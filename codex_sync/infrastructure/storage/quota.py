"""Byte and item accounting for quota-limited replica areas.

Sizes are counted like a browser sync area does: key length plus the length
of the JSON-encoded value. Error messages carry the same ``QUOTA_BYTES`` /
``MAX_ITEMS`` markers such areas report, so callers can classify them the
same way.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from codex_sync.domain.exceptions.sync_exceptions import MaxItemsExceededError, QuotaExceededError
from codex_sync.sync.codec import dumps_compact


def item_size(key: str, value: Any) -> int:
    return len(key.encode()) + len(dumps_compact(value).encode())


def bytes_in_use(data: Mapping[str, Any], keys: Iterable[str] | None = None) -> int:
    selected = data.keys() if keys is None else [key for key in keys if key in data]
    return sum(item_size(key, data[key]) for key in selected)


@dataclass(frozen=True)
class QuotaPolicy:
    quota_bytes: int | None = None
    quota_bytes_per_item: int | None = None
    max_items: int | None = None

    @property
    def unbounded(self) -> bool:
        return (
            self.quota_bytes is None
            and self.quota_bytes_per_item is None
            and self.max_items is None
        )

    def check_items(self, items: Mapping[str, Any]) -> None:
        """Raise ``QuotaExceededError`` if any single item is over the per-item limit."""
        limit = self.quota_bytes_per_item
        if limit is None:
            return
        for key, value in items.items():
            size = item_size(key, value)
            if size > limit:
                raise QuotaExceededError(
                    "QUOTA_BYTES_PER_ITEM quota exceeded",
                    {
                        "details": f"{key} needs {size} bytes, per-item limit is {limit}",
                        "key": key,
                        "payload_bytes": size,
                        "limit": limit,
                    },
                )

    def check(self, current: Mapping[str, Any], items: Mapping[str, Any]) -> None:
        """Raise if writing ``items`` over ``current`` would break a limit.

        Raises:
            QuotaExceededError: Per-item or total byte limit exceeded.
            MaxItemsExceededError: Item-count limit exceeded.
        """
        if self.unbounded:
            return

        self.check_items(items)

        merged = {**current, **items}
        if self.max_items is not None and len(merged) > self.max_items:
            raise MaxItemsExceededError(
                "MAX_ITEMS quota exceeded",
                {"details": f"{len(merged)} items", "limit": self.max_items},
            )

        if self.quota_bytes is not None:
            total = bytes_in_use(merged)
            if total > self.quota_bytes:
                raise QuotaExceededError(
                    "QUOTA_BYTES quota exceeded",
                    {"details": f"{total} bytes", "limit": self.quota_bytes},
                )
