"""Protocol definitions (ports) for the sync engine.

The orchestrator only talks to storage and validation through these, so
the concrete backends (memory, JSON file, Redis) stay swappable.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from codex_sync.domain.services.payload_validator import ValidationResult


class ReplicaStore(Protocol):
    """Async key/value area holding one replica.

    ``quota_bytes_per_item`` / ``quota_bytes`` / ``max_items`` are ``None``
    for unbounded backends.
    """

    area: str
    quota_bytes: int | None
    quota_bytes_per_item: int | None
    max_items: int | None

    async def get(self, keys: Iterable[str]) -> dict[str, Any]: ...

    async def set(self, items: Mapping[str, Any]) -> None: ...

    async def remove(self, keys: Iterable[str]) -> None: ...

    async def clear(self) -> None: ...

    async def get_bytes_in_use(self, keys: Iterable[str] | None = None) -> int: ...


class PayloadValidatorProtocol(Protocol):
    def validate(self, payload: Any) -> ValidationResult: ...
