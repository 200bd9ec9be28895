"""Lifecycle events published by the sync orchestrator.

UI status indicators subscribe to these instead of polling the orchestrator.
``name`` is the wire vocabulary used by existing listeners.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from codex_sync.domain.models.replica import MergeStrategy, ReplicaMetadata


@dataclass(frozen=True)
class SyncEvent:
    """Base class for all sync lifecycle events."""

    name: ClassVar[str] = "syncEvent"

    occurred_at: datetime
    correlation_id: str | None = None

    def __post_init__(self) -> None:
        """Validate event data after initialization."""
        if not isinstance(self.occurred_at, datetime):
            raise TypeError("occurred_at must be a datetime")

    def payload(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class SyncStarted(SyncEvent):
    """A sync cycle has begun."""

    name: ClassVar[str] = "syncStart"

    time: int = 0

    def payload(self) -> dict[str, Any]:
        return {"time": self.time}


@dataclass(frozen=True)
class SyncCompleted(SyncEvent):
    """A sync cycle finished and the resolved data was persisted locally."""

    name: ClassVar[str] = "syncComplete"

    time: int = 0
    items_synced: int = 0
    strategy: MergeStrategy = MergeStrategy.MERGE
    metadata: ReplicaMetadata = field(default_factory=ReplicaMetadata)

    def __post_init__(self) -> None:
        """Validate event data."""
        super().__post_init__()
        if self.items_synced < 0:
            raise ValueError("items_synced must not be negative")

    def payload(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "itemsSynced": self.items_synced,
            "strategy": self.strategy.value,
            "metadata": {
                "local": self.metadata.local.to_storage(),
                "remote": self.metadata.remote.to_storage(),
            },
        }


@dataclass(frozen=True)
class SyncFailed(SyncEvent):
    """Something went wrong; fatal or not is decided by ``type``."""

    name: ClassVar[str] = "syncError"

    type: str = "sync_failed"
    message: str = ""
    details: Any = None
    recommendation: str | None = None

    def payload(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "message": self.message,
            "details": self.details,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class SyncCleared(SyncEvent):
    """Remote data and local sync bookkeeping were wiped."""

    name: ClassVar[str] = "syncCleared"

    time: int = 0

    def payload(self) -> dict[str, Any]:
        return {"time": self.time}
