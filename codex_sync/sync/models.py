"""Result models returned by the public sync entry points."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from codex_sync.domain.models.replica import MergeStrategy, ReplicaName, SyncMetadata


class SyncPhase(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"
    COMPLETED = "completed"
    FAILED = "failed"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SyncOutcome(_WireModel):
    """Result of one sync cycle, shared by every caller that joined it."""

    success: bool
    time: int | None = None
    items_synced: int = Field(default=0, alias="itemsSynced")
    strategy: MergeStrategy | None = None
    conflict: bool = False
    remote_errors: list[str] = Field(default_factory=list, alias="remoteErrors")
    error: str | None = None
    error_type: str | None = Field(default=None, alias="errorType")
    timestamp: int | None = None


class ClearOutcome(_WireModel):
    success: bool
    time: int | None = None
    error: str | None = None


class StampResult(_WireModel):
    """Outcome of writing a fresh version stamp to one or both replicas."""

    metadata: SyncMetadata
    written: list[ReplicaName] = Field(default_factory=list)
    remote_error: str | None = Field(default=None, alias="remoteError")

    @property
    def success(self) -> bool:
        return self.remote_error is None


class SyncStatus(_WireModel):
    last_sync_time: int | None = Field(default=None, alias="lastSyncTime")
    local_version: int = Field(default=0, alias="localVersion")
    remote_version: int = Field(default=0, alias="remoteVersion")
    is_in_sync: bool = Field(default=False, alias="isInSync")
    sync_in_progress: bool = Field(default=False, alias="syncInProgress")
    phase: SyncPhase = SyncPhase.IDLE
    strategy: MergeStrategy = MergeStrategy.MERGE
    bytes_in_use: int | None = Field(default=None, alias="bytesInUse")
    quota_limit: int | None = Field(default=None, alias="quotaLimit")
    quota_percentage: float | None = Field(default=None, alias="quotaPercentage")
