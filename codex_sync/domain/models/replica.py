"""Pydantic models for the two link/category replicas and their version stamps."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CATEGORY = "Default"


class ReplicaName(StrEnum):
    """The two storage locations holding a copy of the data."""

    LOCAL = "local"
    REMOTE = "remote"


class MergeStrategy(StrEnum):
    """Policy deciding which replica wins when version stamps differ."""

    LOCAL = "local"
    REMOTE = "remote"
    MERGE = "merge"


class LinkRecord(BaseModel):
    """A single saved link.

    Field rules (lengths, URL format) are enforced by ``PayloadValidator``
    before anything is persisted, so this model only captures shape.
    Keys written by other clients are kept as extras and survive a round trip.
    """

    name: str | None = None
    url: str | None = None
    category: str | None = None
    icon: str | None = None
    size: str | None = None

    model_config = ConfigDict(extra="allow")

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


class Replica(BaseModel):
    """Snapshot of one replica: ordered links and ordered category names."""

    links: list[LinkRecord] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=lambda: [DEFAULT_CATEGORY])

    def link_count(self) -> int:
        return len(self.links)


class SyncMetadata(BaseModel):
    """Per-replica version stamp used to detect divergence."""

    version: int = 0
    last_modified: int = Field(default=0, alias="lastModified")
    device_id: str | None = Field(default=None, alias="deviceId")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ReplicaMetadata(BaseModel):
    """Metadata of both replicas, as read at the start of a cycle."""

    local: SyncMetadata = Field(default_factory=SyncMetadata)
    remote: SyncMetadata = Field(default_factory=SyncMetadata)

    model_config = ConfigDict(frozen=True)

    @property
    def in_conflict(self) -> bool:
        return self.local.version != self.remote.version
