from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from codex_sync.sync.constants import (
    DEFAULT_REMOTE_MAX_ITEMS,
    DEFAULT_REMOTE_QUOTA_BYTES,
    DEFAULT_REMOTE_QUOTA_BYTES_PER_ITEM,
)

from ._validators import _parse_optional_limit

REMOTE_BACKENDS = ("memory", "file", "redis")


class StorageConfig(BaseModel):
    """Where the two replicas live and how big the remote one may get."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    local_path: str = Field(
        default="~/.codex/local.json",
        validation_alias="LOCAL_STORE_PATH",
        description="JSON file backing the local replica",
    )
    remote_backend: str = Field(
        default="file",
        validation_alias="REMOTE_BACKEND",
        description="Remote replica backend: memory, file or redis",
    )
    remote_path: str = Field(
        default="~/.codex/remote.json",
        validation_alias="REMOTE_STORE_PATH",
        description="JSON file backing the remote replica when REMOTE_BACKEND=file",
    )
    remote_quota_bytes: int | None = Field(
        default=DEFAULT_REMOTE_QUOTA_BYTES, validation_alias="REMOTE_QUOTA_BYTES"
    )
    remote_quota_bytes_per_item: int | None = Field(
        default=DEFAULT_REMOTE_QUOTA_BYTES_PER_ITEM,
        validation_alias="REMOTE_QUOTA_BYTES_PER_ITEM",
    )
    remote_max_items: int | None = Field(
        default=DEFAULT_REMOTE_MAX_ITEMS, validation_alias="REMOTE_MAX_ITEMS"
    )

    @field_validator("remote_backend", mode="before")
    @classmethod
    def _validate_backend(cls, value: Any) -> str:
        backend = str(value or "file").strip().lower()
        if backend not in REMOTE_BACKENDS:
            msg = f"Invalid remote backend: {backend}. Must be one of {list(REMOTE_BACKENDS)}"
            raise ValueError(msg)
        return backend

    @field_validator(
        "remote_quota_bytes", "remote_quota_bytes_per_item", "remote_max_items", mode="before"
    )
    @classmethod
    def _validate_limits(cls, value: Any, info: ValidationInfo) -> int | None:
        default = cls.model_fields[info.field_name].default
        return _parse_optional_limit(value, name=info.field_name, default=default)
