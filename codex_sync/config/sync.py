from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from codex_sync.domain.models.replica import MergeStrategy
from codex_sync.sync.constants import DEFAULT_DEBOUNCE_MS

from ._validators import _parse_positive_int


class SyncConfig(BaseModel):
    """Sync engine behaviour."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    strategy: MergeStrategy = Field(
        default=MergeStrategy.MERGE,
        validation_alias="SYNC_STRATEGY",
        description="Default conflict-resolution strategy (merge, local, remote)",
    )
    debounce_ms: int = Field(
        default=DEFAULT_DEBOUNCE_MS,
        validation_alias="SYNC_DEBOUNCE_MS",
        description="Delay used by debounced_sync when no explicit delay is given",
    )
    device_id_prefix: str = Field(default="device", validation_alias="SYNC_DEVICE_ID_PREFIX")

    @field_validator("strategy", mode="before")
    @classmethod
    def _validate_strategy(cls, value: Any) -> MergeStrategy:
        raw = str(value or MergeStrategy.MERGE.value).strip().lower()
        try:
            return MergeStrategy(raw)
        except ValueError as exc:
            valid = sorted(member.value for member in MergeStrategy)
            msg = f"Invalid sync strategy: {raw}. Must be one of {valid}"
            raise ValueError(msg) from exc

    @field_validator("debounce_ms", mode="before")
    @classmethod
    def _validate_debounce(cls, value: Any) -> int:
        parsed = _parse_positive_int(
            value, name="Sync debounce", default=DEFAULT_DEBOUNCE_MS, allow_zero=True
        )
        if parsed > 600_000:
            msg = "Sync debounce must be at most 600000 ms"
            raise ValueError(msg)
        return parsed

    @field_validator("device_id_prefix", mode="before")
    @classmethod
    def _validate_prefix(cls, value: Any) -> str:
        prefix = str(value or "device").strip()
        if not prefix.replace("-", "").replace("_", "").isalnum():
            msg = "Device id prefix may only contain letters, digits, '-' and '_'"
            raise ValueError(msg)
        return prefix
