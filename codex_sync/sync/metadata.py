"""Per-replica version stamps and the persistent device identifier."""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from codex_sync.core.time_utils import now_ms, utc_now
from codex_sync.domain.events.sync_events import SyncFailed
from codex_sync.domain.exceptions.sync_exceptions import LocalStorageError, classify_remote_error
from codex_sync.domain.models.replica import ReplicaMetadata, ReplicaName, SyncMetadata
from codex_sync.sync.codec import decode_metadata
from codex_sync.sync.constants import (
    DEVICE_ID_SUFFIX_LENGTH,
    KEY_DEVICE_ID,
    KEY_SYNC_METADATA,
    UNKNOWN_DEVICE_ID,
)
from codex_sync.sync.models import StampResult

if TYPE_CHECKING:
    from codex_sync.infrastructure.messaging.event_bus import EventBus
    from codex_sync.sync.protocols import ReplicaStore

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase


def _random_suffix(length: int = DEVICE_ID_SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


class MetadataTracker:
    def __init__(
        self,
        local: ReplicaStore,
        remote: ReplicaStore,
        *,
        event_bus: EventBus | None = None,
        clock: Callable[[], int] = now_ms,
        device_id_prefix: str = "device",
    ) -> None:
        self._local = local
        self._remote = remote
        self._event_bus = event_bus
        self._clock = clock
        self._device_id_prefix = device_id_prefix

    async def _read_one(self, store: ReplicaStore, correlation_id: str | None) -> SyncMetadata:
        try:
            raw = await store.get([KEY_SYNC_METADATA])
        except Exception as exc:
            logger.warning(
                "sync_metadata_read_failed",
                extra={"area": store.area, "error": str(exc), "correlation_id": correlation_id},
            )
            return SyncMetadata()
        return decode_metadata(raw.get(KEY_SYNC_METADATA))

    async def read(self, *, correlation_id: str | None = None) -> ReplicaMetadata:
        """Read both stamps. Missing, malformed or unreadable stamps count as version 0."""
        return ReplicaMetadata(
            local=await self._read_one(self._local, correlation_id),
            remote=await self._read_one(self._remote, correlation_id),
        )

    async def get_or_create_device_id(self) -> str:
        try:
            stored = await self._local.get([KEY_DEVICE_ID])
            device_id = stored.get(KEY_DEVICE_ID)
            if isinstance(device_id, str) and device_id:
                return device_id

            device_id = f"{self._device_id_prefix}_{self._clock()}_{_random_suffix()}"
            await self._local.set({KEY_DEVICE_ID: device_id})
        except Exception:
            logger.exception("device_id_unavailable")
            return UNKNOWN_DEVICE_ID

        logger.info("device_id_created", extra={"device_id": device_id})
        return device_id

    async def stamp(
        self,
        targets: Iterable[ReplicaName],
        *,
        correlation_id: str | None = None,
    ) -> StampResult:
        """Write one fresh stamp to each requested replica.

        Local is written first. A remote failure is reported in the result and
        published as ``syncError``; a local failure raises.

        Raises:
            LocalStorageError: If the local stamp cannot be written.
        """
        wanted = set(targets)
        now = self._clock()
        metadata = SyncMetadata(
            version=now,
            last_modified=now,
            device_id=await self.get_or_create_device_id(),
        )
        result = StampResult(metadata=metadata)
        value = metadata.to_storage()

        if ReplicaName.LOCAL in wanted:
            try:
                await self._local.set({KEY_SYNC_METADATA: value})
            except Exception as exc:
                raise LocalStorageError(
                    "Failed to write sync metadata to local storage",
                    {"details": str(exc)},
                ) from exc
            result.written.append(ReplicaName.LOCAL)

        if ReplicaName.REMOTE in wanted:
            try:
                await self._remote.set({KEY_SYNC_METADATA: value})
            except Exception as exc:
                error = classify_remote_error(exc)
                result.remote_error = error.error_type
                logger.warning(
                    "sync_metadata_remote_write_failed",
                    extra={
                        "correlation_id": correlation_id,
                        "error_type": error.error_type,
                        "error": str(exc),
                    },
                )
                if self._event_bus is not None:
                    self._event_bus.publish(
                        SyncFailed(
                            occurred_at=utc_now(),
                            correlation_id=correlation_id,
                            type=error.error_type,
                            message="Failed to update remote sync metadata.",
                            details=error.details.get("details", error.message),
                            recommendation=error.recommendation,
                        )
                    )
            else:
                result.written.append(ReplicaName.REMOTE)

        logger.debug(
            "sync_metadata_stamped",
            extra={
                "correlation_id": correlation_id,
                "version": metadata.version,
                "targets": [name.value for name in result.written],
            },
        )
        return result
