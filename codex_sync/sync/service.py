"""Sync orchestrator: runs one reconcile-and-persist cycle at a time.

A cycle reads both replicas and their stamps, resolves divergence, validates
the result, writes it to local (must succeed) and remote (best effort),
re-stamps whatever was written and reports through the event bus.

Callers that arrive while a cycle is running do not start another one: they
wait for the running cycle and receive its outcome object.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from codex_sync.core.logging_utils import generate_correlation_id
from codex_sync.core.time_utils import now_ms, utc_now
from codex_sync.domain.events.sync_events import (
    SyncCleared,
    SyncCompleted,
    SyncFailed,
    SyncStarted,
)
from codex_sync.domain.exceptions.sync_exceptions import (
    LocalStorageError,
    RemoteStorageError,
    SaveFailureError,
    SyncError,
    ValidationError,
    classify_remote_error,
)
from codex_sync.domain.models.replica import MergeStrategy, Replica, ReplicaName
from codex_sync.domain.services.payload_validator import PayloadValidator
from codex_sync.infrastructure.messaging.event_bus import EventBus
from codex_sync.infrastructure.storage.quota import QuotaPolicy
from codex_sync.sync.codec import (
    ReplicaDecodeError,
    decode_or_default,
    decode_replica,
    encode_replica,
)
from codex_sync.sync.constants import (
    DEFAULT_DEBOUNCE_MS,
    KEY_LAST_SYNC_TIME,
    KEY_SYNC_METADATA,
    KEY_SYNC_STRATEGY,
    REPLICA_KEYS,
)
from codex_sync.sync.merge import ConflictResolver
from codex_sync.sync.metadata import MetadataTracker
from codex_sync.sync.models import ClearOutcome, SyncOutcome, SyncPhase, SyncStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from codex_sync.config import SyncConfig
    from codex_sync.infrastructure.messaging.event_bus import EventHandler, Unsubscribe
    from codex_sync.sync.protocols import PayloadValidatorProtocol, ReplicaStore

logger = logging.getLogger(__name__)


@dataclass
class SyncState:
    """Mutable process-wide sync bookkeeping, owned by one orchestrator."""

    strategy: MergeStrategy = MergeStrategy.MERGE
    in_progress: bool = False
    phase: SyncPhase = SyncPhase.IDLE
    last_sync_time: int | None = None
    pending: deque[asyncio.Future[SyncOutcome]] = field(default_factory=deque)


class SyncOrchestrator:
    def __init__(
        self,
        local: ReplicaStore,
        remote: ReplicaStore,
        *,
        event_bus: EventBus | None = None,
        validator: PayloadValidatorProtocol | None = None,
        resolver: ConflictResolver | None = None,
        tracker: MetadataTracker | None = None,
        config: SyncConfig | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._local = local
        self._remote = remote
        self._event_bus = event_bus or EventBus()
        self._validator = validator or PayloadValidator()
        self._resolver = resolver or ConflictResolver()
        self._clock = clock
        self._tracker = tracker or MetadataTracker(
            local,
            remote,
            event_bus=self._event_bus,
            clock=clock,
            device_id_prefix=config.device_id_prefix if config else "device",
        )
        self._debounce_ms = config.debounce_ms if config else DEFAULT_DEBOUNCE_MS
        self._state = SyncState(strategy=config.strategy if config else MergeStrategy.MERGE)
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._background: set[asyncio.Task[SyncOutcome]] = set()

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def tracker(self) -> MetadataTracker:
        return self._tracker

    @property
    def in_progress(self) -> bool:
        return self._state.in_progress

    @property
    def last_sync_time(self) -> int | None:
        return self._state.last_sync_time

    @property
    def strategy(self) -> MergeStrategy:
        return self._state.strategy

    @property
    def phase(self) -> SyncPhase:
        return self._state.phase

    def subscribe(
        self, handler: EventHandler[Any], event_type: type[Any] | None = None
    ) -> Unsubscribe:
        return self._event_bus.subscribe(handler, event_type)

    async def initialize(self) -> None:
        """Hydrate ``last_sync_time`` and the default strategy from local storage."""
        try:
            stored = await self._local.get([KEY_LAST_SYNC_TIME, KEY_SYNC_STRATEGY])
        except Exception:
            logger.exception("sync_state_hydration_failed")
            return

        last_sync = stored.get(KEY_LAST_SYNC_TIME)
        if isinstance(last_sync, int) and not isinstance(last_sync, bool):
            self._state.last_sync_time = last_sync

        raw_strategy = stored.get(KEY_SYNC_STRATEGY)
        if raw_strategy is not None:
            try:
                self._state.strategy = MergeStrategy(raw_strategy)
            except ValueError:
                logger.warning("sync_strategy_unknown", extra={"value": repr(raw_strategy)})

        logger.info(
            "sync_state_initialized",
            extra={
                "last_sync_time": self._state.last_sync_time,
                "strategy": self._state.strategy.value,
            },
        )

    async def set_strategy(self, strategy: MergeStrategy | str) -> MergeStrategy:
        """Change and persist the default conflict-resolution strategy.

        Raises:
            ValueError: If ``strategy`` is not a known strategy name.
        """
        resolved = MergeStrategy(strategy)
        self._state.strategy = resolved
        try:
            await self._local.set({KEY_SYNC_STRATEGY: resolved.value})
        except Exception:
            logger.warning("sync_strategy_persist_failed", exc_info=True)
        logger.info("sync_strategy_changed", extra={"strategy": resolved.value})
        return resolved

    # ------------------------------------------------------------------
    # Sync cycle
    # ------------------------------------------------------------------

    async def sync(self, force_strategy: MergeStrategy | str | None = None) -> SyncOutcome:
        """Run a sync cycle, or join the one already running.

        Never raises: failures come back as ``SyncOutcome(success=False)``.
        """
        try:
            strategy = MergeStrategy(force_strategy) if force_strategy else self._state.strategy
        except ValueError:
            return SyncOutcome(
                success=False,
                error=f"Unknown sync strategy: {force_strategy!r}",
                error_type="invalid_strategy",
                timestamp=self._clock(),
            )

        if self._state.in_progress:
            waiter: asyncio.Future[SyncOutcome] = asyncio.get_running_loop().create_future()
            self._state.pending.append(waiter)
            logger.info(
                "sync_request_coalesced", extra={"queued": len(self._state.pending)}
            )
            return await waiter

        self._state.in_progress = True
        self._state.phase = SyncPhase.SYNCING
        outcome: SyncOutcome | None = None
        try:
            # Yield once so callers from the same loop tick queue behind this
            # cycle even when every backend call completes without suspending.
            await asyncio.sleep(0)
            outcome = await self._run_cycle(strategy, generate_correlation_id())
            return outcome
        finally:
            self._state.in_progress = False
            if outcome is None:
                outcome = SyncOutcome(
                    success=False,
                    error="Sync cycle was interrupted",
                    error_type="sync_failed",
                    timestamp=self._clock(),
                )
            self._state.phase = SyncPhase.COMPLETED if outcome.success else SyncPhase.FAILED
            self._release_waiters(outcome)

    def _release_waiters(self, outcome: SyncOutcome) -> None:
        while self._state.pending:
            waiter = self._state.pending.popleft()
            if not waiter.done():
                waiter.set_result(outcome)

    async def _run_cycle(self, strategy: MergeStrategy, correlation_id: str) -> SyncOutcome:
        started = self._clock()
        self._publish(
            SyncStarted(occurred_at=utc_now(), correlation_id=correlation_id, time=started)
        )
        logger.info(
            "sync_started", extra={"correlation_id": correlation_id, "strategy": strategy.value}
        )
        remote_errors: list[str] = []

        try:
            local_replica = await self._read_local(correlation_id)
            remote_replica = await self._read_remote(correlation_id, remote_errors)
            metadata = await self._tracker.read(correlation_id=correlation_id)

            if remote_replica is None:
                # Remote unreadable: nothing to reconcile against.
                resolved, conflict = local_replica, False
            else:
                resolution = self._resolver.resolve(
                    local_replica,
                    remote_replica,
                    metadata,
                    strategy,
                    correlation_id=correlation_id,
                )
                resolved, conflict = resolution.replica, resolution.conflict

            payload = encode_replica(resolved)
            validation = self._validator.validate(payload)
            if not validation.valid:
                raise ValidationError(
                    f"Data validation failed: {', '.join(validation.errors)}",
                    validation.errors,
                )

            try:
                await self._persist_local(payload)
                remote_current = (
                    remote_replica is not None
                    and not conflict
                    and encode_replica(remote_replica) == payload
                )
                remote_written = remote_current or await self._persist_remote(
                    payload, correlation_id, remote_errors
                )

                targets = [ReplicaName.LOCAL]
                if remote_written:
                    targets.append(ReplicaName.REMOTE)
                stamp = await self._tracker.stamp(targets, correlation_id=correlation_id)
                if stamp.remote_error:
                    remote_errors.append(stamp.remote_error)

                finished = self._clock()
                try:
                    await self._local.set({KEY_LAST_SYNC_TIME: finished})
                except Exception as exc:
                    raise LocalStorageError(
                        "Failed to record last sync time", {"details": str(exc)}
                    ) from exc
            except SyncError:
                raise
            except Exception as exc:
                raise SaveFailureError("Failed to save sync data", {"details": str(exc)}) from exc

        except SyncError as exc:
            return self._fail(exc, correlation_id, started)
        except Exception as exc:
            logger.exception("sync_unexpected_error", extra={"correlation_id": correlation_id})
            return self._fail(
                SyncError(
                    "Synchronization failed due to an unexpected error.", {"details": str(exc)}
                ),
                correlation_id,
                started,
            )

        self._state.last_sync_time = finished
        items_synced = resolved.link_count()
        self._publish(
            SyncCompleted(
                occurred_at=utc_now(),
                correlation_id=correlation_id,
                time=finished,
                items_synced=items_synced,
                strategy=strategy,
                metadata=metadata,
            )
        )
        logger.info(
            "sync_completed",
            extra={
                "correlation_id": correlation_id,
                "strategy": strategy.value,
                "conflict": conflict,
                "items_synced": items_synced,
                "remote_errors": remote_errors,
                "duration_ms": finished - started,
            },
        )
        return SyncOutcome(
            success=True,
            time=finished,
            items_synced=items_synced,
            strategy=strategy,
            conflict=conflict,
            remote_errors=remote_errors,
        )

    def _fail(self, exc: SyncError, correlation_id: str, started: int) -> SyncOutcome:
        details: Any = exc.details.get("errors") or exc.details.get("details") or None
        self._publish(
            SyncFailed(
                occurred_at=utc_now(),
                correlation_id=correlation_id,
                type=exc.error_type,
                message=exc.message,
                details=details,
                recommendation=exc.recommendation,
            )
        )
        failed_at = self._clock()
        logger.error(
            "sync_failed",
            extra={
                "correlation_id": correlation_id,
                "error_type": exc.error_type,
                "error": exc.message,
                "duration_ms": failed_at - started,
            },
        )
        return SyncOutcome(
            success=False,
            error=exc.message,
            error_type=exc.error_type,
            timestamp=failed_at,
        )

    async def _read_local(self, correlation_id: str) -> Replica:
        try:
            raw = await self._local.get(list(REPLICA_KEYS))
        except Exception as exc:
            raise LocalStorageError(
                "Failed to read local storage data.", {"details": str(exc)}
            ) from exc
        # Unlike remote, a corrupt local replica aborts the cycle instead of
        # being replaced with defaults.
        try:
            return decode_replica(raw)
        except ReplicaDecodeError as exc:
            logger.warning(
                "replica_payload_malformed",
                extra={
                    "area": ReplicaName.LOCAL.value,
                    "error": str(exc),
                    "correlation_id": correlation_id,
                },
            )
            raise ValidationError(
                f"Data validation failed: local {exc}", [f"Local {exc}"]
            ) from exc

    async def _read_remote(self, correlation_id: str, remote_errors: list[str]) -> Replica | None:
        """Read the remote replica; ``None`` means it could not be read."""
        try:
            raw = await self._remote.get(list(REPLICA_KEYS))
        except Exception as exc:
            self._report_remote_error(exc, correlation_id, remote_errors, operation="read")
            return None
        return decode_or_default(raw, area=ReplicaName.REMOTE, correlation_id=correlation_id)

    async def _persist_local(self, payload: dict[str, str]) -> None:
        try:
            await self._local.set(payload)
        except Exception as exc:
            raise LocalStorageError(
                "Failed to save data to local storage", {"details": str(exc)}
            ) from exc

    async def _persist_remote(
        self,
        payload: dict[str, str],
        correlation_id: str,
        remote_errors: list[str],
    ) -> bool:
        try:
            self._check_item_quota(payload)
            await self._remote.set(payload)
        except Exception as exc:
            self._report_remote_error(exc, correlation_id, remote_errors, operation="write")
            return False
        return True

    def _check_item_quota(self, payload: dict[str, str]) -> None:
        QuotaPolicy(quota_bytes_per_item=self._remote.quota_bytes_per_item).check_items(payload)

    def _report_remote_error(
        self,
        exc: Exception,
        correlation_id: str,
        remote_errors: list[str],
        *,
        operation: str,
    ) -> RemoteStorageError:
        error = classify_remote_error(exc)
        remote_errors.append(error.error_type)
        logger.warning(
            "sync_remote_unavailable",
            extra={
                "correlation_id": correlation_id,
                "operation": operation,
                "error_type": error.error_type,
                "error": str(exc),
            },
        )
        self._publish(
            SyncFailed(
                occurred_at=utc_now(),
                correlation_id=correlation_id,
                type=error.error_type,
                message=error.message,
                details=error.details.get("details", str(exc)),
                recommendation=error.recommendation,
            )
        )
        return error

    def _publish(self, event: Any) -> None:
        self._event_bus.publish(event)

    # ------------------------------------------------------------------
    # Convenience entry points
    # ------------------------------------------------------------------

    async def force_pull_from_remote(self) -> SyncOutcome:
        """Make remote win outright."""
        return await self.sync(MergeStrategy.REMOTE)

    async def force_push_to_remote(self) -> SyncOutcome:
        """Make local win outright."""
        return await self.sync(MergeStrategy.LOCAL)

    def debounced_sync(self, delay_ms: int | None = None) -> None:
        """Schedule a sync after ``delay_ms``, replacing any still-pending schedule.

        Must be called from inside a running event loop.
        """
        delay = self._debounce_ms if delay_ms is None else delay_ms
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(delay / 1000, self._fire_debounced)
        logger.debug("sync_debounce_scheduled", extra={"delay_ms": delay})

    def _fire_debounced(self) -> None:
        self._debounce_handle = None
        task = asyncio.get_running_loop().create_task(self.sync())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def aclose(self) -> None:
        """Drop any pending debounced sync and wait for fired ones to finish."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        if self._background:
            await asyncio.gather(*self._background)

    async def clear_sync_data(self) -> ClearOutcome:
        """Wipe the remote area and local sync bookkeeping. Safe to repeat."""
        try:
            await self._remote.clear()
            await self._local.remove([KEY_SYNC_METADATA, KEY_LAST_SYNC_TIME])
        except Exception as exc:
            logger.exception("sync_clear_failed")
            return ClearOutcome(success=False, error=str(exc))

        self._state.last_sync_time = None
        cleared_at = self._clock()
        self._publish(SyncCleared(occurred_at=utc_now(), time=cleared_at))
        logger.info("sync_data_cleared", extra={"time": cleared_at})
        return ClearOutcome(success=True, time=cleared_at)

    async def get_sync_status(self) -> SyncStatus:
        metadata = await self._tracker.read()
        try:
            bytes_in_use: int | None = await self._remote.get_bytes_in_use()
        except Exception as exc:
            logger.warning("sync_bytes_in_use_unavailable", extra={"error": str(exc)})
            bytes_in_use = None

        quota = self._remote.quota_bytes
        percentage = None
        if bytes_in_use is not None and quota:
            percentage = round(bytes_in_use / quota * 100, 2)

        return SyncStatus(
            last_sync_time=self._state.last_sync_time,
            local_version=metadata.local.version,
            remote_version=metadata.remote.version,
            is_in_sync=not metadata.in_conflict,
            sync_in_progress=self._state.in_progress,
            phase=self._state.phase,
            strategy=self._state.strategy,
            bytes_in_use=bytes_in_use,
            quota_limit=quota,
            quota_percentage=percentage,
        )
