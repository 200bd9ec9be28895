"""Tests for MetadataTracker: stamps, reads and the device identifier."""

from __future__ import annotations

import re

import pytest
from sync_helpers import BASE_TIME_MS, EventRecorder, FailingStore, FakeClock

from codex_sync.domain.events.sync_events import SyncFailed
from codex_sync.domain.exceptions.sync_exceptions import LocalStorageError
from codex_sync.domain.models.replica import ReplicaName, SyncMetadata
from codex_sync.infrastructure.messaging.event_bus import EventBus
from codex_sync.sync.metadata import MetadataTracker

DEVICE_ID_RE = re.compile(r"^device_\d+_[0-9a-z]{9}$")


@pytest.fixture
def stores():
    return FailingStore("local"), FailingStore("remote")


@pytest.fixture
def tracker_bus():
    bus = EventBus()
    recorder = EventRecorder()
    bus.subscribe(recorder)
    return bus, recorder


def _tracker(stores, bus=None, clock=None):
    local, remote = stores
    return MetadataTracker(local, remote, event_bus=bus, clock=clock or FakeClock())


@pytest.mark.asyncio
async def test_read_defaults_to_version_zero(stores):
    metadata = await _tracker(stores).read()

    assert metadata.local == SyncMetadata(version=0, last_modified=0)
    assert metadata.remote == SyncMetadata(version=0, last_modified=0)
    assert metadata.in_conflict is False


@pytest.mark.asyncio
async def test_read_never_raises(stores):
    local, remote = stores
    remote.fail_on = {"get"}
    await local.set({"syncMetadata": {"version": 5, "lastModified": 5}})

    metadata = await _tracker(stores).read()

    assert metadata.local.version == 5
    assert metadata.remote.version == 0
    assert metadata.in_conflict is True


@pytest.mark.asyncio
async def test_device_id_created_once(stores):
    tracker = _tracker(stores)

    first = await tracker.get_or_create_device_id()
    second = await tracker.get_or_create_device_id()

    assert DEVICE_ID_RE.match(first)
    assert first == second
    assert stores[0].snapshot()["deviceId"] == first
    assert stores[0].writes() == [["deviceId"]]


@pytest.mark.asyncio
async def test_device_id_uses_clock_and_prefix(stores):
    local, remote = stores
    tracker = MetadataTracker(local, remote, clock=lambda: 1234, device_id_prefix="laptop")

    device_id = await tracker.get_or_create_device_id()

    assert re.match(r"^laptop_1234_[0-9a-z]{9}$", device_id)


@pytest.mark.asyncio
async def test_device_id_falls_back_when_local_unavailable(stores):
    stores[0].fail_on = {"get"}

    assert await _tracker(stores).get_or_create_device_id() == "unknown_device"


@pytest.mark.asyncio
async def test_stamp_writes_same_record_to_both(stores):
    local, remote = stores
    result = await _tracker(stores).stamp([ReplicaName.LOCAL, ReplicaName.REMOTE])

    assert result.success is True
    assert result.written == [ReplicaName.LOCAL, ReplicaName.REMOTE]
    assert result.metadata.version == result.metadata.last_modified > BASE_TIME_MS
    assert local.snapshot()["syncMetadata"] == remote.snapshot()["syncMetadata"]
    assert local.snapshot()["syncMetadata"] == result.metadata.to_storage()


@pytest.mark.asyncio
async def test_stamp_only_requested_targets(stores):
    local, remote = stores
    result = await _tracker(stores).stamp([ReplicaName.LOCAL])

    assert result.written == [ReplicaName.LOCAL]
    assert "syncMetadata" not in remote.snapshot()


@pytest.mark.asyncio
async def test_remote_stamp_failure_is_reported_not_raised(stores, tracker_bus):
    bus, recorder = tracker_bus
    local, remote = stores
    remote.fail_on = {"set"}
    remote.error = RuntimeError("QUOTA_BYTES quota exceeded")

    result = await _tracker(stores, bus).stamp([ReplicaName.LOCAL, ReplicaName.REMOTE])

    assert result.success is False
    assert result.remote_error == "quota_exceeded"
    assert result.written == [ReplicaName.LOCAL]
    assert "syncMetadata" in local.snapshot()
    failures = recorder.of_type(SyncFailed)
    assert [event.type for event in failures] == ["quota_exceeded"]
    assert failures[0].recommendation


@pytest.mark.asyncio
async def test_local_stamp_failure_raises_before_remote(stores):
    local, remote = stores
    # deviceId is written through the same store, so fail only on the stamp key.
    await _tracker(stores).get_or_create_device_id()
    local.fail_on = {"set"}

    with pytest.raises(LocalStorageError):
        await _tracker(stores).stamp([ReplicaName.LOCAL, ReplicaName.REMOTE])

    assert remote.writes() == []
