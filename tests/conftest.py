"""Pytest configuration and shared fixtures.

This module provides replica stores, a deterministic clock and an
orchestrator factory for the sync tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from sync_helpers import EventRecorder, FailingStore, FakeClock

from codex_sync.infrastructure.messaging.event_bus import EventBus
from codex_sync.sync.service import SyncOrchestrator


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(event_bus: EventBus) -> EventRecorder:
    rec = EventRecorder()
    event_bus.subscribe(rec)
    return rec


@pytest.fixture
def local_store() -> FailingStore:
    return FailingStore("local")


@pytest.fixture
def remote_store() -> FailingStore:
    return FailingStore("remote", quota_bytes_per_item=8192, quota_bytes=102_400, max_items=512)


@pytest.fixture
def make_orchestrator(
    event_bus: EventBus, clock: FakeClock
) -> Callable[..., SyncOrchestrator]:
    def factory(local: Any, remote: Any, **kwargs: Any) -> SyncOrchestrator:
        kwargs.setdefault("event_bus", event_bus)
        kwargs.setdefault("clock", clock)
        return SyncOrchestrator(local, remote, **kwargs)

    return factory


@pytest.fixture
def orchestrator(
    make_orchestrator: Callable[..., SyncOrchestrator],
    local_store: FailingStore,
    remote_store: FailingStore,
) -> SyncOrchestrator:
    return make_orchestrator(local_store, remote_store)
