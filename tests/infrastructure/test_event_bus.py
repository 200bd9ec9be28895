"""Unit tests for EventBus."""

from datetime import UTC, datetime

import pytest

from codex_sync.domain.events.sync_events import (
    SyncCleared,
    SyncCompleted,
    SyncFailed,
    SyncStarted,
)
from codex_sync.domain.models.replica import MergeStrategy
from codex_sync.infrastructure.messaging.event_bus import EventBus


def _started(time: int = 1) -> SyncStarted:
    return SyncStarted(occurred_at=datetime.now(UTC), time=time)


class TestEventBus:
    """Test suite for EventBus."""

    @pytest.fixture
    def event_bus(self):
        """Create a fresh event bus for each test."""
        return EventBus()

    def test_subscribe_and_publish(self, event_bus):
        """Test subscribing to and publishing events."""
        received = []
        event_bus.subscribe(received.append)

        event = _started()
        event_bus.publish(event)

        assert received == [event]

    def test_handlers_run_in_registration_order(self, event_bus):
        calls = []
        event_bus.subscribe(lambda event: calls.append("first"))
        event_bus.subscribe(lambda event: calls.append("second"))
        event_bus.subscribe(lambda event: calls.append("third"))

        event_bus.publish(_started())

        assert calls == ["first", "second", "third"]

    def test_publish_with_no_handlers(self, event_bus):
        """Test publishing event with no subscribed handlers."""
        # Should not raise error
        event_bus.publish(_started())

    def test_handler_error_does_not_affect_other_handlers(self, event_bus):
        """Test that error in one handler doesn't stop other handlers."""
        received = []

        def broken(event):
            raise ValueError("Handler 1 error")

        event_bus.subscribe(broken)
        event_bus.subscribe(received.append)

        event_bus.publish(_started())

        # Handler 2 should still be called even though handler 1 failed
        assert len(received) == 1

    def test_typed_subscription_filters_events(self, event_bus):
        errors = []
        event_bus.subscribe(errors.append, SyncFailed)

        event_bus.publish(_started())
        failure = SyncFailed(
            occurred_at=datetime.now(UTC), type="network_error", message="offline"
        )
        event_bus.publish(failure)

        assert errors == [failure]

    def test_unsubscribe_stops_delivery(self, event_bus):
        received = []
        unsubscribe = event_bus.subscribe(received.append)

        unsubscribe()
        event_bus.publish(_started())

        assert received == []
        assert event_bus.get_handler_count() == 0

    def test_unsubscribe_twice_is_harmless(self, event_bus):
        unsubscribe = event_bus.subscribe(lambda event: None)
        event_bus.subscribe(lambda event: None)

        unsubscribe()
        unsubscribe()

        assert event_bus.get_handler_count() == 1

    def test_handler_may_unsubscribe_while_notified(self, event_bus):
        calls = []
        handles = {}

        def once(event):
            calls.append("once")
            handles["once"]()

        handles["once"] = event_bus.subscribe(once)
        event_bus.subscribe(lambda event: calls.append("always"))

        event_bus.publish(_started(1))
        event_bus.publish(_started(2))

        assert calls == ["once", "always", "always"]

    def test_get_handler_count(self, event_bus):
        event_bus.subscribe(lambda event: None)
        event_bus.subscribe(lambda event: None, SyncFailed)
        event_bus.subscribe(lambda event: None, SyncCleared)

        assert event_bus.get_handler_count() == 3
        assert event_bus.get_handler_count(SyncFailed) == 2
        assert event_bus.get_handler_count(SyncStarted) == 1

    def test_clear_handlers(self, event_bus):
        event_bus.subscribe(lambda event: None)
        event_bus.subscribe(lambda event: None, SyncFailed)

        event_bus.clear_handlers()

        assert event_bus.get_handler_count() == 0


class TestSyncEvents:
    def test_event_names(self):
        assert SyncStarted.name == "syncStart"
        assert SyncCompleted.name == "syncComplete"
        assert SyncFailed.name == "syncError"
        assert SyncCleared.name == "syncCleared"

    def test_completed_payload_uses_wire_names(self):
        event = SyncCompleted(
            occurred_at=datetime.now(UTC),
            time=10,
            items_synced=3,
            strategy=MergeStrategy.LOCAL,
        )

        payload = event.payload()

        assert payload["itemsSynced"] == 3
        assert payload["strategy"] == "local"
        assert payload["metadata"]["local"] == {"version": 0, "lastModified": 0}

    def test_occurred_at_must_be_datetime(self):
        with pytest.raises(TypeError):
            SyncStarted(occurred_at="now", time=1)

    def test_negative_items_rejected(self):
        with pytest.raises(ValueError):
            SyncCompleted(occurred_at=datetime.now(UTC), items_synced=-1)

    def test_events_are_immutable(self):
        event = _started()
        with pytest.raises(AttributeError):
            event.time = 5
