"""
Tests for the change bus.

These tests verify the pub/sub mechanism that carries storage changes
between simulated tabs.
"""

import pytest

from session.change_bus import ChangeBus, StorageEvent


class TestStorageEvent:
    """Tests for StorageEvent."""

    def test_removed(self):
        """Test that an event with no new value is a removal."""
        assert StorageEvent("cart:U1", "[]", None, origin="tab-a").removed
        assert not StorageEvent("cart:U1", None, "[]", origin="tab-a").removed

    def test_timestamp_set(self):
        """Test that events are timestamped on creation."""
        assert StorageEvent("k", None, "v", origin="tab-a").timestamp is not None


class TestChangeBus:
    """Tests for ChangeBus pub/sub functionality."""

    @pytest.fixture
    def bus(self):
        """Create a fresh bus for each test."""
        return ChangeBus()

    def test_subscribe_and_publish(self, bus: ChangeBus):
        """Test basic subscribe and publish flow."""
        received = []
        bus.subscribe(received.append)

        count = bus.publish(StorageEvent("identity", None, "{}", origin="tab-a"))

        assert count == 1
        assert received[0].key == "identity"

    def test_unsubscribe(self, bus: ChangeBus):
        """Test that unsubscribed listeners stop receiving events."""
        received = []
        bus.subscribe(received.append)

        assert bus.unsubscribe(received.append) is True
        assert bus.unsubscribe(received.append) is False

        bus.publish(StorageEvent("identity", None, "{}", origin="tab-a"))
        assert received == []

    def test_failing_listener_does_not_stop_others(self, bus: ChangeBus):
        """Test that one broken listener doesn't block delivery."""
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        count = bus.publish(StorageEvent("identity", None, "{}", origin="tab-a"))

        assert count == 2
        assert len(received) == 1

    def test_clear_subscribers(self, bus: ChangeBus):
        """Test clearing all listeners."""
        bus.subscribe(lambda event: None)
        bus.subscribe(lambda event: None)
        assert bus.get_subscriber_count() == 2

        bus.clear_subscribers()
        assert bus.get_subscriber_count() == 0
