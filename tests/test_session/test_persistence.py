"""
Tests for the persistence port and the JSON record helpers.

These tests verify the storage contract every store relies on: reads never
raise, corrupt records are cleared, and writes from one tab are announced
to the others.
"""

import json
import logging

import pytest

from session.errors import CorruptPersistedData, PersistenceUnavailable
from session.persistence import (
    JsonFileStorage,
    MemoryStorage,
    create_storage,
    decode_record,
    read_record,
    remove_record,
    write_record,
)


class TestMemoryStorage:
    """Tests for the in-memory storage."""

    def test_get_set_remove(self, storage: MemoryStorage):
        """Test the basic key-value contract."""
        assert storage.get("identity") is None

        storage.set("identity", "{}")
        assert storage.get("identity") == "{}"

        storage.remove("identity")
        assert storage.get("identity") is None

    def test_remove_absent_key(self, storage: MemoryStorage):
        """Test that removing a missing key is a no-op."""
        storage.remove("nothing-here")
        assert storage.keys() == []

    def test_key_prefix(self):
        """Test that logical keys are stored under the prefix."""
        storage = MemoryStorage(key_prefix="digitailor_")
        storage.set("cart:U1", "[]")

        assert "digitailor_cart:U1" in storage.backend.data
        assert storage.keys() == ["cart:U1"]

    def test_unavailable_backend(self, storage: MemoryStorage):
        """Test that a failing substrate reads as absent but fails writes."""
        storage.set("identity", "{}")
        storage.backend.available = False

        assert storage.get("identity") is None
        with pytest.raises(PersistenceUnavailable):
            storage.set("identity", "{}")
        with pytest.raises(PersistenceUnavailable):
            storage.remove("identity")


class TestCrossTabEvents:
    """Tests for change events between tabs sharing a backend."""

    def test_other_tab_is_notified(self, storage, other_tab):
        """Test that a write in tab B reaches tab A's listener."""
        received = []

        def listener(event):
            received.append(event)

        assert storage.subscribe(listener) is True
        other_tab.set("cart:U1", "[]")

        assert len(received) == 1
        assert received[0].key == "cart:U1"
        assert received[0].origin == "tab-b"

    def test_own_writes_are_not_echoed(self, storage):
        """Test that a tab never hears about its own writes."""
        received = []

        def listener(event):
            received.append(event)

        storage.subscribe(listener)
        storage.set("cart:U1", "[]")

        assert received == []

    def test_removal_event(self, storage, other_tab):
        """Test that removals are announced with no new value."""
        received = []

        def listener(event):
            received.append(event)

        storage.set("cart:U1", "[]")
        storage.subscribe(listener)
        other_tab.remove("cart:U1")

        assert received[0].removed
        assert received[0].old_value == "[]"

    def test_prefix_is_stripped_from_events(self):
        """Test that listeners see logical keys."""
        tab_a = MemoryStorage(key_prefix="dt_")
        tab_b = tab_a.open_tab()
        received = []

        def listener(event):
            received.append(event.key)

        tab_a.subscribe(listener)
        tab_b.set("identity", "{}")

        assert received == ["identity"]

    def test_unsubscribe(self, storage, other_tab):
        """Test that unsubscribed listeners stop receiving events."""
        received = []

        def listener(event):
            received.append(event)

        storage.subscribe(listener)
        assert storage.unsubscribe(listener) is True
        assert storage.unsubscribe(listener) is False

        other_tab.set("identity", "{}")
        assert received == []


class TestJsonFileStorage:
    """Tests for the JSON file storage."""

    def test_persists_across_instances(self, tmp_path):
        """Test that a second instance sees the first one's writes."""
        path = tmp_path / "session.json"
        JsonFileStorage(path).set("cart:U1", "[]")

        assert JsonFileStorage(path).get("cart:U1") == "[]"
        assert json.loads(path.read_text()) == {"cart:U1": "[]"}

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        """Test that a garbled file is treated as empty and then replaced."""
        path = tmp_path / "session.json"
        path.write_text("{not json")
        storage = JsonFileStorage(path)

        assert storage.get("identity") is None
        storage.set("identity", "{}")
        assert storage.get("identity") == "{}"

    def test_no_change_events(self, tmp_path):
        """Test that file storage reports it can't signal other tabs."""
        storage = JsonFileStorage(tmp_path / "session.json")
        assert storage.supports_change_events is False
        assert storage.subscribe(lambda event: None) is False

    def test_create_storage(self, tmp_path):
        """Test choosing a backend from settings."""
        assert isinstance(create_storage(), MemoryStorage)
        assert isinstance(create_storage(tmp_path / "s.json"), JsonFileStorage)


class TestRecordHelpers:
    """Tests for read_record/write_record/remove_record."""

    def test_write_then_read(self, storage):
        """Test storing and loading a JSON record."""
        assert write_record(storage, "cart:U1", [{"id": "d1"}]) is True
        assert read_record(storage, "cart:U1") == [{"id": "d1"}]

    def test_absent_returns_default(self, storage):
        """Test that a missing key returns the default."""
        assert read_record(storage, "cart:U1", default=[]) == []

    def test_corrupt_record_is_cleared(self, storage):
        """Test that unparseable JSON is removed and read as default."""
        storage.set("cart:U1", "{not json")

        assert read_record(storage, "cart:U1", default=[]) == []
        assert storage.get("cart:U1") is None

    def test_parse_failure_is_corruption(self, storage):
        """Test that a record failing validation counts as corrupt."""
        def parse(value):
            if not isinstance(value, list):
                raise TypeError("expected a list")
            return value

        storage.set("cart:U1", '{"id": "d1"}')

        assert read_record(storage, "cart:U1", parse=parse) is None
        assert storage.get("cart:U1") is None

    def test_decode_record_raises(self):
        """Test that decode_record reports the key."""
        with pytest.raises(CorruptPersistedData) as exc_info:
            decode_record("notifications", "[")
        assert exc_info.value.key == "notifications"

    def test_write_failure_returns_false(self, storage):
        """Test that write_record swallows an unavailable substrate."""
        storage.backend.available = False

        assert write_record(storage, "cart:U1", []) is False
        assert remove_record(storage, "cart:U1") is False

    def test_corrupt_record_is_logged(self, storage, caplog):
        """Test that clearing a corrupt record leaves a warning behind."""
        storage.set("notifications", "[")

        with caplog.at_level(logging.WARNING, logger="persistence"):
            read_record(storage, "notifications", default=[])

        assert "notifications" in caplog.text
        assert any(record.levelno == logging.WARNING for record in caplog.records)
