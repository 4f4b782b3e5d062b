"""
Tests for the per-node KVStore

These tests verify the local state machine operations:
- create(): Insert a new key, reject duplicates
- read(): Retrieve values by key
- update(): Overwrite existing keys
- delete(): Remove existing keys

Run with: python -m pytest tests/test_store.py -v
"""

import pytest

from rangekv.protocol.commands import Command, ErrorCode
from rangekv.storage.store import KVStore


class TestKVStoreCreate:
    """Test create() method."""

    def test_create_new_key(self, store: KVStore):
        """Test inserting a new key-value pair."""
        result = store.create(1, 223)
        assert result.is_ok
        assert store.size() == 1
        assert store.read(1).value == 223

    def test_create_existing_key_fails(self, store: KVStore):
        """Test that a duplicate create is rejected and changes nothing."""
        store.create(1, 223)
        result = store.create(1, 999)

        assert not result.is_ok
        assert result.error == ErrorCode.ALREADY_EXISTS
        assert store.read(1).value == 223
        assert store.size() == 1

    def test_create_zero_value(self, store: KVStore):
        """Test that zero is a storable value."""
        assert store.create(5, 0).is_ok
        assert store.read(5).value == 0


class TestKVStoreRead:
    """Test read() method."""

    def test_read_existing_key(self, store: KVStore):
        store.create(7, 70)
        result = store.read(7)
        assert result.is_ok
        assert result.value == 70

    def test_read_missing_key(self, store: KVStore):
        result = store.read(7)
        assert result.error == ErrorCode.NOT_FOUND
        assert result.value is None

    def test_read_does_not_mutate(self, store: KVStore):
        store.create(7, 70)
        store.read(7)
        store.read(8)
        assert list(store.items()) == [(7, 70)]


class TestKVStoreUpdate:
    """Test update() method."""

    def test_update_existing_key(self, store: KVStore):
        store.create(3, 30)
        assert store.update(3, 31).is_ok
        assert store.read(3).value == 31
        assert store.size() == 1

    def test_update_missing_key(self, store: KVStore):
        result = store.update(3, 31)
        assert result.error == ErrorCode.NOT_FOUND
        assert store.size() == 0


class TestKVStoreDelete:
    """Test delete() method."""

    def test_delete_existing_key(self, store: KVStore):
        store.create(1, 10)
        assert store.delete(1).is_ok
        assert not store.contains(1)
        assert store.size() == 0

    def test_delete_missing_key(self, store: KVStore):
        store.create(1, 10)
        result = store.delete(2)
        assert result.error == ErrorCode.NOT_FOUND
        assert store.size() == 1

    def test_delete_then_recreate(self, store: KVStore):
        store.create(1, 10)
        store.delete(1)
        assert store.create(1, 11).is_ok
        assert store.read(1).value == 11


class TestKVStoreOrdering:
    """Test that the store keeps keys ordered."""

    def test_items_in_key_order(self, store: KVStore):
        for key in (50, 3, 99, 17, 0):
            store.create(key, key * 10)
        store.delete(17)

        assert [key for key, _ in store.items()] == [0, 3, 50, 99]

    def test_scan_closed_interval(self, store: KVStore):
        for key in range(0, 30, 5):
            store.create(key, key)

        assert store.scan(5, 15) == [(5, 5), (10, 10), (15, 15)]
        assert store.scan(16, 19) == []

    def test_stats(self, store: KVStore):
        assert store.get_stats()["total_keys"] == 0
        store.create(4, 1)
        store.create(2, 1)
        stats = store.get_stats()
        assert stats == {"total_keys": 2, "min_key": 2, "max_key": 4}


class TestKVStoreExecute:
    """Test command dispatch."""

    @pytest.mark.parametrize("command, expected_error", [
        (Command.read(1), ErrorCode.NOT_FOUND),
        (Command.update(1, 2), ErrorCode.NOT_FOUND),
        (Command.delete(1), ErrorCode.NOT_FOUND),
    ])
    def test_missing_key_commands(self, store: KVStore, command, expected_error):
        assert store.execute(command).error == expected_error
        assert store.size() == 0

    def test_lifecycle(self, store: KVStore):
        assert store.execute(Command.create(1, 223)).is_ok
        assert store.execute(Command.read(1)).value == 223
        assert store.execute(Command.update(1, 224)).is_ok
        assert store.execute(Command.delete(1)).is_ok
        assert store.execute(Command.read(1)).error == ErrorCode.NOT_FOUND
