"""
Tests for the storage adapters.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from rcache.cache.storage import MemoryStorage, SQLiteStorage, StoreAdapter, entry_size
from rcache.exceptions import CapacityExceededError, ConfigurationError


@pytest.fixture(params=["memory", "sqlite"])
def medium(request: pytest.FixtureRequest, temp_dir: Path) -> StoreAdapter:
    """Provide each adapter with a 100 byte capacity."""
    if request.param == "memory":
        yield MemoryStorage(capacity=100)
        return
    sqlite = SQLiteStorage(temp_dir / "kv.db", capacity=100)
    yield sqlite
    sqlite.close()


class TestAdapterContract:
    """Behaviour shared by every adapter."""

    def test_set_get_remove(self, medium: StoreAdapter) -> None:
        """Test basic key-value operations."""
        medium.set("a", "1")
        assert medium.get("a") == "1"
        assert "a" in medium

        medium.remove("a")
        assert medium.get("a") is None
        assert "a" not in medium

    def test_remove_missing_is_noop(self, medium: StoreAdapter) -> None:
        """Test that removing an absent key does nothing."""
        medium.remove("missing")
        assert len(medium) == 0

    def test_clear(self, medium: StoreAdapter) -> None:
        """Test that clear removes every key."""
        medium.set("a", "1")
        medium.set("b", "2")
        medium.clear()

        assert medium.keys() == []
        assert medium.size() == 0

    def test_size_counts_utf8_bytes(self, medium: StoreAdapter) -> None:
        """Test that size is the byte length of keys plus values."""
        medium.set("k", "é")
        assert medium.size() == entry_size("k", "é") == 3

    def test_overflow_raises_and_leaves_medium_unchanged(self, medium: StoreAdapter) -> None:
        """Test that an oversized write is rejected atomically."""
        medium.set("a", "x" * 50)

        with pytest.raises(CapacityExceededError) as exc_info:
            medium.set("b", "y" * 60)

        assert exc_info.value.context["capacity"] == 100
        assert medium.get("b") is None
        assert medium.size() == 51

    def test_replacing_a_key_counts_only_the_delta(self, medium: StoreAdapter) -> None:
        """Test that overwriting does not double count the old value."""
        medium.set("a", "x" * 90)
        medium.set("a", "y" * 99)

        assert medium.get("a") == "y" * 99
        assert medium.size() == 100

    def test_capacity_error_is_a_storage_error(self, medium: StoreAdapter) -> None:
        """Test the error hierarchy used by callers."""
        from rcache.exceptions import StorageError

        with pytest.raises(StorageError):
            medium.set("a", "x" * 200)


class TestAdapterConfiguration:
    """Tests for adapter construction."""

    @pytest.mark.parametrize("capacity", [0, -5])
    def test_capacity_must_be_positive(self, capacity: int) -> None:
        """Test that non-positive capacities are rejected."""
        with pytest.raises(ConfigurationError):
            MemoryStorage(capacity=capacity)


class TestSQLiteStorage:
    """SQLite-specific behaviour."""

    def test_entries_survive_reopen(self, temp_dir: Path) -> None:
        """Test that the medium is persistent."""
        db_path = temp_dir / "nested" / "kv.db"
        with SQLiteStorage(db_path, capacity=1000) as first:
            first.set("request", '3|"x"')

        with SQLiteStorage(db_path, capacity=1000) as second:
            assert second.get("request") == '3|"x"'
            assert second.keys() == ["request"]

    def test_close_is_idempotent(self, temp_dir: Path) -> None:
        """Test that closing twice is safe."""
        storage = SQLiteStorage(temp_dir / "kv.db", capacity=1000)
        storage.set("a", "1")
        storage.close()
        storage.close()

        assert storage.get("a") == "1"
        storage.close()

    def test_unopenable_database_raises_storage_error(self, temp_dir: Path) -> None:
        """Test that connection failures are mapped like other SQLite errors."""
        from rcache.exceptions import StorageError

        storage = SQLiteStorage(temp_dir, capacity=1000)

        with pytest.raises(StorageError) as exc_info:
            storage.init()
        assert exc_info.value.context["operation"] == "init"
        assert not storage.is_usable()


class TestUsability:
    """Tests for the write-then-remove medium check."""

    def test_usable_medium_is_left_untouched(self, medium: StoreAdapter) -> None:
        medium.set("a", "1")

        assert medium.is_usable()
        assert medium.keys() == ["a"]
        assert medium.size() == 2

    def test_full_medium_is_still_usable(self) -> None:
        """Test that running out of room is not a broken medium."""
        storage = MemoryStorage(capacity=10)
        storage.set("a", "x" * 9)

        assert storage.is_usable()
        assert storage.keys() == ["a"]
