"""
Storage adapters: flat, string-keyed, capacity-bounded media.

This module implements:
- StoreAdapter: Abstract interface the LRU store is written against
- MemoryStorage: Dict-backed medium for tests and short-lived processes
- SQLiteStorage: File-backed medium using a single sqlite3 table

Capacity is the total UTF-8 byte length of all keys and values. A write
that would push the total past capacity raises CapacityExceededError and
leaves the medium unchanged. Adapters are synchronous and hold no locks;
callers own a medium from one thread of control.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from rcache.exceptions import CapacityExceededError, ConfigurationError, StorageError


def entry_size(key: str, value: str) -> int:
    """Bytes one key/value pair occupies in a medium."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class StoreAdapter(ABC):
    """Abstract interface for a bounded key-value medium."""

    backend_name: str = "abstract"

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ConfigurationError(
                "Storage capacity must be positive",
                context={"backend": self.backend_name, "capacity": capacity},
            )
        self.capacity = capacity

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Get the raw string stored under key."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a raw string, raising CapacityExceededError on overflow."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key; no-op if absent."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every key."""
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        """List stored keys."""
        ...

    @abstractmethod
    def size(self) -> int:
        """Bytes currently used."""
        ...

    def __len__(self) -> int:
        return len(self.keys())

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def is_usable(self, sentinel_key: str = "__rcache_sentinel__") -> bool:
        """Check that the medium accepts a write and a removal.

        A full medium still counts as usable; eviction makes room in it.
        """
        try:
            self.set(sentinel_key, "1")
            self.remove(sentinel_key)
        except CapacityExceededError:
            return True
        except StorageError:
            return False
        return True

    def _check_capacity(self, key: str, value: str, previous: str | None) -> None:
        required = self.size() + entry_size(key, value)
        if previous is not None:
            required -= entry_size(key, previous)
        if required > self.capacity:
            raise CapacityExceededError(
                "Storage capacity exceeded",
                context={
                    "backend": self.backend_name,
                    "key": key,
                    "required": required,
                    "capacity": self.capacity,
                },
            )


class MemoryStorage(StoreAdapter):
    """Process-local medium with a hard byte capacity."""

    backend_name = "memory"

    def __init__(self, capacity: int = 5 * 1024 * 1024) -> None:
        super().__init__(capacity)
        self._rows: dict[str, str] = {}
        self._used = 0

    def get(self, key: str) -> str | None:
        return self._rows.get(key)

    def set(self, key: str, value: str) -> None:
        previous = self._rows.get(key)
        self._check_capacity(key, value, previous)
        if previous is not None:
            self._used -= entry_size(key, previous)
        self._rows[key] = value
        self._used += entry_size(key, value)

    def remove(self, key: str) -> None:
        previous = self._rows.pop(key, None)
        if previous is not None:
            self._used -= entry_size(key, previous)

    def clear(self) -> None:
        self._rows.clear()
        self._used = 0

    def keys(self) -> list[str]:
        return list(self._rows)

    def size(self) -> int:
        return self._used


class SQLiteStorage(StoreAdapter):
    """SQLite-backed medium holding every pair in one table.

    The database file survives process restarts, which is what makes the
    cache persistent. Sizes are computed in SQL from the stored bytes.
    """

    backend_name = "sqlite"

    def __init__(self, db_path: Path | str, capacity: int = 5 * 1024 * 1024) -> None:
        """Initialize SQLiteStorage.

        Args:
            db_path: Path to the database file. Parent directories are created.
            capacity: Maximum bytes of keys plus values.
        """
        super().__init__(capacity)
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._initialized = False

    def init(self) -> None:
        """Create the table if it doesn't exist. Safe to call multiple times."""
        if self._initialized:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._errors("init"):
            conn = self._get_conn()
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.commit()
        self._initialized = True

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                isolation_level="DEFERRED",
            )
        return self._conn

    @contextmanager
    def _errors(self, operation: str, key: str | None = None) -> Generator[None, None, None]:
        """Map sqlite3 errors to StorageError, rolling back open writes."""
        try:
            yield
        except sqlite3.Error as e:
            if self._conn is not None:
                self._conn.rollback()
            raise StorageError(
                f"SQLite {operation} failed",
                context={
                    "backend": self.backend_name,
                    "operation": operation,
                    "key": key,
                    "error": str(e),
                },
            ) from e

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._initialized = False

    def __enter__(self) -> SQLiteStorage:
        self.init()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get(self, key: str) -> str | None:
        self.init()
        with self._errors("get", key):
            row = self._get_conn().execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        self.init()
        previous = self.get(key)
        self._check_capacity(key, value, previous)
        conn = self._get_conn()
        with self._errors("set", key):
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value)
            )
            conn.commit()

    def remove(self, key: str) -> None:
        self.init()
        conn = self._get_conn()
        with self._errors("remove", key):
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()

    def clear(self) -> None:
        self.init()
        conn = self._get_conn()
        with self._errors("clear"):
            conn.execute("DELETE FROM kv")
            conn.commit()

    def keys(self) -> list[str]:
        self.init()
        with self._errors("keys"):
            rows = self._get_conn().execute("SELECT key FROM kv ORDER BY rowid").fetchall()
        return [row[0] for row in rows]

    def size(self) -> int:
        self.init()
        with self._errors("size"):
            row = self._get_conn().execute(
                "SELECT COALESCE(SUM(LENGTH(CAST(key AS BLOB)) + LENGTH(CAST(value AS BLOB))), 0) FROM kv"
            ).fetchone()
        return int(row[0])

