"""
Eviction ledger: per-key usage frequency and recency.

The ledger is a single mapping of cache key -> {frequency, lastAccessTime}
persisted under a well-known key in the same medium as the entries it
describes, so it survives restarts along with them. It is re-read from
the medium on every operation; the medium is the only source of truth.

Eviction order is least frequently used first, then least recently used.
"""

from __future__ import annotations

from collections.abc import Iterable

from rcache.cache import codec
from rcache.cache.storage import StoreAdapter
from rcache.logging import get_logger
from rcache.types import LedgerEntry
from rcache.utils.dates import Clock, now_ms

logger = get_logger(__name__)


class EvictionLedger:
    """Frequency/recency bookkeeping used to rank eviction candidates."""

    def __init__(
        self,
        storage: StoreAdapter,
        ledger_key: str = "cache_queue",
        clock: Clock = now_ms,
    ) -> None:
        self.storage = storage
        self.ledger_key = ledger_key
        self._clock = clock

    def entries(self) -> dict[str, LedgerEntry]:
        """Load every ledger row from the medium."""
        raw = codec.decode(self.storage.get(self.ledger_key))
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            logger.warning("Discarding malformed eviction ledger", ledger_key=self.ledger_key)
            return {}

        rows: dict[str, LedgerEntry] = {}
        for key, row in raw.items():
            entry = LedgerEntry.from_dict(row)
            if entry is not None:
                rows[key] = entry
        return rows

    def _save(self, rows: dict[str, LedgerEntry]) -> None:
        if not rows:
            self.storage.remove(self.ledger_key)
            return
        self.storage.set(
            self.ledger_key,
            codec.encode({key: entry.to_dict() for key, entry in rows.items()}),
        )

    def get(self, key: str) -> LedgerEntry | None:
        return self.entries().get(key)

    def keys(self) -> list[str]:
        return list(self.entries())

    def __len__(self) -> int:
        return len(self.entries())

    def __contains__(self, key: object) -> bool:
        return key in self.entries()

    def touch(self, key: str) -> LedgerEntry:
        """Record one read or write of key.

        Creates the row with frequency 1 if absent, otherwise increments it.
        Raises CapacityExceededError if the grown ledger does not fit.
        """
        rows = self.entries()
        now = self._clock()
        current = rows.get(key)
        entry = LedgerEntry(frequency=1, last_access_time=now) if current is None else current.touched(now)
        rows[key] = entry
        self._save(rows)
        return entry

    def remove(self, keys: str | Iterable[str] | None = None) -> None:
        """Delete one key, several keys, or (with None) the whole ledger."""
        if keys is None:
            self.storage.remove(self.ledger_key)
            return

        targets = [keys] if isinstance(keys, str) else list(keys)
        rows = self.entries()
        removed = [key for key in targets if rows.pop(key, None) is not None]
        if removed:
            self._save(rows)

    def rank_for_eviction(self, count: int) -> list[str]:
        """Return up to count keys, least frequently then least recently used first."""
        if count <= 0:
            return []
        ranked = sorted(
            self.entries().items(),
            key=lambda item: (item[1].frequency, item[1].last_access_time),
        )
        return [key for key, _ in ranked[:count]]
