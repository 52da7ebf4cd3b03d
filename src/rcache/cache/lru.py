"""
LRU store: codec + storage adapter + eviction ledger.

Every key written through the store has exactly one ledger row, and a
ledger row exists only for keys present in the medium. Writes that hit
the capacity limit evict the lowest-ranked keys in batches and retry,
for a bounded number of rounds.

Not safe for concurrent writers: the evict-then-retry sequence spans the
ledger and the medium and must run inside one critical section per
medium if the store is ever shared between threads or processes.
"""

from __future__ import annotations

from typing import Any

from rcache.cache import codec
from rcache.cache.ledger import EvictionLedger
from rcache.cache.storage import StoreAdapter
from rcache.config import Settings
from rcache.exceptions import CapacityExceededError, ConfigurationError
from rcache.logging import get_logger, log_context
from rcache.utils.dates import Clock, now_ms

logger = get_logger(__name__)

DEFAULT_MAX_RETRIES = 20
DEFAULT_EVICT_BATCH_SIZE = 20


class LRUStore:
    """Bounded persistent store with frequency/recency eviction."""

    def __init__(
        self,
        storage: StoreAdapter,
        *,
        ledger_key: str = "cache_queue",
        max_retries: int = DEFAULT_MAX_RETRIES,
        evict_batch_size: int = DEFAULT_EVICT_BATCH_SIZE,
        clock: Clock = now_ms,
    ) -> None:
        """Initialize LRUStore.

        Args:
            storage: The medium holding entries and the ledger.
            ledger_key: Key under which the ledger is persisted.
            max_retries: Eviction rounds attempted by a forced write.
            evict_batch_size: Keys evicted per round.
            clock: Millisecond clock used for recency.
        """
        if max_retries < 1 or evict_batch_size < 1:
            raise ConfigurationError(
                "max_retries and evict_batch_size must be at least 1",
                context={"max_retries": max_retries, "evict_batch_size": evict_batch_size},
            )
        self.storage = storage
        self.max_retries = max_retries
        self.evict_batch_size = evict_batch_size
        self.ledger = EvictionLedger(storage, ledger_key=ledger_key, clock=clock)

    @classmethod
    def from_settings(
        cls,
        storage: StoreAdapter,
        settings: Settings,
        clock: Clock = now_ms,
    ) -> LRUStore:
        return cls(
            storage,
            ledger_key=settings.LEDGER_KEY,
            max_retries=settings.MAX_RETRIES,
            evict_batch_size=settings.EVICT_BATCH_SIZE,
            clock=clock,
        )

    @property
    def ledger_key(self) -> str:
        return self.ledger.ledger_key

    def _write(self, key: str, raw: str) -> None:
        """Write one encoded entry and its ledger row, or neither.

        When the ledger row does not fit, an overwritten value is restored
        and a new key is dropped again.
        """
        previous = self.storage.get(key)
        self.storage.set(key, raw)
        try:
            self.ledger.touch(key)
        except CapacityExceededError:
            if previous is None:
                self.storage.remove(key)
            else:
                self.storage.set(key, previous)
            raise

    def _evict(self, keys: list[str]) -> None:
        self.ledger.remove(keys)
        for key in keys:
            self.storage.remove(key)
        logger.info("Evicted cache entries", count=len(keys), keys=keys)

    def set(self, key: str, value: Any, force_evict: bool = True) -> Any | None:
        """Store a value, evicting other entries if the medium is full.

        Args:
            key: Cache key. Must differ from the ledger key.
            value: JSON-compatible value. None removes the key.
            force_evict: Evict and retry when capacity is exceeded.

        Returns:
            The value on success; None when a non-forced write did not fit.

        Raises:
            SerializationError: If the value cannot be encoded. Nothing is written.
            CapacityExceededError: If a forced write still does not fit after
                the retry budget or the eviction candidates run out.
        """
        if key == self.ledger_key:
            raise ConfigurationError("Key collides with the eviction ledger", context={"key": key})
        if value is None:
            self.remove(key)
            return None

        raw = codec.encode(value)

        with log_context(namespace=self.storage.backend_name, operation="set", cache_key=key):
            try:
                self._write(key, raw)
                return value
            except CapacityExceededError as e:
                if not force_evict:
                    logger.debug("Write did not fit", bytes=len(raw))
                    return None
                return self._evict_and_retry(key, raw, value, e)

    def _evict_and_retry(
        self,
        key: str,
        raw: str,
        value: Any,
        error: CapacityExceededError,
    ) -> Any:
        for attempt in range(1, self.max_retries + 1):
            candidates = self.ledger.rank_for_eviction(self.evict_batch_size)
            if not candidates:
                logger.error(
                    "No eviction candidates left; entry does not fit",
                    attempt=attempt,
                    bytes=len(raw),
                    capacity=self.storage.capacity,
                )
                raise error

            self._evict(candidates)
            try:
                self._write(key, raw)
            except CapacityExceededError as e:
                error = e
                continue
            logger.debug("Forced write succeeded", attempt=attempt)
            return value

        logger.error(
            "Eviction retries exhausted; entry does not fit",
            max_retries=self.max_retries,
            bytes=len(raw),
            capacity=self.storage.capacity,
        )
        raise error

    def get(self, key: str) -> Any | None:
        """Read and decode a value, recording the access on a hit.

        Returns:
            The decoded value, or None for absent and corrupt entries alike.
        """
        if key == self.ledger_key:
            return None

        raw = self.storage.get(key)
        if raw is None:
            return None

        value = codec.decode(raw)
        if value is None:
            with log_context(namespace=self.storage.backend_name, operation="get", cache_key=key):
                logger.warning("Dropping undecodable cache entry", bytes=len(raw))
            self.remove(key)
            return None

        try:
            self.ledger.touch(key)
        except CapacityExceededError:
            # The hit stands; only its recency bookkeeping is lost
            logger.warning("Ledger update did not fit", cache_key=key)
        return value

    def remove(self, key: str) -> None:
        """Delete a key and its ledger row; no-op if absent."""
        if key == self.ledger_key:
            return
        self.storage.remove(key)
        self.ledger.remove(key)

    def clear(self) -> None:
        """Wipe the medium, ledger included."""
        self.storage.clear()
        self.ledger.remove()

    def keys(self) -> list[str]:
        """Cache keys currently tracked by the ledger."""
        return self.ledger.keys()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key != self.ledger_key and key in self.storage
