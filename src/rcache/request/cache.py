"""
Request cache: request results keyed by canonical request descriptor.

Each entry carries two instants. Before soft expiry it serves normal
reads; between soft expiry and hard delete it only serves forced-fallback
reads (used when the real request failed); past hard delete it is purged
on sight. An identity token computed by the caller at write time must
match the token computed at read time, so a user, session or version
switch invalidates entries without removing them.

Per-call directives travel in the params mapping (or the URL's query):
    dtExpireTime, dtMaxAge   expiration (see expiration.py)
    __disableCache           bypass the cache for this call
    __forceToCache           forced-fallback read (alias __fallbackToCache)
    __showLog                log this call's diagnostics at INFO
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from rcache.cache.lru import LRUStore
from rcache.cache.storage import StoreAdapter
from rcache.config import CacheFlags, Settings, get_settings
from rcache.exceptions import CapacityExceededError, SerializationError
from rcache.logging import get_logger, log_context
from rcache.request.expiration import DEFAULT_GRACE_PERIOD_MS, ExpirationPolicy
from rcache.request.keys import VOLATILE_PARAMS, canonical_key, merge_params
from rcache.types import (
    CacheEntry,
    CacheResult,
    EntryState,
    MissReason,
    RequestOptions,
)
from rcache.utils.dates import Clock, now_ms

logger = get_logger(__name__)

DISABLE_PARAM = "__disableCache"
FORCE_PARAMS = ("__forceToCache", "__fallbackToCache")
SHOW_LOG_PARAM = "__showLog"

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


def is_set(value: Any) -> bool:
    """Interpret a directive value; query-string values arrive as text."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def is_empty_payload(data: Any) -> bool:
    """None and empty containers/strings are never cached. 0 and False are."""
    if data is None:
        return True
    if isinstance(data, (dict, list, tuple, set, str, bytes)):
        return len(data) == 0
    return False


class RequestCache:
    """Facade over key derivation, expiration and the LRU store."""

    def __init__(
        self,
        store: LRUStore,
        *,
        flags: CacheFlags | None = None,
        grace_period_ms: int = DEFAULT_GRACE_PERIOD_MS,
        volatile_params: Iterable[str] = VOLATILE_PARAMS,
        clock: Clock = now_ms,
    ) -> None:
        """Initialize RequestCache.

        Args:
            store: LRU store owning the medium.
            flags: Global disable/log toggles, resolved by the caller.
            grace_period_ms: Extension from soft expiry to hard delete.
            volatile_params: Parameter names excluded from cache keys.
            clock: Millisecond clock for expiration checks.
        """
        self.store = store
        self.flags = flags or CacheFlags()
        self.policy = ExpirationPolicy(grace_period_ms=grace_period_ms, clock=clock)
        self.volatile_params = frozenset(volatile_params)
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        storage: StoreAdapter,
        settings: Settings | None = None,
        clock: Clock = now_ms,
    ) -> RequestCache:
        """Build a cache over a medium using Settings for every knob."""
        settings = settings or get_settings()
        return cls(
            LRUStore.from_settings(storage, settings, clock=clock),
            flags=settings.cache_flags(),
            grace_period_ms=settings.GRACE_PERIOD_MS,
            clock=clock,
        )

    def key_for(self, url: str, params: Mapping[str, Any] | None = None) -> str:
        """Canonical key of a request descriptor."""
        return canonical_key(url, params, volatile=self.volatile_params)

    def _disabled(self, merged: Mapping[str, Any]) -> bool:
        return self.flags.disable_cache or is_set(merged.get(DISABLE_PARAM))

    def _log_level(self, merged: Mapping[str, Any], options: RequestOptions) -> int:
        if self.flags.show_log or options.show_log or is_set(merged.get(SHOW_LOG_PARAM)):
            return logging.INFO
        return logging.DEBUG

    def write(
        self,
        url: str,
        params: Mapping[str, Any] | None,
        data: Any,
        options: RequestOptions | None = None,
    ) -> CacheResult:
        """Cache a request result.

        Returns:
            OK with the data when written; MISS when skipped (disabled or
            empty payload); FATAL when the data cannot be serialized or does
            not fit even after evicting every candidate the ledger offers.
        """
        params = params or {}
        options = options or RequestOptions()
        _, merged = merge_params(url, params)

        if self._disabled(merged):
            return CacheResult.miss(MissReason.DISABLED)
        if is_empty_payload(data):
            return CacheResult.miss(MissReason.EMPTY_PAYLOAD)

        key = self.key_for(url, params)
        level = self._log_level(merged, options)
        now = self._clock()
        expiration = self.policy.compute(merged, now=now)
        entry = CacheEntry(
            data=data,
            soft_expire_at=expiration.soft_expire_at,
            hard_delete_at=expiration.hard_delete_at,
            identity=options.identity_for(url, params),
        )

        with log_context(operation="write", cache_key=key):
            try:
                stored = self.store.set(key, entry.to_dict(), force_evict=True)
            except SerializationError as e:
                logger.warning("Skipping cache write", error=str(e))
                return CacheResult.fatal(e, key=key)
            except CapacityExceededError as e:
                logger.error("Cache medium too small for entry", error=str(e))
                return CacheResult.fatal(e, key=key)

            if stored is None:
                return CacheResult.miss(MissReason.NOT_WRITTEN, key=key)

            logger.log(
                level,
                "Cached request result",
                soft_expire_at=entry.soft_expire_at,
                hard_delete_at=entry.hard_delete_at,
            )
        return CacheResult.ok(data, key=key, entry_state=entry.state_at(now))

    def read(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        options: RequestOptions | None = None,
    ) -> CacheResult:
        """Look up a request result, resolving its staleness state."""
        result, _ = self.read_with_fallback(url, params, options)
        return result

    def read_with_fallback(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        options: RequestOptions | None = None,
    ) -> tuple[CacheResult, CacheResult]:
        """Resolve a normal read and a forced-fallback read from one lookup.

        The entry is fetched (and its access recorded) once, so a caller
        that falls back after a failed request does not count as two uses.

        Returns:
            (result, fallback): result honours soft expiry and the forcing
            directives; fallback is the answer a forced read would give.
        """
        params = params or {}
        options = options or RequestOptions()
        _, merged = merge_params(url, params)

        if self._disabled(merged):
            disabled = CacheResult.miss(MissReason.DISABLED)
            return disabled, disabled

        key = self.key_for(url, params)
        level = self._log_level(merged, options)
        forced = options.fallback_to_cache or any(is_set(merged.get(name)) for name in FORCE_PARAMS)

        with log_context(operation="read", cache_key=key):
            entry = CacheEntry.from_dict(self.store.get(key))
            if entry is None:
                logger.log(level, "Cache miss")
                absent = CacheResult.miss(MissReason.ABSENT, key=key)
                return absent, absent

            now = self._clock()
            state = entry.state_at(now)

            if entry.identity != options.identity_for(url, params):
                logger.log(level, "Cache identity changed")
                mismatch = CacheResult.miss(MissReason.IDENTITY_MISMATCH, key=key, entry_state=state)
                return mismatch, mismatch

            if state is EntryState.DELETED:
                self.store.remove(key)
                logger.log(level, "Purged cache entry past hard delete")
                purged = CacheResult.miss(MissReason.HARD_DELETED, key=key, entry_state=state)
                return purged, purged

            stale = CacheResult.ok(entry.data, key=key, entry_state=state)
            if forced or state is EntryState.LIVE:
                logger.log(level, "Cache hit", state=state.value, forced=forced)
                return stale, stale

            logger.log(level, "Cache entry soft-expired")
            expired = CacheResult.miss(MissReason.SOFT_EXPIRED, key=key, entry_state=state)
            return expired, stale

    def set_cache(
        self,
        url: str,
        params: Mapping[str, Any] | None,
        data: Any,
        options: RequestOptions | None = None,
    ) -> CacheResult:
        """Cache data for (url, params). See write()."""
        return self.write(url, params, data, options)

    def get_cache(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        options: RequestOptions | None = None,
    ) -> Any | None:
        """Cached data for (url, params), or None on any miss."""
        return self.read(url, params, options).value

    def remove_cache(self, url: str, params: Mapping[str, Any] | None = None) -> None:
        """Delete the entry for (url, params); no-op if absent."""
        self.store.remove(self.key_for(url, params))

    def clear(self) -> None:
        self.store.clear()
