"""
Core types for the request cache.

This module defines the data structures shared across layers:
- Enums for result status, entry state and miss reasons
- Frozen dataclasses for persisted records (CacheEntry, LedgerEntry)
- CacheResult, the Ok | Miss | Fatal outcome of cache reads and writes
- RequestOptions, the per-call options of the request cache
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

IdentityKeyFunc = Callable[[str, Mapping[str, Any]], str]


class ResultStatus(str, Enum):
    """Outcome of a cache operation."""

    OK = "ok"
    MISS = "miss"
    FATAL = "fatal"


class EntryState(str, Enum):
    """Lifecycle state of a cache entry at the time it was observed."""

    ABSENT = "absent"
    LIVE = "live"
    SOFT_EXPIRED = "soft_expired"
    DELETED = "deleted"


class MissReason(str, Enum):
    """Why a read or write produced no cached value."""

    DISABLED = "disabled"
    ABSENT = "absent"
    IDENTITY_MISMATCH = "identity_mismatch"
    HARD_DELETED = "hard_deleted"
    SOFT_EXPIRED = "soft_expired"
    EMPTY_PAYLOAD = "empty_payload"
    NOT_WRITTEN = "not_written"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One persisted request result with its expiration and identity.

    Invariant: hard_delete_at >= soft_expire_at.
    """

    data: Any
    soft_expire_at: int
    hard_delete_at: int
    identity: str = ""

    def state_at(self, now: int) -> EntryState:
        """Classify the entry relative to an instant."""
        if now >= self.hard_delete_at:
            return EntryState.DELETED
        if now >= self.soft_expire_at:
            return EntryState.SOFT_EXPIRED
        return EntryState.LIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "softExpireAt": self.soft_expire_at,
            "hardDeleteAt": self.hard_delete_at,
            "identity": self.identity,
        }

    @classmethod
    def from_dict(cls, row: Any) -> CacheEntry | None:
        """Rebuild an entry from its stored mapping; None if the shape is wrong."""
        if not isinstance(row, dict) or "data" not in row:
            return None
        soft = row.get("softExpireAt")
        hard = row.get("hardDeleteAt")
        if not isinstance(soft, int) or not isinstance(hard, int):
            return None
        identity = row.get("identity")
        return cls(
            data=row["data"],
            soft_expire_at=soft,
            hard_delete_at=hard,
            identity=identity if isinstance(identity, str) else "",
        )


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """Usage bookkeeping for one live cache key."""

    frequency: int
    last_access_time: int

    def touched(self, now: int) -> LedgerEntry:
        return LedgerEntry(frequency=self.frequency + 1, last_access_time=now)

    def to_dict(self) -> dict[str, int]:
        return {"frequency": self.frequency, "lastAccessTime": self.last_access_time}

    @classmethod
    def from_dict(cls, row: Any) -> LedgerEntry | None:
        if not isinstance(row, dict):
            return None
        frequency = row.get("frequency")
        last_access = row.get("lastAccessTime")
        if not isinstance(frequency, int) or not isinstance(last_access, int):
            return None
        return cls(frequency=max(1, frequency), last_access_time=last_access)


@dataclass(frozen=True, slots=True)
class CacheResult:
    """Outcome of a request cache read or write.

    Only FATAL carries an error; MISS is a normal signal.
    """

    status: ResultStatus
    value: Any = None
    key: str | None = None
    entry_state: EntryState = EntryState.ABSENT
    reason: MissReason | None = None
    error: Exception | None = None

    @classmethod
    def ok(
        cls,
        value: Any,
        *,
        key: str | None = None,
        entry_state: EntryState = EntryState.LIVE,
    ) -> CacheResult:
        return cls(status=ResultStatus.OK, value=value, key=key, entry_state=entry_state)

    @classmethod
    def miss(
        cls,
        reason: MissReason,
        *,
        key: str | None = None,
        entry_state: EntryState = EntryState.ABSENT,
    ) -> CacheResult:
        return cls(status=ResultStatus.MISS, key=key, entry_state=entry_state, reason=reason)

    @classmethod
    def fatal(cls, error: Exception, *, key: str | None = None) -> CacheResult:
        return cls(status=ResultStatus.FATAL, key=key, error=error)

    @property
    def hit(self) -> bool:
        return self.status is ResultStatus.OK

    def unwrap(self) -> Any:
        """Return the value, raise the stored error on FATAL, None on MISS."""
        if self.status is ResultStatus.FATAL and self.error is not None:
            raise self.error
        return self.value


@dataclass(frozen=True, slots=True)
class RequestOptions:
    """Per-call options of the request cache.

    Attributes:
        identity_key_func: Computes the identity token from (url, params).
            A changed token invalidates the entry. Missing means "".
        fallback_to_cache: Ignore soft expiry on read (same as the
            __forceToCache parameter).
        show_log: Log diagnostics for this call at INFO (same as __showLog).
    """

    identity_key_func: IdentityKeyFunc | None = None
    fallback_to_cache: bool = False
    show_log: bool = False

    def identity_for(self, url: str, params: Mapping[str, Any]) -> str:
        if self.identity_key_func is None:
            return ""
        return str(self.identity_key_func(url, params))
