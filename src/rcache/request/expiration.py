"""
Expiration policy for request cache entries.

Soft expiry is chosen by the first directive present:
1. dtExpireTime - absolute instant (epoch ms, ISO-8601 string or datetime)
2. dtMaxAge - milliseconds from now (timedelta also accepted)
3. otherwise the end of the current local day

Hard delete is soft expiry plus a fixed grace period. Between the two
the entry only serves forced-fallback reads.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from rcache.logging import get_logger
from rcache.utils.dates import Clock, MS_PER_DAY, end_of_day_ms, now_ms, to_duration_ms, to_epoch_ms

logger = get_logger(__name__)

EXPIRE_TIME_PARAM = "dtExpireTime"
MAX_AGE_PARAM = "dtMaxAge"
DEFAULT_GRACE_PERIOD_MS = 3 * MS_PER_DAY


@dataclass(frozen=True, slots=True)
class Expiration:
    soft_expire_at: int
    hard_delete_at: int


class ExpirationPolicy:
    """Computes soft-expiry and hard-delete instants from request params."""

    def __init__(
        self,
        grace_period_ms: int = DEFAULT_GRACE_PERIOD_MS,
        clock: Clock = now_ms,
    ) -> None:
        self.grace_period_ms = max(0, grace_period_ms)
        self._clock = clock

    def soft_expire_at(self, params: Mapping[str, Any], now: int) -> int:
        expire_time = params.get(EXPIRE_TIME_PARAM)
        if expire_time is not None:
            instant = to_epoch_ms(expire_time)
            if instant is not None:
                return instant
            logger.warning("Ignoring unparseable dtExpireTime", value=str(expire_time))

        max_age = params.get(MAX_AGE_PARAM)
        if max_age is not None:
            duration = to_duration_ms(max_age)
            if duration is not None:
                return now + duration
            logger.warning("Ignoring unparseable dtMaxAge", value=str(max_age))

        return end_of_day_ms(now)

    def compute(self, params: Mapping[str, Any], now: int | None = None) -> Expiration:
        """Compute both instants for an entry written now."""
        if now is None:
            now = self._clock()
        soft = self.soft_expire_at(params, now)
        return Expiration(soft_expire_at=soft, hard_delete_at=soft + self.grace_period_ms)
