"""
Tests for the expiration policy and instant helpers.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import START_MS, FakeClock
from rcache.request.expiration import ExpirationPolicy
from rcache.utils.dates import end_of_day_ms, to_duration_ms, to_epoch_ms

GRACE = 1000


@pytest.fixture
def policy(clock: FakeClock) -> ExpirationPolicy:
    return ExpirationPolicy(grace_period_ms=GRACE, clock=clock)


def expected_end_of_day() -> int:
    return round(datetime(2026, 3, 10, 23, 59, 59, 999000).timestamp() * 1000)


class TestSoftExpiry:
    """Test the soft-expiry priority order."""

    def test_default_is_end_of_local_day(self, policy: ExpirationPolicy) -> None:
        expiration = policy.compute({})
        assert expiration.soft_expire_at == expected_end_of_day()

    def test_max_age_is_relative_to_now(self, policy: ExpirationPolicy) -> None:
        assert policy.compute({"dtMaxAge": 5000}).soft_expire_at == START_MS + 5000

    def test_negative_max_age_is_already_expired(self, policy: ExpirationPolicy) -> None:
        assert policy.compute({"dtMaxAge": -1}).soft_expire_at == START_MS - 1

    def test_explicit_expire_time_wins(self, policy: ExpirationPolicy) -> None:
        """Test that dtExpireTime takes priority over dtMaxAge."""
        expiration = policy.compute({"dtExpireTime": START_MS + 42, "dtMaxAge": 5000})
        assert expiration.soft_expire_at == START_MS + 42

    def test_string_values_from_query_strings(self, policy: ExpirationPolicy) -> None:
        assert policy.compute({"dtMaxAge": "250"}).soft_expire_at == START_MS + 250

    def test_unparseable_expire_time_falls_through(self, policy: ExpirationPolicy) -> None:
        expiration = policy.compute({"dtExpireTime": "next tuesday", "dtMaxAge": 10})
        assert expiration.soft_expire_at == START_MS + 10

    @pytest.mark.parametrize(
        "params",
        [
            {"dtMaxAge": float("inf")},
            {"dtMaxAge": float("nan")},
            {"dtExpireTime": float("nan")},
            {"dtExpireTime": float("-inf")},
            {"dtMaxAge": "inf"},
        ],
    )
    def test_non_finite_values_fall_back_to_end_of_day(
        self, policy: ExpirationPolicy, params: dict
    ) -> None:
        """Test that infinities and NaN are ignored like other bad values."""
        assert policy.compute(params).soft_expire_at == expected_end_of_day()

    def test_explicit_now_overrides_clock(self, policy: ExpirationPolicy) -> None:
        assert policy.compute({"dtMaxAge": 1}, now=100).soft_expire_at == 101


class TestHardDelete:
    """Test the grace period."""

    def test_hard_delete_adds_grace_period(self, policy: ExpirationPolicy) -> None:
        expiration = policy.compute({"dtMaxAge": 5000})
        assert expiration.hard_delete_at == START_MS + 5000 + GRACE

    def test_negative_grace_is_clamped(self, clock: FakeClock) -> None:
        """Test that hard delete never precedes soft expiry."""
        expiration = ExpirationPolicy(grace_period_ms=-10, clock=clock).compute({})
        assert expiration.hard_delete_at == expiration.soft_expire_at


class TestInstantCoercion:
    """Test the date helpers behind the directives."""

    def test_end_of_day(self) -> None:
        assert end_of_day_ms(START_MS) == expected_end_of_day()

    def test_epoch_ms_shapes(self) -> None:
        aware = datetime(2026, 1, 1, tzinfo=timezone.utc)
        ms = round(aware.timestamp() * 1000)

        assert to_epoch_ms(ms) == ms
        assert to_epoch_ms(str(ms)) == ms
        assert to_epoch_ms(aware) == ms
        assert to_epoch_ms("2026-01-01T00:00:00Z") == ms

    @pytest.mark.parametrize("value", [None, True, "", "soon", object()])
    def test_epoch_ms_rejects(self, value: object) -> None:
        assert to_epoch_ms(value) is None

    def test_duration_shapes(self) -> None:
        assert to_duration_ms(timedelta(seconds=2)) == 2000
        assert to_duration_ms("1500") == 1500
        assert to_duration_ms(-1) == -1
        assert to_duration_ms("abc") is None

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_numbers_are_rejected(self, value: float) -> None:
        assert to_epoch_ms(value) is None
        assert to_duration_ms(value) is None
