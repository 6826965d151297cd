"""测试退避重试时间计算."""

import random
from datetime import datetime, timedelta

from shelfwatch.core.backoff import (
    MAX_RETRY_MINUTES,
    backoff_minutes,
    next_attempt,
    parse_retry_after,
)

NOW = datetime(2024, 5, 4, 12, 0, 0)


class TestBackoffMinutes:
    """测试 backoff_minutes."""

    def test_doubles_from_five_minutes(self) -> None:
        """5, 10, 20, 40 分钟."""
        assert [backoff_minutes(n) for n in range(4)] == [5, 10, 20, 40]

    def test_capped_at_one_day(self) -> None:
        """上限 24 小时."""
        assert backoff_minutes(9) == MAX_RETRY_MINUTES
        assert backoff_minutes(10_000) == MAX_RETRY_MINUTES

    def test_negative_treated_as_zero(self) -> None:
        """负数按 0 处理."""
        assert backoff_minutes(-3) == 5


class TestNextAttempt:
    """测试 next_attempt."""

    def test_first_failure_about_five_minutes(self) -> None:
        """0 次失败：5 分钟加 [0, 60) 秒抖动."""
        for seed in range(20):
            result = next_attempt(0, now=NOW, rng=random.Random(seed))
            delta = (result - NOW).total_seconds()
            assert 300 <= delta < 360

    def test_cap_has_no_jitter(self) -> None:
        """10 次失败：正好 24 小时."""
        for seed in range(20):
            result = next_attempt(10, now=NOW, rng=random.Random(seed))
            assert result - NOW == timedelta(hours=24)

    def test_retry_after_overrides_formula(self) -> None:
        """Retry-After 严格遵守，不加抖动."""
        result = next_attempt(3, retry_after_seconds=120, now=NOW)
        assert result - NOW == timedelta(seconds=120)

    def test_jitter_upper_bound_exclusive(self) -> None:
        """抖动取到 60 时被截断."""

        class MaxRandom(random.Random):
            def uniform(self, a: float, b: float) -> float:
                return b

        result = next_attempt(1, now=NOW, rng=MaxRandom())
        assert (result - NOW).total_seconds() < 10 * 60 + 60


class TestParseRetryAfter:
    """测试 parse_retry_after."""

    def test_seconds(self) -> None:
        assert parse_retry_after("120") == 120.0

    def test_zero_seconds(self) -> None:
        assert parse_retry_after("0") == 0.0

    def test_negative_rejected(self) -> None:
        assert parse_retry_after("-5") is None

    def test_http_date(self) -> None:
        """HTTP 日期转换为相对秒数."""
        value = "Sat, 04 May 2024 12:02:00 GMT"
        assert parse_retry_after(value, now=NOW) == 120.0

    def test_past_http_date(self) -> None:
        value = "Sat, 04 May 2024 11:00:00 GMT"
        assert parse_retry_after(value, now=NOW) is None

    def test_garbage(self) -> None:
        assert parse_retry_after("soon") is None
        assert parse_retry_after(None) is None
        assert parse_retry_after("") is None
