"""测试订阅源健康状态机."""

from datetime import datetime, timedelta

from shelfwatch.core.errors import FailureCode
from shelfwatch.core.health import (
    HealthPolicy,
    manual_retry,
    record_failure,
    record_not_modified,
    record_success,
)
from shelfwatch.models.source import Source, SourceStatus

NOW = datetime(2024, 5, 4, 12, 0, 0)


def make_source(**kwargs: object) -> Source:
    values: dict[str, object] = {"user_id": "user-1", "url": "https://example.com/feed"}
    values.update(kwargs)
    return Source(**values)  # type: ignore[arg-type]


def assert_backoff_invariant(source: Source) -> None:
    """next_attempt_at 非空当且仅当状态为 BACKOFF."""
    assert (source.next_attempt_at is not None) == (source.status == SourceStatus.BACKOFF)


class TestRecordSuccess:
    """测试成功抓取."""

    def test_clears_failure_fields(self) -> None:
        source = make_source(
            status=SourceStatus.BACKOFF,
            consecutive_failures=3,
            failure_reason_code=FailureCode.TIMEOUT,
            last_error="timed out",
            next_attempt_at=NOW,
        )
        record_success(
            source,
            etag='"v2"',
            last_modified="Sat, 04 May 2024 10:00:00 GMT",
            last_seen_item_key="abc",
            feed_title="Alice's shelf",
            now=NOW,
        )

        assert source.status == SourceStatus.ACTIVE
        assert source.consecutive_failures == 0
        assert source.failure_reason_code is None
        assert source.last_error is None
        assert source.etag == '"v2"'
        assert source.last_seen_item_key == "abc"
        assert source.last_success_at == source.last_attempt_at == NOW
        assert source.title == "Alice's shelf"
        assert_backoff_invariant(source)

    def test_does_not_overwrite_title(self) -> None:
        source = make_source(title="My friend")
        record_success(
            source, etag=None, last_modified=None, last_seen_item_key=None, feed_title="x"
        )
        assert source.title == "My friend"


class TestRecordNotModified:
    """测试 304."""

    def test_active_only_updates_attempt_time(self) -> None:
        source = make_source(status=SourceStatus.ACTIVE, last_success_at=NOW - timedelta(days=1))
        record_not_modified(source, now=NOW)

        assert source.status == SourceStatus.ACTIVE
        assert source.last_attempt_at == NOW
        assert source.last_success_at == NOW - timedelta(days=1)
        assert source.consecutive_failures == 0
        assert source.last_http_status == 304

    def test_backoff_source_keeps_status(self) -> None:
        """BACKOFF 状态收到 304 后状态不变，只更新检查时间并清零失败计数."""
        source = make_source(
            status=SourceStatus.BACKOFF,
            consecutive_failures=2,
            failure_reason_code=FailureCode.TIMEOUT,
            next_attempt_at=NOW,
        )
        record_not_modified(source, now=NOW + timedelta(minutes=1))

        assert source.status == SourceStatus.BACKOFF
        assert source.next_attempt_at == NOW
        assert source.failure_reason_code == FailureCode.TIMEOUT
        assert source.consecutive_failures == 0
        assert source.last_attempt_at == NOW + timedelta(minutes=1)
        assert source.last_http_status == 304
        assert_backoff_invariant(source)

    def test_validating_source_keeps_status(self) -> None:
        source = make_source(status=SourceStatus.VALIDATING)
        record_not_modified(source, now=NOW)

        assert source.status == SourceStatus.VALIDATING
        assert source.last_attempt_at == NOW


class TestRecordFailure:
    """测试失败处理."""

    def test_soft_failure_enters_backoff(self) -> None:
        source = make_source(status=SourceStatus.ACTIVE)
        status = record_failure(source, FailureCode.TIMEOUT, "timed out", now=NOW)

        assert status == SourceStatus.BACKOFF
        assert source.consecutive_failures == 1
        assert source.failure_reason_code == FailureCode.TIMEOUT
        assert source.next_attempt_at is not None
        delta = (source.next_attempt_at - NOW).total_seconds()
        assert 300 <= delta < 360
        assert_backoff_invariant(source)

    def test_retry_after_honored(self) -> None:
        source = make_source(status=SourceStatus.ACTIVE)
        record_failure(
            source,
            FailureCode.RATE_LIMITED,
            "HTTP 429",
            http_status=429,
            retry_after_seconds=120,
            now=NOW,
        )
        assert source.next_attempt_at == NOW + timedelta(seconds=120)
        assert source.last_http_status == 429

    def test_five_soft_failures_escalate(self) -> None:
        """连续 5 次可重试失败后为 FAILED 而不是 BACKOFF."""
        source = make_source(status=SourceStatus.ACTIVE)
        statuses = [
            record_failure(source, FailureCode.SERVER_ERROR, "HTTP 503", now=NOW)
            for _ in range(5)
        ]

        assert statuses[:4] == [SourceStatus.BACKOFF] * 4
        assert statuses[4] == SourceStatus.FAILED
        assert source.consecutive_failures == 5
        assert source.next_attempt_at is None
        assert_backoff_invariant(source)

    def test_threshold_is_configurable(self) -> None:
        source = make_source(status=SourceStatus.ACTIVE)
        policy = HealthPolicy(failure_threshold=2)
        record_failure(source, FailureCode.NETWORK, "reset", policy=policy)
        assert source.status == SourceStatus.BACKOFF
        record_failure(source, FailureCode.NETWORK, "reset", policy=policy)
        assert source.status == SourceStatus.FAILED

    def test_hard_failure_fails_immediately(self) -> None:
        source = make_source(status=SourceStatus.ACTIVE)
        status = record_failure(source, FailureCode.NOT_FOUND, "HTTP 404", http_status=404)

        assert status == SourceStatus.FAILED
        assert source.failure_reason_code == FailureCode.NOT_FOUND
        assert source.next_attempt_at is None

    def test_error_message_truncated(self) -> None:
        source = make_source()
        record_failure(source, FailureCode.UNKNOWN, "x" * 5000)
        assert source.last_error is not None
        assert len(source.last_error) == 1000


class TestManualRetry:
    """测试手动重试."""

    def test_resets_failed_source(self) -> None:
        source = make_source(
            status=SourceStatus.FAILED,
            consecutive_failures=5,
            failure_reason_code=FailureCode.SERVER_ERROR,
            last_error="HTTP 503",
        )
        manual_retry(source, now=NOW)

        assert source.status == SourceStatus.VALIDATING
        assert source.consecutive_failures == 0
        assert source.failure_reason_code is None
        assert source.last_error is None
        assert source.last_attempt_at == NOW
        assert source.next_attempt_at is None

