"""订阅源健康状态机.

状态流转：

    VALIDATING ──成功──> ACTIVE
        │                  │
        │  可重试失败       │ 可重试失败
        ▼                  ▼
     BACKOFF ──连续失败达到阈值──> FAILED <──不可重试失败── 任意状态
        │                            │
        └────────成功──> ACTIVE      └──手动重试──> VALIDATING

304 不改变状态，只更新检查时间并清零失败计数。

FAILED 不会被自动轮询，只能由用户手动重试。
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from shelfwatch.core.backoff import next_attempt
from shelfwatch.core.errors import is_soft
from shelfwatch.models.source import Source, SourceStatus
from shelfwatch.utils.dates import utc_now

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 5
MAX_ERROR_LENGTH = 1000


@dataclass(frozen=True)
class HealthPolicy:
    """状态机参数."""

    # 连续可重试失败达到该次数后升级为 FAILED
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD


def record_success(
    source: Source,
    *,
    etag: str | None,
    last_modified: str | None,
    last_seen_item_key: str | None,
    http_status: int = 200,
    feed_title: str | None = None,
    now: datetime | None = None,
) -> None:
    """抓取成功（200 且内容有效）-> ACTIVE."""
    now = now or utc_now()

    source.status = SourceStatus.ACTIVE
    source.failure_reason_code = None
    source.last_error = None
    source.consecutive_failures = 0
    source.next_attempt_at = None
    source.last_http_status = http_status
    source.etag = etag
    source.last_modified = last_modified
    if last_seen_item_key:
        source.last_seen_item_key = last_seen_item_key
    if feed_title and not source.title:
        source.title = feed_title
    source.last_attempt_at = now
    source.last_success_at = now
    source.updated_at = now


def record_not_modified(source: Source, now: datetime | None = None) -> None:
    """
    304：没有新内容，不算失败.

    状态、下次重试时间和失败分类码都保持不变。
    """
    now = now or utc_now()

    source.last_attempt_at = now
    source.last_http_status = 304
    source.consecutive_failures = 0
    source.updated_at = now


def record_failure(
    source: Source,
    code: str,
    message: str | None,
    *,
    http_status: int | None = None,
    retry_after_seconds: float | None = None,
    policy: HealthPolicy | None = None,
    now: datetime | None = None,
) -> str:
    """
    记录一次失败并返回新状态.

    可重试失败进入 BACKOFF 并计算下次重试时间；连续失败达到阈值或
    不可重试失败直接进入 FAILED。
    """
    policy = policy or HealthPolicy()
    now = now or utc_now()

    # 本次失败之前的连续失败次数决定退避时长
    previous_failures = source.consecutive_failures
    source.consecutive_failures = previous_failures + 1
    source.failure_reason_code = code
    source.last_error = message[:MAX_ERROR_LENGTH] if message else None
    source.last_http_status = http_status
    source.last_attempt_at = now
    source.updated_at = now

    if is_soft(code) and source.consecutive_failures < policy.failure_threshold:
        source.status = SourceStatus.BACKOFF
        source.next_attempt_at = next_attempt(
            previous_failures, retry_after_seconds, now=now
        )
    else:
        if is_soft(code):
            logger.warning(
                f"订阅源 {source.id} 连续失败 {source.consecutive_failures} 次，标记为 FAILED"
            )
        source.status = SourceStatus.FAILED
        source.next_attempt_at = None

    return source.status


def manual_retry(source: Source, now: datetime | None = None) -> None:
    """用户手动重试 -> VALIDATING，下一轮任务会立即处理."""
    now = now or utc_now()

    source.status = SourceStatus.VALIDATING
    source.failure_reason_code = None
    source.last_error = None
    source.consecutive_failures = 0
    source.next_attempt_at = None
    source.last_attempt_at = now
    source.updated_at = now
