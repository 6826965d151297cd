"""退避重试时间计算."""

import math
import random
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime

from shelfwatch.utils.dates import to_naive_utc, utc_now

BASE_RETRY_MINUTES = 5
MAX_RETRY_MINUTES = 24 * 60
JITTER_SECONDS = 60


def backoff_minutes(consecutive_failures: int) -> int:
    """指数退避分钟数: 5, 10, 20, 40 ... 上限 24 小时."""
    # 指数过大时直接取上限，避免溢出
    exponent = min(max(consecutive_failures, 0), 20)
    return min(MAX_RETRY_MINUTES, BASE_RETRY_MINUTES * 2**exponent)


def next_attempt(
    consecutive_failures: int,
    retry_after_seconds: float | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> datetime:
    """
    计算下一次自动重试时间.

    服务端给出 Retry-After 时严格遵守；否则按指数退避并加 [0, 60) 秒随机抖动，
    避免大量订阅源同时失败后在同一时刻重试。抖动不会让结果超过 24 小时上限。

    Args:
        consecutive_failures: 此前的连续失败次数
        retry_after_seconds: 服务端建议的等待秒数
        now: 当前时间（naive UTC），默认取系统时间
        rng: 随机数源（测试用）

    Returns:
        下一次重试时间（naive UTC）
    """
    now = now or utc_now()

    if retry_after_seconds is not None:
        return now + timedelta(seconds=retry_after_seconds)

    minutes = backoff_minutes(consecutive_failures)
    if minutes >= MAX_RETRY_MINUTES:
        return now + timedelta(minutes=MAX_RETRY_MINUTES)

    jitter = (rng or random).uniform(0, JITTER_SECONDS)
    jitter = min(jitter, JITTER_SECONDS - 0.001)
    return now + timedelta(minutes=minutes, seconds=jitter)


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """
    解析 Retry-After 头，返回等待秒数.

    支持秒数和 HTTP 日期两种格式，非法或已过期的值返回 None。
    """
    if not value:
        return None

    try:
        seconds = float(value)
    except (TypeError, ValueError):
        pass
    else:
        if seconds >= 0.0 and math.isfinite(seconds):
            return seconds
        return None

    try:
        target = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None

    if target.tzinfo is None:
        target = target.replace(tzinfo=UTC)

    delta = (to_naive_utc(target) - (now or utc_now())).total_seconds()
    if delta > 0.0 and math.isfinite(delta):
        return delta
    return None
