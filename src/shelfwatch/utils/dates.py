"""时间工具.

数据库统一保存不带时区的 UTC 时间（SQLite 不保存时区信息），
模型中的时间列都显式声明为 `DateTime`（timezone=False）。
"""

import re
from calendar import timegm
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from time import struct_time

# Goodreads 导出中常见的 2023/01/15 格式
_SLASH_DATE = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")


def utc_now() -> datetime:
    """当前 UTC 时间（naive）."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """将任意 datetime 转换为 naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def from_struct_time(value: struct_time | None) -> datetime | None:
    """feedparser 的 *_parsed 字段（UTC struct_time）转 datetime."""
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(timegm(value), UTC).replace(tzinfo=None)
    except (ValueError, OverflowError, TypeError):
        return None


def parse_datetime(value: str | None) -> datetime | None:
    """
    解析各种格式的日期字符串.

    依次尝试 ISO-8601、RFC 2822（RSS pubDate）和 YYYY/MM/DD，
    无法解析时返回 None。
    """
    if not value:
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return to_naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass

    try:
        return to_naive_utc(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        pass

    match = _SLASH_DATE.match(text)
    if match:
        try:
            return datetime(int(match[1]), int(match[2]), int(match[3]))
        except ValueError:
            return None

    return None
