"""RSS/Atom feed 解析（feedparser）."""

import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from xml.sax import SAXException

import feedparser

from shelfwatch.core.errors import FailureCode, IngestError
from shelfwatch.utils.dates import from_struct_time

logger = logging.getLogger(__name__)

# Goodreads 书架 RSS 的扩展字段
DIALECT_FIELDS = (
    "book_id",
    "book_image_url",
    "book_small_image_url",
    "book_medium_image_url",
    "book_large_image_url",
    "book_description",
    "book_published",
    "author_name",
    "isbn",
    "user_name",
    "user_rating",
    "user_read_at",
    "user_date_added",
    "user_shelves",
    "user_review",
    "average_rating",
)


@dataclass
class FeedEntry:
    """feed 中的单个原始条目（与具体解析库解耦）."""

    guid: str | None = None
    link: str | None = None
    title: str | None = None
    content: str | None = None  # HTML 正文
    summary: str | None = None
    author: str | None = None
    published: str | None = None  # 原始 pubDate 字符串
    published_at: datetime | None = None
    updated_at: datetime | None = None
    tags: list[str] = field(default_factory=list)
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def body(self) -> str:
        """正文 HTML，优先 content，其次 summary."""
        return self.content or self.summary or ""


@dataclass
class ParsedFeed:
    """解析结果."""

    title: str | None
    version: str
    entries: list[FeedEntry]
    warnings: list[str] = field(default_factory=list)


def parse_feed(content: bytes | str) -> ParsedFeed:
    """
    解析 feed 内容.

    Args:
        content: 原始响应体

    Returns:
        ParsedFeed，条目保持 feed 中的原始顺序

    Raises:
        IngestError: XML 格式错误或无法识别为 RSS/Atom 时，分类码为 PARSE_ERROR
    """
    raw = content.encode("utf-8") if isinstance(content, str) else content
    # 传入流对象，避免 feedparser 把字符串当作 URL 或文件名
    parsed = feedparser.parse(io.BytesIO(raw))

    if parsed.bozo and isinstance(parsed.get("bozo_exception"), SAXException):
        msg = f"Feed is not well-formed XML: {parsed.bozo_exception}"
        raise IngestError(FailureCode.PARSE_ERROR, msg)

    version = parsed.get("version") or ""
    if not version and not parsed.entries:
        msg = "Content could not be recognized as RSS or Atom"
        raise IngestError(FailureCode.PARSE_ERROR, msg)

    warnings: list[str] = []
    if parsed.bozo:
        warnings.append(f"Feed has formatting issues: {parsed.get('bozo_exception')}")

    entries = [_to_entry(raw_entry) for raw_entry in parsed.entries]

    return ParsedFeed(
        title=parsed.feed.get("title") or None,
        version=version,
        entries=entries,
        warnings=warnings,
    )


def _to_entry(raw: Any) -> FeedEntry:
    """将 feedparser 条目转换为 FeedEntry."""
    content_list = raw.get("content") or []
    content = content_list[0].get("value") if content_list else None

    fields: dict[str, str] = {}
    for name in DIALECT_FIELDS:
        value = raw.get(name)
        if isinstance(value, str) and value.strip():
            fields[name] = value.strip()

    tags = [tag.get("term") for tag in raw.get("tags") or [] if tag.get("term")]

    return FeedEntry(
        guid=raw.get("id") or None,
        link=raw.get("link") or None,
        title=raw.get("title") or None,
        content=content or None,
        summary=raw.get("summary") or None,
        author=raw.get("author") or None,
        published=raw.get("published") or None,
        published_at=from_struct_time(raw.get("published_parsed")),
        updated_at=from_struct_time(raw.get("updated_parsed")),
        tags=tags,
        fields=fields,
    )
