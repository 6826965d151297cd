"""条目字段提取器.

每个字段由一组独立的提取策略组成，按顺序尝试，第一个给出结果的策略胜出。
每个策略都是全函数：要么返回值，要么返回 None，不抛出异常。
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

from shelfwatch.core.parser import FeedEntry
from shelfwatch.utils.dates import parse_datetime
from shelfwatch.utils.html_parser import extract_first_image, html_to_text

T = TypeVar("T")

Strategy = Callable[[FeedEntry], T | None]

UNKNOWN_TITLE = "Unknown Title"
MIN_REVIEW_LENGTH = 20
MAX_REVIEW_LENGTH = 1000
# 4 星且书评超过该长度视为「喜爱」
LOVED_REVIEW_LENGTH = 30

FAVORITE_TOKENS = ("favorite", "favourite", "loved", "top-books", "best-books")

_WORD_NUMBERS = {"one": 1, "two": 2, "three": 3, "four": 4, "five": 5}
_NUMBER = r"([1-5]|one|two|three|four|five)"

# 文本评分模式，按可靠程度排序
RATING_PATTERNS = (
    re.compile(rf"\brated it {_NUMBER} (?:out of 5 )?stars?", re.IGNORECASE),
    re.compile(rf"\bgave it {_NUMBER} stars?", re.IGNORECASE),
    re.compile(r"(?<![\d.])\b([1-5]) (?:out )?of 5 stars", re.IGNORECASE),
    re.compile(r"\[([1-5]) stars?\]", re.IGNORECASE),
    re.compile(r"\(([1-5])/5\)"),
    re.compile(r"(?<!average )rating:\s*([1-5])\b", re.IGNORECASE),
    re.compile(r"(?<![\d.])(?<!of )\b([1-5])[- ]stars?\b", re.IGNORECASE),
)

STAR_GLYPH_PATTERNS = (
    re.compile(r"(?<!★)(★{1,5})(?!★)"),
    re.compile(r"(?<!⭐)(⭐{1,5})(?!⭐)"),
)

BOOK_PATTERNS = (
    re.compile(
        r"\breviewed\s+(.+?)\s+by\s+(.+?)(?:\s+[-–—]|\s*[(\[]|\s*$)", re.IGNORECASE
    ),
    re.compile(r"\brated\s+(.+?)\s+by\s+(.+?)(?:\s+[-–—]|\s*[(\[]|\s*$)", re.IGNORECASE),
    re.compile(r"^(.+?)\s+by\s+(.+?)(?:\s+[-–—]|\s*[(\[]|\s*$)", re.IGNORECASE),
)

# 标题末尾的评分注释，如 " - 5 stars"、"[4 stars]"、"rated it ..."
TRAILING_RATING = re.compile(
    r"\s*[-–—]?\s*(?:\[?\d stars?\]?|rated it.*|review of.*)$", re.IGNORECASE
)

METADATA_ONLY = re.compile(r"^(?:rated it|added|wants to read)", re.IGNORECASE)

COVER_FIELDS = (
    "book_large_image_url",
    "book_medium_image_url",
    "book_image_url",
    "book_small_image_url",
)


def first_match(strategies: Sequence[Strategy[T]], entry: FeedEntry) -> T | None:
    """按顺序执行策略，返回第一个非 None 结果."""
    for strategy in strategies:
        result = strategy(entry)
        if result is not None:
            return result
    return None


# --- 评分 ---


def _to_rating(token: str) -> int | None:
    value = _WORD_NUMBERS.get(token.lower())
    if value is None:
        try:
            value = int(token)
        except ValueError:
            return None
    return value if 1 <= value <= 5 else None


def rating_from_field(entry: FeedEntry) -> int | None:
    """Goodreads user_rating 字段（0 表示未评分）."""
    raw = entry.fields.get("user_rating")
    if not raw:
        return None
    try:
        value = int(float(raw))
    except ValueError:
        return None
    return value if 1 <= value <= 5 else None


def rating_from_text(entry: FeedEntry) -> int | None:
    """从标题和正文中匹配文字评分或星号."""
    text = f"{entry.title or ''} {html_to_text(entry.body)}"
    # ⭐ 后面常跟变体选择符
    text = text.replace("\ufe0f", "")

    for pattern in RATING_PATTERNS:
        match = pattern.search(text)
        if match:
            rating = _to_rating(match.group(1))
            if rating is not None:
                return rating

    for pattern in STAR_GLYPH_PATTERNS:
        match = pattern.search(text)
        if match:
            return len(match.group(1))

    return None


RATING_STRATEGIES: tuple[Strategy[int], ...] = (rating_from_field, rating_from_text)


def extract_rating(entry: FeedEntry) -> int | None:
    """提取 1-5 星评分."""
    return first_match(RATING_STRATEGIES, entry)


# --- 书名 / 作者 ---


@dataclass(frozen=True)
class BookInfo:
    """书名和作者."""

    title: str
    author: str | None


def book_from_author_field(entry: FeedEntry) -> BookInfo | None:
    """Feed 自带 author_name 字段时，只需从标题中去掉评分注释."""
    author = entry.fields.get("author_name")
    if not author:
        return None

    title = TRAILING_RATING.sub("", entry.title or "").strip()
    by_match = re.match(r"^(.+?)\s+by\s+", title, re.IGNORECASE)
    if by_match:
        title = by_match.group(1).strip()

    return BookInfo(title=title or UNKNOWN_TITLE, author=author)


def book_from_title_pattern(entry: FeedEntry) -> BookInfo | None:
    """匹配 "Title by Author" 一类的标题."""
    title = (entry.title or "").strip()
    for pattern in BOOK_PATTERNS:
        match = pattern.search(title)
        if match:
            book_title = match.group(1).strip().strip("'\"“”")
            book_author = match.group(2).strip()
            if book_title and book_author:
                return BookInfo(title=book_title, author=book_author)
    return None


def book_from_whole_title(entry: FeedEntry) -> BookInfo | None:
    """兜底：整个标题作为书名."""
    return BookInfo(title=(entry.title or "").strip() or UNKNOWN_TITLE, author=None)


BOOK_STRATEGIES: tuple[Strategy[BookInfo], ...] = (
    book_from_author_field,
    book_from_title_pattern,
    book_from_whole_title,
)


def extract_book_info(entry: FeedEntry) -> BookInfo:
    """提取书名和作者."""
    info = first_match(BOOK_STRATEGIES, entry)
    return info or BookInfo(title=UNKNOWN_TITLE, author=None)


# --- 书评 ---


def _clean_review(html: str | None) -> str | None:
    if not html:
        return None
    text = html_to_text(html)
    if len(text) < MIN_REVIEW_LENGTH or METADATA_ONLY.match(text):
        return None
    return text[:MAX_REVIEW_LENGTH]


def review_from_field(entry: FeedEntry) -> str | None:
    """Goodreads user_review 字段."""
    return _clean_review(entry.fields.get("user_review"))


def review_from_body(entry: FeedEntry) -> str | None:
    """条目正文."""
    return _clean_review(entry.body)


REVIEW_STRATEGIES: tuple[Strategy[str], ...] = (review_from_field, review_from_body)


def extract_review_text(entry: FeedEntry) -> str | None:
    """提取书评，纯元数据或过短的内容返回 None."""
    return first_match(REVIEW_STRATEGIES, entry)


# --- 「喜爱」判定 ---


def is_favorite_shelved(entry: FeedEntry) -> bool:
    """是否被放在 favorites 一类的书架上."""
    shelves = [entry.fields.get("user_shelves", ""), *entry.tags]
    joined = " ".join(shelves).lower()
    return any(token in joined for token in FAVORITE_TOKENS)


def is_loved(entry: FeedEntry, rating: int | None = None) -> bool:
    """
    判断好友是否「喜爱」这本书.

    5 星；或 4 星且写了像样的书评；或放在 favorites 书架上。
    """
    if rating is None:
        rating = extract_rating(entry)

    if rating == 5:
        return True

    if rating == 4:
        review = extract_review_text(entry)
        if review and len(review) > LOVED_REVIEW_LENGTH:
            return True

    return is_favorite_shelved(entry)


# --- 事件时间 ---


def date_from_iso(entry: FeedEntry) -> datetime | None:
    return entry.published_at or entry.updated_at


def date_from_pub_date(entry: FeedEntry) -> datetime | None:
    return parse_datetime(entry.published)


def date_from_read_at(entry: FeedEntry) -> datetime | None:
    return parse_datetime(entry.fields.get("user_read_at"))


def date_from_date_added(entry: FeedEntry) -> datetime | None:
    return parse_datetime(entry.fields.get("user_date_added"))


DATE_STRATEGIES: tuple[Strategy[datetime], ...] = (
    date_from_iso,
    date_from_pub_date,
    date_from_read_at,
    date_from_date_added,
)


def extract_event_date(entry: FeedEntry) -> datetime | None:
    """提取事件时间."""
    return first_match(DATE_STRATEGIES, entry)


# --- 封面 ---


def cover_from_fields(entry: FeedEntry) -> str | None:
    """按大图 -> 中图 -> 小图的顺序取 Goodreads 图片字段."""
    for name in COVER_FIELDS:
        url = entry.fields.get(name)
        if url and url.startswith("http"):
            return url
    return None


def cover_from_body(entry: FeedEntry) -> str | None:
    """正文中的第一张图片."""
    return extract_first_image(entry.body)


COVER_STRATEGIES: tuple[Strategy[str], ...] = (cover_from_fields, cover_from_body)


def extract_cover_url(entry: FeedEntry) -> str | None:
    """提取封面图片地址."""
    return first_match(COVER_STRATEGIES, entry)


# --- 其他字段 ---


def extract_isbn(entry: FeedEntry) -> str | None:
    """ISBN（去掉 Goodreads 导出带的 =" 前缀）."""
    raw = entry.fields.get("isbn")
    if not raw:
        return None
    cleaned = re.sub(r'[="]', "", raw).strip()
    return cleaned or None


def extract_friend_name(entry: FeedEntry, source_label: str) -> str:
    """好友名称：user_name 字段，其次条目作者，最后订阅源名称."""
    return entry.fields.get("user_name") or entry.author or source_label


def extract_book_url(entry: FeedEntry) -> str | None:
    """Goodreads 条目的链接通常就是书籍页面."""
    if entry.link and "goodreads.com" in entry.link:
        return entry.link
    return None


@dataclass
class ExtractedItem:
    """单个条目的提取结果."""

    book_title: str
    book_author: str | None
    rating: int | None
    is_loved: bool
    review_text: str | None
    event_date: datetime | None
    cover_url: str | None
    isbn: str | None
    friend_name: str
    book_url: str | None


def extract_item(entry: FeedEntry, source_label: str) -> ExtractedItem:
    """对单个条目运行全部提取器."""
    book = extract_book_info(entry)
    rating = extract_rating(entry)
    return ExtractedItem(
        book_title=book.title,
        book_author=book.author,
        rating=rating,
        is_loved=is_loved(entry, rating),
        review_text=extract_review_text(entry),
        event_date=extract_event_date(entry),
        cover_url=extract_cover_url(entry),
        isbn=extract_isbn(entry),
        friend_name=extract_friend_name(entry, source_label),
        book_url=extract_book_url(entry),
    )
