"""订阅前试抓 feed（不写数据库）."""

import logging

from pydantic import BaseModel

from shelfwatch.core.errors import FailureCode, IngestError
from shelfwatch.core.extractor import extract_book_info, extract_rating, is_loved
from shelfwatch.core.fetcher import FeedFetcher
from shelfwatch.core.parser import parse_feed
from shelfwatch.core.validator import validate_feed_content

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 5


class PreviewSample(BaseModel):
    """示例条目."""

    title: str
    author: str | None = None
    rating: int | None = None
    is_five_star: bool = False
    is_loved: bool = False


class PreviewResult(BaseModel):
    """试抓结果."""

    success: bool
    total_items: int = 0
    loved_items: int = 0
    samples: list[PreviewSample] = []
    error_code: str | None = None
    error: str | None = None


async def preview_feed(fetcher: FeedFetcher, url: str) -> PreviewResult:
    """
    抓取、校验并解析一个 feed，返回条目统计和前几条的提取结果.

    Args:
        fetcher: 抓取器
        url: feed 地址

    Returns:
        PreviewResult
    """
    result = await fetcher.fetch(url)
    if not result.ok:
        return PreviewResult(
            success=False, error_code=result.error_code, error=result.error
        )

    validation = validate_feed_content(result.text, url)
    if not validation.is_feed:
        return PreviewResult(success=False, error_code=FailureCode.NOT_FEED, error=validation.reason)

    try:
        parsed = parse_feed(result.content)
    except IngestError as e:
        return PreviewResult(success=False, error_code=e.code, error=e.message)

    samples: list[PreviewSample] = []
    loved = 0
    for index, entry in enumerate(parsed.entries):
        rating = extract_rating(entry)
        entry_loved = is_loved(entry, rating)
        if entry_loved:
            loved += 1
        if index < SAMPLE_SIZE:
            book = extract_book_info(entry)
            samples.append(
                PreviewSample(
                    title=book.title,
                    author=book.author,
                    rating=rating,
                    is_five_star=rating == 5,
                    is_loved=entry_loved,
                )
            )

    logger.info(f"试抓 {url}: {len(parsed.entries)} 条，喜爱 {loved} 条")
    return PreviewResult(
        success=True,
        total_items=len(parsed.entries),
        loved_items=loved,
        samples=samples,
    )
