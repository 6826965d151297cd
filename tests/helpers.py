"""测试辅助函数：构造 feed 文档和模拟抓取器."""

from collections.abc import Callable

import httpx

from shelfwatch.core.fetcher import FeedFetcher

FEED_URL = "https://www.goodreads.com/review/list_rss/12345678?shelf=read"


def rss_feed(*items: str, title: str = "Alice's bookshelf: read") -> str:
    """构造 Goodreads 风格的 RSS 文档."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss version="2.0"><channel>'
        f"<title>{title}</title>"
        "<link>https://www.goodreads.com/review/list/12345678</link>"
        f"{''.join(items)}"
        "</channel></rss>"
    )


def rss_item(
    guid: str,
    title: str,
    *,
    rating: int | None = None,
    author_name: str | None = None,
    description: str = "",
    shelves: str = "",
    user_name: str = "Alice",
    pub_date: str = "Sat, 04 May 2024 10:00:00 -0700",
    cover: str | None = None,
) -> str:
    """构造单个 RSS 条目."""
    parts = [
        "<item>",
        f'<guid isPermaLink="false">{guid}</guid>',
        f"<title>{title}</title>",
        f"<link>https://www.goodreads.com/review/show/{guid}</link>",
        f"<pubDate>{pub_date}</pubDate>",
        f"<user_name>{user_name}</user_name>",
    ]
    if rating is not None:
        parts.append(f"<user_rating>{rating}</user_rating>")
    if author_name:
        parts.append(f"<author_name>{author_name}</author_name>")
    if shelves:
        parts.append(f"<user_shelves>{shelves}</user_shelves>")
    if cover:
        parts.append(f"<book_large_image_url>{cover}</book_large_image_url>")
    if description:
        parts.append(f"<description><![CDATA[{description}]]></description>")
    parts.append("</item>")
    return "".join(parts)


Handler = Callable[[httpx.Request], httpx.Response]


def make_fetcher(handler: Handler, timeout_seconds: float = 5.0) -> FeedFetcher:
    """用 httpx.MockTransport 创建抓取器."""
    return FeedFetcher(
        timeout_seconds=timeout_seconds,
        transport=httpx.MockTransport(handler),
    )
