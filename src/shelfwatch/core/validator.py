"""Feed 内容校验器."""

import re
from dataclasses import dataclass

# 只检查响应体开头部分
SNIFF_LENGTH = 500

_XML_PROLOG = re.compile(r"^<\?xml[^>]*\?>\s*")


@dataclass(frozen=True)
class ValidationResult:
    """校验结果."""

    is_feed: bool
    reason: str | None = None


def validate_feed_content(body: str, url: str) -> ValidationResult:
    """
    判断响应体是否像 RSS/Atom feed.

    订阅地址经常指向普通网页而不是 feed，这里用开头 500 字符做启发式判断：
    以 HTML doctype 或 <html> 开头，或者包含 <body> 但没有 <rss>/<feed>，
    都视为非 feed。

    Args:
        body: 原始响应体
        url: 请求地址，用于生成诊断信息

    Returns:
        ValidationResult，非 feed 时附带诊断信息
    """
    head = body.lstrip("\ufeff \t\r\n")[:SNIFF_LENGTH].lower()

    if not head:
        return ValidationResult(False, "The URL returned an empty response")

    # XHTML 页面可能带 XML 声明
    markup = _XML_PROLOG.sub("", head)
    if markup.startswith("<!doctype html") or markup.startswith("<html"):
        return ValidationResult(False, _html_page_reason(url))

    has_feed_tag = "<rss" in head or "<feed" in head
    if "<body" in head and not has_feed_tag:
        return ValidationResult(False, _html_page_reason(url))

    return ValidationResult(True)


def _html_page_reason(url: str) -> str:
    """针对返回 HTML 页面的诊断信息."""
    lowered = url.lower()
    if "goodreads.com" in lowered:
        if "/review/list/" in lowered and "/review/list_rss/" not in lowered:
            return (
                "This is a Goodreads profile page, not an RSS feed. Try converting "
                "it to: goodreads.com/review/list_rss/[user_id]?shelf=read"
            )
        return (
            "Goodreads returned an HTML page instead of RSS. Make sure the URL "
            'includes "list_rss" and the shelf parameter (e.g., ?shelf=read)'
        )
    return (
        "This URL returned an HTML page, not an RSS feed. Check that the URL "
        "points directly to an RSS/Atom feed."
    )
