"""订阅源条件抓取."""

import asyncio
import logging
from typing import Literal

import httpx
from pydantic import BaseModel

from shelfwatch.config import DEFAULT_USER_AGENT
from shelfwatch.core.backoff import parse_retry_after
from shelfwatch.core.errors import FailureCode, classify_http_status

logger = logging.getLogger(__name__)


class FetchResult(BaseModel):
    """抓取结果：正文、304 或分类后的错误."""

    status: Literal["ok", "not_modified", "error"]
    http_status: int | None = None
    content: bytes = b""
    text: str = ""
    etag: str | None = None
    last_modified: str | None = None
    error_code: str | None = None
    error: str | None = None
    retry_after_seconds: float | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def not_modified(self) -> bool:
        return self.status == "not_modified"


class FeedFetcher:
    """带 ETag/Last-Modified 条件请求和超时控制的 feed 抓取器."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout_seconds = timeout_seconds
        self._client = httpx.AsyncClient(
            timeout=timeout_seconds,
            follow_redirects=True,
            transport=transport,
        )

    async def close(self) -> None:
        """关闭客户端."""
        await self._client.aclose()

    async def __aenter__(self) -> "FeedFetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def build_headers(
        self, etag: str | None = None, last_modified: str | None = None
    ) -> dict[str, str]:
        """构造请求头."""
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
        }
        if etag:
            headers["If-None-Match"] = etag
        if last_modified:
            headers["If-Modified-Since"] = last_modified
        return headers

    async def fetch(
        self,
        url: str,
        etag: str | None = None,
        last_modified: str | None = None,
    ) -> FetchResult:
        """
        执行一次条件 GET.

        超时通过取消实现，独立于整次任务的时间预算。错误在这里直接分类，
        调用方不需要解析错误信息。

        Args:
            url: feed 地址
            etag: 上次成功抓取时的 ETag
            last_modified: 上次成功抓取时的 Last-Modified

        Returns:
            FetchResult
        """
        headers = self.build_headers(etag, last_modified)

        try:
            async with asyncio.timeout(self.timeout_seconds):
                response = await self._client.get(url, headers=headers)
        except (TimeoutError, httpx.TimeoutException):
            return FetchResult(
                status="error",
                error_code=FailureCode.TIMEOUT,
                error=f"Request timed out after {self.timeout_seconds:g}s",
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            return FetchResult(
                status="error",
                error_code=FailureCode.NOT_FOUND,
                error=f"Invalid feed URL: {e}",
            )
        except httpx.RequestError as e:
            return FetchResult(
                status="error",
                error_code=FailureCode.NETWORK,
                error=f"{type(e).__name__}: {e}",
            )

        logger.debug(f"GET {url} -> HTTP {response.status_code}")

        if response.status_code == 304:
            return FetchResult(
                status="not_modified",
                http_status=304,
                etag=etag,
                last_modified=last_modified,
            )

        error_code = classify_http_status(response.status_code)
        if error_code is not None:
            return FetchResult(
                status="error",
                http_status=response.status_code,
                error_code=error_code,
                error=f"HTTP {response.status_code}: {response.reason_phrase}",
                retry_after_seconds=parse_retry_after(
                    response.headers.get("Retry-After")
                ),
            )

        return FetchResult(
            status="ok",
            http_status=response.status_code,
            content=response.content,
            text=response.text,
            etag=response.headers.get("ETag"),
            last_modified=response.headers.get("Last-Modified"),
        )
