"""API 公共依赖."""

from collections.abc import AsyncGenerator

from fastapi import Depends, Header, HTTPException

from shelfwatch.config import Settings, get_settings
from shelfwatch.core.fetcher import FeedFetcher


async def get_current_user(x_user_id: str = Header(..., min_length=1)) -> str:
    """调用方用户 ID，由外部鉴权层通过 X-User-Id 传入."""
    return x_user_id


async def get_fetcher(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[FeedFetcher, None]:
    """创建抓取器，请求结束后关闭."""
    async with FeedFetcher(
        user_agent=settings.user_agent,
        timeout_seconds=settings.fetch_timeout_seconds,
    ) as fetcher:
        yield fetcher


async def verify_cron_secret(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """配置了 cron_secret 时校验 Bearer 令牌."""
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(status_code=401, detail="未授权")
