"""订阅源 API."""

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from shelfwatch.api.deps import get_current_user
from shelfwatch.core.errors import get_failure_copy
from shelfwatch.core.health import manual_retry
from shelfwatch.core.ingest import is_source_in_flight
from shelfwatch.models.database import get_session
from shelfwatch.models.source import Source, SourceStatus
from shelfwatch.utils.dates import utc_now
from shelfwatch.utils.goodreads import (
    is_goodreads_page_url,
    normalize_goodreads_url,
    source_label,
)

router = APIRouter(prefix="/api/sources", tags=["sources"])


class SourceCreate(BaseModel):
    """新建订阅请求."""

    url: str = Field(..., min_length=1, description="Feed 地址、Goodreads 页面地址或用户 ID")
    title: str | None = Field(default=None, max_length=200)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def source_to_dict(source: Source) -> dict:
    """订阅源 -> 响应，提示文案只由分类码决定."""
    copy = get_failure_copy(source.failure_reason_code)
    return {
        "id": source.id,
        "url": source.url,
        "title": source.title,
        "label": source_label(source.url, source.title),
        "status": source.status,
        "failure_reason_code": source.failure_reason_code,
        "failure": asdict(copy) if copy else None,
        "consecutive_failures": source.consecutive_failures,
        "last_http_status": source.last_http_status,
        "last_attempt_at": _iso(source.last_attempt_at),
        "last_success_at": _iso(source.last_success_at),
        "next_attempt_at": _iso(source.next_attempt_at),
        "created_at": _iso(source.created_at),
    }


def normalize_source_url(value: str) -> str:
    """规范化订阅地址，Goodreads 网页地址转换为 RSS 地址."""
    value = value.strip()

    if is_goodreads_page_url(value) or value.isdigit():
        result = normalize_goodreads_url(value)
        if result.error:
            raise HTTPException(status_code=400, detail=result.error)
        return result.url

    if not value.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="请输入有效的订阅地址")
    return value


async def _get_owned_source(
    session: AsyncSession, source_id: int, user_id: str
) -> Source:
    source = await session.get(Source, source_id)
    if not source or source.user_id != user_id or not source.is_active:
        raise HTTPException(status_code=404, detail="订阅源不存在")
    return source


@router.get("")
async def list_sources(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """获取当前用户的订阅列表."""
    stmt = (
        select(Source)
        .where(Source.user_id == user_id, Source.is_active == True)  # noqa: E712
        .order_by(Source.created_at.desc())  # type: ignore[attr-defined]
    )
    result = await session.execute(stmt)
    sources = result.scalars().all()

    return {
        "total": len(sources),
        "failed": sum(1 for s in sources if s.status == SourceStatus.FAILED),
        "sources": [source_to_dict(s) for s in sources],
    }


@router.post("", status_code=201)
async def create_source(
    request: SourceCreate,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """新建订阅，初始状态为 VALIDATING."""
    url = normalize_source_url(request.url)

    stmt = select(Source).where(Source.user_id == user_id, Source.url == url)
    result = await session.execute(stmt)
    existing = result.scalar_one_or_none()

    if existing and existing.is_active:
        raise HTTPException(status_code=400, detail="已订阅该地址")

    if existing:
        # 重新订阅已删除的源
        existing.is_active = True
        existing.title = request.title or existing.title
        manual_retry(existing)
        source = existing
    else:
        source = Source(user_id=user_id, url=url, title=request.title)

    session.add(source)
    await session.commit()
    await session.refresh(source)
    return source_to_dict(source)


@router.get("/{source_id}")
async def get_source(
    source_id: int,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """获取订阅源详情."""
    source = await _get_owned_source(session, source_id, user_id)
    return source_to_dict(source)


@router.delete("/{source_id}")
async def delete_source(
    source_id: int,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """取消订阅（软删除，已入库条目保留）."""
    source = await _get_owned_source(session, source_id, user_id)
    source.is_active = False
    source.updated_at = utc_now()
    await session.commit()
    return {"success": True, "id": source_id}


@router.post("/{source_id}/retry")
async def retry_source(
    source_id: int,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """手动重试：重置为 VALIDATING，下一轮任务立即处理."""
    source = await _get_owned_source(session, source_id, user_id)

    if is_source_in_flight(source_id):
        raise HTTPException(status_code=409, detail="订阅源正在处理中，请稍后再试")

    manual_retry(source)
    await session.commit()
    await session.refresh(source)
    return source_to_dict(source)
