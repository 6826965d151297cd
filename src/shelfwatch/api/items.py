"""条目收件箱 API."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from shelfwatch.api.deps import get_current_user
from shelfwatch.models.database import get_session
from shelfwatch.models.item import Item, ItemAction, ItemActionStatus
from shelfwatch.models.source import Source
from shelfwatch.utils.dates import utc_now
from shelfwatch.utils.goodreads import source_label

router = APIRouter(prefix="/api/items", tags=["items"])

ACTION_PATHS = {
    "seen": ItemActionStatus.SEEN,
    "save": ItemActionStatus.SAVED,
    "ignore": ItemActionStatus.IGNORED,
}


def item_to_dict(item: Item, action: ItemAction, source: Source) -> dict:
    """条目 -> 响应."""
    return {
        "id": item.id,
        "status": action.status,
        "source_id": source.id,
        "source_label": source_label(source.url, source.title),
        "friend_name": item.friend_name,
        "book_title": item.book_title,
        "book_author": item.book_author,
        "book_url": item.book_url,
        "cover_image_url": item.cover_image_url,
        "isbn": item.isbn,
        "rating": item.rating,
        "is_loved": item.is_loved,
        "review": item.clean_text,
        "url": item.url,
        "published_at": item.published_at.isoformat() if item.published_at else None,
        "created_at": item.created_at.isoformat(),
    }


@router.get("")
async def list_items(
    status: Literal["UNSEEN", "SEEN", "SAVED", "IGNORED", "ALL"] = Query(
        ItemActionStatus.UNSEEN, description="按状态筛选，ALL 表示全部"
    ),
    loved: bool | None = Query(None, description="只看喜爱的条目"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """获取当前用户的收件箱."""
    stmt = (
        select(Item, ItemAction, Source)
        .join(ItemAction, ItemAction.item_id == Item.id)  # type: ignore[arg-type]
        .join(Source, Source.id == Item.source_id)  # type: ignore[arg-type]
        .where(ItemAction.user_id == user_id)
    )
    if status != "ALL":
        stmt = stmt.where(ItemAction.status == status)
    if loved is not None:
        stmt = stmt.where(Item.is_loved == loved)

    stmt = (
        stmt.order_by(Item.published_at.desc().nulls_last(), Item.id.desc())  # type: ignore[union-attr]
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await session.execute(stmt)
    rows = result.all()

    return {
        "page": page,
        "limit": limit,
        "items": [item_to_dict(item, action, source) for item, action, source in rows],
    }


@router.post("/mark-all-seen")
async def mark_all_seen(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """将所有未读条目标记为已读."""
    stmt = (
        update(ItemAction)
        .where(
            ItemAction.user_id == user_id,  # type: ignore[arg-type]
            ItemAction.status == ItemActionStatus.UNSEEN,  # type: ignore[arg-type]
        )
        .values(status=ItemActionStatus.SEEN, updated_at=utc_now())
    )
    result = await session.execute(stmt)
    await session.commit()
    return {"success": True, "count": result.rowcount}


@router.post("/{item_id}/{action}")
async def set_item_status(
    item_id: int,
    action: Literal["seen", "save", "ignore"],
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """设置条目状态：seen / save / ignore."""
    stmt = select(ItemAction).where(
        ItemAction.user_id == user_id, ItemAction.item_id == item_id
    )
    result = await session.execute(stmt)
    item_action = result.scalar_one_or_none()
    if not item_action:
        raise HTTPException(status_code=404, detail="条目不存在")

    item_action.status = ACTION_PATHS[action]
    item_action.updated_at = utc_now()
    await session.commit()
    return {"success": True, "id": item_id, "status": item_action.status}
