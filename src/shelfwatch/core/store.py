"""入库持久化操作."""

from datetime import datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from shelfwatch.models.item import Item, ItemAction, ItemActionStatus
from shelfwatch.models.run import IngestRun
from shelfwatch.models.source import Source, SourceStatus
from shelfwatch.utils.dates import utc_now


class SourceStore:
    """订阅源、条目与任务记录的存取.

    只提供单点写入，不需要跨订阅源事务。
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_due_sources(self, now: datetime | None = None) -> list[Source]:
        """查询本轮需要轮询的订阅源."""
        now = now or utc_now()
        stmt = (
            select(Source)
            .where(Source.is_active == True)  # noqa: E712
            .where(
                or_(
                    Source.status == SourceStatus.ACTIVE,
                    Source.status == SourceStatus.VALIDATING,
                    (Source.status == SourceStatus.BACKOFF)
                    & (Source.next_attempt_at <= now),  # type: ignore[operator]
                )
            )
            .order_by(Source.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_source(self, source_id: int, *, refresh: bool = False) -> Source | None:
        """按 ID 获取订阅源，refresh=True 时忽略会话缓存重新读取."""
        return await self.session.get(Source, source_id, populate_existing=refresh)

    async def has_item(self, source_id: int, dedup_hash: str) -> bool:
        """条目是否已入库."""
        stmt = select(Item.id).where(
            Item.source_id == source_id, Item.dedup_hash == dedup_hash
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def insert_item_if_absent(self, values: dict[str, Any]) -> int | None:
        """
        原子地插入条目，(source_id, dedup_hash) 已存在时什么也不做.

        Returns:
            新条目 ID；已存在时返回 None
        """
        values = {"created_at": utc_now(), **values}
        dialect = self.session.get_bind().dialect.name

        if dialect in ("sqlite", "postgresql"):
            insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            stmt = (
                insert(Item)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["source_id", "dedup_hash"])
                .returning(Item.id)
            )
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        # 其他数据库依赖唯一约束
        item = Item(**values)
        try:
            async with self.session.begin_nested():
                self.session.add(item)
        except IntegrityError:
            return None
        return item.id

    async def create_unseen_action(self, user_id: str, item_id: int) -> None:
        """为订阅源所有者创建 UNSEEN 阅读状态."""
        self.session.add(
            ItemAction(user_id=user_id, item_id=item_id, status=ItemActionStatus.UNSEEN)
        )
        await self.session.flush()

    async def save_source(self, source: Source) -> None:
        """保存订阅源健康字段."""
        self.session.add(source)
        await self.session.commit()

    async def record_run(self, run: IngestRun) -> IngestRun:
        """保存任务记录."""
        self.session.add(run)
        await self.session.commit()
        await self.session.refresh(run)
        return run

    async def recent_runs(self, limit: int = 10) -> list[IngestRun]:
        """最近的任务记录."""
        stmt = select(IngestRun).order_by(IngestRun.started_at.desc()).limit(limit)  # type: ignore[attr-defined]
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
