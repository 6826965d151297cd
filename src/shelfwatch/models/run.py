"""IngestRun 入库任务记录模型."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from shelfwatch.utils.dates import utc_now


class IngestRun(SQLModel, table=True):
    """一次入库任务的汇总（只追加）."""

    __tablename__ = "ingest_runs"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True)
    sources_processed: int = Field(default=0, description="成功处理的订阅源数")
    sources_errored: int = Field(default=0, description="失败的订阅源数")
    sources_skipped: int = Field(default=0, description="超出预算未处理的订阅源数")
    sources_not_modified: int = Field(default=0, description="返回 304 的订阅源数")
    items_created: int = Field(default=0, description="新建条目数")
    items_skipped: int = Field(default=0, description="跳过条目数（已存在或被过滤）")
    duration_ms: int = Field(default=0)
    errors: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="各订阅源错误列表",
    )
    started_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    completed_at: datetime | None = Field(default=None, sa_type=DateTime)
