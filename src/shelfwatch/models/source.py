"""Source 订阅源模型."""

from datetime import datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from shelfwatch.utils.dates import utc_now


class SourceStatus:
    """订阅源健康状态."""

    VALIDATING = "VALIDATING"
    ACTIVE = "ACTIVE"
    BACKOFF = "BACKOFF"
    FAILED = "FAILED"


class Source(SQLModel, table=True):
    """用户订阅的单个 RSS/Atom 源."""

    __tablename__ = "sources"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("user_id", "url", name="uq_sources_user_url"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, description="所属用户")
    url: str = Field(description="Feed URL")
    title: str | None = Field(default=None, description="显示标题（可从 Feed 回填）")
    is_active: bool = Field(default=True, description="软删除标记")

    status: str = Field(
        default=SourceStatus.VALIDATING,
        index=True,
        description="健康状态: VALIDATING|ACTIVE|BACKOFF|FAILED",
    )
    failure_reason_code: str | None = Field(default=None, description="失败分类码")
    consecutive_failures: int = Field(default=0, ge=0, description="连续失败次数")
    last_http_status: int | None = Field(default=None, description="最近一次 HTTP 状态码")
    last_error: str | None = Field(default=None, description="诊断信息（不直接展示给用户）")

    etag: str | None = Field(default=None, description="ETag 缓存标记")
    last_modified: str | None = Field(default=None, description="Last-Modified 缓存标记")
    last_seen_item_key: str | None = Field(default=None, description="最新条目的去重键")

    last_attempt_at: datetime | None = Field(default=None, sa_type=DateTime)
    last_success_at: datetime | None = Field(default=None, sa_type=DateTime)
    next_attempt_at: datetime | None = Field(
        default=None, index=True, sa_type=DateTime, description="仅 BACKOFF 状态下非空"
    )

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
