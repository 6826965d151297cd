"""Item 条目与 ItemAction 阅读状态模型."""

from datetime import datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from shelfwatch.utils.dates import utc_now


class ItemActionStatus:
    """用户对条目的处理状态."""

    UNSEEN = "UNSEEN"
    SEEN = "SEEN"
    SAVED = "SAVED"
    IGNORED = "IGNORED"


class Item(SQLModel, table=True):
    """从订阅源去重后入库的单个条目（只追加，不修改）."""

    __tablename__ = "items"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint("source_id", "dedup_hash", name="uq_items_source_dedup"),
    )

    id: int | None = Field(default=None, primary_key=True)
    source_id: int = Field(foreign_key="sources.id", index=True, description="所属订阅源")
    dedup_hash: str = Field(max_length=32, description="去重键")

    # 原始字段
    guid: str | None = Field(default=None)
    url: str | None = Field(default=None)
    title: str | None = Field(default=None)
    author: str | None = Field(default=None)
    published_at: datetime | None = Field(default=None, sa_type=DateTime)
    raw_html: str | None = Field(default=None)

    # 提取字段
    book_title: str | None = Field(default=None)
    book_author: str | None = Field(default=None)
    book_url: str | None = Field(default=None)
    cover_image_url: str | None = Field(default=None)
    isbn: str | None = Field(default=None)
    friend_name: str | None = Field(default=None)
    rating: int | None = Field(default=None, ge=1, le=5)
    is_loved: bool = Field(default=False)
    clean_text: str | None = Field(default=None, description="清洗后的书评")

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)


class ItemAction(SQLModel, table=True):
    """用户对条目的阅读状态."""

    __tablename__ = "item_actions"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_item_actions_user_item"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    item_id: int = Field(foreign_key="items.id", index=True)
    status: str = Field(
        default=ItemActionStatus.UNSEEN,
        description="状态: UNSEEN|SEEN|SAVED|IGNORED",
    )
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
