"""下游协作者：通知与封面解析."""

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class LovedBookEvent(BaseModel):
    """好友喜爱某本书的事件."""

    user_id: str
    item_id: int
    book_title: str
    book_author: str | None = None
    friend_name: str | None = None
    source_label: str
    event_url: str | None = None


class Notifier(ABC):
    """通知发送抽象基类（至少一次，尽力投递）."""

    @abstractmethod
    async def notify(self, event: LovedBookEvent) -> None:
        """发送一条通知."""
        ...


class LoggingNotifier(Notifier):
    """只写日志的默认实现."""

    async def notify(self, event: LovedBookEvent) -> None:
        author = f" ({event.book_author})" if event.book_author else ""
        who = event.friend_name or event.source_label
        logger.info(f"[通知] 用户 {event.user_id}: {who} 喜爱《{event.book_title}》{author}")


class CoverHintSink(ABC):
    """封面解析服务的输入端."""

    @abstractmethod
    async def submit(self, item_id: int, cover_url: str) -> None:
        """提交入库时提取到的封面地址."""
        ...


class NullCoverHintSink(CoverHintSink):
    """丢弃封面提示."""

    async def submit(self, item_id: int, cover_url: str) -> None:
        return None
