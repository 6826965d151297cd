"""数据模型."""

from shelfwatch.models.database import get_session, init_db
from shelfwatch.models.item import Item, ItemAction, ItemActionStatus
from shelfwatch.models.run import IngestRun
from shelfwatch.models.source import Source, SourceStatus

__all__ = [
    "IngestRun",
    "Item",
    "ItemAction",
    "ItemActionStatus",
    "Source",
    "SourceStatus",
    "get_session",
    "init_db",
]
