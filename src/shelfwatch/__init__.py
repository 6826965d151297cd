"""ShelfWatch - Goodreads 好友订阅源健康管理与入库服务."""

__version__ = "0.1.0"
