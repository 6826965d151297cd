"""应用配置管理."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = "ShelfWatch/1.0 (RSS Reader; +https://shelfwatch.app)"


class Settings(BaseSettings):
    """应用配置（环境变量）."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 应用配置
    database_url: str = "sqlite+aiosqlite:///./shelfwatch.db"
    cron_secret: str = ""

    # 入库任务配置
    ingest_enabled: bool = True
    ingest_interval_minutes: int = 15
    run_budget_seconds: int = 240

    # 抓取配置
    user_agent: str = DEFAULT_USER_AGENT
    fetch_timeout_seconds: float = 15.0
    fetch_concurrency: int = 4

    # 单个订阅源的预算
    max_items_per_source: int = 50
    source_budget_seconds: float = 20.0

    # 健康状态机
    failure_threshold: int = 5

    # 好友动态模式：只保存「喜爱」的条目
    loved_only: bool = False


@lru_cache
def get_settings() -> Settings:
    """获取应用配置（带缓存）."""
    return Settings()
