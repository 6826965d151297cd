"""定时任务定义."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from shelfwatch.config import Settings

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


async def ingest_task(settings: Settings) -> None:
    """入库任务：轮询所有到期订阅源."""
    from shelfwatch.core.fetcher import FeedFetcher
    from shelfwatch.core.ingest import IngestionRunner, IngestPolicy, is_run_in_progress
    from shelfwatch.models.database import async_session_maker

    if not settings.ingest_enabled:
        logger.info("入库任务已禁用，跳过")
        return

    # 检查是否已有任务在运行
    if is_run_in_progress():
        logger.info("已有入库任务在运行，跳过本次调度")
        return

    try:
        async with FeedFetcher(
            user_agent=settings.user_agent,
            timeout_seconds=settings.fetch_timeout_seconds,
        ) as fetcher:
            async with async_session_maker()() as session:
                runner = IngestionRunner(
                    session, fetcher, IngestPolicy.from_settings(settings)
                )
                run = await runner.run_once()
        logger.info(
            f"定时入库完成: 处理={run.sources_processed}, "
            f"失败={run.sources_errored}, 新条目={run.items_created}"
        )
    except Exception as e:
        logger.exception(f"入库任务失败: {e}")


def create_scheduler(settings: Settings) -> AsyncIOScheduler:
    """创建并启动定时任务调度器."""
    global _scheduler

    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        ingest_task,
        "interval",
        minutes=settings.ingest_interval_minutes,
        args=[settings],
        id="ingest_task",
        name="订阅源轮询",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    # 启动时立即执行一次
    _scheduler.add_job(
        ingest_task,
        "date",  # 一次性任务
        args=[settings],
        id="ingest_task_initial",
        name="初始轮询",
    )

    _scheduler.start()
    logger.info(
        f"定时任务调度器已启动，轮询间隔: {settings.ingest_interval_minutes} 分钟"
    )

    return _scheduler


async def shutdown_scheduler() -> None:
    """关闭定时任务调度器."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        logger.info("定时任务调度器已关闭")
        _scheduler = None
