"""ShelfWatch 主应用入口."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shelfwatch import __version__
from shelfwatch.api import ingest, items, sources
from shelfwatch.config import get_settings
from shelfwatch.models.database import close_db, init_db
from shelfwatch.scheduler import create_scheduler, shutdown_scheduler

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """应用生命周期管理."""
    app_settings = get_settings()

    # 启动时初始化
    logger.info("正在初始化数据库...")
    await init_db(app_settings.database_url)

    if app_settings.ingest_enabled:
        logger.info("正在启动定时任务...")
        create_scheduler(app_settings)
    else:
        logger.info("入库任务已禁用，不启动定时任务")

    logger.info("ShelfWatch 启动完成！")
    yield

    # 关闭时清理
    logger.info("正在关闭...")
    await shutdown_scheduler()
    await close_db()
    logger.info("ShelfWatch 已关闭")


app = FastAPI(
    title="ShelfWatch",
    description="好友书架 RSS 监控 - 订阅源健康管理与「喜爱」事件入库",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(sources.router)
app.include_router(items.router)
app.include_router(ingest.router)


@app.get("/")
async def root() -> dict:
    """根路径."""
    return {
        "name": "ShelfWatch",
        "version": __version__,
        "description": "好友书架 RSS 监控",
    }


@app.get("/health")
async def health() -> dict:
    """健康检查."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "shelfwatch.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
