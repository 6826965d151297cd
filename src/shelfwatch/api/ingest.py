"""入库任务 API."""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwatch.api.deps import get_fetcher, verify_cron_secret
from shelfwatch.config import Settings, get_settings
from shelfwatch.core.fetcher import FeedFetcher
from shelfwatch.core.ingest import IngestionRunner, IngestPolicy, is_run_in_progress
from shelfwatch.core.preview import PreviewResult, preview_feed
from shelfwatch.core.store import SourceStore
from shelfwatch.models.database import get_session
from shelfwatch.models.run import IngestRun

router = APIRouter(prefix="/api/ingest", tags=["ingest"])


class PreviewRequest(BaseModel):
    """试抓请求."""

    url: str = Field(..., min_length=1, description="Feed 地址")


def run_to_dict(run: IngestRun) -> dict:
    """任务记录 -> 响应."""
    return {
        "id": run.id,
        "sources_processed": run.sources_processed,
        "sources_errored": run.sources_errored,
        "sources_skipped": run.sources_skipped,
        "sources_not_modified": run.sources_not_modified,
        "items_created": run.items_created,
        "items_skipped": run.items_skipped,
        "duration_ms": run.duration_ms,
        "errors": run.errors,
        "started_at": run.started_at.isoformat(),
        "completed_at": run.completed_at.isoformat() if run.completed_at else None,
    }


@router.post("/run", dependencies=[Depends(verify_cron_secret)])
async def trigger_run(
    session: AsyncSession = Depends(get_session),
    fetcher: FeedFetcher = Depends(get_fetcher),
    settings: Settings = Depends(get_settings),
) -> dict:
    """执行一轮入库并返回统计."""
    if is_run_in_progress():
        raise HTTPException(status_code=409, detail="已有入库任务在运行中")

    runner = IngestionRunner(session, fetcher, IngestPolicy.from_settings(settings))
    run = await runner.run_once()
    return run_to_dict(run)


@router.get("/runs")
async def list_runs(
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """最近的任务记录."""
    runs = await SourceStore(session).recent_runs(limit)
    return {
        "running": is_run_in_progress(),
        "runs": [run_to_dict(run) for run in runs],
    }


@router.post("/preview")
async def preview(
    request: PreviewRequest,
    fetcher: FeedFetcher = Depends(get_fetcher),
) -> PreviewResult:
    """试抓一个 feed（不保存）."""
    url = request.url.strip()
    if not url.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="请输入有效的 URL")
    return await preview_feed(fetcher, url)
