"""入库任务执行器.

一次任务：选出到期订阅源 -> 条件抓取 -> 内容校验 -> 解析 -> 去重 -> 提取 -> 入库，
并把每个结果反馈给健康状态机。

抓取并发执行（信号量限流），所有数据库写入在同一把锁内串行完成。
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from shelfwatch.config import Settings
from shelfwatch.core.dedup import compute_dedup_hash
from shelfwatch.core.errors import FailureCode, IngestError, is_soft
from shelfwatch.core.extractor import ExtractedItem, extract_item
from shelfwatch.core.fetcher import FeedFetcher, FetchResult
from shelfwatch.core.health import (
    HealthPolicy,
    record_failure,
    record_not_modified,
    record_success,
)
from shelfwatch.core.notify import (
    CoverHintSink,
    LoggingNotifier,
    LovedBookEvent,
    Notifier,
    NullCoverHintSink,
)
from shelfwatch.core.parser import FeedEntry, parse_feed
from shelfwatch.core.store import SourceStore
from shelfwatch.core.validator import validate_feed_content
from shelfwatch.models.run import IngestRun
from shelfwatch.models.source import Source
from shelfwatch.utils.dates import utc_now
from shelfwatch.utils.goodreads import source_label

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestPolicy:
    """入库任务参数，在构造时传入执行器."""

    ingest_enabled: bool = True
    max_items_per_source: int = 50
    source_budget_seconds: float = 20.0
    run_budget_seconds: float = 240.0
    fetch_concurrency: int = 4
    failure_threshold: int = 5
    loved_only: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngestPolicy":
        """从应用配置构造."""
        return cls(
            ingest_enabled=settings.ingest_enabled,
            max_items_per_source=settings.max_items_per_source,
            source_budget_seconds=settings.source_budget_seconds,
            run_budget_seconds=settings.run_budget_seconds,
            fetch_concurrency=settings.fetch_concurrency,
            failure_threshold=settings.failure_threshold,
            loved_only=settings.loved_only,
        )

    @property
    def health(self) -> HealthPolicy:
        return HealthPolicy(failure_threshold=self.failure_threshold)


@dataclass
class PendingDispatch:
    """提交后才发送的通知和封面提示."""

    created: int = 0
    skipped: int = 0
    events: list[LovedBookEvent] = field(default_factory=list)
    covers: list[tuple[int, str]] = field(default_factory=list)


# 全局状态
_running_source_ids: set[int] = set()
_run_in_progress = False


def is_run_in_progress() -> bool:
    """是否有入库任务正在运行."""
    return _run_in_progress


def is_source_in_flight(source_id: int) -> bool:
    """订阅源是否正在被当前任务处理."""
    return source_id in _running_source_ids


class IngestionRunner:
    """入库任务执行器."""

    def __init__(
        self,
        session: AsyncSession,
        fetcher: FeedFetcher,
        policy: IngestPolicy | None = None,
        notifier: Notifier | None = None,
        cover_sink: CoverHintSink | None = None,
    ) -> None:
        self.session = session
        self.store = SourceStore(session)
        self.fetcher = fetcher
        self.policy = policy or IngestPolicy()
        self.notifier = notifier or LoggingNotifier()
        self.cover_sink = cover_sink or NullCoverHintSink()
        self._write_lock = asyncio.Lock()

    async def run_once(self) -> IngestRun:
        """
        执行一轮入库.

        单个订阅源的异常只记录在该订阅源上，不会中断整轮任务。
        超出整轮时间预算后尚未开始的订阅源计入 skipped，下一轮仍然到期。

        Returns:
            已保存的 IngestRun
        """
        global _run_in_progress

        run = IngestRun(started_at=utc_now())

        if not self.policy.ingest_enabled:
            logger.info("入库任务已禁用，跳过")
            run.completed_at = utc_now()
            return await self.store.record_run(run)

        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self.policy.run_budget_seconds

        _run_in_progress = True
        try:
            sources = await self.store.list_due_sources(run.started_at)
            source_ids = [source.id for source in sources if source.id is not None]
            logger.info(f"开始入库任务，共 {len(source_ids)} 个到期订阅源")

            # 使用信号量控制并发
            semaphore = asyncio.Semaphore(max(self.policy.fetch_concurrency, 1))

            async def process_with_semaphore(source_id: int) -> None:
                async with semaphore:
                    if loop.time() >= deadline:
                        run.sources_skipped += 1
                        return
                    await self._process_source(source_id, run)

            await asyncio.gather(*(process_with_semaphore(sid) for sid in source_ids))
        finally:
            _run_in_progress = False

        run.duration_ms = int((loop.time() - started) * 1000)
        run.completed_at = utc_now()

        logger.info(
            f"入库任务完成: 处理={run.sources_processed}, 失败={run.sources_errored}, "
            f"跳过={run.sources_skipped}, 未修改={run.sources_not_modified}, "
            f"新条目={run.items_created}, 跳过条目={run.items_skipped}, "
            f"耗时={run.duration_ms}ms"
        )
        return await self.store.record_run(run)

    async def _process_source(self, source_id: int, run: IngestRun) -> None:
        """处理单个订阅源，任何异常都在这里收敛."""
        _running_source_ids.add(source_id)
        try:
            dispatch = await self._ingest_source(source_id, run)
        except Exception as e:
            # 连失败记录都无法写入（例如数据库不可用）
            logger.exception(f"订阅源 {source_id} 处理失败且无法记录: {e}")
            run.sources_errored += 1
            run.errors.append(_error_entry(source_id, None, FailureCode.UNKNOWN, str(e)))
            return
        finally:
            _running_source_ids.discard(source_id)

        if dispatch is not None:
            await self._dispatch(dispatch)

    async def _ingest_source(self, source_id: int, run: IngestRun) -> PendingDispatch | None:
        async with self._write_lock:
            source = await self.store.get_source(source_id, refresh=True)
            if source is None:
                return None
            url, etag, last_modified = source.url, source.etag, source.last_modified

        started = asyncio.get_running_loop().time()
        try:
            result = await self.fetcher.fetch(url, etag, last_modified)
        except Exception as e:
            logger.exception(f"订阅源 {source_id} 抓取异常: {e}")
            result = FetchResult(
                status="error",
                error_code=FailureCode.UNKNOWN,
                error=f"{type(e).__name__}: {e}",
            )

        async with self._write_lock:
            try:
                return await self._apply(source_id, result, started, run)
            except Exception as e:
                logger.exception(f"订阅源 {source_id} 处理异常: {e}")
                await self.session.rollback()
                source = await self.store.get_source(source_id, refresh=True)
                if source is not None:
                    await self._fail(
                        source, run, FailureCode.UNKNOWN, f"{type(e).__name__}: {e}"
                    )
                return None

    async def _apply(
        self,
        source_id: int,
        result: FetchResult,
        started: float,
        run: IngestRun,
    ) -> PendingDispatch | None:
        """把抓取结果写入数据库并更新健康状态（持有写锁）."""
        source = await self.store.get_source(source_id, refresh=True)
        if source is None:
            return None

        if result.not_modified:
            record_not_modified(source)
            await self.store.save_source(source)
            run.sources_processed += 1
            run.sources_not_modified += 1
            logger.info(f"订阅源 {source_id} 未修改 (304)")
            return None

        if not result.ok:
            await self._fail(
                source,
                run,
                result.error_code or FailureCode.UNKNOWN,
                result.error,
                http_status=result.http_status,
                retry_after_seconds=result.retry_after_seconds,
            )
            return None

        try:
            validation = validate_feed_content(result.text, source.url)
            if not validation.is_feed:
                raise IngestError(
                    FailureCode.NOT_FEED,
                    validation.reason or "Response is not a feed",
                    http_status=result.http_status,
                )
            parsed = parse_feed(result.content)
        except IngestError as e:
            await self._fail(
                source,
                run,
                e.code,
                e.message,
                http_status=e.http_status or result.http_status,
                retry_after_seconds=e.retry_after_seconds,
            )
            return None

        for warning in parsed.warnings:
            logger.debug(f"订阅源 {source_id}: {warning}")

        label = source_label(source.url, source.title or parsed.title)
        dispatch, truncated = await self._store_entries(
            source_id, source.user_id, parsed.entries, label, started
        )

        newest_key = (
            compute_dedup_hash(source_id, parsed.entries[0]) if parsed.entries else None
        )
        # 被预算截断时不保存缓存令牌，下次重新完整抓取
        record_success(
            source,
            etag=None if truncated else result.etag,
            last_modified=None if truncated else result.last_modified,
            last_seen_item_key=newest_key,
            http_status=result.http_status or 200,
            feed_title=parsed.title,
        )
        await self.store.save_source(source)

        run.sources_processed += 1
        run.items_created += dispatch.created
        run.items_skipped += dispatch.skipped
        logger.info(
            f"订阅源 {source_id} ({label}) 抓取成功: "
            f"{len(parsed.entries)} 条，新建 {dispatch.created} 条"
        )
        return dispatch

    async def _store_entries(
        self,
        source_id: int,
        user_id: str,
        entries: list[FeedEntry],
        label: str,
        started: float,
    ) -> tuple[PendingDispatch, bool]:
        """
        按 feed 顺序处理条目，返回待发送内容和是否被预算截断.

        条目上限只统计需要写入的新条目，已入库的条目不占名额，
        所以积压的条目会在后续几轮中逐步补齐。
        """
        loop = asyncio.get_running_loop()
        dispatch = PendingDispatch()
        written = 0
        for index, entry in enumerate(entries):
            if loop.time() - started > self.policy.source_budget_seconds:
                logger.info(f"订阅源 {source_id} 超出时间预算，已处理 {index} 条")
                return dispatch, True

            dedup_hash = compute_dedup_hash(source_id, entry)
            if await self.store.has_item(source_id, dedup_hash):
                dispatch.skipped += 1
                continue

            extracted = extract_item(entry, label)
            if self.policy.loved_only and not extracted.is_loved:
                dispatch.skipped += 1
                continue

            if written >= self.policy.max_items_per_source:
                logger.info(
                    f"订阅源 {source_id} 达到单次条目上限 {written}，剩余条目留待下次"
                )
                return dispatch, True
            written += 1

            item_id = await self.store.insert_item_if_absent(
                _item_values(source_id, dedup_hash, entry, extracted)
            )
            if item_id is None:
                # 并发任务已写入同一条目
                dispatch.skipped += 1
                continue

            await self.store.create_unseen_action(user_id, item_id)
            dispatch.created += 1

            if extracted.cover_url:
                dispatch.covers.append((item_id, extracted.cover_url))
            if extracted.is_loved:
                dispatch.events.append(
                    LovedBookEvent(
                        user_id=user_id,
                        item_id=item_id,
                        book_title=extracted.book_title,
                        book_author=extracted.book_author,
                        friend_name=extracted.friend_name,
                        source_label=label,
                        event_url=extracted.book_url or entry.link,
                    )
                )

        return dispatch, False

    async def _fail(
        self,
        source: Source,
        run: IngestRun,
        code: str,
        message: str | None,
        *,
        http_status: int | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        """记录失败并保存."""
        status = record_failure(
            source,
            code,
            message,
            http_status=http_status,
            retry_after_seconds=retry_after_seconds,
            policy=self.policy.health,
        )
        await self.store.save_source(source)

        run.sources_errored += 1
        run.errors.append(_error_entry(source.id, source.url, code, message))

        kind = "可重试" if is_soft(code) else "不可重试"
        logger.warning(
            f"订阅源 {source.id} {kind}失败 [{code}] -> {status}: {message}"
        )

    async def _dispatch(self, dispatch: PendingDispatch) -> None:
        """提交之后发送封面提示和通知，失败只记录日志."""
        for item_id, cover_url in dispatch.covers:
            try:
                await self.cover_sink.submit(item_id, cover_url)
            except Exception as e:
                logger.warning(f"封面提示提交失败: item={item_id} - {e}")

        for event in dispatch.events:
            try:
                await self.notifier.notify(event)
            except Exception as e:
                logger.warning(f"通知发送失败: item={event.item_id} - {e}")


def _item_values(
    source_id: int, dedup_hash: str, entry: FeedEntry, extracted: ExtractedItem
) -> dict[str, Any]:
    return {
        "source_id": source_id,
        "dedup_hash": dedup_hash,
        "guid": entry.guid,
        "url": entry.link,
        "title": entry.title,
        "author": entry.author,
        "published_at": extracted.event_date,
        "raw_html": entry.body or None,
        "book_title": extracted.book_title,
        "book_author": extracted.book_author,
        "book_url": extracted.book_url,
        "cover_image_url": extracted.cover_url,
        "isbn": extracted.isbn,
        "friend_name": extracted.friend_name,
        "rating": extracted.rating,
        "is_loved": extracted.is_loved,
        "clean_text": extracted.review_text,
    }


def _error_entry(
    source_id: int | None, url: str | None, code: str, message: str | None
) -> dict[str, Any]:
    return {"source_id": source_id, "url": url, "code": code, "error": message}
