"""Summary Pipeline Orchestrator.

Drives one summary request end to end:
- Validate the request and record it as ``processing``
- For each selected source, list recent items and refresh the source pointer
- For each item, enrich, summarize and store it (insert-if-absent by title)
- Synthesize one trend analysis when at least two items were summarized
- Optionally hand the results to the notifier
- Finalize the request status

Sources and items are processed sequentially. Every source and item step
produces a ``StepOutcome``; failures of one step are recorded and the loop
moves on. Only persistence failures abort a request.
"""

import time
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from digestbot.core.catalog import SourceCatalog, SourceEntry
from digestbot.core.db import AsyncSessionLocal
from digestbot.core.errors import InvalidRequest, NotFound, PersistenceError
from digestbot.core.logging import get_logger
from digestbot.core.models import RequestStatus
from digestbot.core.repositories import (
    create_summary_request,
    get_summary_request,
    insert_item_if_absent,
    insert_trend_analysis_if_absent,
    update_request_status,
    upsert_source,
)
from digestbot.core.settings import get_settings
from digestbot.core.time import ensure_utc
from digestbot.notifier import Notifier
from digestbot.summarizer.models import PerItemSummary, TrendReport, to_api
from digestbot.summarizer.summarizer import Summarizer
from digestbot.summarizer.trends import MIN_TREND_INPUTS, TrendAnalyzer

logger = get_logger(__name__)

NO_CONTENT_PLACEHOLDER = "No content available for summarization"
UNKNOWN_SOURCE = "unknown source"
EMPTY_RUN_WARNING = (
    "No items were processed. This might be due to upstream API issues or no recent items found."
)


class SummaryRequestInput(BaseModel):
    """What a caller asks for. Accepts the camelCase names of the HTTP API."""
    model_config = ConfigDict(populate_by_name=True)

    source_ids: List[str] = Field(default_factory=list, alias="channelIds")
    item_limit: int = Field(default_factory=lambda: get_settings().default_item_limit, ge=1, le=50, alias="videoLimit")
    requester: str = Field(default_factory=lambda: get_settings().default_requester, alias="email")
    notify: bool = Field(False, alias="sendEmail")


def build_request(**kwargs) -> SummaryRequestInput:
    """Validate raw request fields, raising InvalidRequest on bad input."""
    try:
        return SummaryRequestInput(**kwargs)
    except ValidationError as e:
        raise InvalidRequest(str(e)) from e


class SummaryRequestStatus(BaseModel):
    """Status view of a stored summary request."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: str
    created_at: datetime = Field(..., alias="createdAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")
    error_message: Optional[str] = Field(None, alias="errorMessage")


@dataclass
class StepOutcome:
    """Result of one source, item, trend or notify step."""
    kind: str
    key: str
    ok: bool
    detail: str = ""


@dataclass
class RunReport:
    """Aggregated step outcomes of one run."""
    outcomes: List[StepOutcome] = field(default_factory=list)
    sources_ok: int = 0
    sources_skipped: int = 0
    sources_failed: int = 0
    items_summarized: int = 0
    items_inserted: int = 0
    items_existing: int = 0
    items_failed: int = 0
    runtime_seconds: float = 0.0

    def record(self, outcome: StepOutcome) -> StepOutcome:
        self.outcomes.append(outcome)
        if not outcome.ok:
            log = logger.info if outcome.detail == UNKNOWN_SOURCE else logger.error
            log(f"{outcome.kind} step failed for {outcome.key}: {outcome.detail}")
        return outcome

    def failures(self) -> List[StepOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PipelineResult:
    """What the caller of a summary run gets back."""
    request_id: str
    status: str
    items: List[PerItemSummary] = field(default_factory=list)
    trend_analysis: Optional[TrendReport] = None
    notify_attempted: bool = False
    warning: Optional[str] = None
    error: Optional[str] = None
    report: RunReport = field(default_factory=RunReport)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requestId": self.request_id,
            "status": self.status,
            "items": [to_api(s) for s in self.items],
            "trendAnalysis": to_api(self.trend_analysis),
            "notifyAttempted": self.notify_attempted,
            "warning": self.warning,
            "error": self.error,
            "report": self.report.to_dict(),
        }


class SummaryPipeline:
    """
    Orchestrates summary requests over injected collaborators.

    Args:
        catalog: Sources a request may select
        lister: Object with ``async list_items(external_id, limit)``
        enricher: Object with ``async get_item(item_id)``
        summarizer: Per-item Summarizer
        trend_analyzer: Cross-item TrendAnalyzer
        notifier: Notification channel
        session_factory: Callable returning a new AsyncSession
    """

    def __init__(
        self,
        catalog: SourceCatalog,
        lister,
        enricher,
        summarizer: Summarizer,
        trend_analyzer: TrendAnalyzer,
        notifier: Notifier,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    ):
        self.catalog = catalog
        self.lister = lister
        self.enricher = enricher
        self.summarizer = summarizer
        self.trend_analyzer = trend_analyzer
        self.notifier = notifier
        self.session_factory = session_factory

    async def run(self, request: SummaryRequestInput) -> PipelineResult:
        """
        Run one summary request.

        Raises:
            InvalidRequest: no sources selected (nothing is written)
        """
        if not request.source_ids:
            raise InvalidRequest("source_ids must contain at least one source id")

        start_time = time.time()
        report = RunReport()
        results: List[PerItemSummary] = []

        async with self.session_factory() as session:
            summary_request = await create_summary_request(
                session,
                requester=request.requester,
                source_ids=request.source_ids,
                item_limit=request.item_limit,
                notify=request.notify,
                status=RequestStatus.PROCESSING,
            )
            request_id = summary_request.id
            logger.info(f"Starting summary request {request_id} over {len(request.source_ids)} sources")

            try:
                for source_id in request.source_ids:
                    await self._process_source(session, source_id, request.item_limit, results, report)

                trend = await self._analyze_trends(session, request_id, results, report)
            except Exception as e:
                return await self._failed_result(request_id, e, results, report, start_time)

            notify_attempted = False
            if request.notify:
                notify_attempted = True
                await self._notify(request_id, request.requester, results, trend, report)

            try:
                await update_request_status(session, request_id, RequestStatus.COMPLETED)
            except PersistenceError as e:
                return await self._failed_result(request_id, e, results, report, start_time)

        report.runtime_seconds = round(time.time() - start_time, 2)
        warning = None if results else EMPTY_RUN_WARNING
        if warning:
            logger.warning(f"Summary request {request_id}: {warning}")

        logger.info(
            f"Summary request {request_id} completed in {report.runtime_seconds}s: "
            f"{report.sources_ok} sources OK, "
            f"{report.sources_skipped} skipped, "
            f"{report.sources_failed} failed, "
            f"{report.items_summarized} items summarized "
            f"({report.items_inserted} new, {report.items_existing} existing, {report.items_failed} failed)"
        )

        return PipelineResult(
            request_id=request_id,
            status=RequestStatus.COMPLETED,
            items=results,
            trend_analysis=trend,
            notify_attempted=notify_attempted,
            warning=warning,
            report=report,
        )

    async def _process_source(
        self,
        session: AsyncSession,
        source_id: str,
        limit: int,
        results: List[PerItemSummary],
        report: RunReport,
    ) -> None:
        entry = self.catalog.get(source_id)
        if entry is None:
            report.sources_skipped += 1
            report.record(StepOutcome("source", source_id, False, UNKNOWN_SOURCE))
            return

        try:
            refs = await self.lister.list_items(entry.external_id, limit)
        except PersistenceError:
            raise
        except Exception as e:
            report.sources_failed += 1
            report.record(StepOutcome("source", source_id, False, f"{type(e).__name__}: {e}"))
            return

        latest = refs[0] if refs else None
        await upsert_source(
            session,
            entry,
            latest_item_title=latest.title if latest else None,
            latest_item_published_at=latest.published_at if latest else None,
        )

        logger.info(f"Processing {len(refs)} items for source {entry.name}")
        for ref in refs:
            await self._process_item(session, entry, ref, results, report)

        report.sources_ok += 1
        report.record(StepOutcome("source", source_id, True, f"{len(refs)} items listed"))

    async def _process_item(
        self,
        session: AsyncSession,
        entry: SourceEntry,
        ref,
        results: List[PerItemSummary],
        report: RunReport,
    ) -> None:
        key = f"{entry.id}/{ref.id}"
        try:
            detail = await self.enricher.get_item(ref.id)
            content = (detail.description or "").strip() or (ref.description or "").strip() or NO_CONTENT_PLACEHOLDER

            summary = await self.summarizer.summarize(ref.title, content)
            report.items_summarized += 1

            created, item = await insert_item_if_absent(
                session,
                source_id=entry.id,
                external_id=ref.id,
                title=ref.title,
                published_at=ref.published_at,
                content=content,
                summary=summary.summary,
                key_insights=summary.key_insights,
                main_topics=summary.main_topics,
                actionable_items=summary.actionable_items,
            )
            if created:
                report.items_inserted += 1
            else:
                report.items_existing += 1

            results.append(PerItemSummary.from_summary(
                summary,
                source_name=entry.name,
                title=ref.title,
                publish_date=ensure_utc(ref.published_at),
                item_id=item.id,
            ))
            report.record(StepOutcome("item", key, True, "inserted" if created else "already stored"))

        except PersistenceError:
            raise
        except Exception as e:
            report.items_failed += 1
            report.record(StepOutcome("item", key, False, f"{type(e).__name__}: {e}"))

    async def _analyze_trends(
        self,
        session: AsyncSession,
        request_id: str,
        results: List[PerItemSummary],
        report: RunReport,
    ) -> Optional[TrendReport]:
        if len(results) < MIN_TREND_INPUTS:
            logger.info(f"Skipping trend analysis for {request_id}: {len(results)} summaries")
            return None

        try:
            trend = await self.trend_analyzer.analyze(results)
        except Exception as e:
            report.record(StepOutcome("trend", request_id, False, f"{type(e).__name__}: {e}"))
            return None

        await insert_trend_analysis_if_absent(
            session,
            summary_request_id=request_id,
            recurring_themes=trend.recurring_themes,
            emerging_topics=trend.emerging_topics,
            contradictions=trend.contradictions,
            meta_insights=trend.meta_insights,
            degraded=trend.degraded,
        )
        report.record(StepOutcome("trend", request_id, True, "degraded" if trend.degraded else "stored"))
        return trend

    async def _notify(
        self,
        request_id: str,
        recipient: str,
        results: List[PerItemSummary],
        trend: Optional[TrendReport],
        report: RunReport,
    ) -> None:
        payload = {
            "recipientEmail": recipient,
            "summaries": [to_api(s) for s in results],
            "trendAnalysis": to_api(trend),
        }
        try:
            delivery = await self.notifier.deliver("summary", payload)
        except Exception as e:
            report.record(StepOutcome("notify", request_id, False, f"{type(e).__name__}: {e}"))
            return
        report.record(StepOutcome("notify", request_id, delivery.delivered, str(delivery.detail)))

    async def _failed_result(
        self,
        request_id: str,
        error: Exception,
        results: List[PerItemSummary],
        report: RunReport,
        start_time: float,
    ) -> PipelineResult:
        message = str(error) or type(error).__name__
        report.runtime_seconds = round(time.time() - start_time, 2)
        logger.error(f"Summary request {request_id} failed: {message}")
        await self._mark_failed(request_id, message)
        return PipelineResult(
            request_id=request_id,
            status=RequestStatus.FAILED,
            items=results,
            error=message,
            report=report,
        )

    async def _mark_failed(self, request_id: str, message: str) -> None:
        # The run's session may be mid-rollback; use a fresh one
        try:
            async with self.session_factory() as session:
                await update_request_status(session, request_id, RequestStatus.FAILED, error_message=message)
        except PersistenceError as e:
            logger.error(f"Could not mark request {request_id} failed: {e}")

    async def get_request_status(self, request_id: str) -> SummaryRequestStatus:
        """
        Raises:
            NotFound: unknown request id
        """
        async with self.session_factory() as session:
            return await get_request_status(session, request_id)


async def get_request_status(session: AsyncSession, request_id: str) -> SummaryRequestStatus:
    request = await get_summary_request(session, request_id)
    if request is None:
        raise NotFound(f"Request not found: {request_id}")
    return SummaryRequestStatus(
        id=request.id,
        status=request.status,
        created_at=ensure_utc(request.created_at),
        completed_at=ensure_utc(request.completed_at),
        error_message=request.error_message,
    )
