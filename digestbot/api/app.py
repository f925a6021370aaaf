"""DigestBot API service FastAPI application."""

from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from digestbot.core.catalog import SourceCatalog
from digestbot.core.db import get_db
from digestbot.core.errors import InvalidRequest, ModelUnavailable, NotFound, UpstreamUnavailable
from digestbot.core.logging import setup_logging, get_logger
from digestbot.core.models import Item, SummaryRequest
from digestbot.core.repositories import (
    delete_duplicate_items,
    get_summary_request,
    get_trend_analysis,
    list_items_for_sources,
    list_recent_items,
    list_recent_requests,
)
from digestbot.core.settings import get_settings
from digestbot.core.time import isoformat, utc_now
from digestbot.notifier import Notifier
from digestbot.pipeline.factory import Components, build_components
from digestbot.pipeline.orchestrator import SummaryPipeline, build_request, get_request_status
from digestbot.pipeline.weekly import WeeklyAggregator
from digestbot.summarizer import LLMProvider

# Setup logging
setup_logging("api")
logger = get_logger(__name__)

settings = get_settings()

app = FastAPI(title="DigestBot API", version="0.1.0", description="Video summaries and trend analysis")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

EMAIL_KINDS = ("summary", "weekly_overview")

_components: Optional[Components] = None


def get_components() -> Components:
    global _components
    if _components is None:
        _components = build_components()
    return _components


def get_catalog() -> SourceCatalog:
    return get_components().catalog


def get_pipeline() -> SummaryPipeline:
    return get_components().pipeline


def get_weekly() -> WeeklyAggregator:
    return get_components().weekly


def get_notifier() -> Notifier:
    return get_components().notifier


def get_provider() -> LLMProvider:
    return get_components().provider


def request_to_dict(request: SummaryRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "userEmail": request.requester,
        "selectedChannels": list(request.source_ids or []),
        "videoLimit": request.item_limit,
        "sendEmail": request.notify,
        "status": request.status,
        "errorMessage": request.error_message,
        "createdAt": isoformat(request.created_at),
        "completedAt": isoformat(request.completed_at),
    }


def item_to_dict(item: Item) -> Dict[str, Any]:
    source = item.source
    return {
        "id": item.id,
        "videoId": item.external_id,
        "channelId": item.source_id,
        "title": item.title,
        "publishDate": isoformat(item.published_at),
        "summary": item.summary,
        "keyInsights": item.key_insights or [],
        "mainTopics": item.main_topics or [],
        "actionableItems": item.actionable_items or [],
        "podcastName": source.name if source is not None else None,
        "podcastDescription": source.description if source is not None else None,
    }


def trend_to_dict(trend) -> Optional[Dict[str, Any]]:
    if trend is None:
        return None
    return {
        "id": trend.id,
        "summaryRequestId": trend.summary_request_id,
        "recurringThemes": trend.recurring_themes,
        "emergingTopics": trend.emerging_topics,
        "contradictions": trend.contradictions,
        "metaInsights": trend.meta_insights,
        "degraded": trend.degraded,
        "createdAt": isoformat(trend.created_at),
    }


@app.get("/healthz")
async def health_check():
    """Health check endpoint."""
    return {"ok": True, "service": "api"}


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": "api",
        "version": "0.1.0",
        "endpoints": {
            "health": "/healthz",
            "status": "/api/status",
            "channels": "/api/channels",
            "generate_summary": "/api/generate-summary (POST)",
            "weekly_overview": "/api/weekly-overview",
        }
    }


@app.get("/api/status")
async def service_status(
    catalog: SourceCatalog = Depends(get_catalog),
    provider: LLMProvider = Depends(get_provider),
):
    return {
        "status": "online",
        "timestamp": isoformat(utc_now()),
        "supportedChannels": len(catalog),
        "model": await provider.health_check(),
    }


@app.get("/api/channels")
async def list_channels(catalog: SourceCatalog = Depends(get_catalog)):
    return {
        "channels": [
            {
                "id": entry.id,
                "name": entry.name,
                "description": entry.description,
                "channelId": entry.external_id,
                "thumbnail": entry.thumbnail,
            }
            for entry in catalog.entries()
        ]
    }


@app.post("/api/generate-summary")
async def generate_summary(
    payload: Dict[str, Any] = Body(...),
    pipeline: SummaryPipeline = Depends(get_pipeline),
):
    """
    Run a summary request synchronously.

    Body fields: ``channelIds``, ``videoLimit`` (default 3), ``email``,
    ``sendEmail``.
    """
    try:
        request = build_request(**payload)
        result = await pipeline.run(request)
    except InvalidRequest as e:
        raise HTTPException(status_code=400, detail=f"channelIds array is required: {e}")
    except Exception as e:
        logger.error(f"generate-summary failed: {e}", extra={"endpoint": "/api/generate-summary"})
        raise HTTPException(status_code=500, detail=f"Failed to generate summary: {e}")

    if result.status == "failed":
        raise HTTPException(status_code=500, detail=f"Failed to generate summary: {result.error}")

    return result.to_dict()


@app.get("/api/summary-status/{request_id}")
async def summary_status(request_id: str, session: AsyncSession = Depends(get_db)):
    try:
        status_view = await get_request_status(session, request_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Request not found")
    return status_view.model_dump(mode="json", by_alias=True)


@app.get("/api/recent-summaries")
async def recent_summaries(
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_db),
):
    requests = await list_recent_requests(session, limit=limit)
    return {"requests": [request_to_dict(r) for r in requests]}


@app.get("/api/summaries/{request_id}")
async def request_summaries(request_id: str, session: AsyncSession = Depends(get_db)):
    request = await get_summary_request(session, request_id)
    if request is None:
        raise HTTPException(status_code=404, detail="Request not found")

    items = await list_items_for_sources(session, list(request.source_ids or []), limit=10)
    trend = await get_trend_analysis(session, request_id)
    return {
        "request": request_to_dict(request),
        "episodes": [item_to_dict(item) for item in items],
        "trendAnalysis": trend_to_dict(trend),
    }


@app.get("/api/all-summaries")
async def all_summaries(
    limit: int = Query(20, ge=1, le=200),
    session: AsyncSession = Depends(get_db),
):
    items = await list_recent_items(session, limit=limit)
    return {"episodes": [item_to_dict(item) for item in items]}


@app.post("/api/cleanup-duplicates")
async def cleanup_duplicates(
    across_sources: bool = Query(False, alias="acrossSources"),
    session: AsyncSession = Depends(get_db),
):
    stats = await delete_duplicate_items(session, across_sources=across_sources)
    if stats["deleted_count"] == 0:
        return {"message": "No duplicates found", "deletedCount": 0}
    return {
        "message": "Duplicates cleaned up successfully",
        "deletedCount": stats["deleted_count"],
    }


@app.get("/api/weekly-overview")
async def weekly_overview(
    days: int = Query(7),
    weekly: WeeklyAggregator = Depends(get_weekly),
):
    try:
        result = await weekly.build_weekly_overview(days)
    except InvalidRequest as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ModelUnavailable as e:
        logger.error(f"Weekly overview failed: {e}")
        raise HTTPException(status_code=503, detail=f"Failed to generate weekly overview: {e}")

    if result.overview is None:
        return {"message": result.message, "episodeCount": 0, "weeklyOverview": None}
    return result.to_dict()


def _email_payload(recipient: str, email_type: str, content: Dict[str, Any]) -> Dict[str, Any]:
    if email_type == "summary":
        return {
            "recipientEmail": recipient,
            "summaries": content.get("summaries", []),
            "trendAnalysis": content.get("trendAnalysis"),
        }
    return {
        "recipientEmail": recipient,
        "weeklyOverview": content.get("weeklyOverview"),
        "episodeCount": content.get("episodeCount"),
        "dateRange": content.get("dateRange"),
    }


@app.post("/api/send-email")
async def send_email(
    payload: Dict[str, Any] = Body(...),
    notifier: Notifier = Depends(get_notifier),
):
    recipient = payload.get("recipientEmail")
    email_type = payload.get("emailType")
    content = payload.get("content")

    if not recipient or not email_type or not content:
        raise HTTPException(status_code=400, detail="recipientEmail, emailType, and content are required")
    if email_type not in EMAIL_KINDS:
        raise HTTPException(status_code=400, detail="Invalid email type")

    try:
        delivery = await notifier.deliver(email_type, _email_payload(recipient, email_type, content))
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=500, detail=f"Failed to send email: {e}")

    return {"success": delivery.delivered, "result": delivery.detail}


@app.post("/api/send-bulk-email")
async def send_bulk_email(
    payload: Dict[str, Any] = Body(...),
    notifier: Notifier = Depends(get_notifier),
):
    email_list: List[str] = payload.get("emailList") or []
    email_type = payload.get("emailType")
    content = payload.get("content")

    if not isinstance(email_list, list) or not email_list:
        raise HTTPException(status_code=400, detail="emailList is required and must be a non-empty array")
    if not email_type or not content:
        raise HTTPException(status_code=400, detail="emailType and content are required")

    try:
        delivery = await notifier.deliver(
            "bulk",
            {"emailList": email_list, "emailType": email_type, "content": content},
        )
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=500, detail=f"Failed to send bulk email: {e}")

    return {"success": delivery.delivered, "result": delivery.detail}


@app.on_event("startup")
async def startup_event():
    """Startup event handler."""
    logger.info("Starting api service", extra={"service": "api", "version": "0.1.0"})


@app.on_event("shutdown")
async def shutdown_event():
    global _components
    if _components is not None:
        await _components.aclose()
        _components = None


if __name__ == "__main__":
    logger.info("Starting api service via uvicorn")
    uvicorn.run(
        "digestbot.api.app:app",
        host=settings.service_host,
        port=settings.service_port or 8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
