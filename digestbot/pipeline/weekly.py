"""Weekly Aggregator: periodic overview over already-stored items."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from digestbot.core.db import AsyncSessionLocal
from digestbot.core.errors import InvalidRequest
from digestbot.core.logging import get_logger
from digestbot.core.models import Item
from digestbot.core.repositories import get_items_since, item_published_at
from digestbot.core.settings import get_settings
from digestbot.core.time import isoformat, utc_now, window_start
from digestbot.notifier import DeliveryResult, Notifier
from digestbot.summarizer.models import PerItemSummary, WeeklyOverview, to_api
from digestbot.summarizer.trends import TrendAnalyzer

logger = get_logger(__name__)

UNKNOWN_SOURCE_NAME = "Unknown Channel"


def summary_from_item(item: Item) -> PerItemSummary:
    """
    Rebuild a PerItemSummary from a stored item.

    Older rows stored the whole model response as JSON in ``summary``; such
    documents are unpacked, anything else is used as plain text.
    """
    summary_text = item.summary or ""
    key_insights = item.key_insights or []
    main_topics = item.main_topics or []
    actionable_items = item.actionable_items or []

    if summary_text.strip().startswith("{"):
        try:
            legacy = json.loads(summary_text)
        except json.JSONDecodeError as e:
            logger.warning(f"Could not parse stored summary of item {item.id}: {e}")
        else:
            if isinstance(legacy, dict):
                summary_text = legacy.get("fullSummary") or legacy.get("summary") or summary_text
                key_insights = legacy.get("keyInsights") or key_insights
                main_topics = legacy.get("mainTopics") or main_topics
                actionable_items = legacy.get("actionableItems") or actionable_items

    source = item.source
    return PerItemSummary(
        summary=str(summary_text),
        key_insights=key_insights,
        main_topics=main_topics,
        actionable_items=actionable_items,
        source_name=source.name if source is not None else UNKNOWN_SOURCE_NAME,
        title=item.title,
        publish_date=item_published_at(item),
        item_id=item.id,
    )


@dataclass
class WeeklyResult:
    """Weekly overview plus the items it was built from."""
    item_count: int
    date_range: Dict[str, Optional[str]]
    items: List[PerItemSummary] = field(default_factory=list)
    overview: Optional[WeeklyOverview] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "episodeCount": self.item_count,
            "dateRange": self.date_range,
            "episodes": [to_api(s) for s in self.items],
            "weeklyOverview": to_api(self.overview),
            "message": self.message,
        }


class WeeklyAggregator:
    """Reads items from a trailing window and asks the model for an overview."""

    def __init__(
        self,
        trend_analyzer: TrendAnalyzer,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        notifier: Optional[Notifier] = None,
    ):
        self.trend_analyzer = trend_analyzer
        self.session_factory = session_factory
        self.notifier = notifier

    async def build_weekly_overview(
        self,
        window_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> WeeklyResult:
        """
        Args:
            window_days: Trailing window length in days (default from settings)
            now: End of the window (default: current time)

        Raises:
            InvalidRequest: window_days < 1
            ModelUnavailable: inference call failed
        """
        days = get_settings().default_window_days if window_days is None else window_days
        if days < 1:
            raise InvalidRequest("window_days must be >= 1")

        end = now or utc_now()
        cutoff = window_start(days, end)
        date_range = {"from": isoformat(cutoff), "to": isoformat(end)}

        async with self.session_factory() as session:
            items = await get_items_since(session, cutoff)
            summaries = [summary_from_item(item) for item in items]

        if not summaries:
            logger.info(f"No items in the last {days} days, skipping weekly overview")
            return WeeklyResult(
                item_count=0,
                date_range=date_range,
                message=f"No episodes found in the last {days} days",
            )

        logger.info(f"Generating weekly overview for {len(summaries)} items")
        overview = await self.trend_analyzer.weekly_overview(summaries)
        return WeeklyResult(
            item_count=len(summaries),
            date_range=date_range,
            items=summaries,
            overview=overview,
        )

    async def deliver(self, recipient: str, result: WeeklyResult) -> DeliveryResult:
        """Send a built overview through the notifier (kind ``weekly_overview``)."""
        if self.notifier is None:
            raise ValueError("No notifier configured")
        payload = {
            "recipientEmail": recipient,
            "weeklyOverview": to_api(result.overview),
            "episodeCount": result.item_count,
            "dateRange": result.date_range,
        }
        return await self.notifier.deliver("weekly_overview", payload)
