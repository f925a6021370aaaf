"""
Pydantic models for summarization results.

Field names are snake_case in Python; the JSON aliases match the camelCase
keys the HTTP API and the notifier have always exchanged. Every model
carries a ``degraded`` flag set when the model output could not be decoded.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_CONFIG = ConfigDict(populate_by_name=True)


def _string_list(value: Any) -> List[str]:
    """Coerce model output into a list of strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [v if isinstance(v, str) else str(v) for v in value if v is not None]
    return [value if isinstance(value, str) else str(value)]


class ItemSummary(BaseModel):
    """Structured summary of one item."""
    model_config = _CONFIG

    summary: str = Field(..., alias="fullSummary", description="Prose summary")
    key_insights: List[str] = Field(default_factory=list, alias="keyInsights")
    main_topics: List[str] = Field(default_factory=list, alias="mainTopics")
    actionable_items: List[str] = Field(default_factory=list, alias="actionableItems")
    degraded: bool = False

    @field_validator('key_insights', 'main_topics', 'actionable_items', mode='before')
    @classmethod
    def coerce_lists(cls, v):
        return _string_list(v)


class PerItemSummary(ItemSummary):
    """An item summary placed in context: which source, which title, when."""

    source_name: str = Field(..., alias="podcastName")
    title: str
    publish_date: Optional[datetime] = Field(None, alias="publishDate")
    item_id: Optional[str] = Field(None, alias="itemId")

    @classmethod
    def from_summary(
        cls,
        summary: ItemSummary,
        source_name: str,
        title: str,
        publish_date: Optional[datetime],
        item_id: Optional[str] = None,
    ) -> "PerItemSummary":
        return cls(
            source_name=source_name,
            title=title,
            publish_date=publish_date,
            item_id=item_id,
            **summary.model_dump(),
        )


class TrendReport(BaseModel):
    """Cross-item synthesis."""
    model_config = _CONFIG

    recurring_themes: List[str] = Field(default_factory=list, alias="recurringThemes")
    emerging_topics: List[str] = Field(default_factory=list, alias="emergingTopics")
    contradictions: List[str] = Field(default_factory=list)
    meta_insights: str = Field(..., alias="metaInsights")
    degraded: bool = False

    @field_validator('recurring_themes', 'emerging_topics', 'contradictions', mode='before')
    @classmethod
    def coerce_lists(cls, v):
        return _string_list(v)


class WeeklyOverview(BaseModel):
    """Periodic report over stored items."""
    model_config = _CONFIG

    executive_summary: str = Field(..., alias="executiveSummary")
    key_trends: List[str] = Field(default_factory=list, alias="keyTrends")
    top_insights: List[str] = Field(default_factory=list, alias="topInsights")
    channel_highlights: List[str] = Field(default_factory=list, alias="channelHighlights")
    recommendations: List[str] = Field(default_factory=list)
    degraded: bool = False

    @field_validator('key_trends', 'top_insights', 'channel_highlights', 'recommendations', mode='before')
    @classmethod
    def coerce_lists(cls, v):
        return _string_list(v)


def to_api(model: Optional[BaseModel]) -> Optional[Dict[str, Any]]:
    """JSON-ready dict with camelCase keys, or None."""
    if model is None:
        return None
    return model.model_dump(mode="json", by_alias=True)
