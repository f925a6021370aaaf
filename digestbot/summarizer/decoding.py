"""
Decoding of raw model text into result models.

Malformed output is never an error here: when the text does not parse, or
a required field is missing, the decoder returns the degraded variant of
the result filled with fixed sentinel values.
"""

import json
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from digestbot.core.logging import get_logger
from .models import ItemSummary, TrendReport, WeeklyOverview

logger = get_logger(__name__)

UNPARSED_INSIGHTS = "Unable to parse insights"
UNPARSED_TOPICS = "Unable to parse topics"
UNPARSED_ACTIONS = "Unable to parse actions"
NO_SUMMARY = "Unable to generate summary"

UNPARSED_THEMES = "Unable to parse themes"
UNPARSED_CONTRADICTIONS = "Unable to parse contradictions"
NO_META_INSIGHTS = "Unable to generate meta insights"

WEEKLY_ERROR = "Error generating weekly overview"

_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Pull a JSON object out of model text.

    Handles markdown code fences and prose before or after the object.
    Returns None when no object can be decoded.
    """
    if not text:
        return None

    candidate = text.strip()
    fenced = _FENCE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    try:
        parsed = json.loads(candidate)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    # Model added preamble or trailing commentary
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start != -1 and end > start:
        try:
            parsed = json.loads(candidate[start:end + 1])
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            pass
    return None


def _has_all(data: Dict[str, Any], *keys: str) -> bool:
    return all(data.get(key) is not None for key in keys)


def degraded_item_summary(raw: Optional[str]) -> ItemSummary:
    return ItemSummary(
        summary=(raw or "").strip() or NO_SUMMARY,
        key_insights=[UNPARSED_INSIGHTS],
        main_topics=[UNPARSED_TOPICS],
        actionable_items=[UNPARSED_ACTIONS],
        degraded=True,
    )


def decode_item_summary(raw: Optional[str]) -> ItemSummary:
    """Decode a per-item summary; accepts ``fullSummary`` or ``summary``."""
    data = extract_json_object(raw)
    if data is None:
        logger.warning("Item summary response is not JSON, using degraded summary")
        return degraded_item_summary(raw)

    summary = data.get("fullSummary", data.get("summary"))
    if not _has_all(data, "keyInsights", "mainTopics", "actionableItems") or summary is None:
        logger.warning(f"Item summary response missing fields: {sorted(data)}")
        return degraded_item_summary(raw)

    try:
        result = ItemSummary(
            summary=str(summary),
            key_insights=data["keyInsights"],
            main_topics=data["mainTopics"],
            actionable_items=data["actionableItems"],
        )
    except ValidationError as e:
        logger.warning(f"Item summary response failed validation: {e}")
        return degraded_item_summary(raw)

    if not result.summary.strip():
        result.summary = NO_SUMMARY
    return result


def degraded_trend_report(raw: Optional[str]) -> TrendReport:
    return TrendReport(
        recurring_themes=[UNPARSED_THEMES],
        emerging_topics=[UNPARSED_TOPICS],
        contradictions=[UNPARSED_CONTRADICTIONS],
        meta_insights=(raw or "").strip() or NO_META_INSIGHTS,
        degraded=True,
    )


def decode_trend_report(raw: Optional[str]) -> TrendReport:
    data = extract_json_object(raw)
    if data is None or not _has_all(
        data, "recurringThemes", "emergingTopics", "contradictions", "metaInsights"
    ):
        logger.warning("Trend response could not be decoded, using degraded report")
        return degraded_trend_report(raw)

    try:
        result = TrendReport(
            recurring_themes=data["recurringThemes"],
            emerging_topics=data["emergingTopics"],
            contradictions=data["contradictions"],
            meta_insights=str(data["metaInsights"]),
        )
    except ValidationError as e:
        logger.warning(f"Trend response failed validation: {e}")
        return degraded_trend_report(raw)

    if not result.meta_insights.strip():
        result.meta_insights = NO_META_INSIGHTS
    return result


def degraded_weekly_overview() -> WeeklyOverview:
    return WeeklyOverview(executive_summary=WEEKLY_ERROR, degraded=True)


def decode_weekly_overview(raw: Optional[str]) -> WeeklyOverview:
    data = extract_json_object(raw)
    if data is None or not _has_all(
        data, "executiveSummary", "keyTrends", "topInsights", "channelHighlights", "recommendations"
    ):
        logger.warning("Weekly overview response could not be decoded")
        return degraded_weekly_overview()

    try:
        return WeeklyOverview(
            executive_summary=str(data["executiveSummary"]),
            key_trends=data["keyTrends"],
            top_insights=data["topInsights"],
            channel_highlights=data["channelHighlights"],
            recommendations=data["recommendations"],
        )
    except ValidationError as e:
        logger.warning(f"Weekly overview response failed validation: {e}")
        return degraded_weekly_overview()
