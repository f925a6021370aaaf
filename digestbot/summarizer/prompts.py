"""Prompt templates for per-item summaries, trend analysis and weekly overviews."""

from typing import Iterable, List

ITEM_PROMPT_PREFIX = "Analyze this video transcript and provide a structured summary:"
TREND_PROMPT_PREFIX = "Analyze these video summaries to identify cross-cutting patterns and trends:"
WEEKLY_PROMPT_PREFIX = "Create a comprehensive weekly overview based on these recent YouTube video summaries:"

ITEM_SUMMARY_TEMPLATE = ITEM_PROMPT_PREFIX + """

Title: {title}
Transcript: {content}

Please provide:
1. Key Insights (3-5 main takeaways)
2. Main Topics (3-5 core subjects discussed)
3. Actionable Items (2-4 specific actions viewers can take)
4. Full Summary (2-3 paragraph overview)

Format your response as JSON with the following structure:
{{
  "keyInsights": ["insight1", "insight2", ...],
  "mainTopics": ["topic1", "topic2", ...],
  "actionableItems": ["action1", "action2", ...],
  "fullSummary": "detailed summary text"
}}"""

TREND_TEMPLATE = TREND_PROMPT_PREFIX + """

{corpus}

Please identify:
1. Recurring Themes (3-5 themes that appear across multiple videos)
2. Emerging Topics (2-4 new or trending subjects)
3. Contradictions (1-3 conflicting viewpoints or advice)
4. Meta Insights (2-3 paragraphs about the overall landscape and implications)

Format your response as JSON:
{{
  "recurringThemes": ["theme1", "theme2", ...],
  "emergingTopics": ["topic1", "topic2", ...],
  "contradictions": ["contradiction1", "contradiction2", ...],
  "metaInsights": "detailed analysis text"
}}"""

WEEKLY_TEMPLATE = WEEKLY_PROMPT_PREFIX + """
{corpus}

Please provide a comprehensive weekly overview with:
1. Executive Summary (2-3 paragraph overview of the week's content)
2. Key Trends (3-5 major trends or patterns observed)
3. Top Insights (5-7 most important takeaways)
4. Channel Highlights (notable contributions from each channel)
5. Recommendations (3-5 actionable recommendations based on the content)

Format your response as JSON with the following structure:
{{
  "executiveSummary": "Comprehensive overview of the week's content...",
  "keyTrends": ["trend1", "trend2", "trend3"],
  "topInsights": ["insight1", "insight2", "insight3"],
  "channelHighlights": ["highlight1", "highlight2"],
  "recommendations": ["recommendation1", "recommendation2"]
}}"""


def _joined(values: Iterable[str]) -> str:
    return ", ".join(values)


def item_summary_prompt(title: str, content: str) -> str:
    return ITEM_SUMMARY_TEMPLATE.format(title=title, content=content)


def trend_prompt(summaries) -> str:
    """Build the trend prompt from PerItemSummary-like objects."""
    blocks: List[str] = []
    for s in summaries:
        blocks.append(
            f"{s.title}: {s.summary}\n"
            f"Key Insights: {_joined(s.key_insights)}\n"
            f"Topics: {_joined(s.main_topics)}"
        )
    return TREND_TEMPLATE.format(corpus="\n\n".join(blocks))


def weekly_prompt(summaries) -> str:
    """Build the weekly overview prompt from PerItemSummary-like objects."""
    blocks: List[str] = []
    for index, s in enumerate(summaries, start=1):
        published = s.publish_date.isoformat() if s.publish_date else "unknown"
        blocks.append(
            f"\nVideo {index}: {s.title} ({s.source_name})\n"
            f"Published: {published}\n"
            f"Summary: {s.summary}\n"
            f"Key Insights: {_joined(s.key_insights)}\n"
            f"Main Topics: {_joined(s.main_topics)}\n"
            f"Actionable Items: {_joined(s.actionable_items)}\n"
        )
    return WEEKLY_TEMPLATE.format(corpus="\n".join(blocks))
