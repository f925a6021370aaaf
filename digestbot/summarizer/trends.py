"""Cross-item trend analysis and weekly overview generation."""

from typing import Optional, Sequence

from digestbot.core.logging import get_logger
from digestbot.core.settings import get_settings
from .decoding import decode_trend_report, decode_weekly_overview
from .llm_provider import LLMProvider
from .models import PerItemSummary, TrendReport, WeeklyOverview
from .prompts import trend_prompt, weekly_prompt

logger = get_logger(__name__)

MIN_TREND_INPUTS = 2


class TrendAnalyzer:
    """
    Synthesizes recurring themes, emerging topics and contradictions from
    several item summaries with a single model call.
    """

    def __init__(
        self,
        provider: LLMProvider,
        max_tokens: Optional[int] = None,
        weekly_max_tokens: Optional[int] = None,
    ):
        settings = get_settings()
        self.provider = provider
        self.max_tokens = max_tokens or settings.trend_max_tokens
        self.weekly_max_tokens = weekly_max_tokens or settings.weekly_max_tokens

    async def analyze(self, summaries: Sequence[PerItemSummary]) -> TrendReport:
        """
        Args:
            summaries: At least two per-item summaries

        Raises:
            ValueError: fewer than two summaries
            ModelUnavailable: inference call failed
        """
        if len(summaries) < MIN_TREND_INPUTS:
            raise ValueError(f"Trend analysis needs at least {MIN_TREND_INPUTS} summaries, got {len(summaries)}")

        raw = await self.provider.complete(trend_prompt(summaries), self.max_tokens)
        report = decode_trend_report(raw)
        if report.degraded:
            logger.warning(f"Degraded trend report over {len(summaries)} summaries")
        return report

    async def weekly_overview(self, summaries: Sequence[PerItemSummary]) -> WeeklyOverview:
        """Five-section periodic overview of stored summaries."""
        if not summaries:
            raise ValueError("Weekly overview needs at least one summary")

        raw = await self.provider.complete(weekly_prompt(summaries), self.weekly_max_tokens)
        overview = decode_weekly_overview(raw)
        if overview.degraded:
            logger.warning(f"Degraded weekly overview over {len(summaries)} summaries")
        return overview
