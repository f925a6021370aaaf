"""Wiring of concrete collaborators from settings."""

from dataclasses import dataclass
from typing import Optional

from digestbot.core.catalog import SourceCatalog, load_catalog
from digestbot.core.settings import Settings, get_settings
from digestbot.ingestor.youtube import YouTubeClient
from digestbot.notifier import Notifier, build_notifier
from digestbot.summarizer.llm_provider import LLMProvider, LLMProviderFactory
from digestbot.summarizer.summarizer import Summarizer
from digestbot.summarizer.trends import TrendAnalyzer
from .orchestrator import SummaryPipeline
from .weekly import WeeklyAggregator


@dataclass
class Components:
    """Long-lived collaborators shared by the CLI and the API service."""
    catalog: SourceCatalog
    youtube: YouTubeClient
    provider: LLMProvider
    notifier: Notifier
    pipeline: SummaryPipeline
    weekly: WeeklyAggregator

    async def aclose(self) -> None:
        await self.youtube.aclose()
        await self.provider.aclose()
        await self.notifier.aclose()


def build_components(settings: Optional[Settings] = None) -> Components:
    settings = settings or get_settings()

    catalog = load_catalog(settings.sources_config_path)
    youtube = YouTubeClient(
        api_key=settings.youtube_api_key,
        base_url=settings.youtube_base_url,
        timeout=settings.upstream_timeout_seconds,
        call_delay=settings.youtube_call_delay_seconds,
    )
    provider = LLMProviderFactory.from_settings(settings)
    notifier = build_notifier(settings)
    trend_analyzer = TrendAnalyzer(provider)

    pipeline = SummaryPipeline(
        catalog=catalog,
        lister=youtube,
        enricher=youtube,
        summarizer=Summarizer(provider),
        trend_analyzer=trend_analyzer,
        notifier=notifier,
    )
    weekly = WeeklyAggregator(trend_analyzer, notifier=notifier)

    return Components(
        catalog=catalog,
        youtube=youtube,
        provider=provider,
        notifier=notifier,
        pipeline=pipeline,
        weekly=weekly,
    )
