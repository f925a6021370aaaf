"""
DigestBot Summarizer Module

Turns item text into structured summaries and synthesizes trends across
summaries, with explicit decoding of model output into result models.

Main Components:
- llm_provider: inference backends (Workers AI, Ollama, dummy, none)
- prompts: instruction templates
- models: Pydantic result models with camelCase JSON aliases
- decoding: malformed-output fallback into degraded results
- summarizer: per-item Summarizer
- trends: TrendAnalyzer (per request) and weekly overviews
"""

from .models import ItemSummary, PerItemSummary, TrendReport, WeeklyOverview
from .llm_provider import (
    LLMProvider,
    WorkersAIProvider,
    OllamaProvider,
    DummyLLMProvider,
    NoLLMProvider,
    LLMProviderFactory,
)
from .decoding import decode_item_summary, decode_trend_report, decode_weekly_overview, extract_json_object
from .summarizer import Summarizer
from .trends import TrendAnalyzer

__all__ = [
    # Models
    "ItemSummary",
    "PerItemSummary",
    "TrendReport",
    "WeeklyOverview",

    # LLM Providers
    "LLMProvider",
    "WorkersAIProvider",
    "OllamaProvider",
    "DummyLLMProvider",
    "NoLLMProvider",
    "LLMProviderFactory",

    # Decoding
    "decode_item_summary",
    "decode_trend_report",
    "decode_weekly_overview",
    "extract_json_object",

    # Services
    "Summarizer",
    "TrendAnalyzer",
]
