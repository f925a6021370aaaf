"""Per-item summarization over an LLM provider."""

from typing import Optional

from digestbot.core.logging import get_logger
from digestbot.core.settings import get_settings
from .decoding import decode_item_summary
from .llm_provider import LLMProvider
from .models import ItemSummary
from .prompts import item_summary_prompt

logger = get_logger(__name__)


def truncate_content(content: str, max_chars: int) -> str:
    """Cut content to ``max_chars`` characters, preferring a word boundary."""
    if max_chars <= 0 or len(content) <= max_chars:
        return content
    cut = content[:max_chars]
    space = cut.rfind(" ")
    if space > max_chars * 0.8:
        cut = cut[:space]
    return cut + " ..."


class Summarizer:
    """
    Turns one item's title and text into an ``ItemSummary``.

    Only ``ModelUnavailable`` escapes; unreadable model output comes back
    as a degraded summary.
    """

    def __init__(
        self,
        provider: LLMProvider,
        max_tokens: Optional[int] = None,
        max_content_chars: Optional[int] = None,
    ):
        settings = get_settings()
        self.provider = provider
        self.max_tokens = max_tokens or settings.summary_max_tokens
        self.max_content_chars = max_content_chars or settings.max_content_chars

    async def summarize(self, title: str, content: str) -> ItemSummary:
        prompt = item_summary_prompt(title, truncate_content(content, self.max_content_chars))
        raw = await self.provider.complete(prompt, self.max_tokens)

        summary = decode_item_summary(raw)
        if summary.degraded:
            logger.warning(f"Degraded summary for '{title[:60]}' ({self.provider.provider_name})")
        return summary
