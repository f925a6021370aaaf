"""
LLM Provider interface and implementations for summarization.

Provides abstraction over inference backends: text prompt in, raw model
text out. Transport failures surface as ModelUnavailable; interpreting
the text is left to the decoding layer.
Includes dummy/NoLLM providers for running without API dependencies.
"""

import json
import time
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Iterable, List, Optional

import httpx

from digestbot.core.errors import ModelUnavailable
from digestbot.core.logging import get_logger
from digestbot.core.settings import Settings, get_settings
from . import prompts

logger = get_logger(__name__)


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def complete(self, prompt: str, max_tokens: int) -> str:
        """
        Run one completion.

        Args:
            prompt: Full instruction prompt
            max_tokens: Output length budget

        Returns:
            Raw model text (possibly empty, possibly not JSON)

        Raises:
            ModelUnavailable: the backend could not be reached or errored
        """

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Check provider health and availability."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identification name."""

    async def aclose(self) -> None:
        """Release network resources, if any."""


class _HTTPProvider(LLMProvider):
    """Shared plumbing for providers that talk JSON over HTTP."""

    def __init__(self, timeout: float, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self.call_count = 0
        self.total_processing_time = 0.0

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        start_time = time.time()
        self.call_count += 1
        try:
            response = await self.client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise ModelUnavailable(f"{self.provider_name} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ModelUnavailable(f"{self.provider_name} unreachable: {e}") from e
        finally:
            self.total_processing_time += time.time() - start_time

        if response.status_code >= 400:
            raise ModelUnavailable(
                f"{self.provider_name} error: HTTP {response.status_code} - {response.text[:300]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise ModelUnavailable(f"{self.provider_name} returned a non-JSON envelope") from e

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "configured",
            "provider": self.provider_name,
            "calls_made": self.call_count,
            "avg_response_time": self.total_processing_time / max(self.call_count, 1),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }


class WorkersAIProvider(_HTTPProvider):
    """Cloudflare Workers AI text generation over the REST API."""

    def __init__(
        self,
        account_id: str,
        api_token: str,
        model: str = "@cf/mistral/mistral-7b-instruct-v0.1",
        base_url: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout, client)
        self.account_id = account_id
        self.api_token = api_token
        self.model = model
        self.base_url = base_url.rstrip("/")

    @property
    def provider_name(self) -> str:
        return "WorkersAI"

    async def complete(self, prompt: str, max_tokens: int) -> str:
        if not self.account_id or not self.api_token:
            raise ModelUnavailable("Workers AI credentials not configured")

        url = f"{self.base_url}/accounts/{self.account_id}/ai/run/{self.model}"
        data = await self._post(
            url,
            {"messages": [{"role": "user", "content": prompt}], "max_tokens": max_tokens},
            headers={"Authorization": f"Bearer {self.api_token}"},
        )
        if data.get("success") is False:
            raise ModelUnavailable(f"Workers AI call failed: {data.get('errors')}")
        result = data.get("result") or {}
        return result.get("response") or ""


class OllamaProvider(_HTTPProvider):
    """Local Ollama server via /api/generate."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "qwen2.5:7b",
        timeout: float = 180.0,
        temperature: float = 0.3,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout, client)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature

    @property
    def provider_name(self) -> str:
        return "Ollama"

    async def complete(self, prompt: str, max_tokens: int) -> str:
        data = await self._post(
            f"{self.base_url}/api/generate",
            {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": self.temperature, "num_predict": max_tokens},
            },
        )
        return data.get("response") or ""


class DummyLLMProvider(LLMProvider):
    """
    Dummy LLM provider for testing and local development.

    Answers from a scripted queue when one is given, otherwise with canned
    JSON shaped after the prompt kind. Every prompt is recorded.
    """

    def __init__(self, responses: Optional[Iterable[Any]] = None):
        self.responses: Deque[Any] = deque(responses or [])
        self.prompts: List[str] = []
        self.max_tokens: List[int] = []
        self.call_count = 0

    @property
    def provider_name(self) -> str:
        return "DummyLLM"

    async def health_check(self) -> Dict[str, Any]:
        """Always healthy for dummy provider."""
        return {
            "status": "healthy",
            "provider": self.provider_name,
            "calls_made": self.call_count,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    async def complete(self, prompt: str, max_tokens: int) -> str:
        self.call_count += 1
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)

        if self.responses:
            scripted = self.responses.popleft()
            if isinstance(scripted, Exception):
                raise scripted
            return scripted
        return json.dumps(self._canned(prompt))

    @staticmethod
    def _canned(prompt: str) -> Dict[str, Any]:
        if prompt.startswith(prompts.TREND_PROMPT_PREFIX):
            return {
                "recurringThemes": ["Model capability jumps", "Open-weight releases"],
                "emergingTopics": ["Agentic tooling"],
                "contradictions": ["Timelines for general capability differ"],
                "metaInsights": "Across the selected videos the focus is shifting from raw benchmarks to deployment.",
            }
        if prompt.startswith(prompts.WEEKLY_PROMPT_PREFIX):
            return {
                "executiveSummary": "This week centred on new model releases and tooling.",
                "keyTrends": ["Smaller models closing the gap"],
                "topInsights": ["Evaluation practice matters more than leaderboard rank"],
                "channelHighlights": ["Research channels covered new papers"],
                "recommendations": ["Track open-weight releases"],
            }
        return {
            "keyInsights": ["A new capability was demonstrated"],
            "mainTopics": ["Artificial intelligence"],
            "actionableItems": ["Read the linked paper"],
            "fullSummary": "The video walks through a recent development and its implications.",
        }


class NoLLMProvider(LLMProvider):
    """
    Provider used when no LLM service is configured.

    Every completion raises ModelUnavailable.
    """

    @property
    def provider_name(self) -> str:
        return "NoLLM"

    async def health_check(self) -> Dict[str, Any]:
        """Always returns unavailable status."""
        return {
            "status": "unavailable",
            "provider": self.provider_name,
            "message": "No LLM provider configured",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    async def complete(self, prompt: str, max_tokens: int) -> str:
        raise ModelUnavailable("No LLM provider available for summarization")


class LLMProviderFactory:
    """Factory for creating LLM provider instances."""

    _providers = {
        "workers_ai": WorkersAIProvider,
        "ollama": OllamaProvider,
        "dummy": DummyLLMProvider,
        "nollm": NoLLMProvider,
    }

    @classmethod
    def create_provider(cls, provider_type: str = "dummy", settings: Optional[Settings] = None) -> LLMProvider:
        """
        Create LLM provider instance.

        Args:
            provider_type: Type of provider ("workers_ai", "ollama", "dummy", "nollm")
            settings: Settings to read credentials and endpoints from

        Returns:
            LLMProvider instance
        """
        settings = settings or get_settings()

        if provider_type not in cls._providers:
            logger.warning(f"Unknown provider type: {provider_type}, falling back to dummy")
            provider_type = "dummy"

        if provider_type == "workers_ai":
            return WorkersAIProvider(
                account_id=settings.cloudflare_account_id,
                api_token=settings.cloudflare_api_token,
                model=settings.llm_model,
                base_url=settings.cloudflare_base_url,
                timeout=settings.llm_timeout_seconds,
            )
        if provider_type == "ollama":
            return OllamaProvider(
                base_url=settings.ollama_base_url,
                model=settings.llm_model,
                timeout=settings.llm_timeout_seconds,
            )
        return cls._providers[provider_type]()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> LLMProvider:
        settings = settings or get_settings()
        return cls.create_provider(settings.llm_provider, settings)

    @classmethod
    def list_providers(cls) -> List[str]:
        """List available provider types."""
        return list(cls._providers)
