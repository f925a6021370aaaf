"""
Notification delivery.

The email service renders and sends messages; this side only hands it a
plain JSON payload. A delivery failure never changes the outcome of the
request that produced the payload.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from digestbot.core.errors import UpstreamUnavailable
from digestbot.core.logging import get_logger
from digestbot.core.settings import Settings, get_settings

logger = get_logger(__name__)

KINDS = ("summary", "weekly_overview", "bulk")


@dataclass
class DeliveryResult:
    """Outcome of one delivery attempt."""
    delivered: bool
    kind: str
    detail: Dict[str, Any] = field(default_factory=dict)


class Notifier(ABC):
    """Abstract notification channel."""

    @abstractmethod
    async def deliver(self, kind: str, payload: Dict[str, Any]) -> DeliveryResult:
        """
        Deliver ``payload`` as a message of type ``kind``.

        Raises:
            ValueError: unknown kind
            UpstreamUnavailable: the delivery service failed
        """

    async def aclose(self) -> None:
        """Release network resources, if any."""


def _check_kind(kind: str) -> None:
    if kind not in KINDS:
        raise ValueError(f"Unknown notification kind: {kind}")


class HttpNotifier(Notifier):
    """POSTs payloads to ``{base_url}/send_{kind}_email``."""

    def __init__(self, base_url: str, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def aclose(self) -> None:
        await self.client.aclose()

    async def deliver(self, kind: str, payload: Dict[str, Any]) -> DeliveryResult:
        _check_kind(kind)
        url = f"{self.base_url}/send_{kind}_email"

        try:
            response = await self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Notification service unreachable ({kind}): {e}")
            raise UpstreamUnavailable(f"Notification service unreachable: {e}") from e

        if not response.is_success:
            raise UpstreamUnavailable(f"Notification service error: {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        logger.info(f"Delivered {kind} notification")
        return DeliveryResult(delivered=True, kind=kind, detail=body if isinstance(body, dict) else {"result": body})


class NullNotifier(Notifier):
    """Used when no notification service is configured."""

    async def deliver(self, kind: str, payload: Dict[str, Any]) -> DeliveryResult:
        _check_kind(kind)
        logger.info(f"Notification service not configured, dropping {kind} notification")
        return DeliveryResult(delivered=False, kind=kind, detail={"reason": "notifier not configured"})


def build_notifier(settings: Optional[Settings] = None) -> Notifier:
    settings = settings or get_settings()
    if not settings.notifier_url:
        return NullNotifier()
    return HttpNotifier(settings.notifier_url, timeout=settings.notifier_timeout_seconds)
