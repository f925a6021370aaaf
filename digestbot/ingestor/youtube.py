"""YouTube Data API client: lists a channel's recent uploads and resolves video details.

``list_items`` backs the Item Lister and ``get_item`` backs the Item Enricher.
Both are pure reads. Rate limiting is handled cooperatively with a fixed
pause between the two dependent listing calls; only transport-level
failures are retried.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from digestbot.core.errors import NotFound, UpstreamUnavailable
from digestbot.core.logging import get_logger
from digestbot.core.settings import get_settings
from digestbot.core.time import parse_timestamp, utc_now

logger = get_logger(__name__)

MAX_PAGE_SIZE = 50


@dataclass(frozen=True)
class ItemRef:
    """One entry of a channel listing."""
    id: str
    title: str
    description: str
    published_at: datetime
    thumbnail: Optional[str]
    source_name: str


@dataclass(frozen=True)
class ItemDetail:
    """Descriptive details of a single video."""
    id: str
    title: str
    description: str
    published_at: datetime
    source_name: str


class YouTubeClient:
    """Async client for the handful of YouTube Data API v3 endpoints we need."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        call_delay: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.youtube_api_key
        self.base_url = (base_url or settings.youtube_base_url).rstrip("/")
        self.call_delay = settings.youtube_call_delay_seconds if call_delay is None else call_delay
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or settings.upstream_timeout_seconds),
            headers={"User-Agent": "DigestBot/1.0"},
            follow_redirects=True,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2.0),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True
    )
    async def _get_with_retry(self, path: str, params: Dict[str, Any]) -> httpx.Response:
        """GET an API path, retrying only connection-level failures."""
        logger.debug(f"GET {path} {sorted(k for k in params if k != 'key')}")
        return await self.client.get(f"{self.base_url}/{path}", params=params)

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise UpstreamUnavailable("YouTube API key not configured")

        try:
            response = await self._get_with_retry(path, {**params, "key": self.api_key})
        except httpx.HTTPError as e:
            logger.error(f"YouTube API transport error on {path}: {type(e).__name__}: {e}")
            raise UpstreamUnavailable(f"YouTube API {path} unreachable: {e}") from e

        if response.status_code != 200:
            body = response.text[:300]
            logger.error(f"YouTube API error on {path}: HTTP {response.status_code} - {body}")
            raise UpstreamUnavailable(f"YouTube API error: {response.status_code} - {body}")

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"YouTube API {path} returned invalid JSON") from e

    async def uploads_playlist_id(self, channel_id: str) -> str:
        """Resolve the upload collection of a channel."""
        data = await self._get_json("channels", {"part": "contentDetails", "id": channel_id})
        items = data.get("items") or []
        playlist_id = None
        if items:
            playlist_id = (
                items[0].get("contentDetails", {})
                .get("relatedPlaylists", {})
                .get("uploads")
            )
        if not playlist_id:
            raise UpstreamUnavailable(f"Could not find uploads playlist for channel {channel_id}")
        return playlist_id

    async def list_items(self, channel_id: str, limit: int) -> List[ItemRef]:
        """
        Most recent uploads of a channel, in listing order.

        Args:
            channel_id: External YouTube channel id
            limit: Maximum number of items (>= 1, capped at the API page size)

        Returns:
            List of ItemRef

        Raises:
            UpstreamUnavailable: listing call failed or no uploads playlist
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")

        playlist_id = await self.uploads_playlist_id(channel_id)

        # Dependent call on the same upstream: pause to stay under rate limits
        if self.call_delay:
            await asyncio.sleep(self.call_delay)

        data = await self._get_json(
            "playlistItems",
            {
                "part": "snippet",
                "playlistId": playlist_id,
                "maxResults": min(limit, MAX_PAGE_SIZE),
            },
        )

        refs = []
        for entry in (data.get("items") or [])[:limit]:
            ref = self._item_ref_from_snippet(entry.get("snippet") or {})
            if ref is not None:
                refs.append(ref)

        logger.info(f"Listed {len(refs)} items for channel {channel_id}")
        return refs

    async def get_item(self, item_id: str) -> ItemDetail:
        """
        Descriptive details of one video.

        Raises:
            NotFound: the id does not resolve to a video
            UpstreamUnavailable: transport or API error
        """
        data = await self._get_json("videos", {"part": "snippet", "id": item_id})
        items = data.get("items") or []
        if not items:
            raise NotFound(f"Video not found: {item_id}")

        snippet = items[0].get("snippet") or {}
        return ItemDetail(
            id=item_id,
            title=snippet.get("title", ""),
            description=snippet.get("description") or "",
            published_at=parse_timestamp(snippet.get("publishedAt")) or utc_now(),
            source_name=snippet.get("channelTitle", ""),
        )

    @staticmethod
    def _item_ref_from_snippet(snippet: Dict[str, Any]) -> Optional[ItemRef]:
        video_id = (snippet.get("resourceId") or {}).get("videoId")
        if not video_id:
            logger.debug(f"Skipping playlist entry without video id: {snippet.get('title')}")
            return None

        thumbnails = snippet.get("thumbnails") or {}
        thumbnail = (thumbnails.get("high") or thumbnails.get("default") or {}).get("url")

        return ItemRef(
            id=video_id,
            title=snippet.get("title", ""),
            description=snippet.get("description") or "",
            published_at=parse_timestamp(snippet.get("publishedAt")) or utc_now(),
            thumbnail=thumbnail,
            source_name=snippet.get("channelTitle", ""),
        )
