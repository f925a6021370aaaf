"""Shared fixtures: a throwaway SQLite store and fake upstream services."""

from datetime import datetime, timezone, timedelta
from typing import Dict, List, Union

import pytest
import pytest_asyncio

from digestbot.core.catalog import SourceCatalog, SourceEntry
from digestbot.core.db import build_engine, build_session_factory, create_all
from digestbot.core.errors import NotFound, UpstreamUnavailable
from digestbot.ingestor.youtube import ItemDetail, ItemRef


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'digestbot.db'}", echo=False)
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def catalog():
    return SourceCatalog([
        SourceEntry(id="a", external_id="UC_A", name="Channel A", description="First channel"),
        SourceEntry(id="b", external_id="UC_B", name="Channel B", description="Second channel"),
    ])


BASE_TIME = datetime(2024, 2, 5, 10, 0, tzinfo=timezone.utc)


def make_ref(video_id: str, title: str, hours_ago: int = 0, description: str = "", source_name: str = "") -> ItemRef:
    return ItemRef(
        id=video_id,
        title=title,
        description=description,
        published_at=BASE_TIME - timedelta(hours=hours_ago),
        thumbnail=None,
        source_name=source_name,
    )


class FakeYouTube:
    """Lister and enricher backed by dictionaries."""

    def __init__(
        self,
        listings: Dict[str, Union[List[ItemRef], Exception]],
        details: Dict[str, Union[str, Exception]] = None,
    ):
        self.listings = listings
        self.details = details or {}
        self.list_calls: List[tuple] = []
        self.detail_calls: List[str] = []

    async def list_items(self, channel_id: str, limit: int) -> List[ItemRef]:
        self.list_calls.append((channel_id, limit))
        listing = self.listings.get(channel_id)
        if listing is None:
            raise UpstreamUnavailable(f"no listing for {channel_id}")
        if isinstance(listing, Exception):
            raise listing
        return listing[:limit]

    async def get_item(self, item_id: str) -> ItemDetail:
        self.detail_calls.append(item_id)
        detail = self.details.get(item_id, "")
        if isinstance(detail, Exception):
            raise detail
        if detail is None:
            raise NotFound(f"Video not found: {item_id}")
        return ItemDetail(
            id=item_id,
            title="",
            description=detail,
            published_at=BASE_TIME,
            source_name="",
        )
