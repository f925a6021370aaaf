"""Repository layer for database operations.

Provides async CRUD operations for sources, summary requests and trend
analyses, plus idempotent inserts for items with duplicate detection on
(source id, title).
"""

import functools
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select, delete, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from digestbot.core.catalog import SourceEntry
from digestbot.core.errors import PersistenceError
from digestbot.core.logging import get_logger
from digestbot.core.models import Item, RequestStatus, Source, SummaryRequest, TrendAnalysis
from digestbot.core.time import ensure_utc, utc_now

logger = get_logger(__name__)


def persistence_guard(func):
    """Re-raise SQLAlchemy failures as PersistenceError after rolling back."""

    @functools.wraps(func)
    async def wrapper(session: AsyncSession, *args, **kwargs):
        try:
            return await func(session, *args, **kwargs)
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"{func.__name__} failed: {e}")
            raise PersistenceError(f"{func.__name__} failed: {e}") from e

    return wrapper


@persistence_guard
async def upsert_source(
    session: AsyncSession,
    entry: SourceEntry,
    latest_item_title: Optional[str] = None,
    latest_item_published_at: Optional[datetime] = None,
) -> Source:
    """
    Insert or update a catalog source and its cached latest-item pointer.

    The pointer is left untouched when no latest item is given, so a plain
    catalog refresh keeps what the last run recorded.

    Args:
        session: Database session
        entry: Catalog entry to mirror
        latest_item_title: Title of the newest listed item, if any
        latest_item_published_at: Publish time of the newest listed item

    Returns:
        Source row (existing or newly created)
    """
    source = await session.get(Source, entry.id)

    if source is None:
        source = Source(
            id=entry.id,
            name=entry.name,
            description=entry.description,
            external_id=entry.external_id,
            latest_item_title=latest_item_title,
            latest_item_published_at=latest_item_published_at,
        )
        session.add(source)
        try:
            await session.commit()
            await session.refresh(source)
            logger.info(f"Created source: {entry.name} ({entry.id})")
            return source
        except IntegrityError:
            await session.rollback()

            # Another request stored this source between our read and commit
            source = await session.get(Source, entry.id)
            if source is None:
                raise
            logger.debug(f"Race condition: source inserted concurrently: {entry.id}")

    source.name = entry.name
    source.description = entry.description
    source.external_id = entry.external_id
    if latest_item_title is not None:
        source.latest_item_title = latest_item_title
        source.latest_item_published_at = latest_item_published_at
        logger.debug(f"Updated source pointer: {entry.id} -> {latest_item_title!r}")
    source.updated_at = utc_now()

    await session.commit()
    await session.refresh(source)
    return source


async def _find_item(
    session: AsyncSession,
    source_id: str,
    title: str,
    external_id: Optional[str],
) -> Optional[Item]:
    stmt = select(Item).where(Item.source_id == source_id, Item.title == title)
    result = await session.execute(stmt)
    existing = result.scalar_one_or_none()
    if existing is not None or not external_id:
        return existing

    stmt = select(Item).where(Item.source_id == source_id, Item.external_id == external_id)
    result = await session.execute(stmt)
    return result.scalars().first()


@persistence_guard
async def insert_item_if_absent(
    session: AsyncSession,
    *,
    source_id: str,
    title: str,
    published_at: datetime,
    content: str,
    summary: str,
    key_insights: Sequence[str],
    main_topics: Sequence[str],
    actionable_items: Sequence[str],
    external_id: Optional[str] = None,
) -> Tuple[bool, Item]:
    """
    Insert a summarized item unless one with the same (source, title) exists.

    An existing item is never overwritten, so repeat runs keep the first
    summary that was stored.

    Returns:
        Tuple of (was_created: bool, item: Item)
        - (False, existing_item) if item already exists
        - (True, new_item) if item was created
    """
    existing = await _find_item(session, source_id, title, external_id)
    if existing is not None:
        logger.debug(f"Item already stored for {source_id}: {title[:50]}")
        return False, existing

    item = Item(
        source_id=source_id,
        external_id=external_id,
        title=title,
        published_at=published_at,
        content=content,
        summary=summary,
        key_insights=list(key_insights),
        main_topics=list(main_topics),
        actionable_items=list(actionable_items),
    )
    session.add(item)

    try:
        await session.commit()
        await session.refresh(item)
        logger.debug(
            f"Created item: {item.id}",
            extra={'source_id': source_id, 'title': title[:50]}
        )
        return True, item

    except IntegrityError as e:
        await session.rollback()

        # Another writer inserted the same (source, title) between our read and commit
        existing = await _find_item(session, source_id, title, external_id)
        if existing is not None:
            logger.debug(f"Race condition: item inserted concurrently: {title[:50]}")
            return False, existing
        raise PersistenceError(f"Failed to insert item {title[:50]!r}: {e}") from e


@persistence_guard
async def create_summary_request(
    session: AsyncSession,
    requester: str,
    source_ids: Sequence[str],
    item_limit: int,
    notify: bool,
    status: str = RequestStatus.PROCESSING,
) -> SummaryRequest:
    """Create a summary request record (in ``processing`` by default)."""
    request = SummaryRequest(
        requester=requester,
        source_ids=list(source_ids),
        item_limit=item_limit,
        notify=notify,
        status=status,
    )
    session.add(request)
    await session.commit()
    await session.refresh(request)

    logger.info(f"Created summary request {request.id} for {len(source_ids)} sources")
    return request


@persistence_guard
async def get_summary_request(session: AsyncSession, request_id: str) -> Optional[SummaryRequest]:
    """Get a summary request by id."""
    return await session.get(SummaryRequest, request_id)


@persistence_guard
async def update_request_status(
    session: AsyncSession,
    request_id: str,
    status: str,
    error_message: Optional[str] = None,
) -> SummaryRequest:
    """
    Move a request to ``status``.

    Terminal states stamp ``completed_at`` and can be set only once.
    """
    if status not in RequestStatus.ALL:
        raise ValueError(f"Unknown request status: {status}")

    request = await session.get(SummaryRequest, request_id)
    if request is None:
        raise PersistenceError(f"Summary request not found: {request_id}")

    if request.status in RequestStatus.TERMINAL:
        raise PersistenceError(
            f"Summary request {request_id} already {request.status}, refusing {status}"
        )

    request.status = status
    request.error_message = error_message
    if status in RequestStatus.TERMINAL:
        request.completed_at = utc_now()

    await session.commit()
    await session.refresh(request)

    logger.info(f"Summary request {request_id} -> {status}")
    return request


@persistence_guard
async def list_recent_requests(session: AsyncSession, limit: int = 10) -> List[SummaryRequest]:
    """Most recently created summary requests."""
    stmt = (
        select(SummaryRequest)
        .order_by(desc(SummaryRequest.created_at))
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


@persistence_guard
async def insert_trend_analysis_if_absent(
    session: AsyncSession,
    summary_request_id: str,
    recurring_themes: Sequence[str],
    emerging_topics: Sequence[str],
    contradictions: Sequence[str],
    meta_insights: str,
    degraded: bool = False,
) -> Tuple[bool, TrendAnalysis]:
    """
    Store the trend analysis of a request; at most one per request.

    Returns:
        Tuple of (was_created: bool, trend_analysis: TrendAnalysis)
    """
    existing = await get_trend_analysis(session, summary_request_id)
    if existing is not None:
        logger.warning(f"Trend analysis already stored for request {summary_request_id}")
        return False, existing

    analysis = TrendAnalysis(
        summary_request_id=summary_request_id,
        recurring_themes=list(recurring_themes),
        emerging_topics=list(emerging_topics),
        contradictions=list(contradictions),
        meta_insights=meta_insights,
        degraded=degraded,
    )
    session.add(analysis)
    await session.commit()
    await session.refresh(analysis)
    return True, analysis


@persistence_guard
async def get_trend_analysis(session: AsyncSession, summary_request_id: str) -> Optional[TrendAnalysis]:
    """Trend analysis stored for a request, if any."""
    stmt = select(TrendAnalysis).where(TrendAnalysis.summary_request_id == summary_request_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


@persistence_guard
async def get_items_since(session: AsyncSession, cutoff: datetime) -> List[Item]:
    """
    Items published at or after ``cutoff``, newest first, with their source loaded.
    """
    stmt = (
        select(Item)
        .options(selectinload(Item.source))
        .where(Item.published_at >= cutoff)
        .order_by(desc(Item.published_at))
    )
    result = await session.execute(stmt)
    items = list(result.scalars().all())
    logger.debug(f"Retrieved {len(items)} items published since {cutoff.isoformat()}")
    return items


@persistence_guard
async def list_recent_items(
    session: AsyncSession,
    limit: int = 20,
    source_ids: Optional[Iterable[str]] = None,
) -> List[Item]:
    """Newest items by publish time, optionally restricted to some sources."""
    stmt = (
        select(Item)
        .options(selectinload(Item.source))
        .order_by(desc(Item.published_at))
        .limit(limit)
    )
    if source_ids is not None:
        stmt = stmt.where(Item.source_id.in_(list(source_ids)))
    result = await session.execute(stmt)
    return list(result.scalars().all())


def normalize_title(title: str) -> str:
    """Case- and whitespace-insensitive title key used by dedup repair."""
    return re.sub(r"\s+", " ", title or "").strip().casefold()


@persistence_guard
async def delete_duplicate_items(session: AsyncSession, across_sources: bool = False) -> Dict[str, Any]:
    """
    Remove duplicate items, keeping the earliest published one of each title.

    Titles are compared after ``normalize_title``. Duplicates are grouped per
    source unless ``across_sources`` is set. Ties on publish time keep the
    row that was stored first.

    Returns:
        Dictionary with ``deleted_count`` and ``deleted_ids``
    """
    stmt = select(Item.id, Item.source_id, Item.title).order_by(
        Item.published_at, Item.created_at
    )
    result = await session.execute(stmt)

    seen = set()
    duplicate_ids: List[str] = []
    for item_id, source_id, title in result.all():
        key = normalize_title(title) if across_sources else (source_id, normalize_title(title))
        if key in seen:
            duplicate_ids.append(item_id)
        else:
            seen.add(key)

    if duplicate_ids:
        await session.execute(delete(Item).where(Item.id.in_(duplicate_ids)))
        await session.commit()
        logger.info(f"Deleted {len(duplicate_ids)} duplicate items")

    return {"deleted_count": len(duplicate_ids), "deleted_ids": duplicate_ids}


def item_published_at(item: Item) -> Optional[datetime]:
    """Publish time of a stored item as an aware UTC datetime."""
    return ensure_utc(item.published_at)


@persistence_guard
async def list_items_for_sources(session: AsyncSession, source_ids: Sequence[str], limit: int = 10) -> List[Item]:
    """Newest items belonging to any of ``source_ids``."""
    if not source_ids:
        return []
    return await list_recent_items(session, limit=limit, source_ids=source_ids)


@persistence_guard
async def list_sources(session: AsyncSession) -> List[Source]:
    """All stored sources ordered by name."""
    result = await session.execute(select(Source).order_by(Source.name))
    return list(result.scalars().all())
