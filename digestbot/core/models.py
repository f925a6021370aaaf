"""Database models for DigestBot."""
import uuid

from sqlalchemy import (
    String, DateTime, Boolean, Text, Integer,
    ForeignKey, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import mapped_column, relationship

from .db import Base
from .time import utc_now


def _new_id() -> str:
    return str(uuid.uuid4())


class RequestStatus:
    """Summary request lifecycle states."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = (COMPLETED, FAILED)
    ALL = (PENDING, PROCESSING, COMPLETED, FAILED)


class Source(Base):
    """Catalog sources mirrored into the store, with a latest-item pointer."""
    __tablename__ = "sources"

    id = mapped_column(String(100), primary_key=True)
    name = mapped_column(String(200), nullable=False)
    description = mapped_column(Text, nullable=False, default="")
    external_id = mapped_column(String(100), nullable=False, index=True)
    latest_item_title = mapped_column(String(800), nullable=True)
    latest_item_published_at = mapped_column(DateTime(timezone=True), nullable=True)
    created_at = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    items = relationship("Item", back_populates="source")


class Item(Base):
    """One summarized video/episode belonging to a source."""
    __tablename__ = "items"

    id = mapped_column(String(36), primary_key=True, default=_new_id)
    external_id = mapped_column(String(100), nullable=True, index=True)
    source_id = mapped_column(ForeignKey("sources.id"), index=True, nullable=False)
    title = mapped_column(String(800), nullable=False)
    published_at = mapped_column(DateTime(timezone=True), index=True, nullable=False)
    content = mapped_column(Text, nullable=False)
    summary = mapped_column(Text, nullable=True)
    key_insights = mapped_column(JSON, nullable=True)
    main_topics = mapped_column(JSON, nullable=True)
    actionable_items = mapped_column(JSON, nullable=True)
    created_at = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    source = relationship("Source", back_populates="items")

    __table_args__ = (UniqueConstraint("source_id", "title", name="uq_items_source_title"),)


class SummaryRequest(Base):
    """One run of the summarization pipeline."""
    __tablename__ = "summary_requests"

    id = mapped_column(String(36), primary_key=True, default=_new_id)
    requester = mapped_column(String(320), nullable=False, index=True)
    source_ids = mapped_column(JSON, nullable=False)
    item_limit = mapped_column(Integer, nullable=False)
    notify = mapped_column(Boolean, nullable=False, default=False)
    status = mapped_column(String(16), nullable=False, default=RequestStatus.PENDING, index=True)
    error_message = mapped_column(Text, nullable=True)
    created_at = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    completed_at = mapped_column(DateTime(timezone=True), nullable=True)

    trend_analysis = relationship("TrendAnalysis", back_populates="summary_request", uselist=False)


class TrendAnalysis(Base):
    """Cross-item synthesis produced for a summary request."""
    __tablename__ = "trend_analyses"

    id = mapped_column(String(36), primary_key=True, default=_new_id)
    summary_request_id = mapped_column(ForeignKey("summary_requests.id"), nullable=False, unique=True)
    recurring_themes = mapped_column(JSON, nullable=False)
    emerging_topics = mapped_column(JSON, nullable=False)
    contradictions = mapped_column(JSON, nullable=False)
    meta_insights = mapped_column(Text, nullable=False)
    degraded = mapped_column(Boolean, nullable=False, default=False)
    created_at = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

    summary_request = relationship("SummaryRequest", back_populates="trend_analysis")


Index('idx_items_source_published', Item.source_id, Item.published_at)
Index('idx_summary_requests_status_created', SummaryRequest.status, SummaryRequest.created_at)
