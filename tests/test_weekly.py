"""Tests for the weekly aggregator."""

import json
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from digestbot.core.catalog import SourceEntry
from digestbot.core.errors import InvalidRequest, ModelUnavailable
from digestbot.core.repositories import insert_item_if_absent, upsert_source
from digestbot.notifier import DeliveryResult
from digestbot.pipeline.weekly import WeeklyAggregator
from digestbot.summarizer import DummyLLMProvider, TrendAnalyzer
from conftest import BASE_TIME

NOW = BASE_TIME + timedelta(hours=1)


async def _store(session, title, hours_ago, summary="Plain summary", key_insights=None):
    await insert_item_if_absent(
        session,
        source_id="a",
        title=title,
        published_at=BASE_TIME - timedelta(hours=hours_ago),
        content="Content",
        summary=summary,
        key_insights=key_insights or ["insight"],
        main_topics=["topic"],
        actionable_items=["action"],
    )


@pytest.fixture
def provider():
    return DummyLLMProvider()


@pytest.fixture
def aggregator(provider, session_factory):
    return WeeklyAggregator(TrendAnalyzer(provider), session_factory=session_factory)


@pytest.mark.asyncio
async def test_empty_window_makes_no_model_call(aggregator, provider):
    result = await aggregator.build_weekly_overview(7, now=NOW)

    assert result.item_count == 0
    assert result.overview is None
    assert result.message == "No episodes found in the last 7 days"
    assert provider.call_count == 0


@pytest.mark.asyncio
async def test_overview_over_items_in_window(aggregator, provider, session):
    await upsert_source(session, SourceEntry(id="a", external_id="UC_A", name="Channel A"))
    await _store(session, "Recent", hours_ago=2)
    await _store(session, "Too old", hours_ago=24 * 9)

    result = await aggregator.build_weekly_overview(7, now=NOW)

    assert result.item_count == 1
    assert [s.title for s in result.items] == ["Recent"]
    assert result.items[0].source_name == "Channel A"
    assert result.overview.executive_summary
    assert provider.call_count == 1
    assert "Recent (Channel A)" in provider.prompts[0]
    assert "Too old" not in provider.prompts[0]
    assert result.to_dict()["episodeCount"] == 1


@pytest.mark.asyncio
async def test_legacy_json_summary_is_unpacked(aggregator, session):
    await upsert_source(session, SourceEntry(id="a", external_id="UC_A", name="Channel A"))
    legacy = json.dumps({"fullSummary": "Unpacked text", "keyInsights": ["legacy insight"]})
    await _store(session, "Legacy", hours_ago=1, summary=legacy)
    await _store(session, "Broken", hours_ago=2, summary="{not json")

    result = await aggregator.build_weekly_overview(7, now=NOW)

    by_title = {s.title: s for s in result.items}
    assert by_title["Legacy"].summary == "Unpacked text"
    assert by_title["Legacy"].key_insights == ["legacy insight"]
    assert by_title["Legacy"].main_topics == ["topic"]
    assert by_title["Broken"].summary == "{not json"


@pytest.mark.asyncio
async def test_malformed_overview_degrades(session_factory, session):
    await upsert_source(session, SourceEntry(id="a", external_id="UC_A", name="Channel A"))
    await _store(session, "Recent", hours_ago=2)
    aggregator = WeeklyAggregator(
        TrendAnalyzer(DummyLLMProvider(responses=["no json"])),
        session_factory=session_factory,
    )

    result = await aggregator.build_weekly_overview(7, now=NOW)

    assert result.overview.degraded is True
    assert result.overview.executive_summary == "Error generating weekly overview"


@pytest.mark.asyncio
async def test_model_unavailable_surfaces(session_factory, session):
    await upsert_source(session, SourceEntry(id="a", external_id="UC_A", name="Channel A"))
    await _store(session, "Recent", hours_ago=2)
    aggregator = WeeklyAggregator(
        TrendAnalyzer(DummyLLMProvider(responses=[ModelUnavailable("down")])),
        session_factory=session_factory,
    )

    with pytest.raises(ModelUnavailable):
        await aggregator.build_weekly_overview(7, now=NOW)


@pytest.mark.asyncio
async def test_invalid_window(aggregator):
    with pytest.raises(InvalidRequest):
        await aggregator.build_weekly_overview(0)


@pytest.mark.asyncio
async def test_deliver_weekly_overview(provider, session_factory, session):
    await upsert_source(session, SourceEntry(id="a", external_id="UC_A", name="Channel A"))
    await _store(session, "Recent", hours_ago=2)
    notifier = MagicMock()
    notifier.deliver = AsyncMock(return_value=DeliveryResult(delivered=True, kind="weekly_overview"))
    aggregator = WeeklyAggregator(TrendAnalyzer(provider), session_factory=session_factory, notifier=notifier)

    result = await aggregator.build_weekly_overview(7, now=NOW)
    delivery = await aggregator.deliver("me@example.com", result)

    assert delivery.delivered is True
    kind, payload = notifier.deliver.call_args.args
    assert kind == "weekly_overview"
    assert payload["episodeCount"] == 1
    assert payload["weeklyOverview"]["executiveSummary"]
