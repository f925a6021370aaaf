"""Tests for the summary pipeline orchestrator."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from digestbot.core.errors import InvalidRequest, ModelUnavailable, NotFound, PersistenceError, UpstreamUnavailable
from digestbot.core.models import RequestStatus
from digestbot.core.repositories import (
    get_trend_analysis,
    list_recent_items,
    list_recent_requests,
    list_sources,
)
from digestbot.notifier import DeliveryResult, NullNotifier
from digestbot.pipeline import orchestrator
from digestbot.pipeline.orchestrator import (
    EMPTY_RUN_WARNING,
    NO_CONTENT_PLACEHOLDER,
    SummaryPipeline,
    SummaryRequestInput,
    build_request,
)
from digestbot.summarizer import DummyLLMProvider, Summarizer, TrendAnalyzer
from conftest import FakeYouTube, make_ref

ITEM_RESPONSE = json.dumps({
    "keyInsights": ["insight"],
    "mainTopics": ["topic"],
    "actionableItems": ["action"],
    "fullSummary": "A summary",
})


@pytest.fixture
def build_pipeline(catalog, session_factory):
    def _build(youtube, provider=None, notifier=None):
        provider = provider or DummyLLMProvider()
        return SummaryPipeline(
            catalog=catalog,
            lister=youtube,
            enricher=youtube,
            summarizer=Summarizer(provider),
            trend_analyzer=TrendAnalyzer(provider),
            notifier=notifier or NullNotifier(),
            session_factory=session_factory,
        )
    return _build


def _request(source_ids, limit=3, notify=False):
    return SummaryRequestInput(source_ids=source_ids, item_limit=limit, requester="me@example.com", notify=notify)


@pytest.mark.asyncio
async def test_empty_source_list_creates_nothing(build_pipeline, session):
    pipeline = build_pipeline(FakeYouTube({}))

    with pytest.raises(InvalidRequest):
        await pipeline.run(_request([]))

    assert await list_recent_requests(session) == []


@pytest.mark.asyncio
async def test_failing_source_does_not_block_later_sources(build_pipeline, session):
    youtube = FakeYouTube(
        listings={"UC_A": [make_ref("x1", "X")], "UC_B": UpstreamUnavailable("quota exceeded")},
        details={"x1": "Description of X"},
    )
    pipeline = build_pipeline(youtube)

    result = await pipeline.run(_request(["a", "b"], limit=1))

    assert len(result.items) == 1
    assert result.items[0].title == "X"
    assert result.items[0].source_name == "Channel A"
    assert result.trend_analysis is None
    assert result.warning is None
    assert result.status == RequestStatus.COMPLETED
    assert result.report.sources_ok == 1
    assert result.report.sources_failed == 1

    status = await pipeline.get_request_status(result.request_id)
    assert status.status == RequestStatus.COMPLETED
    assert status.completed_at is not None
    assert await get_trend_analysis(session, result.request_id) is None


@pytest.mark.asyncio
async def test_failing_first_source_still_stores_second(build_pipeline, session):
    youtube = FakeYouTube(
        listings={"UC_A": UpstreamUnavailable("down"), "UC_B": [make_ref("y1", "Y")]},
    )
    result = await build_pipeline(youtube).run(_request(["a", "b"], limit=1))

    assert [s.title for s in result.items] == ["Y"]
    items = await list_recent_items(session)
    assert [(i.source_id, i.title) for i in items] == [("b", "Y")]


@pytest.mark.asyncio
async def test_two_items_produce_one_trend_analysis(build_pipeline, session):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First"), make_ref("v2", "Second", hours_ago=2)]})
    provider = DummyLLMProvider()

    result = await build_pipeline(youtube, provider).run(_request(["a"], limit=2))

    assert len(result.items) == 2
    assert result.trend_analysis is not None
    assert provider.call_count == 3

    stored = await get_trend_analysis(session, result.request_id)
    assert stored is not None
    assert stored.summary_request_id == result.request_id
    assert stored.recurring_themes == result.trend_analysis.recurring_themes


@pytest.mark.asyncio
async def test_single_item_skips_trend_analysis(build_pipeline):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First")]})
    provider = DummyLLMProvider()

    result = await build_pipeline(youtube, provider).run(_request(["a"], limit=1))

    assert result.trend_analysis is None
    assert provider.call_count == 1


@pytest.mark.asyncio
async def test_unknown_source_is_skipped_with_warning(build_pipeline):
    youtube = FakeYouTube({})
    pipeline = build_pipeline(youtube)

    result = await pipeline.run(_request(["z"]))

    assert result.items == []
    assert result.status == RequestStatus.COMPLETED
    assert result.warning == EMPTY_RUN_WARNING
    assert result.report.sources_skipped == 1
    assert youtube.list_calls == []

    status = await pipeline.get_request_status(result.request_id)
    assert status.status == RequestStatus.COMPLETED


@pytest.mark.asyncio
async def test_repeat_run_does_not_duplicate_items(build_pipeline, session):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First"), make_ref("v2", "Second")]})
    pipeline = build_pipeline(youtube)

    first = await pipeline.run(_request(["a"], limit=2))
    second = await pipeline.run(_request(["a"], limit=2))

    assert first.report.items_inserted == 2
    assert second.report.items_inserted == 0
    assert second.report.items_existing == 2
    assert len(second.items) == 2

    items = await list_recent_items(session)
    assert sorted(i.title for i in items) == ["First", "Second"]


@pytest.mark.asyncio
async def test_item_failure_is_isolated(build_pipeline):
    youtube = FakeYouTube(
        listings={"UC_A": [make_ref("gone", "Deleted"), make_ref("v2", "Kept")]},
        details={"gone": NotFound("Video not found: gone")},
    )

    result = await build_pipeline(youtube).run(_request(["a"], limit=2))

    assert [s.title for s in result.items] == ["Kept"]
    assert result.report.items_failed == 1
    assert result.status == RequestStatus.COMPLETED
    failed = result.report.failures()
    assert failed[0].kind == "item"
    assert failed[0].key == "a/gone"


@pytest.mark.asyncio
async def test_model_failure_skips_item(build_pipeline):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First"), make_ref("v2", "Second")]})
    provider = DummyLLMProvider(responses=[ModelUnavailable("overloaded"), ITEM_RESPONSE])

    result = await build_pipeline(youtube, provider).run(_request(["a"], limit=2))

    assert [s.title for s in result.items] == ["Second"]
    assert result.report.items_failed == 1


@pytest.mark.asyncio
async def test_malformed_model_output_still_stored(build_pipeline, session):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First")]})
    provider = DummyLLMProvider(responses=["not json at all"])

    result = await build_pipeline(youtube, provider).run(_request(["a"], limit=1))

    assert result.items[0].degraded is True
    assert result.items[0].summary == "not json at all"
    items = await list_recent_items(session)
    assert items[0].key_insights == ["Unable to parse insights"]


@pytest.mark.asyncio
async def test_content_fallbacks(build_pipeline, session):
    youtube = FakeYouTube(
        listings={"UC_A": [
            make_ref("v1", "Enriched"),
            make_ref("v2", "Listing only", description="From the listing"),
            make_ref("v3", "Nothing"),
        ]},
        details={"v1": "From the details"},
    )

    await build_pipeline(youtube).run(_request(["a"], limit=3))

    contents = {i.title: i.content for i in await list_recent_items(session)}
    assert contents == {
        "Enriched": "From the details",
        "Listing only": "From the listing",
        "Nothing": NO_CONTENT_PLACEHOLDER,
    }


@pytest.mark.asyncio
async def test_trend_failure_leaves_request_completed(build_pipeline, session):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First"), make_ref("v2", "Second")]})
    provider = DummyLLMProvider(responses=[ITEM_RESPONSE, ITEM_RESPONSE, ModelUnavailable("down")])

    result = await build_pipeline(youtube, provider).run(_request(["a"], limit=2))

    assert result.status == RequestStatus.COMPLETED
    assert result.trend_analysis is None
    assert len(result.items) == 2
    assert await get_trend_analysis(session, result.request_id) is None


@pytest.mark.asyncio
async def test_source_pointer_refreshed(build_pipeline, session):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "Newest"), make_ref("v2", "Older", hours_ago=5)]})

    await build_pipeline(youtube).run(_request(["a"], limit=2))

    sources = await list_sources(session)
    assert sources[0].latest_item_title == "Newest"


@pytest.mark.asyncio
async def test_notification_payload(build_pipeline):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First")]})
    notifier = MagicMock()
    notifier.deliver = AsyncMock(return_value=DeliveryResult(delivered=True, kind="summary"))

    result = await build_pipeline(youtube, notifier=notifier).run(_request(["a"], limit=1, notify=True))

    assert result.notify_attempted is True
    kind, payload = notifier.deliver.call_args.args
    assert kind == "summary"
    assert payload["recipientEmail"] == "me@example.com"
    assert payload["summaries"][0]["title"] == "First"
    assert payload["summaries"][0]["podcastName"] == "Channel A"
    assert payload["trendAnalysis"] is None


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_request(build_pipeline):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First")]})
    notifier = MagicMock()
    notifier.deliver = AsyncMock(side_effect=UpstreamUnavailable("smtp down"))
    pipeline = build_pipeline(youtube, notifier=notifier)

    result = await pipeline.run(_request(["a"], limit=1, notify=True))

    assert result.status == RequestStatus.COMPLETED
    assert result.notify_attempted is True
    assert any(o.kind == "notify" and not o.ok for o in result.report.outcomes)
    assert (await pipeline.get_request_status(result.request_id)).status == RequestStatus.COMPLETED


@pytest.mark.asyncio
async def test_notify_flag_off_skips_notifier(build_pipeline):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First")]})
    notifier = MagicMock()
    notifier.deliver = AsyncMock()

    result = await build_pipeline(youtube, notifier=notifier).run(_request(["a"], limit=1))

    assert result.notify_attempted is False
    notifier.deliver.assert_not_called()


@pytest.mark.asyncio
async def test_persistence_failure_marks_request_failed(build_pipeline):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First")]})
    pipeline = build_pipeline(youtube)

    with patch(
        "digestbot.pipeline.orchestrator.insert_item_if_absent",
        AsyncMock(side_effect=PersistenceError("disk full")),
    ):
        result = await pipeline.run(_request(["a"], limit=1))

    assert result.status == RequestStatus.FAILED
    assert result.error == "disk full"

    status = await pipeline.get_request_status(result.request_id)
    assert status.status == RequestStatus.FAILED
    assert status.error_message == "disk full"


@pytest.mark.asyncio
async def test_unknown_request_status(build_pipeline):
    with pytest.raises(NotFound):
        await build_pipeline(FakeYouTube({})).get_request_status("missing")


def test_build_request_accepts_api_field_names():
    request = build_request(channelIds=["a"], videoLimit=2, email="x@example.com", sendEmail=True)

    assert request.source_ids == ["a"]
    assert request.item_limit == 2
    assert request.notify is True


def test_build_request_rejects_bad_limit():
    with pytest.raises(InvalidRequest):
        build_request(source_ids=["a"], item_limit=0)


def test_build_request_defaults():
    request = build_request(source_ids=["a"])
    assert request.item_limit == 3
    assert request.requester == "anonymous@example.com"


@pytest.mark.asyncio
async def test_completion_write_failure_marks_request_failed(build_pipeline):
    youtube = FakeYouTube(listings={"UC_A": [make_ref("v1", "First")]})
    pipeline = build_pipeline(youtube)
    real_update = orchestrator.update_request_status

    async def failing_completion(session, request_id, status, **kwargs):
        if status == RequestStatus.COMPLETED:
            raise PersistenceError("store gone at completion")
        return await real_update(session, request_id, status, **kwargs)

    with patch("digestbot.pipeline.orchestrator.update_request_status", failing_completion):
        result = await pipeline.run(_request(["a"], limit=1))

    assert result.status == RequestStatus.FAILED
    assert result.error == "store gone at completion"

    status = await pipeline.get_request_status(result.request_id)
    assert status.status == RequestStatus.FAILED
    assert status.error_message == "store gone at completion"


class SlowYouTube(FakeYouTube):
    async def list_items(self, channel_id, limit):
        await asyncio.sleep(0.05)
        return await super().list_items(channel_id, limit)


@pytest.mark.asyncio
async def test_concurrent_requests_share_new_source(build_pipeline, session):
    youtube = SlowYouTube(listings={"UC_A": [make_ref("v1", "First")]})
    pipeline = build_pipeline(youtube)

    first, second = await asyncio.gather(
        pipeline.run(_request(["a"], limit=1)),
        pipeline.run(_request(["a"], limit=1)),
    )

    assert first.status == RequestStatus.COMPLETED
    assert second.status == RequestStatus.COMPLETED
    assert [s.id for s in await list_sources(session)] == ["a"]
    assert [i.title for i in await list_recent_items(session)] == ["First"]
