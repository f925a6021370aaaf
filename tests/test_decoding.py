"""Tests for decoding model output into result models."""

import json

from digestbot.summarizer.decoding import (
    NO_META_INSIGHTS,
    NO_SUMMARY,
    WEEKLY_ERROR,
    decode_item_summary,
    decode_trend_report,
    decode_weekly_overview,
    extract_json_object,
)

ITEM_JSON = {
    "keyInsights": ["a", "b"],
    "mainTopics": ["t"],
    "actionableItems": ["do"],
    "fullSummary": "Summary text",
}


def test_extract_plain_json():
    assert extract_json_object('{"a": 1}') == {"a": 1}


def test_extract_fenced_json():
    text = "Here you go:\n```json\n{\"a\": 1}\n```\nHope this helps"
    assert extract_json_object(text) == {"a": 1}


def test_extract_json_with_preamble():
    assert extract_json_object('Sure! {"a": {"b": 2}} Done.') == {"a": {"b": 2}}


def test_extract_non_object():
    assert extract_json_object("[1, 2]") is None
    assert extract_json_object("no json here") is None
    assert extract_json_object("") is None
    assert extract_json_object(None) is None


def test_decode_item_summary_ok():
    summary = decode_item_summary(json.dumps(ITEM_JSON))

    assert summary.degraded is False
    assert summary.summary == "Summary text"
    assert summary.key_insights == ["a", "b"]


def test_decode_item_summary_accepts_summary_key():
    data = dict(ITEM_JSON)
    data["summary"] = data.pop("fullSummary")
    assert decode_item_summary(json.dumps(data)).summary == "Summary text"


def test_decode_item_summary_malformed_uses_raw_text():
    summary = decode_item_summary("The model rambled without JSON")

    assert summary.degraded is True
    assert summary.summary == "The model rambled without JSON"
    assert summary.key_insights == ["Unable to parse insights"]
    assert summary.main_topics == ["Unable to parse topics"]
    assert summary.actionable_items == ["Unable to parse actions"]


def test_decode_item_summary_missing_field_is_degraded():
    data = dict(ITEM_JSON)
    del data["mainTopics"]

    summary = decode_item_summary(json.dumps(data))

    assert summary.degraded is True
    assert summary.main_topics == ["Unable to parse topics"]
    assert summary.summary


def test_decode_item_summary_empty_response():
    summary = decode_item_summary("")
    assert summary.degraded is True
    assert summary.summary == NO_SUMMARY


def test_decode_item_summary_coerces_values():
    data = dict(ITEM_JSON, keyInsights="single insight", mainTopics=[1, "two"])

    summary = decode_item_summary(json.dumps(data))

    assert summary.key_insights == ["single insight"]
    assert summary.main_topics == ["1", "two"]


def test_item_summary_camel_case_dump():
    dumped = decode_item_summary(json.dumps(ITEM_JSON)).model_dump(by_alias=True)
    assert dumped["fullSummary"] == "Summary text"
    assert dumped["keyInsights"] == ["a", "b"]


def test_decode_trend_report_ok():
    raw = json.dumps({
        "recurringThemes": ["r"],
        "emergingTopics": ["e"],
        "contradictions": [],
        "metaInsights": "meta",
    })
    report = decode_trend_report(raw)

    assert report.degraded is False
    assert report.contradictions == []
    assert report.meta_insights == "meta"


def test_decode_trend_report_malformed():
    report = decode_trend_report("{broken")

    assert report.degraded is True
    assert report.recurring_themes == ["Unable to parse themes"]
    assert report.emerging_topics == ["Unable to parse topics"]
    assert report.contradictions == ["Unable to parse contradictions"]
    assert report.meta_insights == "{broken"


def test_decode_trend_report_empty():
    assert decode_trend_report(None).meta_insights == NO_META_INSIGHTS


def test_decode_weekly_overview_malformed():
    overview = decode_weekly_overview("nope")

    assert overview.degraded is True
    assert overview.executive_summary == WEEKLY_ERROR
    assert overview.key_trends == []
    assert overview.recommendations == []


def test_decode_weekly_overview_ok():
    raw = json.dumps({
        "executiveSummary": "Busy week",
        "keyTrends": ["k"],
        "topInsights": ["i"],
        "channelHighlights": ["c"],
        "recommendations": ["r"],
    })
    overview = decode_weekly_overview(raw)

    assert overview.degraded is False
    assert overview.executive_summary == "Busy week"
