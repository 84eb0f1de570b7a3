import pytest
from pydantic_ai.models.test import TestModel as ScriptedModel

from lumi.analysis import ConversationAnalysis, TranscriptAnalyzer, WellnessIndicators, derive_follow_ups
from lumi.analysis.prompts import analysis_prompt
from lumi.contracts import DAILY_CHECKIN_COMPLETED, PROFILE_ENRICHED, STAFF_ALERT


@pytest.mark.asyncio
async def test_analyzer_returns_structured_output():
    model = ScriptedModel(
        custom_output_args={
            "summary": "Guest slept poorly and feels anxious.",
            "sentiment": "concerned",
            "wellness_indicators": {"sleep_quality": "poor", "stress_level": "high"},
            "extracted_goals": ["better sleep"],
        }
    )
    analyzer = TranscriptAnalyzer(model)

    analysis = await analyzer("Guest: I slept poorly.\nLumi: I'm sorry to hear that.", "checkin")

    assert isinstance(analysis, ConversationAnalysis)
    assert analysis.sentiment == "concerned"
    assert analysis.wellness_indicators.sleep_quality == "poor"
    assert analysis.wellness_indicators.mood == "not_mentioned"
    assert analysis.extracted_goals == ["better sleep"]


@pytest.mark.asyncio
async def test_test_model_produces_valid_analysis():
    analyzer = TranscriptAnalyzer("test")
    analysis = await analyzer("Guest: All good.", "support")
    assert isinstance(analysis, ConversationAnalysis)


def test_one_agent_per_conversation_type():
    analyzer = TranscriptAnalyzer("test")
    assert analyzer.agent_for("checkin") is analyzer.agent_for("checkin")
    assert analyzer.agent_for("checkin") is not analyzer.agent_for("inquiry")


def test_prompts_focus_on_conversation_type():
    assert "daily check-in" in analysis_prompt("checkin")
    assert "booking inquiry" in analysis_prompt("inquiry")
    assert analysis_prompt("unknown").startswith("You are a wellness analyst")


def test_insights_json_keeps_profile_facing_fields():
    analysis = ConversationAnalysis(
        summary="Fine", sentiment="positive", action_items=["call back"], topics_discussed=["yoga"]
    )
    insights = analysis.insights_json()
    assert '"topics_discussed":["yoga"]' in insights
    assert "action_items" not in insights


def test_negative_attention_raises_high_alert_and_skips_completion():
    analysis = ConversationAnalysis(
        summary="Guest is unwell.",
        sentiment="negative",
        requires_attention=True,
        attention_reason="Guest reports dizziness",
    )
    events = derive_follow_ups("rec1", analysis, "checkin", "Guest: I feel dizzy.")

    assert [e.name for e in events] == [STAFF_ALERT]
    assert events[0].data["severity"] == "high"
    assert events[0].data["reason"] == "Guest reports dizziness"


def test_positive_checkin_with_email_enriches_and_completes():
    analysis = ConversationAnalysis(
        summary="Loving the hikes.",
        sentiment="positive",
        wellness_indicators=WellnessIndicators(sleep_quality="good"),
        preferences_mentioned=["morning hikes"],
        dietary_notes=["dairy-free"],
        extracted_goals=["build stamina"],
    )
    events = derive_follow_ups(
        "rec1", analysis, "checkin", "transcript", guest_email="ana@example.com", guest_name="Ana Lopez"
    )

    assert [e.name for e in events] == [PROFILE_ENRICHED, DAILY_CHECKIN_COMPLETED]
    extracted = events[0].data["extracted_data"]
    assert extracted["sleep_patterns"] == "good"
    assert "stress_indicators" not in extracted
    assert extracted["dietary_preferences"] == ["dairy-free"]
    completion = events[1].data
    assert completion["guest_name"] == "Ana Lopez"
    assert completion["insights"]["summary"] == "Loving the hikes."


def test_no_enrichment_without_email():
    analysis = ConversationAnalysis(summary="ok", sentiment="neutral", extracted_goals=["rest"])
    events = derive_follow_ups("rec1", analysis, "inquiry", "transcript")
    assert events == []


def test_medium_alert_for_non_negative_attention():
    analysis = ConversationAnalysis(summary="ok", sentiment="concerned", requires_attention=True)
    events = derive_follow_ups("rec1", analysis, "support", "transcript")
    assert [e.data["severity"] for e in events] == ["medium"]
    assert events[0].data["reason"] == "Conversation flagged for review"
