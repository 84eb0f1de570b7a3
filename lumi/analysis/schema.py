"""Structured output the extraction agent must return."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Sentiment = Literal["positive", "neutral", "concerned", "negative"]


class WellnessIndicators(BaseModel):
    sleep_quality: Literal["good", "fair", "poor", "not_mentioned"] = "not_mentioned"
    stress_level: Literal["low", "moderate", "high", "not_mentioned"] = "not_mentioned"
    energy_level: Literal["high", "normal", "low", "not_mentioned"] = "not_mentioned"
    mood: Literal["positive", "neutral", "low", "not_mentioned"] = "not_mentioned"


class ConversationAnalysis(BaseModel):
    """Insights extracted from one conversation transcript."""

    summary: str = Field(description="Brief summary of the conversation (2-3 sentences)")
    sentiment: Sentiment = Field(description="Overall emotional tone")
    wellness_indicators: WellnessIndicators = Field(default_factory=WellnessIndicators)
    topics_discussed: List[str] = Field(
        default_factory=list, description="Main topics covered in conversation"
    )
    preferences_mentioned: List[str] = Field(
        default_factory=list, description="Any preferences expressed by guest"
    )
    dietary_notes: List[str] = Field(
        default_factory=list, description="Dietary preferences or restrictions mentioned"
    )
    action_items: List[str] = Field(default_factory=list, description="Follow-up actions needed")
    requires_attention: bool = Field(
        default=False, description="Whether this needs staff follow-up"
    )
    attention_reason: Optional[str] = Field(
        default=None, description="Why staff attention is needed"
    )
    extracted_goals: List[str] = Field(
        default_factory=list, description="Wellness goals expressed"
    )

    def insights_json(self) -> str:
        """Compact insights document stored on the check-in entry."""
        return self.model_dump_json(
            include={
                "summary",
                "wellness_indicators",
                "topics_discussed",
                "preferences_mentioned",
                "extracted_goals",
            }
        )
