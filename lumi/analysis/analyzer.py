"""Transcript extraction agent and follow-up derivation."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol

from pydantic_ai import Agent
from pydantic_ai.models import KnownModelName, Model

from ..contracts import (
    DAILY_CHECKIN_COMPLETED,
    PROFILE_ENRICHED,
    STAFF_ALERT,
    EventEnvelope,
)
from .prompts import analysis_prompt, transcript_prompt
from .schema import ConversationAnalysis

logger = logging.getLogger(__name__)


class Analyzer(Protocol):
    async def __call__(self, transcript: str, conversation_type: str) -> ConversationAnalysis:
        ...


class TranscriptAnalyzer:
    """Runs a pydantic-ai agent with a fixed structured output schema."""

    def __init__(self, model: Model | KnownModelName | str = "google-gla:gemini-2.0-flash"):
        self.model = model
        self._agents: Dict[str, Agent[None, ConversationAnalysis]] = {}

    def agent_for(self, conversation_type: str) -> Agent[None, ConversationAnalysis]:
        agent = self._agents.get(conversation_type)
        if agent is None:
            agent = Agent(
                self.model,
                output_type=ConversationAnalysis,
                system_prompt=analysis_prompt(conversation_type),
                name=f"lumi-{conversation_type}-analyzer",
            )
            self._agents[conversation_type] = agent
        return agent

    async def __call__(self, transcript: str, conversation_type: str = "checkin") -> ConversationAnalysis:
        result = await self.agent_for(conversation_type).run(transcript_prompt(transcript))
        logger.debug(f"Analysis usage: {result.usage()}")
        return result.output


def _mentioned(value: str) -> Optional[str]:
    return None if value == "not_mentioned" else value


def derive_follow_ups(
    record_id: str,
    analysis: ConversationAnalysis,
    conversation_type: str,
    transcript: str,
    guest_email: Optional[str] = None,
    guest_name: str = "",
) -> List[EventEnvelope]:
    """Envelopes an analysed conversation should trigger.

    - a staff alert iff the analysis requires attention
    - a profile enrichment iff preferences, dietary notes or goals were
      found and the guest email is known
    - a daily completion for check-ins whose sentiment is not negative
    """
    events: List[EventEnvelope] = []

    if analysis.requires_attention:
        events.append(
            EventEnvelope.create(
                STAFF_ALERT,
                {
                    "record_id": record_id,
                    "reason": analysis.attention_reason or "Conversation flagged for review",
                    "severity": "high" if analysis.sentiment == "negative" else "medium",
                    "guest_email": guest_email,
                },
            )
        )

    if guest_email and (
        analysis.preferences_mentioned or analysis.dietary_notes or analysis.extracted_goals
    ):
        indicators = analysis.wellness_indicators
        events.append(
            EventEnvelope.create(
                PROFILE_ENRICHED,
                {
                    "guest_email": guest_email,
                    "extracted_data": {
                        "dietary_preferences": analysis.dietary_notes or None,
                        "wellness_goals": analysis.extracted_goals or None,
                        "sleep_patterns": _mentioned(indicators.sleep_quality),
                        "stress_indicators": _mentioned(indicators.stress_level),
                        "preferences_mentioned": analysis.preferences_mentioned or None,
                    },
                },
            )
        )

    if conversation_type == "checkin" and analysis.sentiment != "negative":
        events.append(
            EventEnvelope.create(
                DAILY_CHECKIN_COMPLETED,
                {
                    "record_id": record_id,
                    "guest_email": guest_email,
                    "guest_name": guest_name,
                    "transcript": transcript,
                    "insights": analysis.model_dump(mode="json"),
                },
            )
        )

    return events
