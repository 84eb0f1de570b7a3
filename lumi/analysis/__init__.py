from .analyzer import Analyzer, TranscriptAnalyzer, derive_follow_ups
from .schema import ConversationAnalysis, WellnessIndicators

__all__ = [
    "Analyzer",
    "ConversationAnalysis",
    "TranscriptAnalyzer",
    "WellnessIndicators",
    "derive_follow_ups",
]
