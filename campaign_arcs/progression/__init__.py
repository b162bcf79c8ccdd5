"""Chapter and act advancement eligibility with suggestion fallbacks."""

from campaign_arcs.progression.gate import (
    AdvancementCheck,
    BeatSuggestionRequest,
    ChapterProgressionData,
    ProgressionGate,
)

__all__ = ["AdvancementCheck", "BeatSuggestionRequest", "ChapterProgressionData", "ProgressionGate"]
