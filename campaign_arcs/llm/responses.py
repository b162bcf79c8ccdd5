"""Typed parsing of generation-service responses.

Each task type has its own payload model; the parse functions return either
that payload or a :class:`ParseFailure` and never raise.
"""

from __future__ import annotations

from typing import Any, Literal, get_args

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from campaign_arcs.domain.models import BeatType, Importance
from campaign_arcs.llm.json_utils import JsonPayloadError, safe_load_json_dict, safe_load_json_list

_BEAT_TYPES = frozenset(get_args(BeatType))
_IMPORTANCE = frozenset(get_args(Importance))

IMPROVEMENT_CATEGORIES: tuple[str, ...] = ("pacing", "character_development", "world_building", "plot_structure")
_CATEGORY_ALIASES: dict[str, tuple[str, ...]] = {
    "pacing": ("pacing",),
    "character_development": ("characterDevelopment", "character_development"),
    "world_building": ("worldBuilding", "world_building"),
    "plot_structure": ("plotStructure", "plot_structure"),
}


class BeatSuggestion(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = "Untitled Story Beat"
    description: str = "No description provided"
    type: BeatType = "development"
    importance: Importance = "moderate"
    consequences: list[str] = Field(default_factory=list)
    npcs: list[str] = Field(default_factory=list)
    objectives: list[str] = Field(default_factory=list)
    reasoning: str = "AI-generated suggestion"


class StoryImprovements(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pacing: list[str] = Field(default_factory=list)
    character_development: list[str] = Field(default_factory=list)
    world_building: list[str] = Field(default_factory=list)
    plot_structure: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(getattr(self, category) for category in IMPROVEMENT_CATEGORIES)


class BeatSuggestionsPayload(BaseModel):
    kind: Literal["beat_suggestions"] = "beat_suggestions"
    suggestions: list[BeatSuggestion]


class ImprovementsPayload(BaseModel):
    kind: Literal["improvements"] = "improvements"
    improvements: StoryImprovements


class CoherencePayload(BaseModel):
    kind: Literal["coherence"] = "coherence"
    coherent: bool | None = None
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    overall_assessment: str | None = None


class ParseFailure(BaseModel):
    kind: Literal["parse_failure"] = "parse_failure"
    task_type: str
    reason: str
    raw_length: int = 0


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def normalize_suggestion(raw: Any) -> BeatSuggestion | None:
    """Fill defaults for a single suggestion object; non-objects are skipped."""
    if not isinstance(raw, dict):
        return None

    defaults = BeatSuggestion()
    beat_type = raw.get("type")
    importance = raw.get("importance")
    return BeatSuggestion(
        title=_text(raw.get("title"), defaults.title),
        description=_text(raw.get("description"), defaults.description),
        type=beat_type if isinstance(beat_type, str) and beat_type in _BEAT_TYPES else defaults.type,
        importance=importance if isinstance(importance, str) and importance in _IMPORTANCE else defaults.importance,
        consequences=_strings(raw.get("consequences")),
        npcs=_strings(raw.get("npcs")),
        objectives=_strings(raw.get("objectives")),
        reasoning=_text(raw.get("reasoning"), defaults.reasoning),
    )


def _failure(task_type: str, reason: str, content: str) -> ParseFailure:
    logger.bind(task_type=task_type).warning("Generation response rejected: {} raw_len={}", reason, len(content))
    return ParseFailure(task_type=task_type, reason=reason, raw_length=len(content))


def parse_beat_suggestions(content: str) -> BeatSuggestionsPayload | ParseFailure:
    task_type = "story_beat_generation"
    try:
        items = safe_load_json_list(content)
    except JsonPayloadError as exc:
        return _failure(task_type, f"invalid JSON array: {exc.reason}", content)

    suggestions = [suggestion for suggestion in map(normalize_suggestion, items) if suggestion is not None]
    if not suggestions:
        return _failure(task_type, "no suggestion objects in response", content)
    return BeatSuggestionsPayload(suggestions=suggestions)


def parse_improvements(content: str) -> ImprovementsPayload | ParseFailure:
    task_type = "story_progression"
    try:
        data = safe_load_json_dict(content)
    except JsonPayloadError as exc:
        return _failure(task_type, f"invalid JSON object: {exc.reason}", content)

    values: dict[str, list[str]] = {}
    for category, aliases in _CATEGORY_ALIASES.items():
        raw = next((data[alias] for alias in aliases if alias in data), None)
        values[category] = _strings(raw)
    return ImprovementsPayload(improvements=StoryImprovements(**values))


def parse_coherence(content: str) -> CoherencePayload | ParseFailure:
    task_type = "story_consistency_check"
    try:
        data = safe_load_json_dict(content)
    except JsonPayloadError as exc:
        return _failure(task_type, f"invalid JSON object: {exc.reason}", content)

    coherent = data.get("coherent")
    assessment = data.get("overallAssessment", data.get("overall_assessment"))
    return CoherencePayload(
        coherent=coherent if isinstance(coherent, bool) else None,
        issues=_strings(data.get("issues")),
        warnings=_strings(data.get("warnings")),
        suggestions=_strings(data.get("suggestions")),
        overall_assessment=assessment if isinstance(assessment, str) else None,
    )
