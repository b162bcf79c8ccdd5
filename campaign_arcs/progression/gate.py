from __future__ import annotations

from loguru import logger
from pydantic import BaseModel, Field

from campaign_arcs.config.schema import LLMConfig, ProgressionConfig
from campaign_arcs.domain.models import MAJOR_IMPORTANCE, StoryArc, StoryBeat, StoryPhase, phase_for_act
from campaign_arcs.llm.client import GenerationRequest, NarrativeGenerator
from campaign_arcs.llm.prompts import (
    BEAT_SUGGESTION_PROMPT_VERSION,
    IMPROVEMENT_PROMPT_VERSION,
    beat_suggestion_prompt,
    improvement_prompt,
)
from campaign_arcs.llm.responses import (
    BeatSuggestion,
    ParseFailure,
    StoryImprovements,
    parse_beat_suggestions,
    parse_improvements,
)
from campaign_arcs.progression.fallbacks import fallback_improvements, fallback_suggestions

# Completed beats needed before an act's phase counts as done; resolution has no minimum.
PHASE_MINIMUMS: dict[str, int] = {"setup": 2, "development": 3, "climax": 2}

_PREVIOUS_BEATS_IN_PROMPT = 10


class AdvancementCheck(BaseModel):
    can_advance: bool
    requirements: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)


class ChapterProgressionData(BaseModel):
    current_chapter: int
    current_act: int
    story_phase: StoryPhase
    next_chapter_requirements: list[str] = Field(default_factory=list)
    act_transition_requirements: list[str] = Field(default_factory=list)
    story_phase_requirements: list[str] = Field(default_factory=list)
    estimated_beats_remaining: int = 0


class BeatSuggestionRequest(BaseModel):
    campaign_id: str
    chapter: int
    act: int
    context: str
    characters: list[str] = Field(default_factory=list)
    location: str | None = None
    previous_beats: list[StoryBeat] = Field(default_factory=list)
    world_state: str = ""


def _major(beats: list[StoryBeat]) -> list[StoryBeat]:
    return [beat for beat in beats if beat.importance in MAJOR_IMPORTANCE]


def _completed(beats: list[StoryBeat]) -> list[StoryBeat]:
    return [beat for beat in beats if beat.completed]


class ProgressionGate:
    """Advancement eligibility plus generator-backed suggestions.

    Eligibility checks are read-only; callers decide whether to call
    ``StoryArc.advance_chapter``. Suggestion methods degrade to fixed fallback
    content on any generation failure and never raise.
    """

    def __init__(
        self,
        generator: NarrativeGenerator,
        options: ProgressionConfig | None = None,
        llm: LLMConfig | None = None,
    ):
        self.generator = generator
        self.options = options or ProgressionConfig()
        self.llm = llm or LLMConfig()

    def can_advance_chapter(self, arc: StoryArc) -> AdvancementCheck:
        requirements: list[str] = []
        missing: list[str] = []
        minimum = self.options.min_beats_per_chapter

        chapter_beats = arc.beats_in_chapter(arc.current_chapter)
        completed_in_chapter = _completed(chapter_beats)
        if len(completed_in_chapter) < minimum:
            requirements.append(f"Complete at least {minimum} story beats in current chapter")
            missing.append(f"Only {len(completed_in_chapter)}/{minimum} beats completed")

        major = _major(chapter_beats)
        completed_major = _completed(major)
        if len(completed_major) < len(major):
            requirements.append("Complete all major story beats in current chapter")
            missing.append(f"{len(completed_major)}/{len(major)} major beats completed")

        completed = arc.completed_beats()
        if self.options.require_milestones:
            linked_ids = {milestone.story_beat_id for milestone in arc.character_milestones}
            with_milestones = [beat for beat in completed if beat.id in linked_ids]
            if len(with_milestones) < len(completed) * self.options.milestone_coverage:
                requirements.append("Record character milestones for most completed story beats")
                missing.append(f"{len(with_milestones)}/{len(completed)} completed beats have milestones")

        if self.options.require_world_changes:
            linked_ids = {change.story_beat_id for change in arc.world_state_changes}
            with_changes = [beat for beat in completed if beat.id in linked_ids]
            if len(with_changes) < len(completed) * self.options.world_change_coverage:
                requirements.append("Record world state changes for most completed story beats")
                missing.append(f"{len(with_changes)}/{len(completed)} completed beats have world changes")

        return AdvancementCheck(can_advance=not missing, requirements=requirements, missing=missing)

    def can_advance_act(self, arc: StoryArc) -> AdvancementCheck:
        requirements: list[str] = []
        missing: list[str] = []
        minimum = self.options.min_beats_per_act

        act_beats = arc.beats_in_act(arc.current_act)
        completed_in_act = _completed(act_beats)
        if len(completed_in_act) < minimum:
            requirements.append(f"Complete at least {minimum} story beats in current act")
            missing.append(f"Only {len(completed_in_act)}/{minimum} beats completed")

        phase = phase_for_act(arc.current_act)
        phase_minimum = PHASE_MINIMUMS.get(phase)
        if phase_minimum is not None and len(completed_in_act) < phase_minimum:
            requirements.append(f"Complete {phase} phase with at least {phase_minimum} story beats")
            missing.append(f"{phase.capitalize()} phase incomplete")

        major = _major(act_beats)
        completed_major = _completed(major)
        if len(completed_major) < len(major):
            requirements.append("Complete all major story beats in current act")
            missing.append(f"{len(completed_major)}/{len(major)} major beats completed")

        return AdvancementCheck(can_advance=not missing, requirements=requirements, missing=missing)

    def get_chapter_progression_data(self, arc: StoryArc) -> ChapterProgressionData:
        return ChapterProgressionData(
            current_chapter=arc.current_chapter,
            current_act=arc.current_act,
            story_phase=arc.story_phase,
            next_chapter_requirements=self._next_chapter_requirements(arc),
            act_transition_requirements=self._act_transition_requirements(arc),
            story_phase_requirements=self._story_phase_requirements(arc),
            estimated_beats_remaining=self._estimate_remaining_beats(arc),
        )

    def _next_chapter_requirements(self, arc: StoryArc) -> list[str]:
        requirements: list[str] = []
        chapter_beats = arc.beats_in_chapter(arc.current_chapter)
        completed = _completed(chapter_beats)
        minimum = self.options.min_beats_per_chapter
        if len(completed) < minimum:
            requirements.append(f"Complete {minimum - len(completed)} more story beats")

        major = _major(chapter_beats)
        outstanding = len(major) - len(_completed(major))
        if outstanding > 0:
            requirements.append(f"Complete {outstanding} major story beats")
        return requirements

    def _act_transition_requirements(self, arc: StoryArc) -> list[str]:
        completed = _completed(arc.beats_in_act(arc.current_act))
        minimum = self.options.min_beats_per_act
        if len(completed) < minimum:
            return [f"Complete {minimum - len(completed)} more story beats in current act"]
        return []

    def _story_phase_requirements(self, arc: StoryArc) -> list[str]:
        chapter = arc.current_chapter
        total = arc.total_chapters
        if arc.story_phase == "setup" and chapter < 3:
            return ["Complete setup phase with more introductory content"]
        if arc.story_phase == "development" and chapter < total * 0.6:
            return ["Continue developing plot and characters"]
        if arc.story_phase == "climax" and chapter < total * 0.8:
            return ["Build toward major confrontations and revelations"]
        if arc.story_phase == "resolution" and chapter < total:
            return ["Complete remaining story threads and provide closure"]
        return []

    def _estimate_remaining_beats(self, arc: StoryArc) -> int:
        expected = arc.total_chapters * self.options.beats_per_chapter_estimate
        return max(0, expected - len(arc.completed_beats()))

    def build_suggestion_request(self, arc: StoryArc) -> BeatSuggestionRequest:
        """Describe the arc's current position for beat suggestions."""
        characters: list[str] = []
        for beat in arc.story_beats:
            for character in beat.characters:
                if character not in characters:
                    characters.append(character)

        current = arc.current_beat()
        recent_changes = sorted(arc.world_state_changes, key=lambda change: change.occurred_at)[-3:]
        world_state = f"Chapter {arc.current_chapter}, Act {arc.current_act}"
        if recent_changes:
            world_state += ". Recent changes: " + "; ".join(change.title for change in recent_changes)

        return BeatSuggestionRequest(
            campaign_id=arc.campaign_id,
            chapter=arc.current_chapter,
            act=arc.current_act,
            context=f"Theme: {arc.theme}, Current Phase: {arc.story_phase}",
            characters=characters,
            location=current.location if current else None,
            previous_beats=arc.completed_beats(),
            world_state=world_state,
        )

    async def generate_story_beat_suggestions(
        self, request: BeatSuggestionRequest, count: int = 3
    ) -> list[BeatSuggestion]:
        log = logger.bind(campaign_id=request.campaign_id, task_type="story_beat_generation")
        count = max(1, count)
        log.info("Generating story beat suggestions chapter={} act={} count={}", request.chapter, request.act, count)

        prompt = beat_suggestion_prompt(
            context=request.context,
            chapter=request.chapter,
            act=request.act,
            character_count=len(request.characters),
            location=request.location,
            previous_beats=request.previous_beats[-_PREVIOUS_BEATS_IN_PROMPT:],
            world_state=request.world_state,
            count=count,
        )
        try:
            response = await self.generator.generate(
                GenerationRequest(
                    prompt=prompt,
                    task_type="story_beat_generation",
                    temperature=self.llm.beat_suggestion_temperature,
                    prompt_version=BEAT_SUGGESTION_PROMPT_VERSION,
                )
            )
            if not response.success or not response.content:
                log.warning("Beat suggestion generation unavailable; using fallback suggestions")
                return fallback_suggestions(request.context)
            parsed = parse_beat_suggestions(response.content)
        except Exception as exc:  # noqa: BLE001
            log.warning("Beat suggestion generation failed; using fallback suggestions: {}", exc)
            return fallback_suggestions(request.context)

        if isinstance(parsed, ParseFailure):
            log.warning("Beat suggestion response unusable ({}); using fallback suggestions", parsed.reason)
            return fallback_suggestions(request.context)

        # The fallback set is always returned whole; count only trims generated suggestions.
        suggestions = parsed.suggestions[:count]
        log.info("Generated {} story beat suggestions cached={}", len(suggestions), response.cached)
        return suggestions

    async def suggest_story_improvements(self, arc: StoryArc) -> StoryImprovements:
        log = logger.bind(campaign_id=arc.campaign_id, task_type="story_progression")
        try:
            response = await self.generator.generate(
                GenerationRequest(
                    prompt=improvement_prompt(arc),
                    task_type="story_progression",
                    temperature=self.llm.improvement_temperature,
                    prompt_version=IMPROVEMENT_PROMPT_VERSION,
                )
            )
            if not response.success or not response.content:
                log.warning("Improvement generation unavailable; using fallback improvements")
                return fallback_improvements()
            parsed = parse_improvements(response.content)
        except Exception as exc:  # noqa: BLE001
            log.warning("Improvement generation failed; using fallback improvements: {}", exc)
            return fallback_improvements()

        if isinstance(parsed, ParseFailure) or parsed.improvements.is_empty():
            log.warning("Improvement response unusable; using fallback improvements")
            return fallback_improvements()
        return parsed.improvements
