"""Deterministic consistency heuristics, each a pure function of the arc."""

from __future__ import annotations

from collections import Counter

from campaign_arcs.domain.models import StoryArc
from campaign_arcs.validation.types import RuleResult, ValidationRule, build_result

# Minimum beats expected per act before a suggestion is raised (only for acts that have beats).
ACT_BEAT_TARGETS: dict[int, tuple[int, str]] = {
    1: (2, "Consider adding more setup story beats in Act 1"),
    2: (3, "Consider adding more development story beats in Act 2"),
    3: (2, "Consider adding more climax story beats in Act 3"),
}

MILESTONE_TYPE_TARGETS: tuple[tuple[str, int, str], ...] = (
    ("level", 2, "Consider adding more level progression milestones"),
    ("relationship", 2, "Consider adding more relationship development milestones"),
    ("story", 3, "Consider adding more story impact milestones"),
)

QUEST_TYPE_TARGETS: tuple[tuple[str, int, str], ...] = (
    ("setup", 1, "Consider adding setup quests to introduce story elements"),
    ("development", 2, "Consider adding more development quests to advance the plot"),
    ("climax", 1, "Consider adding climax quests for major confrontations"),
)


def _ratio(part: int, whole: int) -> float:
    return part / whole if whole else 0.0


def story_structure_progression(arc: StoryArc) -> RuleResult:
    issues: list[str] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    beats = sorted(arc.story_beats, key=lambda beat: (beat.chapter, beat.act))
    for previous, current in zip(beats, beats[1:]):
        if current.chapter < previous.chapter:
            issues.append(
                f'Story beat "{current.title}" has invalid chapter progression '
                f"({current.chapter} < {previous.chapter})"
            )
        if current.act < previous.act:
            issues.append(
                f'Story beat "{current.title}" has invalid act progression ({current.act} < {previous.act})'
            )
        if current.chapter - previous.chapter > 2:
            warnings.append(f"Large gap between chapters {previous.chapter} and {current.chapter}")

    per_act = Counter(beat.act for beat in arc.story_beats)
    for act, (target, message) in ACT_BEAT_TARGETS.items():
        if 0 < per_act[act] < target:
            suggestions.append(message)

    return build_result(
        "story_structure_progression",
        "Story Structure Progression",
        issues=issues,
        warnings=warnings,
        suggestions=suggestions,
    )


def story_beat_completion(arc: StoryArc) -> RuleResult:
    warnings: list[str] = []
    suggestions: list[str] = []

    completed = arc.completed_beats()
    for beat in completed:
        if not beat.consequences:
            warnings.append(f'Completed story beat "{beat.title}" has no consequences defined')
        if not beat.characters:
            warnings.append(f'Completed story beat "{beat.title}" has no characters involved')
        if not beat.location:
            warnings.append(f'Completed story beat "{beat.title}" has no location specified')

    completion_rate = _ratio(len(completed), len(arc.story_beats))
    if completion_rate < 0.2:
        suggestions.append("Consider completing more story beats to advance the narrative")
    elif completion_rate > 0.8:
        suggestions.append(
            "Most story beats are completed. Consider adding new story beats or advancing to the next chapter"
        )

    return build_result("story_beat_completion", "Story Beat Completion", warnings=warnings, suggestions=suggestions)


def character_development_tracking(arc: StoryArc) -> RuleResult:
    warnings: list[str] = []
    suggestions: list[str] = []

    linked = {milestone.story_beat_id for milestone in arc.character_milestones}
    for beat in arc.completed_beats():
        if beat.id not in linked:
            warnings.append(f'Completed story beat "{beat.title}" has no character milestones recorded')

    per_type = Counter(milestone.type for milestone in arc.character_milestones)
    for milestone_type, target, message in MILESTONE_TYPE_TARGETS:
        if per_type[milestone_type] < target:
            suggestions.append(message)

    return build_result(
        "character_development_tracking",
        "Character Development Tracking",
        warnings=warnings,
        suggestions=suggestions,
    )


def world_state_consistency(arc: StoryArc) -> RuleResult:
    issues: list[str] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    changes = sorted(arc.world_state_changes, key=lambda change: change.occurred_at)
    for previous, current in zip(changes, changes[1:]):
        if not set(previous.affected_elements) & set(current.affected_elements):
            continue
        if previous.impact == "catastrophic" and current.impact == "minor":
            issues.append(
                f'World state change "{current.title}" may contradict previous catastrophic change "{previous.title}"'
            )
        if previous.permanent and not current.permanent:
            warnings.append(
                f'Permanent world change "{previous.title}" may be affected by temporary change "{current.title}"'
            )

    linked = [change for change in changes if change.story_beat_id]
    if len(linked) < len(changes) * 0.7:
        suggestions.append("Consider linking more world state changes to specific story beats")

    return build_result(
        "world_state_consistency",
        "World State Consistency",
        issues=issues,
        warnings=warnings,
        suggestions=suggestions,
    )


def quest_story_integration(arc: StoryArc) -> RuleResult:
    warnings: list[str] = []
    suggestions: list[str] = []

    for link in arc.quest_progress:
        if link.status == "active" and not link.story_beat_id:
            warnings.append(f'Active quest "{link.name}" is not linked to a story beat')

    per_type = Counter(link.type for link in arc.quest_progress)
    for quest_type, target, message in QUEST_TYPE_TARGETS:
        if per_type[quest_type] < target:
            suggestions.append(message)

    completed = sum(1 for link in arc.quest_progress if link.status == "completed")
    if _ratio(completed, len(arc.quest_progress)) < 0.3:
        suggestions.append("Consider completing more quests to advance the story")

    return build_result("quest_story_integration", "Quest-Story Integration", warnings=warnings, suggestions=suggestions)


def story_pacing(arc: StoryArc) -> RuleResult:
    warnings: list[str] = []
    suggestions: list[str] = []

    total_beats = len(arc.story_beats)
    expected_progress = _ratio(arc.current_chapter, arc.total_chapters) * 100
    actual_progress = _ratio(len(arc.completed_beats()), total_beats) * 100

    if abs(expected_progress - actual_progress) > 20:
        warnings.append(
            f"Story progress ({actual_progress:.1f}%) doesn't match chapter progression ({expected_progress:.1f}%)"
        )

    if arc.pacing == "fast" and actual_progress < 30:
        suggestions.append("Fast-paced campaign should have more story progression")
    elif arc.pacing == "slow" and actual_progress > 70:
        suggestions.append("Slow-paced campaign may be progressing too quickly")

    per_chapter = Counter(beat.chapter for beat in arc.story_beats)
    average = _ratio(total_beats, arc.total_chapters)
    for chapter in range(1, arc.total_chapters + 1):
        count = per_chapter[chapter]
        if count < average * 0.5:
            suggestions.append(f"Chapter {chapter} has fewer story beats than average")
        elif count > average * 2:
            suggestions.append(f"Chapter {chapter} has more story beats than average")

    return build_result("story_pacing", "Story Pacing", warnings=warnings, suggestions=suggestions)


def character_relationship_development(arc: StoryArc) -> RuleResult:
    warnings: list[str] = []
    suggestions: list[str] = []

    relationships = [milestone for milestone in arc.character_milestones if milestone.type == "relationship"]
    if len(relationships) < 2:
        suggestions.append("Consider adding more character relationship development milestones")

    appearances = Counter(character for beat in arc.story_beats for character in beat.characters)
    if len(appearances) < 2:
        warnings.append("Story has limited character interaction opportunities")

    development = Counter(milestone.character_id for milestone in arc.character_milestones)
    if development and max(development.values()) - min(development.values()) > 3:
        suggestions.append("Consider balancing character development across all characters")

    return build_result(
        "character_relationship_development",
        "Character Relationship Development",
        warnings=warnings,
        suggestions=suggestions,
    )


STRUCTURAL_RULES: tuple[ValidationRule, ...] = (
    ValidationRule(
        id="story_structure_progression",
        name="Story Structure Progression",
        description="Ensures story beats follow logical chapter and act progression",
        severity="error",
        evaluate=story_structure_progression,
    ),
    ValidationRule(
        id="story_beat_completion",
        name="Story Beat Completion",
        description="Checks that completed story beats have appropriate consequences",
        severity="warning",
        evaluate=story_beat_completion,
    ),
    ValidationRule(
        id="character_development_tracking",
        name="Character Development Tracking",
        description="Ensures character milestones are recorded for significant story events",
        severity="warning",
        evaluate=character_development_tracking,
    ),
    ValidationRule(
        id="world_state_consistency",
        name="World State Consistency",
        description="Checks for contradictions in world state changes",
        severity="error",
        evaluate=world_state_consistency,
    ),
    ValidationRule(
        id="quest_story_integration",
        name="Quest-Story Integration",
        description="Ensures quests are properly integrated with story progression",
        severity="warning",
        evaluate=quest_story_integration,
    ),
    ValidationRule(
        id="story_pacing",
        name="Story Pacing",
        description="Analyzes story pacing and chapter distribution",
        severity="info",
        evaluate=story_pacing,
    ),
    ValidationRule(
        id="character_relationship_development",
        name="Character Relationship Development",
        description="Tracks character relationship changes throughout the story",
        severity="info",
        evaluate=character_relationship_development,
    ),
)
