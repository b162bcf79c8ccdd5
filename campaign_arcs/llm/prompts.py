from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from campaign_arcs.domain.models import StoryArc, StoryBeat

BEAT_SUGGESTION_PROMPT_VERSION = "v1"
IMPROVEMENT_PROMPT_VERSION = "v1"
COHERENCE_PROMPT_VERSION = "v1"

SYSTEM_PROMPT = (
    "You are a narrative design assistant for tabletop role-playing campaigns. "
    "Respond with strictly valid JSON only. Do not use markdown and do not add commentary."
)


def _beat_line(beat: "StoryBeat") -> str:
    return f"- {beat.title} (Chapter {beat.chapter}, Act {beat.act}): {beat.description}"


def beat_suggestion_prompt(
    *,
    context: str,
    chapter: int,
    act: int,
    character_count: int,
    location: str | None,
    previous_beats: Sequence["StoryBeat"],
    world_state: str,
    count: int = 3,
) -> str:
    previous = "\n".join(f"- {beat.title}: {beat.description}" for beat in previous_beats) or "- none yet"
    upper = max(count, 5)
    return (
        f"Generate {count}-{upper} story beat suggestions for a D&D campaign:\n\n"
        f"Campaign Context: {context}\n"
        f"Chapter: {chapter}\n"
        f"Act: {act}\n"
        f"Characters: {character_count} characters involved\n"
        f"Location: {location or 'Various locations'}\n\n"
        "Previous Story Beats:\n"
        f"{previous}\n\n"
        f"World State: {world_state}\n\n"
        "Generate story beats that:\n"
        "1. Build upon previous events\n"
        "2. Advance the plot naturally\n"
        "3. Provide character development opportunities\n"
        "4. Include meaningful consequences\n"
        "5. Vary in importance and type\n\n"
        "Respond with a JSON array of story beat objects:\n"
        "[{\n"
        '  "title": "string",\n'
        '  "description": "string",\n'
        '  "type": "setup|development|climax|resolution|twist|character|world",\n'
        '  "importance": "minor|moderate|major|critical",\n'
        '  "consequences": ["string"],\n'
        '  "npcs": ["string"],\n'
        '  "objectives": ["string"],\n'
        '  "reasoning": "string"\n'
        "}]"
    )


def improvement_prompt(arc: "StoryArc") -> str:
    return (
        "Analyze this D&D campaign story and suggest improvements:\n\n"
        f"Campaign Theme: {arc.theme}\n"
        f"Current Progress: Chapter {arc.current_chapter}/{arc.total_chapters}, Act {arc.current_act}\n"
        f"Story Phase: {arc.story_phase}\n\n"
        f"Completed Story Beats: {len(arc.completed_beats())}\n"
        f"Active Story Beats: {len(arc.active_beats())}\n"
        f"Character Milestones: {len(arc.character_milestones)}\n"
        f"World State Changes: {len(arc.world_state_changes)}\n\n"
        "Suggest improvements in these areas:\n"
        "1. Pacing - story flow and chapter distribution\n"
        "2. Character Development - character growth and relationships\n"
        "3. World Building - setting consistency and development\n"
        "4. Plot Structure - story logic and progression\n\n"
        "Respond with JSON:\n"
        "{\n"
        '  "pacing": ["string"],\n'
        '  "characterDevelopment": ["string"],\n'
        '  "worldBuilding": ["string"],\n'
        '  "plotStructure": ["string"]\n'
        "}"
    )


def story_summary(arc: "StoryArc") -> str:
    lines = [
        f"Campaign Theme: {arc.theme}",
        f"Current Chapter: {arc.current_chapter}/{arc.total_chapters}",
        f"Current Act: {arc.current_act}",
        f"Story Phase: {arc.story_phase}",
        "",
        "Completed Story Beats:",
        *(_beat_line(beat) for beat in arc.completed_beats()),
        "",
        "Active Story Beats:",
        *(_beat_line(beat) for beat in arc.active_beats()),
        "",
        f"Character Milestones: {len(arc.character_milestones)}",
        f"World State Changes: {len(arc.world_state_changes)}",
        f"Active Quests: {sum(1 for link in arc.quest_progress if link.status == 'active')}",
    ]
    return "\n".join(lines) + "\n"


def coherence_prompt(arc: "StoryArc") -> str:
    return (
        "Analyze the following D&D campaign story arc for narrative coherence:\n\n"
        f"{story_summary(arc)}\n"
        "Please identify any narrative inconsistencies, plot holes, or areas that could be improved. "
        "Focus on:\n"
        "1. Story logic and flow\n"
        "2. Character motivation consistency\n"
        "3. World-building coherence\n"
        "4. Plot progression logic\n\n"
        "Respond with a JSON object containing:\n"
        "{\n"
        '  "coherent": boolean,\n'
        '  "issues": [string],\n'
        '  "warnings": [string],\n'
        '  "suggestions": [string],\n'
        '  "overallAssessment": string\n'
        "}"
    )
