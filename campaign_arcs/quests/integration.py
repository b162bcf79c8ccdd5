from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from campaign_arcs.domain.models import CharacterMilestone, StoryArc, StoryBeat, WorldImpact, WorldStateChangeData
from campaign_arcs.domain.quest_links import (
    QuestObjective,
    QuestProgressLink,
    QuestStoryType,
    StoryImpact,
    complete_objective,
)
from campaign_arcs.errors import BeatNotFoundError, QuestLinkNotFoundError
from campaign_arcs.quests.templates import STORY_QUEST_TEMPLATES, StoryQuestTemplate

_STORY_TYPES: dict[str, QuestStoryType] = {
    "setup": "setup",
    "development": "development",
    "character": "development",
    "climax": "climax",
    "resolution": "resolution",
}

_WORLD_IMPACT: dict[str, WorldImpact] = {
    "minor": "minor",
    "moderate": "moderate",
    "major": "major",
    "critical": "major",
}


class QuestStoryIntegration:
    """Ties externally managed quests to story beats of an arc.

    Works on an in-memory arc; the caller persists it afterwards.
    """

    def __init__(self, templates: Sequence[StoryQuestTemplate] = STORY_QUEST_TEMPLATES):
        self.templates = list(templates)

    def story_type_for_beat(self, beat: StoryBeat) -> QuestStoryType:
        return _STORY_TYPES.get(beat.type, "development")

    def templates_for(self, story_type: QuestStoryType) -> list[StoryQuestTemplate]:
        return [template for template in self.templates if template.story_type == story_type]

    def template_for(self, story_type: QuestStoryType) -> StoryQuestTemplate:
        matches = self.templates_for(story_type)
        if not matches:
            raise LookupError(f"No story quest template for story type: {story_type}")
        return matches[0]

    def link_quest_to_beat(self, arc: StoryArc, quest_id: str, name: str, beat_id: str) -> QuestProgressLink:
        beat = arc.find_beat(beat_id)
        if beat is None:
            raise BeatNotFoundError(arc.campaign_id, beat_id)

        log = logger.bind(campaign_id=arc.campaign_id)
        if arc.find_quest_link(quest_id) is not None:
            arc.update_quest_link(quest_id, {"story_beat_id": beat.id})
            log.info("Quest {} relinked to story beat {}", quest_id, beat.id)
            return arc.find_quest_link(quest_id)

        template = self.template_for(self.story_type_for_beat(beat))
        link = QuestProgressLink(
            quest_id=quest_id,
            name=name,
            type=template.story_type,
            story_beat_id=beat.id,
            objectives=[QuestObjective(description=description) for description in template.objectives],
            story_impact=template.story_impact,
            character_development=list(template.character_development_opportunities),
            world_changes=list(template.world_state_changes),
        )
        arc.add_quest_link(link)
        log.info(
            "Quest {} linked to story beat {} story_type={} impact={}",
            quest_id,
            beat.id,
            template.story_type,
            template.story_impact,
        )
        return link

    def _require_link(self, arc: StoryArc, quest_id: str) -> QuestProgressLink:
        link = arc.find_quest_link(quest_id)
        if link is None:
            raise QuestLinkNotFoundError(arc.campaign_id, quest_id)
        return link

    def process_quest_completion(self, arc: StoryArc, quest_id: str, character_ids: Sequence[str]) -> str:
        """Mark the quest completed and record its story consequences; returns the world change id."""
        link = self._require_link(arc, quest_id)
        for index in range(len(link.objectives)):
            complete_objective(link, index)
        arc.update_quest_link(quest_id, {"status": "completed"})

        for character_id in character_ids:
            arc.add_milestone(
                CharacterMilestone(
                    character_id=character_id,
                    type="story",
                    title=f"Quest Completion: {link.name}",
                    description=f"Completed quest {link.name} with {link.story_impact} story impact",
                    impact=link.story_impact,
                    story_beat_id=link.story_beat_id,
                    metadata={"quest_id": quest_id},
                )
            )

        change_id = arc.add_world_change(
            self._world_change(
                link,
                title=f"Quest completed: {link.name}",
                description=f"Quest completed: {link.name} - {link.story_impact} story impact",
                character_ids=character_ids,
                impact=link.story_impact,
            )
        )
        logger.bind(campaign_id=arc.campaign_id).info(
            "Quest completion processed quest={} beat={} impact={}", quest_id, link.story_beat_id, link.story_impact
        )
        return change_id

    def process_quest_failure(
        self,
        arc: StoryArc,
        quest_id: str,
        character_ids: Sequence[str],
        reason: str,
    ) -> str:
        link = self._require_link(arc, quest_id)
        arc.update_quest_link(quest_id, {"status": "failed"})

        for character_id in character_ids:
            arc.add_milestone(
                CharacterMilestone(
                    character_id=character_id,
                    type="personal",
                    title="Quest Failure",
                    description=f"Failed quest: {link.name} - {reason}",
                    impact="moderate",
                    story_beat_id=link.story_beat_id,
                    metadata={"quest_id": quest_id, "reason": reason},
                )
            )

        change_id = arc.add_world_change(
            self._world_change(
                link,
                title=f"Quest failed: {link.name}",
                description=f"Quest failed: {link.name} - {reason} - Story consequences",
                character_ids=character_ids,
                impact=link.story_impact,
            )
        )
        logger.bind(campaign_id=arc.campaign_id).info(
            "Quest failure processed quest={} beat={} reason={}", quest_id, link.story_beat_id, reason
        )
        return change_id

    @staticmethod
    def _world_change(
        link: QuestProgressLink,
        *,
        title: str,
        description: str,
        character_ids: Sequence[str],
        impact: StoryImpact,
    ) -> WorldStateChangeData:
        return WorldStateChangeData(
            type="event",
            title=title,
            description=description,
            impact=_WORLD_IMPACT[impact],
            affected_elements=[link.name],
            story_beat_id=link.story_beat_id,
            character_ids=list(character_ids),
            permanent=True,
        )
