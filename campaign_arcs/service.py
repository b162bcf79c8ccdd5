from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, AsyncGenerator

from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_arcs.domain.models import (
    CharacterMilestone,
    Pacing,
    StoryArc,
    StoryBeat,
    StoryBeatData,
    StoryPhase,
    Tone,
    WorldStateChange,
    WorldStateChangeData,
    new_story_arc,
)
from campaign_arcs.domain.quest_links import QuestLinkUpdate, QuestProgressLink
from campaign_arcs.errors import (
    BeatNotFoundError,
    QuestLinkNotFoundError,
    StoryArcExistsError,
    StoryArcNotFoundError,
)
from campaign_arcs.llm.responses import BeatSuggestion, StoryImprovements
from campaign_arcs.progression.gate import AdvancementCheck, ChapterProgressionData, ProgressionGate
from campaign_arcs.quests.integration import QuestStoryIntegration
from campaign_arcs.storage.repo import StoryArcRepository
from campaign_arcs.validation.types import ValidationReport
from campaign_arcs.validation.validator import ConsistencyValidator

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

_RECENT_ITEMS = 3


class StoryProgression(BaseModel):
    campaign_id: str
    story_phase: StoryPhase
    current_chapter: int
    current_act: int
    total_chapters: int
    completed_story_beats: int
    total_story_beats: int
    current_beat: StoryBeat | None = None
    recent_milestones: list[CharacterMilestone] = Field(default_factory=list)
    recent_world_changes: list[WorldStateChange] = Field(default_factory=list)


class ArcOrchestrator:
    """Load an arc, apply one operation, persist when it changed.

    Each public call runs in its own session scope, so a call is one
    transaction. Mutations never consult the gate; callers decide.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        gate: ProgressionGate,
        validator: ConsistencyValidator,
        quests: QuestStoryIntegration | None = None,
    ):
        self.session_factory = session_factory
        self.gate = gate
        self.validator = validator
        self.quests = quests or QuestStoryIntegration()

    @asynccontextmanager
    async def _repository(self) -> AsyncGenerator[StoryArcRepository, None]:
        async with self.session_factory() as session:
            yield StoryArcRepository(session)

    @staticmethod
    async def _load(repo: StoryArcRepository, campaign_id: str) -> StoryArc:
        arc = await repo.find_by_campaign(campaign_id)
        if arc is None:
            raise StoryArcNotFoundError(campaign_id)
        return arc

    async def _read(self, campaign_id: str) -> StoryArc:
        async with self._repository() as repo:
            return await self._load(repo, campaign_id)

    async def create_story_arc(
        self,
        campaign_id: str,
        theme: str,
        *,
        tone: Tone = "serious",
        pacing: Pacing = "normal",
        total_chapters: int = 10,
    ) -> StoryArc:
        async with self._repository() as repo:
            if await repo.find_by_campaign(campaign_id) is not None:
                raise StoryArcExistsError(campaign_id)
            arc = new_story_arc(campaign_id, theme, tone=tone, pacing=pacing, total_chapters=total_chapters)
            await repo.save(arc)
        logger.bind(campaign_id=campaign_id).info("Created story arc theme={} chapters={}", theme, total_chapters)
        return arc

    async def get_story_arc(self, campaign_id: str) -> StoryArc:
        return await self._read(campaign_id)

    async def list_campaigns(self) -> list[str]:
        async with self._repository() as repo:
            return await repo.list_campaign_ids()

    async def add_beat(self, campaign_id: str, data: StoryBeatData | Mapping[str, Any]) -> str:
        async with self._repository() as repo:
            arc = await self._load(repo, campaign_id)
            beat_id = arc.add_beat(data)
            await repo.save(arc)
        logger.bind(campaign_id=campaign_id).info("Added story beat {}", beat_id)
        return beat_id

    async def complete_beat(
        self,
        campaign_id: str,
        beat_id: str,
        outcome: str | None = None,
        notes: str | None = None,
    ) -> bool:
        """Complete a beat; False when it was already completed."""
        async with self._repository() as repo:
            arc = await self._load(repo, campaign_id)
            if arc.find_beat(beat_id) is None:
                raise BeatNotFoundError(campaign_id, beat_id)
            changed = arc.complete_beat(beat_id, outcome=outcome, notes=notes)
            if changed:
                await repo.save(arc)
        logger.bind(campaign_id=campaign_id).info("Complete story beat {} changed={}", beat_id, changed)
        return changed

    async def add_milestone(self, campaign_id: str, data: CharacterMilestone | Mapping[str, Any]) -> None:
        async with self._repository() as repo:
            arc = await self._load(repo, campaign_id)
            arc.add_milestone(data)
            await repo.save(arc)

    async def add_world_change(self, campaign_id: str, data: WorldStateChangeData | Mapping[str, Any]) -> str:
        async with self._repository() as repo:
            arc = await self._load(repo, campaign_id)
            change_id = arc.add_world_change(data)
            await repo.save(arc)
        return change_id

    async def add_quest_link(self, campaign_id: str, link: QuestProgressLink | Mapping[str, Any]) -> None:
        async with self._repository() as repo:
            arc = await self._load(repo, campaign_id)
            arc.add_quest_link(link)
            await repo.save(arc)

    async def update_quest_link(
        self,
        campaign_id: str,
        quest_id: str,
        update: QuestLinkUpdate | Mapping[str, Any],
    ) -> QuestProgressLink:
        async with self._repository() as repo:
            arc = await self._load(repo, campaign_id)
            if not arc.update_quest_link(quest_id, update):
                raise QuestLinkNotFoundError(campaign_id, quest_id)
            await repo.save(arc)
        return arc.find_quest_link(quest_id)

    async def link_quest_to_beat(self, campaign_id: str, quest_id: str, name: str, beat_id: str) -> QuestProgressLink:
        async with self._repository() as repo:
            arc = await self._load(repo, campaign_id)
            link = self.quests.link_quest_to_beat(arc, quest_id, name, beat_id)
            await repo.save(arc)
        return link

    async def complete_quest(self, campaign_id: str, quest_id: str, character_ids: Sequence[str]) -> str:
        async with self._repository() as repo:
            arc = await self._load(repo, campaign_id)
            change_id = self.quests.process_quest_completion(arc, quest_id, character_ids)
            await repo.save(arc)
        return change_id

    async def fail_quest(self, campaign_id: str, quest_id: str, character_ids: Sequence[str], reason: str) -> str:
        async with self._repository() as repo:
            arc = await self._load(repo, campaign_id)
            change_id = self.quests.process_quest_failure(arc, quest_id, character_ids, reason)
            await repo.save(arc)
        return change_id

    async def advance_chapter(self, campaign_id: str) -> bool:
        async with self._repository() as repo:
            arc = await self._load(repo, campaign_id)
            advanced = arc.advance_chapter()
            if advanced:
                await repo.save(arc)
        logger.bind(campaign_id=campaign_id).info(
            "Advance chapter advanced={} chapter={} act={} phase={}",
            advanced,
            arc.current_chapter,
            arc.current_act,
            arc.story_phase,
        )
        return advanced

    async def get_current_beat(self, campaign_id: str) -> StoryBeat | None:
        arc = await self._read(campaign_id)
        return arc.current_beat()

    async def get_story_progression(self, campaign_id: str) -> StoryProgression:
        arc = await self._read(campaign_id)
        milestones = sorted(arc.character_milestones, key=lambda item: item.achieved_at, reverse=True)
        changes = sorted(arc.world_state_changes, key=lambda item: item.occurred_at, reverse=True)
        return StoryProgression(
            campaign_id=arc.campaign_id,
            story_phase=arc.story_phase,
            current_chapter=arc.current_chapter,
            current_act=arc.current_act,
            total_chapters=arc.total_chapters,
            completed_story_beats=arc.completed_story_beats,
            total_story_beats=len(arc.story_beats),
            current_beat=arc.current_beat(),
            recent_milestones=milestones[:_RECENT_ITEMS],
            recent_world_changes=changes[:_RECENT_ITEMS],
        )

    async def check_chapter_advance(self, campaign_id: str) -> AdvancementCheck:
        return self.gate.can_advance_chapter(await self._read(campaign_id))

    async def check_act_advance(self, campaign_id: str) -> AdvancementCheck:
        return self.gate.can_advance_act(await self._read(campaign_id))

    async def get_chapter_progression_data(self, campaign_id: str) -> ChapterProgressionData:
        return self.gate.get_chapter_progression_data(await self._read(campaign_id))

    async def suggest_story_beats(self, campaign_id: str, count: int = 3) -> list[BeatSuggestion]:
        arc = await self._read(campaign_id)
        request = self.gate.build_suggestion_request(arc)
        return await self.gate.generate_story_beat_suggestions(request, count=count)

    async def suggest_story_improvements(self, campaign_id: str) -> StoryImprovements:
        return await self.gate.suggest_story_improvements(await self._read(campaign_id))

    async def validate_story_arc(self, campaign_id: str) -> ValidationReport:
        return await self.validator.validate_story_arc(await self._read(campaign_id))

    async def delete_story_arc(self, campaign_id: str) -> None:
        async with self._repository() as repo:
            if not await repo.delete_by_campaign(campaign_id):
                raise StoryArcNotFoundError(campaign_id)
        logger.bind(campaign_id=campaign_id).info("Deleted story arc")
