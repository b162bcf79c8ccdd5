from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, TypeVar
import uuid

from pydantic import BaseModel, ConfigDict, Field

from campaign_arcs.domain.quest_links import QuestLinkUpdate, QuestProgressLink, merge_quest_link
from campaign_arcs.domain.timestamps import UtcDatetime, utc_now

BeatType = Literal["setup", "development", "climax", "resolution", "twist", "character", "world"]
Importance = Literal["minor", "moderate", "major", "critical"]
MilestoneType = Literal["level", "relationship", "story", "personal", "skill", "achievement"]
WorldChangeType = Literal["location", "faction", "threat", "event", "relationship", "discovery"]
WorldImpact = Literal["minor", "moderate", "major", "catastrophic"]
StoryPhase = Literal["setup", "development", "climax", "resolution"]
Tone = Literal["light", "serious", "dark", "humorous", "mysterious"]
Pacing = Literal["slow", "normal", "fast"]

MAJOR_IMPORTANCE: frozenset[str] = frozenset({"major", "critical"})

_PHASE_ACTS: dict[str, int] = {"setup": 1, "development": 2, "climax": 3, "resolution": 4}
_ACT_PHASES: dict[int, StoryPhase] = {1: "setup", 2: "development", 3: "climax", 4: "resolution"}

M = TypeVar("M", bound=BaseModel)


def new_id(prefix: str) -> str:
    # Random 122-bit ids; collisions are improbable, not impossible.
    return f"{prefix}_{uuid.uuid4().hex}"


def phase_for_ratio(ratio: float) -> StoryPhase:
    if ratio <= 0.25:
        return "setup"
    if ratio <= 0.75:
        return "development"
    if ratio <= 0.9:
        return "climax"
    return "resolution"


def act_for_phase(phase: StoryPhase) -> int:
    return _PHASE_ACTS[phase]


def phase_for_act(act: int) -> StoryPhase:
    return _ACT_PHASES.get(act, "development")


def _coerce(model: type[M], data: M | Mapping[str, Any]) -> M:
    if isinstance(data, model):
        return data
    return model.model_validate(dict(data))


class StoryBeatData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str
    description: str
    type: BeatType
    importance: Importance
    chapter: int = Field(ge=1)
    act: int = Field(ge=1)
    characters: list[str] = Field(default_factory=list)
    location: str | None = None
    npcs: list[str] = Field(default_factory=list)
    consequences: list[str] = Field(default_factory=list)


class StoryBeat(StoryBeatData):
    id: str
    completed: bool = False
    completed_at: UtcDatetime | None = None
    outcome: str | None = None
    notes: str | None = None
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)

    @property
    def is_major(self) -> bool:
        return self.importance in MAJOR_IMPORTANCE


class CharacterMilestone(BaseModel):
    model_config = ConfigDict(extra="forbid")

    character_id: str
    type: MilestoneType
    title: str
    description: str
    impact: Importance
    story_beat_id: str | None = None
    achieved_at: UtcDatetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class WorldStateChangeData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: WorldChangeType
    title: str
    description: str
    impact: WorldImpact
    affected_elements: list[str] = Field(default_factory=list)
    story_beat_id: str | None = None
    character_ids: list[str] = Field(default_factory=list)
    location: str | None = None
    permanent: bool = False
    occurred_at: UtcDatetime = Field(default_factory=utc_now)


class WorldStateChange(WorldStateChangeData):
    id: str


class StoryArc(BaseModel):
    """Aggregate root tracking one campaign's narrative progression.

    Mutate only through the methods below; they keep ``completed_story_beats``
    and the derived phase/act consistent. ``version`` is owned by the
    persistence layer.
    """

    model_config = ConfigDict(extra="forbid")

    campaign_id: str
    theme: str
    tone: Tone = "serious"
    pacing: Pacing = "normal"
    story_phase: StoryPhase = "setup"
    current_chapter: int = Field(default=1, ge=1)
    current_act: int = Field(default=1, ge=1)
    total_chapters: int = Field(default=10, ge=1)
    story_beats: list[StoryBeat] = Field(default_factory=list)
    character_milestones: list[CharacterMilestone] = Field(default_factory=list)
    world_state_changes: list[WorldStateChange] = Field(default_factory=list)
    quest_progress: list[QuestProgressLink] = Field(default_factory=list)
    completed_story_beats: int = 0
    version: int = 0
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)

    # Mutations

    def add_beat(self, data: StoryBeatData | Mapping[str, Any]) -> str:
        beat_data = _coerce(StoryBeatData, data)
        now = utc_now()
        beat = StoryBeat(
            **beat_data.model_dump(),
            id=new_id("beat"),
            completed=False,
            created_at=now,
            updated_at=now,
        )
        self.story_beats.append(beat)
        self.updated_at = now
        return beat.id

    def complete_beat(self, beat_id: str, outcome: str | None = None, notes: str | None = None) -> bool:
        beat = self.find_beat(beat_id)
        if beat is None or beat.completed:
            return False

        now = utc_now()
        beat.completed = True
        beat.completed_at = now
        beat.updated_at = now
        if outcome:
            beat.outcome = outcome
        if notes:
            beat.notes = notes
        self.completed_story_beats = sum(1 for item in self.story_beats if item.completed)
        self.updated_at = now
        return True

    def add_milestone(self, data: CharacterMilestone | Mapping[str, Any]) -> None:
        self.character_milestones.append(_coerce(CharacterMilestone, data))
        self.updated_at = utc_now()

    def add_world_change(self, data: WorldStateChangeData | Mapping[str, Any]) -> str:
        change_data = _coerce(WorldStateChangeData, data)
        change = WorldStateChange(**change_data.model_dump(), id=new_id("change"))
        self.world_state_changes.append(change)
        self.updated_at = utc_now()
        return change.id

    def add_quest_link(self, link: QuestProgressLink | Mapping[str, Any]) -> None:
        self.quest_progress.append(_coerce(QuestProgressLink, link))
        self.updated_at = utc_now()

    def update_quest_link(self, quest_id: str, update: QuestLinkUpdate | Mapping[str, Any]) -> bool:
        for index, link in enumerate(self.quest_progress):
            if link.quest_id == quest_id:
                self.quest_progress[index] = merge_quest_link(link, update)
                self.updated_at = utc_now()
                return True
        return False

    def advance_chapter(self) -> bool:
        if self.current_chapter >= self.total_chapters:
            return False

        self.current_chapter += 1
        self.story_phase = phase_for_ratio(self.current_chapter / self.total_chapters)
        self.current_act = act_for_phase(self.story_phase)
        self.updated_at = utc_now()
        return True

    # Queries

    def find_beat(self, beat_id: str) -> StoryBeat | None:
        return next((beat for beat in self.story_beats if beat.id == beat_id), None)

    def find_quest_link(self, quest_id: str) -> QuestProgressLink | None:
        return next((link for link in self.quest_progress if link.quest_id == quest_id), None)

    def completed_beats(self) -> list[StoryBeat]:
        return [beat for beat in self.story_beats if beat.completed]

    def active_beats(self) -> list[StoryBeat]:
        return [beat for beat in self.story_beats if not beat.completed]

    def beats_in_chapter(self, chapter: int) -> list[StoryBeat]:
        return [beat for beat in self.story_beats if beat.chapter == chapter]

    def beats_in_act(self, act: int) -> list[StoryBeat]:
        return [beat for beat in self.story_beats if beat.act == act]

    def current_beat(self) -> StoryBeat | None:
        return next(
            (
                beat
                for beat in self.story_beats
                if beat.chapter == self.current_chapter and beat.act == self.current_act and not beat.completed
            ),
            None,
        )


def new_story_arc(
    campaign_id: str,
    theme: str,
    *,
    tone: Tone = "serious",
    pacing: Pacing = "normal",
    total_chapters: int = 10,
) -> StoryArc:
    """Build a fresh arc seeded with an opening beat and a first challenge."""
    arc = StoryArc(
        campaign_id=campaign_id,
        theme=theme,
        tone=tone,
        pacing=pacing,
        total_chapters=total_chapters,
    )
    setting = theme.lower()
    arc.add_beat(
        StoryBeatData(
            title="The Beginning",
            description=(
                f"The adventure begins in {setting} setting. The party gathers and learns about their quest."
            ),
            type="setup",
            importance="major",
            chapter=1,
            act=1,
            location="Starting Location",
            npcs=["Quest Giver"],
            consequences=["Party formation", "Quest introduction", "Initial goal setting"],
        )
    )
    arc.add_beat(
        StoryBeatData(
            title="First Challenge",
            description=f"The party faces their first significant challenge related to {setting}.",
            type="development",
            importance="moderate",
            chapter=2,
            act=1,
            location="Challenge Location",
            npcs=["Antagonist", "Helper NPC"],
            consequences=["Skill development", "Team building", "Plot advancement"],
        )
    )
    return arc
