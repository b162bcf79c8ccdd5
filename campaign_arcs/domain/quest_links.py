from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from campaign_arcs.domain.timestamps import UtcDatetime, as_utc, utc_now

QuestStoryType = Literal["setup", "development", "climax", "resolution"]
QuestStatus = Literal["active", "completed", "failed", "abandoned"]
StoryImpact = Literal["minor", "moderate", "major", "critical"]


class QuestObjective(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str
    completed: bool = False
    completed_at: UtcDatetime | None = None


class QuestProgressLink(BaseModel):
    model_config = ConfigDict(extra="forbid")

    quest_id: str
    name: str
    type: QuestStoryType
    status: QuestStatus = "active"
    story_beat_id: str | None = None
    objectives: list[QuestObjective] = Field(default_factory=list)
    story_impact: StoryImpact = "moderate"
    character_development: list[str] = Field(default_factory=list)
    world_changes: list[str] = Field(default_factory=list)


class QuestLinkUpdate(BaseModel):
    """Fields of a quest link that may be changed after it is created.

    The quest reference itself is not updatable. Any other key is rejected.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    type: QuestStoryType | None = None
    status: QuestStatus | None = None
    story_beat_id: str | None = None
    objectives: list[QuestObjective] | None = None
    story_impact: StoryImpact | None = None
    character_development: list[str] | None = None
    world_changes: list[str] | None = None


# Fields where an explicit null means "clear"; for the rest null is rejected.
_NULLABLE_FIELDS = frozenset({"story_beat_id"})


def coerce_update(update: QuestLinkUpdate | Mapping[str, Any]) -> QuestLinkUpdate:
    if isinstance(update, QuestLinkUpdate):
        return update
    return QuestLinkUpdate.model_validate(dict(update))


def merge_quest_link(link: QuestProgressLink, update: QuestLinkUpdate | Mapping[str, Any]) -> QuestProgressLink:
    """Return a copy of ``link`` with the explicitly set fields of ``update`` applied."""
    parsed = coerce_update(update)
    changes: dict[str, Any] = {}
    for name in parsed.model_fields_set:
        value = getattr(parsed, name)
        if value is None and name not in _NULLABLE_FIELDS:
            raise ValueError(f"Quest link field '{name}' cannot be cleared")
        changes[name] = value
    if not changes:
        return link
    return QuestProgressLink.model_validate({**link.model_dump(), **{k: _dump(v) for k, v in changes.items()}})


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [item.model_dump() if isinstance(item, BaseModel) else item for item in value]
    return value


def complete_objective(link: QuestProgressLink, index: int, *, now: datetime | None = None) -> bool:
    if index < 0 or index >= len(link.objectives):
        return False
    objective = link.objectives[index]
    if objective.completed:
        return False
    objective.completed = True
    objective.completed_at = as_utc(now) if now else utc_now()
    return True


def objectives_progress(link: QuestProgressLink) -> float:
    if not link.objectives:
        return 0.0
    return sum(1 for objective in link.objectives if objective.completed) / len(link.objectives)
