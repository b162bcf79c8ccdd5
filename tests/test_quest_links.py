from __future__ import annotations

import pytest
from pydantic import ValidationError

from campaign_arcs.domain.models import StoryArc
from campaign_arcs.domain.quest_links import (
    QuestProgressLink,
    complete_objective,
    merge_quest_link,
    objectives_progress,
)


def _link(**overrides) -> QuestProgressLink:
    data = {
        "quest_id": "quest-1",
        "name": "Find the Heir",
        "type": "development",
        "objectives": [{"description": "Search the docks"}, {"description": "Question the harbormaster"}],
    }
    data.update(overrides)
    return QuestProgressLink.model_validate(data)


def test_merge_applies_only_explicit_fields() -> None:
    link = _link(story_beat_id="beat_1", character_development=["courage"])

    merged = merge_quest_link(link, {"status": "completed"})

    assert merged.status == "completed"
    assert merged.story_beat_id == "beat_1"
    assert merged.character_development == ["courage"]
    assert link.status == "active"


def test_merge_rejects_unknown_fields() -> None:
    link = _link()

    with pytest.raises(ValidationError):
        merge_quest_link(link, {"status": "completed", "quest_id": "other"})
    with pytest.raises(ValidationError):
        merge_quest_link(link, {"reward_gold": 100})


def test_merge_validates_values() -> None:
    with pytest.raises(ValidationError):
        merge_quest_link(_link(), {"status": "paused"})


def test_merge_allows_clearing_story_beat_only() -> None:
    link = _link(story_beat_id="beat_1")

    assert merge_quest_link(link, {"story_beat_id": None}).story_beat_id is None
    with pytest.raises(ValueError):
        merge_quest_link(link, {"name": None})


def test_arc_update_quest_link_reports_missing_link() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Intrigue")
    arc.add_quest_link(_link())

    assert arc.update_quest_link("quest-1", {"story_impact": "major"}) is True
    assert arc.find_quest_link("quest-1").story_impact == "major"
    assert arc.update_quest_link("quest-404", {"story_impact": "major"}) is False


def test_complete_objective_tracks_progress() -> None:
    link = _link()

    assert complete_objective(link, 0) is True
    assert complete_objective(link, 0) is False
    assert complete_objective(link, 5) is False
    assert link.objectives[0].completed_at is not None
    assert objectives_progress(link) == 0.5
