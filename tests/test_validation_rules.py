from __future__ import annotations

from datetime import datetime, timedelta, timezone

from campaign_arcs.domain.models import StoryArc
from campaign_arcs.validation import rules
from campaign_arcs.validation.types import build_result, score_for


def _beat(**overrides) -> dict:
    data = {
        "title": "Council Meeting",
        "description": "The council debates the war.",
        "type": "setup",
        "importance": "major",
        "chapter": 1,
        "act": 1,
        "characters": ["char-1"],
        "location": "Council Hall",
        "consequences": ["War declared"],
    }
    data.update(overrides)
    return data


def _single_completed_beat_arc() -> tuple[StoryArc, str]:
    arc = StoryArc(campaign_id="camp-1", theme="War", total_chapters=10)
    beat_id = arc.add_beat(_beat())
    arc.complete_beat(beat_id)
    arc.add_milestone(
        {
            "character_id": "char-1",
            "type": "story",
            "title": "Spoke up",
            "description": "Argued for peace.",
            "impact": "moderate",
            "story_beat_id": beat_id,
        }
    )
    arc.add_world_change(
        {
            "type": "event",
            "title": "War declared",
            "description": "The kingdom is at war.",
            "impact": "major",
            "story_beat_id": beat_id,
        }
    )
    return arc, beat_id


def test_score_and_result_helpers() -> None:
    assert score_for([], []) == 100
    assert score_for(["a"], ["b", "c"]) == 75
    assert score_for(["x"] * 7, []) == 0

    result = build_result("r", "Rule", warnings=["w"])
    assert result.passed is True
    assert result.score == 95
    assert build_result("r", "Rule", issues=["i"]).passed is False


def test_well_formed_single_beat_arc() -> None:
    arc, _ = _single_completed_beat_arc()

    structure = rules.story_structure_progression(arc)
    completion = rules.story_beat_completion(arc)
    development = rules.character_development_tracking(arc)

    assert structure.issues == []
    assert completion.warnings == []
    assert development.warnings == []
    assert "Consider adding more setup story beats in Act 1" in structure.suggestions


def test_structure_flags_act_regression_and_chapter_gaps() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="War")
    arc.add_beat(_beat(title="Opening", chapter=1, act=2))
    arc.add_beat(_beat(title="Return", chapter=1, act=1))
    arc.add_beat(_beat(title="Late", chapter=5, act=1))

    result = rules.story_structure_progression(arc)

    assert result.issues == ['Story beat "Late" has invalid act progression (1 < 2)']
    assert result.warnings == ["Large gap between chapters 1 and 5"]
    assert result.passed is False
    assert result.score == 80


def test_beat_completion_warns_on_missing_details() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="War")
    beat_id = arc.add_beat(_beat(title="Bare", characters=[], location=None, consequences=[]))
    arc.complete_beat(beat_id)

    result = rules.story_beat_completion(arc)

    assert result.warnings == [
        'Completed story beat "Bare" has no consequences defined',
        'Completed story beat "Bare" has no characters involved',
        'Completed story beat "Bare" has no location specified',
    ]
    assert result.suggestions == [
        "Most story beats are completed. Consider adding new story beats or advancing to the next chapter"
    ]


def test_beat_completion_with_no_beats_suggests_progress() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="War")

    result = rules.story_beat_completion(arc)

    assert result.suggestions == ["Consider completing more story beats to advance the narrative"]


def test_world_state_catastrophic_then_minor_contradiction() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="War")
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    arc.add_world_change(
        {
            "type": "event",
            "title": "Capital burns",
            "description": "The capital is destroyed.",
            "impact": "catastrophic",
            "affected_elements": ["capital"],
            "permanent": True,
            "occurred_at": start + timedelta(days=1),
        }
    )
    arc.add_world_change(
        {
            "type": "event",
            "title": "Market reopens",
            "description": "Trade resumes in the capital.",
            "impact": "minor",
            "affected_elements": ["capital", "market"],
            "permanent": False,
            "occurred_at": start + timedelta(days=2),
        }
    )
    arc.add_world_change(
        {
            "type": "location",
            "title": "Prologue",
            "description": "Unrelated earlier change.",
            "impact": "minor",
            "affected_elements": ["village"],
            "occurred_at": start,
        }
    )

    result = rules.world_state_consistency(arc)

    assert result.issues == ['World state change "Market reopens" may contradict previous catastrophic change "Capital burns"']
    assert result.warnings == ['Permanent world change "Capital burns" may be affected by temporary change "Market reopens"']
    assert result.suggestions == ["Consider linking more world state changes to specific story beats"]
    assert result.passed is False
    assert result.score == 80


def test_world_state_orders_naive_and_aware_timestamps() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="War")
    arc.add_world_change(
        {
            "type": "event",
            "title": "Capital burns",
            "description": "The capital is destroyed.",
            "impact": "catastrophic",
            "affected_elements": ["capital"],
            "occurred_at": datetime(2024, 1, 1),
        }
    )
    arc.add_world_change(
        {
            "type": "event",
            "title": "Market reopens",
            "description": "Trade resumes in the capital.",
            "impact": "minor",
            "affected_elements": ["capital"],
        }
    )

    result = rules.world_state_consistency(arc)

    assert result.issues == ['World state change "Market reopens" may contradict previous catastrophic change "Capital burns"']


def test_quest_integration_rule() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="War")
    arc.add_quest_link({"quest_id": "q1", "name": "Scout the pass", "type": "setup"})
    arc.add_quest_link({"quest_id": "q2", "name": "Hold the bridge", "type": "development", "story_beat_id": "beat_x"})

    result = rules.quest_story_integration(arc)

    assert result.warnings == ['Active quest "Scout the pass" is not linked to a story beat']
    assert result.suggestions == [
        "Consider adding more development quests to advance the plot",
        "Consider adding climax quests for major confrontations",
        "Consider completing more quests to advance the story",
    ]


def test_story_pacing_rule() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="War", total_chapters=3, current_chapter=3, pacing="fast")
    arc.add_beat(_beat(chapter=1))
    arc.add_beat(_beat(chapter=1))
    arc.add_beat(_beat(chapter=1))
    arc.add_beat(_beat(chapter=1))

    result = rules.story_pacing(arc)

    assert result.warnings == ["Story progress (0.0%) doesn't match chapter progression (100.0%)"]
    assert result.suggestions == [
        "Fast-paced campaign should have more story progression",
        "Chapter 1 has more story beats than average",
        "Chapter 2 has fewer story beats than average",
        "Chapter 3 has fewer story beats than average",
    ]


def test_story_pacing_with_no_beats() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="War", total_chapters=10, current_chapter=1)

    result = rules.story_pacing(arc)

    assert result.warnings == []
    assert result.suggestions == []


def test_relationship_development_rule() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="War")
    arc.add_beat(_beat())
    for index in range(5):
        arc.add_milestone(
            {
                "character_id": "char-1",
                "type": "level",
                "title": f"Level {index}",
                "description": "Gained a level.",
                "impact": "minor",
            }
        )
    arc.add_milestone(
        {"character_id": "char-2", "type": "relationship", "title": "Friends", "description": "d", "impact": "minor"}
    )

    result = rules.character_relationship_development(arc)

    assert result.warnings == ["Story has limited character interaction opportunities"]
    assert result.suggestions == [
        "Consider adding more character relationship development milestones",
        "Consider balancing character development across all characters",
    ]


def test_structural_rule_catalog_order() -> None:
    assert [rule.id for rule in rules.STRUCTURAL_RULES] == [
        "story_structure_progression",
        "story_beat_completion",
        "character_development_tracking",
        "world_state_consistency",
        "quest_story_integration",
        "story_pacing",
        "character_relationship_development",
    ]
    assert {rule.severity for rule in rules.STRUCTURAL_RULES} == {"error", "warning", "info"}
