from __future__ import annotations

import asyncio

from campaign_arcs.config.schema import ProgressionConfig
from campaign_arcs.domain.models import StoryArc
from campaign_arcs.llm.client import GenerationRequest, GenerationResponse
from campaign_arcs.progression.gate import BeatSuggestionRequest, ProgressionGate


class _FakeGenerator:
    def __init__(self, response: GenerationResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


def _beat(chapter: int = 1, act: int = 1, importance: str = "moderate", title: str = "Beat") -> dict:
    return {
        "title": title,
        "description": f"{title} description",
        "type": "development",
        "importance": importance,
        "chapter": chapter,
        "act": act,
        "characters": ["char-1"],
        "location": "Harbor",
        "consequences": ["Something changed"],
    }


def _request() -> BeatSuggestionRequest:
    return BeatSuggestionRequest(
        campaign_id="camp-1",
        chapter=2,
        act=1,
        context="the sunken city",
        world_state="Chapter 2, Act 1",
    )


def _gate(response: GenerationResponse | None = None, error: Exception | None = None, **options) -> ProgressionGate:
    return ProgressionGate(_FakeGenerator(response, error), ProgressionConfig(**options))


def test_can_advance_chapter_reports_each_unmet_requirement() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City")
    done = arc.add_beat(_beat(importance="major", title="Dive"))
    arc.add_beat(_beat(importance="critical", title="Kraken"))
    arc.complete_beat(done)
    before = arc.model_dump()

    check = _gate().can_advance_chapter(arc)

    assert check.can_advance is False
    assert check.requirements == [
        "Complete at least 2 story beats in current chapter",
        "Complete all major story beats in current chapter",
        "Record character milestones for most completed story beats",
        "Record world state changes for most completed story beats",
    ]
    assert check.missing == [
        "Only 1/2 beats completed",
        "1/2 major beats completed",
        "0/1 completed beats have milestones",
        "0/1 completed beats have world changes",
    ]
    assert arc.model_dump() == before


def test_can_advance_chapter_passes_when_covered() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City")
    for title in ("Dive", "Reef"):
        beat_id = arc.add_beat(_beat(title=title))
        arc.complete_beat(beat_id)
        arc.add_milestone(
            {"character_id": "char-1", "type": "story", "title": title, "description": "d", "impact": "minor", "story_beat_id": beat_id}
        )
        arc.add_world_change(
            {"type": "event", "title": title, "description": "d", "impact": "minor", "story_beat_id": beat_id}
        )

    check = _gate().can_advance_chapter(arc)

    assert check.can_advance is True
    assert check.requirements == []
    assert check.missing == []


def test_can_advance_chapter_respects_disabled_coverage_requirements() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City")
    for title in ("Dive", "Reef"):
        arc.complete_beat(arc.add_beat(_beat(title=title)))

    check = _gate(require_milestones=False, require_world_changes=False).can_advance_chapter(arc)

    assert check.can_advance is True


def test_can_advance_act_uses_phase_minimum() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City", current_act=2)
    arc.complete_beat(arc.add_beat(_beat(act=2, title="One")))
    arc.complete_beat(arc.add_beat(_beat(act=2, title="Two")))
    arc.add_beat(_beat(act=2, importance="major", title="Boss"))
    before = arc.model_dump()

    check = _gate().can_advance_act(arc)

    assert check.can_advance is False
    assert check.requirements == [
        "Complete at least 3 story beats in current act",
        "Complete development phase with at least 3 story beats",
        "Complete all major story beats in current act",
    ]
    assert check.missing == ["Only 2/3 beats completed", "Development phase incomplete", "0/1 major beats completed"]
    assert arc.model_dump() == before


def test_can_advance_act_resolution_has_no_phase_minimum() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City", current_act=4)
    for title in ("A", "B", "C"):
        arc.complete_beat(arc.add_beat(_beat(act=4, title=title)))

    assert _gate().can_advance_act(arc).can_advance is True


def test_chapter_progression_data() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City", total_chapters=4)
    arc.complete_beat(arc.add_beat(_beat(importance="major", title="Dive")))
    arc.add_beat(_beat(importance="major", title="Kraken"))
    before = arc.model_dump()

    data = _gate().get_chapter_progression_data(arc)

    assert (data.current_chapter, data.current_act, data.story_phase) == (1, 1, "setup")
    assert data.next_chapter_requirements == ["Complete 1 more story beats", "Complete 1 major story beats"]
    assert data.act_transition_requirements == ["Complete 2 more story beats in current act"]
    assert data.story_phase_requirements == ["Complete setup phase with more introductory content"]
    assert data.estimated_beats_remaining == 11
    assert arc.model_dump() == before


def test_estimated_beats_remaining_never_negative() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City", total_chapters=1)
    for index in range(5):
        arc.complete_beat(arc.add_beat(_beat(title=f"B{index}")))

    assert _gate().get_chapter_progression_data(arc).estimated_beats_remaining == 0


def test_beat_suggestions_parse_and_normalize() -> None:
    content = (
        '```json\n[{"title": "Drowned Bell", "type": "twist", "importance": "legendary", '
        '"npcs": ["Keeper", 3], "objectives": "ring it"}, {"description": "Tide turns"}]\n```'
    )
    generator = _FakeGenerator(GenerationResponse(success=True, content=content))
    gate = ProgressionGate(generator)

    suggestions = asyncio.run(gate.generate_story_beat_suggestions(_request(), count=3))

    assert len(suggestions) == 2
    assert suggestions[0].title == "Drowned Bell"
    assert suggestions[0].type == "twist"
    assert suggestions[0].importance == "moderate"
    assert suggestions[0].npcs == ["Keeper"]
    assert suggestions[0].objectives == []
    assert suggestions[0].reasoning == "AI-generated suggestion"
    assert suggestions[1].title == "Untitled Story Beat"
    assert suggestions[1].type == "development"
    request = generator.requests[0]
    assert request.task_type == "story_beat_generation"
    assert request.temperature == 0.7
    assert "the sunken city" in request.prompt


def test_beat_suggestions_truncate_to_count() -> None:
    content = '[{"title": "A"}, {"title": "B"}, {"title": "C"}, {"title": "D"}]'
    gate = _gate(GenerationResponse(success=True, content=content))

    suggestions = asyncio.run(gate.generate_story_beat_suggestions(_request(), count=2))

    assert [item.title for item in suggestions] == ["A", "B"]


def test_beat_suggestions_fall_back_on_every_failure_mode() -> None:
    gates = [
        _gate(error=RuntimeError("connection reset")),
        _gate(GenerationResponse(success=False, content="")),
        _gate(GenerationResponse(success=True, content="The party should visit the tavern.")),
        _gate(GenerationResponse(success=True, content='[{"title": "cut off"')),
        _gate(GenerationResponse(success=True, content="[]")),
        _gate(GenerationResponse(success=True, content='{"note": "no list"}')),
    ]

    for gate in gates:
        suggestions = asyncio.run(gate.generate_story_beat_suggestions(_request()))
        assert [item.title for item in suggestions] == ["The Challenge", "The Discovery", "The Confrontation"]
        assert "the sunken city" in suggestions[0].description
        assert [item.type for item in suggestions] == ["development", "setup", "climax"]


def test_beat_suggestions_ignore_non_string_type_and_importance() -> None:
    content = '[{"title": "X", "type": ["twist"]}, {"title": "Y", "importance": {"a": 1}}]'
    gate = _gate(GenerationResponse(success=True, content=content))

    suggestions = asyncio.run(gate.generate_story_beat_suggestions(_request()))

    assert [item.title for item in suggestions] == ["X", "Y"]
    assert [item.type for item in suggestions] == ["development", "development"]
    assert [item.importance for item in suggestions] == ["moderate", "moderate"]


def test_beat_suggestions_fallback_ignores_count() -> None:
    gate = _gate(GenerationResponse(success=True, content="not json"))

    suggestions = asyncio.run(gate.generate_story_beat_suggestions(_request(), count=1))

    assert [item.title for item in suggestions] == ["The Challenge", "The Discovery", "The Confrontation"]


def test_parse_errors_fall_back_instead_of_raising(monkeypatch) -> None:
    def _explode(content: str):
        raise TypeError("bad payload")

    monkeypatch.setattr("campaign_arcs.progression.gate.parse_beat_suggestions", _explode)
    monkeypatch.setattr("campaign_arcs.progression.gate.parse_improvements", _explode)
    gate = _gate(GenerationResponse(success=True, content="[]"))
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City")

    suggestions = asyncio.run(gate.generate_story_beat_suggestions(_request()))
    improvements = asyncio.run(gate.suggest_story_improvements(arc))

    assert [item.title for item in suggestions] == ["The Challenge", "The Discovery", "The Confrontation"]
    assert not improvements.is_empty()


def test_story_improvements_parse_camel_case_keys() -> None:
    content = '{"pacing": ["Slow down chapter 3"], "characterDevelopment": ["Give the rogue a rival"], "plotStructure": [1]}'
    generator = _FakeGenerator(GenerationResponse(success=True, content=content))
    gate = ProgressionGate(generator)
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City")

    improvements = asyncio.run(gate.suggest_story_improvements(arc))

    assert improvements.pacing == ["Slow down chapter 3"]
    assert improvements.character_development == ["Give the rogue a rival"]
    assert improvements.world_building == []
    assert improvements.plot_structure == []
    assert generator.requests[0].task_type == "story_progression"
    assert generator.requests[0].temperature == 0.5


def test_story_improvements_fall_back_to_fixed_categories() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City")
    gates = [
        _gate(error=TimeoutError()),
        _gate(GenerationResponse(success=False, content="")),
        _gate(GenerationResponse(success=True, content="not json")),
        _gate(GenerationResponse(success=True, content="{}")),
    ]

    for gate in gates:
        improvements = asyncio.run(gate.suggest_story_improvements(arc))
        assert len(improvements.pacing) == 2
        assert len(improvements.character_development) == 2
        assert len(improvements.world_building) == 2
        assert improvements.plot_structure[0] == "Ensure story beats build upon each other logically"


def test_build_suggestion_request_uses_arc_state() -> None:
    arc = StoryArc(campaign_id="camp-1", theme="Sunken City")
    done = arc.add_beat(_beat(title="Dive"))
    arc.add_beat({**_beat(title="Reef"), "characters": ["char-2", "char-1"]})
    arc.complete_beat(done)
    arc.add_world_change({"type": "threat", "title": "Tide rises", "description": "d", "impact": "major"})

    request = _gate().build_suggestion_request(arc)

    assert request.campaign_id == "camp-1"
    assert (request.chapter, request.act) == (1, 1)
    assert request.context == "Theme: Sunken City, Current Phase: setup"
    assert request.characters == ["char-1", "char-2"]
    assert request.location == "Harbor"
    assert [beat.title for beat in request.previous_beats] == ["Dive"]
    assert "Tide rises" in request.world_state
