from __future__ import annotations

import asyncio

from loguru import logger

from campaign_arcs.config.schema import ValidationConfig
from campaign_arcs.domain.models import StoryArc
from campaign_arcs.llm.client import GenerationRequest, GenerationResponse
from campaign_arcs.validation import coherence
from campaign_arcs.validation.coherence import NarrativeCoherenceRule
from campaign_arcs.validation.types import RuleResult, ValidationRule, build_result
from campaign_arcs.validation.validator import (
    FALLBACK_RECOMMENDATION,
    TIER_REMARKS,
    ConsistencyValidator,
    default_rules,
)


class _FakeGenerator:
    def __init__(self, response: GenerationResponse | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


def _arc() -> StoryArc:
    arc = StoryArc(campaign_id="camp-1", theme="Exploration")
    beat_id = arc.add_beat(
        {
            "title": "Landfall",
            "description": "The crew reaches the island.",
            "type": "setup",
            "importance": "major",
            "chapter": 1,
            "act": 1,
            "characters": ["char-1", "char-2"],
            "location": "Beach",
            "consequences": ["Camp established"],
        }
    )
    arc.complete_beat(beat_id)
    return arc


def _fixed_rule(rule_id: str, result: RuleResult) -> ValidationRule:
    return ValidationRule(
        id=rule_id,
        name=rule_id.title(),
        description="fixed",
        severity="info",
        evaluate=lambda arc: result,
    )


def test_empty_rule_set_returns_fallback_report() -> None:
    report = asyncio.run(ConsistencyValidator([]).validate_story_arc(_arc()))

    assert report.overall_score == 50
    assert report.valid is True
    assert report.results == []
    assert report.recommendations == [FALLBACK_RECOMMENDATION]


def test_crashing_rule_is_isolated() -> None:
    def _boom(arc: StoryArc) -> RuleResult:
        raise RuntimeError("kaboom")

    crashing = ValidationRule(id="boom", name="Boom", description="always fails", severity="error", evaluate=_boom)
    healthy = _fixed_rule("healthy", build_result("healthy", "Healthy"))

    records: list[dict] = []
    sink_id = logger.add(lambda message: records.append(message.record), level="ERROR")
    try:
        report = asyncio.run(ConsistencyValidator([crashing, healthy]).validate_story_arc(_arc()))
    finally:
        logger.remove(sink_id)

    failed, passed = report.results
    assert failed.rule_id == "boom"
    assert failed.passed is False
    assert failed.score == 0
    assert failed.issues == ["Validation rule error: kaboom"]
    assert passed.passed is True
    assert report.overall_score == 50
    assert report.valid is False
    assert report.summary.failed_rules == 1
    assert report.summary.passed_rules == 1
    assert any(record["extra"].get("rule") == "boom" for record in records)


def test_non_result_return_counts_as_rule_error() -> None:
    broken = ValidationRule(id="broken", name="Broken", description="", severity="info", evaluate=lambda arc: 42)

    report = asyncio.run(ConsistencyValidator([broken]).validate_story_arc(_arc()))

    assert report.results[0].issues[0].startswith("Validation rule error:")
    assert report.overall_score == 0


def test_async_rules_are_awaited() -> None:
    async def _async_rule(arc: StoryArc) -> RuleResult:
        return build_result("async", "Async", warnings=[f"{arc.campaign_id} checked"])

    rule = ValidationRule(id="async", name="Async", description="", severity="info", evaluate=_async_rule)

    report = asyncio.run(ConsistencyValidator([rule]).validate_story_arc(_arc()))

    assert report.results[0].warnings == ["camp-1 checked"]
    assert report.overall_score == 95
    assert report.summary.total_warnings == 1


def test_recommendations_are_capped() -> None:
    result = build_result(
        "noisy",
        "Noisy",
        warnings=["w1", "w2", "w3"],
        suggestions=["Consider a", "Review b", "Plain c", "Consider d", "Consider e"],
    )

    report = asyncio.run(ConsistencyValidator([_fixed_rule("noisy", result)]).validate_story_arc(_arc()))

    assert report.overall_score == 85
    assert report.recommendations == ["Consider a", "Review b", "Consider d", "w1", "w2"]


def test_tier_remark_uses_unrounded_mean() -> None:
    rules = [
        _fixed_rule("a", RuleResult(rule_id="a", rule_name="A", passed=True, score=70)),
        _fixed_rule("b", RuleResult(rule_id="b", rule_name="B", passed=True, score=69)),
    ]

    report = asyncio.run(ConsistencyValidator(rules).validate_story_arc(_arc()))

    assert report.overall_score == 70
    assert report.valid is True
    assert report.recommendations == [TIER_REMARKS[0]]


def test_tier_remarks_follow_configured_thresholds() -> None:
    validator = ConsistencyValidator([], ValidationConfig(valid_threshold=60, good_threshold=80))
    scored = [RuleResult(rule_id="x", rule_name="X", passed=True, score=100)]

    assert validator.recommendations(scored, 59.0) == [TIER_REMARKS[0]]
    assert validator.recommendations(scored, 60.0) == [TIER_REMARKS[1]]
    assert validator.recommendations(scored, 80.0) == [TIER_REMARKS[2]]


def test_default_rules_catalog() -> None:
    assert len(default_rules()) == 7
    with_coherence = default_rules(_FakeGenerator(GenerationResponse(True, "{}")))
    assert len(with_coherence) == 8
    assert with_coherence[-1].id == coherence.RULE_ID


def test_coherence_rule_reports_generator_findings() -> None:
    content = (
        '{"coherent": false, "issues": ["Villain motive unclear"], "warnings": [], '
        '"suggestions": ["Consider foreshadowing the betrayal"], "overallAssessment": "Mostly solid"}'
    )
    generator = _FakeGenerator(GenerationResponse(True, content))

    result = asyncio.run(NarrativeCoherenceRule(generator).evaluate(_arc()))

    assert result.rule_id == "narrative_coherence"
    assert result.passed is False
    assert result.issues == ["Villain motive unclear"]
    assert result.suggestions == ["Consider foreshadowing the betrayal"]
    assert result.score == 85
    request = generator.requests[0]
    assert request.task_type == "story_consistency_check"
    assert request.temperature == 0.3
    assert request.prompt_version == coherence.COHERENCE_PROMPT_VERSION
    assert "Exploration" in request.prompt


def test_coherence_rule_degrades_to_warning() -> None:
    cases = [
        (_FakeGenerator(GenerationResponse(True, "The story looks fine to me.")), coherence.UNPARSEABLE_WARNING),
        (_FakeGenerator(GenerationResponse(False, "")), coherence.UNAVAILABLE_WARNING),
        (_FakeGenerator(error=ConnectionError("offline")), coherence.FAILED_WARNING),
    ]

    for generator, expected in cases:
        result = asyncio.run(NarrativeCoherenceRule(generator).evaluate(_arc()))
        assert result.passed is True
        assert result.issues == []
        assert result.warnings == [expected]
        assert result.score == 95


def test_full_validation_with_offline_generator() -> None:
    generator = _FakeGenerator(GenerationResponse(False, ""))
    validator = ConsistencyValidator(default_rules(generator))

    report = asyncio.run(validator.validate_story_arc(_arc()))

    assert [result.rule_id for result in report.results][-1] == "narrative_coherence"
    assert report.summary.total_rules == 8
    assert report.results[-1].warnings == [coherence.UNAVAILABLE_WARNING]
    assert 0 <= report.overall_score <= 100
    assert report.valid is (report.overall_score >= 70)
    assert report.recommendations[-1] in TIER_REMARKS or len(report.recommendations) == 5
