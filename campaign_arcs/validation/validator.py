from __future__ import annotations

from collections.abc import Sequence
import inspect
import time

from loguru import logger

from campaign_arcs.config.schema import ValidationConfig
from campaign_arcs.domain.hashing import arc_snapshot_hash
from campaign_arcs.domain.models import StoryArc
from campaign_arcs.llm.client import NarrativeGenerator
from campaign_arcs.validation.coherence import NarrativeCoherenceRule
from campaign_arcs.validation.rules import STRUCTURAL_RULES
from campaign_arcs.validation.types import RuleResult, ValidationReport, ValidationRule, ValidationSummary

FALLBACK_SCORE = 50
FALLBACK_RECOMMENDATION = "Validation rules not available - using fallback validation"

TIER_REMARKS = (
    "Overall story quality needs improvement. Focus on addressing critical issues first.",
    "Story is good but could be enhanced. Address warnings and implement suggestions.",
    "Story is well-crafted. Continue maintaining quality and consider advanced storytelling techniques.",
)

_PRIORITY_MARKERS = ("Consider", "Review")


def default_rules(generator: NarrativeGenerator | None = None, temperature: float = 0.3) -> list[ValidationRule]:
    """Catalog order: the seven structural rules, then coherence when a generator is given."""
    rules = list(STRUCTURAL_RULES)
    if generator is not None:
        rules.append(NarrativeCoherenceRule(generator, temperature=temperature).as_rule())
    return rules


def _error_result(rule: ValidationRule, exc: Exception) -> RuleResult:
    return RuleResult(
        rule_id=rule.id,
        rule_name=rule.name,
        passed=False,
        issues=[f"Validation rule error: {exc}"],
        warnings=[],
        suggestions=[],
        score=0,
    )


class ConsistencyValidator:
    def __init__(self, rules: Sequence[ValidationRule], config: ValidationConfig | None = None):
        self.rules = list(rules)
        self.config = config or ValidationConfig()

    async def _run_rule(self, rule: ValidationRule, arc: StoryArc) -> RuleResult:
        log = logger.bind(campaign_id=arc.campaign_id, rule=rule.id)
        try:
            outcome = rule.evaluate(arc)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            if not isinstance(outcome, RuleResult):
                raise TypeError(f"rule returned {type(outcome).__name__}, expected RuleResult")
        except Exception as exc:  # noqa: BLE001
            log.exception("Validation rule {} crashed", rule.name)
            return _error_result(rule, exc)

        log.debug("Rule {} {}", rule.name, "PASSED" if outcome.passed else "FAILED")
        return outcome

    async def validate_story_arc(self, arc: StoryArc) -> ValidationReport:
        started = time.perf_counter()
        log = logger.bind(campaign_id=arc.campaign_id)
        log.info("Starting story validation snapshot={}", arc_snapshot_hash(arc)[:12])

        if not self.rules:
            log.warning("No validation rules configured; returning fallback report")
            return ValidationReport(
                overall_score=FALLBACK_SCORE,
                valid=True,
                results=[],
                summary=ValidationSummary(),
                recommendations=[FALLBACK_RECOMMENDATION],
            )

        results = [await self._run_rule(rule, arc) for rule in self.rules]

        mean_score = sum(result.score for result in results) / len(results)
        overall_score = round(mean_score)
        summary = ValidationSummary(
            total_rules=len(results),
            passed_rules=sum(1 for result in results if result.passed),
            failed_rules=sum(1 for result in results if not result.passed),
            total_warnings=sum(len(result.warnings) for result in results),
            total_suggestions=sum(len(result.suggestions) for result in results),
        )

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        log.info("Story validation completed in {}ms overall_score={}", elapsed_ms, overall_score)
        return ValidationReport(
            overall_score=overall_score,
            valid=overall_score >= self.config.valid_threshold,
            results=results,
            summary=summary,
            recommendations=self.recommendations(results, mean_score),
        )

    def recommendations(self, results: Sequence[RuleResult], mean_score: float) -> list[str]:
        suggestions = [item for result in results for item in result.suggestions]
        warnings = [item for result in results for item in result.warnings]

        priority = [item for item in suggestions if any(marker in item for marker in _PRIORITY_MARKERS)]
        recommendations = priority[: self.config.max_priority_suggestions]
        recommendations.extend(warnings[: self.config.max_warning_recommendations])

        if mean_score < self.config.valid_threshold:
            recommendations.append(TIER_REMARKS[0])
        elif mean_score < self.config.good_threshold:
            recommendations.append(TIER_REMARKS[1])
        else:
            recommendations.append(TIER_REMARKS[2])
        return recommendations[: self.config.max_recommendations]
