from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Union

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from campaign_arcs.domain.models import StoryArc

Severity = Literal["error", "warning", "info"]

ISSUE_PENALTY = 15
WARNING_PENALTY = 5


class RuleResult(BaseModel):
    rule_id: str
    rule_name: str
    passed: bool
    issues: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    score: int = Field(ge=0, le=100)


class ValidationSummary(BaseModel):
    total_rules: int = 0
    passed_rules: int = 0
    failed_rules: int = 0
    total_warnings: int = 0
    total_suggestions: int = 0


class ValidationReport(BaseModel):
    overall_score: int
    valid: bool
    results: list[RuleResult] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)
    recommendations: list[str] = Field(default_factory=list)


RuleOutcome = Union[RuleResult, Awaitable[RuleResult]]


@dataclass(frozen=True)
class ValidationRule:
    """One pluggable check. ``severity`` is descriptive only and does not affect scoring."""

    id: str
    name: str
    description: str
    severity: Severity
    evaluate: Callable[["StoryArc"], RuleOutcome]


def score_for(issues: list[str], warnings: list[str]) -> int:
    return max(0, 100 - len(issues) * ISSUE_PENALTY - len(warnings) * WARNING_PENALTY)


def build_result(
    rule_id: str,
    rule_name: str,
    *,
    issues: list[str] | None = None,
    warnings: list[str] | None = None,
    suggestions: list[str] | None = None,
) -> RuleResult:
    issues = list(issues or [])
    warnings = list(warnings or [])
    return RuleResult(
        rule_id=rule_id,
        rule_name=rule_name,
        passed=not issues,
        issues=issues,
        warnings=warnings,
        suggestions=list(suggestions or []),
        score=score_for(issues, warnings),
    )
