"""Rule-based consistency scoring for story arcs."""

from campaign_arcs.validation.types import RuleResult, ValidationReport, ValidationRule, ValidationSummary
from campaign_arcs.validation.validator import ConsistencyValidator, default_rules

__all__ = [
    "ConsistencyValidator",
    "RuleResult",
    "ValidationReport",
    "ValidationRule",
    "ValidationSummary",
    "default_rules",
]
