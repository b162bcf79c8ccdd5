from __future__ import annotations

from loguru import logger

from campaign_arcs.domain.models import StoryArc
from campaign_arcs.llm.client import GenerationRequest, NarrativeGenerator
from campaign_arcs.llm.prompts import COHERENCE_PROMPT_VERSION, coherence_prompt
from campaign_arcs.llm.responses import ParseFailure, parse_coherence
from campaign_arcs.validation.types import RuleResult, ValidationRule, build_result

RULE_ID = "narrative_coherence"
RULE_NAME = "Narrative Coherence"

UNPARSEABLE_WARNING = "AI analysis response could not be parsed"
UNAVAILABLE_WARNING = "AI analysis was not available"
FAILED_WARNING = "AI analysis failed - using fallback validation"


class NarrativeCoherenceRule:
    """Generator-backed coherence review.

    Service failures only ever add a warning, so this rule cannot fail the
    report on its own when the generator is unavailable.
    """

    def __init__(self, generator: NarrativeGenerator, temperature: float = 0.3):
        self.generator = generator
        self.temperature = temperature

    def as_rule(self) -> ValidationRule:
        return ValidationRule(
            id=RULE_ID,
            name=RULE_NAME,
            description="Uses AI to analyze overall narrative coherence",
            severity="warning",
            evaluate=self.evaluate,
        )

    async def evaluate(self, arc: StoryArc) -> RuleResult:
        log = logger.bind(campaign_id=arc.campaign_id, rule=RULE_ID, task_type="story_consistency_check")
        try:
            response = await self.generator.generate(
                GenerationRequest(
                    prompt=coherence_prompt(arc),
                    task_type="story_consistency_check",
                    temperature=self.temperature,
                    prompt_version=COHERENCE_PROMPT_VERSION,
                )
            )
        except Exception as exc:  # noqa: BLE001
            log.warning("Coherence analysis failed: {}", exc)
            return build_result(RULE_ID, RULE_NAME, warnings=[FAILED_WARNING])

        if not response.success or not response.content:
            log.warning("Coherence analysis unavailable")
            return build_result(RULE_ID, RULE_NAME, warnings=[UNAVAILABLE_WARNING])

        parsed = parse_coherence(response.content)
        if isinstance(parsed, ParseFailure):
            return build_result(RULE_ID, RULE_NAME, warnings=[UNPARSEABLE_WARNING])

        return build_result(
            RULE_ID,
            RULE_NAME,
            issues=parsed.issues,
            warnings=parsed.warnings,
            suggestions=parsed.suggestions,
        )
