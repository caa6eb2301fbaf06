"""RuleEngine — deterministic rule-based urgency assessment.

The engine is stateless: it holds only the immutable :class:`RuleTable`
and an evaluator, so one instance can be shared across tasks.
"""

from __future__ import annotations

import logging

from triage_core import constants
from triage_core.evaluator import RuleEvaluator
from triage_core.models.assessment import RuleEvaluationResult
from triage_core.models.rule import ClinicalRule
from triage_core.models.symptoms import Symptoms
from triage_core.ruleset import RuleTable

logger = logging.getLogger(__name__)


class RuleEngine:
    """Scores a symptom record against the clinical rule table.

    Args:
        table: rule table to evaluate; defaults to the packaged table.
    """

    def __init__(self, table: RuleTable | None = None) -> None:
        self._table = table if table is not None else RuleTable.load()
        self._evaluator = RuleEvaluator()

    @property
    def table(self) -> RuleTable:
        return self._table

    def assess_symptoms(self, symptoms: Symptoms) -> RuleEvaluationResult:
        """Evaluate every rule and reduce the triggered set to one result.

        - No rule triggers: Routine, score 50.
        - Otherwise the tier is the highest triggered tier (first such rule
          in table order wins ties), and the score is the maximum score over
          all triggered rules.
        """
        triggered = [
            rule for rule in self._table if self._evaluator.matches(rule, symptoms)
        ]

        if not triggered:
            return RuleEvaluationResult(
                urgency=constants.DEFAULT_URGENCY,
                score=constants.DEFAULT_SCORE,
                triggered_rules=[],
                reasoning=constants.DEFAULT_REASONING,
            )

        primary = self._highest_urgency_rule(triggered)
        result = RuleEvaluationResult(
            urgency=primary.urgency,
            score=max(rule.score for rule in triggered),
            triggered_rules=[rule.id for rule in triggered],
            reasoning=self._reasoning(triggered, primary),
        )
        logger.debug(
            "Rules triggered: %s -> %s (%d)",
            result.triggered_rules, result.urgency.value, result.score,
        )
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _highest_urgency_rule(rules: list[ClinicalRule]) -> ClinicalRule:
        best = rules[0]
        for rule in rules[1:]:
            # Strictly greater so the earliest rule of the top tier is kept
            if constants.URGENCY_ORDER[rule.urgency] > constants.URGENCY_ORDER[best.urgency]:
                best = rule
        return best

    @staticmethod
    def _reasoning(rules: list[ClinicalRule], primary: ClinicalRule) -> str:
        if len(rules) == 1:
            return primary.reasoning
        names = ", ".join(rule.name for rule in rules)
        return (
            f"Multiple clinical indicators detected: {names}. "
            f"Primary concern: {primary.reasoning}"
        )
