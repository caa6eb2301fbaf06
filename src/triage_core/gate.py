"""AssistanceGate — decides whether a case warrants a secondary assessment.

A secondary assessment is requested when any of these hold:

  - triggered rules span more than one urgency tier
  - the rule score sits in the uncertain band (40-60 inclusive)
  - more than three associated symptoms were reported
  - the primary complaint is vague ("not feeling well", "off", ...)
"""

from __future__ import annotations

import re

from triage_core import constants
from triage_core.models.assessment import RuleEvaluationResult
from triage_core.models.symptoms import Symptoms
from triage_core.ruleset import RuleTable

_VAGUE_WORD_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(w) for w in constants.VAGUE_COMPLAINT_WORDS) + r")\b"
)


class AssistanceGate:
    """Deterministic predicate over a rule result and its symptoms.

    Args:
        table: the rule table the result was produced from, used to look
            up the tier of each triggered rule.
    """

    def __init__(self, table: RuleTable) -> None:
        self._table = table

    def needs_assistance(
        self, result: RuleEvaluationResult, symptoms: Symptoms
    ) -> bool:
        return bool(self.reasons(result, symptoms))

    def reasons(
        self, result: RuleEvaluationResult, symptoms: Symptoms
    ) -> list[str]:
        """Return the names of the criteria that matched (empty if none)."""
        matched: list[str] = []
        if len(self._table.urgencies_of(result.triggered_rules)) > 1:
            matched.append("conflicting_rules")
        lo, hi = constants.UNCERTAIN_SCORE_RANGE
        if lo <= result.score <= hi:
            matched.append("uncertain_score")
        if len(symptoms.associated_symptoms) > constants.MAX_SIMPLE_ASSOCIATED_SYMPTOMS:
            matched.append("complex_symptoms")
        if is_vague_complaint(symptoms.primary_complaint):
            matched.append("vague_complaint")
        return matched


def is_vague_complaint(complaint: str) -> bool:
    text = complaint.lower()
    if any(term in text for term in constants.VAGUE_COMPLAINT_TERMS):
        return True
    return _VAGUE_WORD_RE.search(text) is not None
