"""RuleEvaluator — decides whether a clinical rule triggers for a symptom set.

Predicates read one attribute of :class:`Symptoms`:

  - **primary_complaint**, **duration**: free text
  - **associated_symptoms**: the list joined with spaces
  - **all_text**: complaint plus associated symptoms
  - **severity**: the clamped 0-10 integer

Keyword operators lower-case both sides and match substrings, so
"Severe Chest Pain" matches the keyword "chest pain".
"""

from __future__ import annotations

import logging
from typing import Any

from triage_core.models.rule import ClinicalRule, Predicate
from triage_core.models.symptoms import Symptoms

logger = logging.getLogger(__name__)


class RuleEvaluator:
    """Evaluates rule predicates against a symptom record."""

    def matches(self, rule: ClinicalRule, symptoms: Symptoms) -> bool:
        """True if every ``when`` predicate holds and, when ``any_of`` is
        non-empty, at least one of its predicates holds."""
        if not all(self.eval_predicate(p, symptoms) for p in rule.when):
            return False
        if rule.any_of and not any(
            self.eval_predicate(p, symptoms) for p in rule.any_of
        ):
            return False
        return True

    # ------------------------------------------------------------------
    # Predicate evaluation
    # ------------------------------------------------------------------

    def eval_predicate(self, pred: Predicate, symptoms: Symptoms) -> bool:
        return self._compare(pred.op, self._resolve(pred.field, symptoms), pred.value)

    @staticmethod
    def _resolve(field: str, symptoms: Symptoms) -> Any:
        if field == "associated_symptoms":
            return " ".join(symptoms.associated_symptoms)
        if field == "all_text":
            return symptoms.all_text
        return getattr(symptoms, field)

    @staticmethod
    def _compare(op: str, answer: Any, value: Any) -> bool:
        """Apply an operator to a symptom attribute and an expected value.

        Numeric operators return False when the attribute is not numeric.
        """
        if op == "eq":
            if isinstance(answer, str) and isinstance(value, str):
                return answer.lower() == value.lower()
            return answer == value

        # --- Numeric comparisons ---
        if op in ("lt", "le", "gt", "ge", "between"):
            try:
                ans_num = float(answer)
            except (TypeError, ValueError):
                return False

            if op == "lt":
                return ans_num < float(value)
            if op == "le":
                return ans_num <= float(value)
            if op == "gt":
                return ans_num > float(value)
            if op == "ge":
                return ans_num >= float(value)
            # value is [min, max], inclusive
            lo, hi = float(value[0]), float(value[1])
            return lo <= ans_num <= hi

        # --- Keyword matching ---
        text = str(answer).lower()

        if op == "contains_any":
            return any(str(v).lower() in text for v in value)

        if op == "contains_all":
            return all(str(v).lower() in text for v in value)

        if op == "min_count":
            # value is {"terms": [...], "count": N}
            present = [t for t in value["terms"] if str(t).lower() in text]
            return len(present) >= int(value["count"])

        logger.warning("Unknown predicate operator: %s", op)
        return False
