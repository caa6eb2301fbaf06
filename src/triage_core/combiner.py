"""Combine the rule result with an optional secondary assessment.

The secondary assessment is advisory: it can move the score but never the
urgency tier.
"""

from __future__ import annotations

import math

from triage_core import constants
from triage_core.models.assessment import (
    RuleEvaluationResult,
    SecondaryAssessment,
)
from triage_core.models.enums import UrgencyLevel


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def combine(
    rule_result: RuleEvaluationResult,
    secondary: SecondaryAssessment,
) -> tuple[UrgencyLevel, int]:
    """Return ``(final_urgency, final_score)``.

    Without a secondary assessment the rule result passes through.  With
    one, the score is ``round(0.7 * rule_score + 0.3 * confidence * 100)``
    clamped to 0-100.
    """
    if not secondary.used:
        return rule_result.urgency, rule_result.score

    blended = (
        rule_result.score * constants.RULE_SCORE_WEIGHT
        + secondary.confidence * 100 * constants.SECONDARY_CONFIDENCE_WEIGHT
    )
    return rule_result.urgency, max(0, min(100, round_half_up(blended)))
