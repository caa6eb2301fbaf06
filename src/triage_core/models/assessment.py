"""Assessment models — rule result, secondary assessment and final triage.

The secondary assessment is a tagged union discriminated on ``used`` so a
"not used" assessment can never carry a stray confidence value.
"""

from datetime import datetime, timezone
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from triage_core.models.enums import UrgencyLevel


class RuleEvaluationResult(BaseModel):
    """Output of the rule engine for one symptom record."""

    model_config = ConfigDict(frozen=True)

    urgency: UrgencyLevel
    score: int = Field(ge=0, le=100)
    # Triggered rule IDs in rule-table order
    triggered_rules: list[str] = []
    reasoning: str


class SecondaryAssessmentNotUsed(BaseModel):
    """No secondary assessment was made for this case."""

    model_config = ConfigDict(frozen=True)

    used: Literal[False] = False


class SecondaryAssessmentUsed(BaseModel):
    """Result of the single, cost-limited secondary model call for a case.

    Once a case carries one of these it is never recomputed.
    """

    model_config = ConfigDict(frozen=True)

    used: Literal[True] = True
    # 0.0 - 1.0
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    model: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    recommended_urgency: UrgencyLevel | None = None
    agrees_with_rules: bool = True


# Tagged on ``used``; smart-mode union matching picks the variant by the
# literal, so ``{"used": false}`` can never validate as a used assessment.
SecondaryAssessment = Union[SecondaryAssessmentUsed, SecondaryAssessmentNotUsed]


class TriageAssessment(BaseModel):
    """Final triage decision persisted on the case.

    Created once when triage completes and never deleted.
    """

    urgency: UrgencyLevel
    rule_based_score: int
    secondary_assessment: SecondaryAssessment = Field(
        default_factory=SecondaryAssessmentNotUsed
    )
    final_score: int
    triggered_rules: list[str] = []
    reasoning: str = ""
    assessed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
