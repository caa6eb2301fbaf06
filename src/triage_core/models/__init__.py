"""Public model re-exports for triage_core.

Consumers should import from ``triage_core.models`` rather than reaching
into sub-modules directly.
"""

# --- Enums ---
from triage_core.models.enums import (
    CaseStatus,
    EscalationKind,
    EscalationOutcome,
    InputMethod,
    NotificationType,
    UrgencyLevel,
    ValidationStatus,
)

# --- Symptoms / rules ---
from triage_core.models.symptoms import Symptoms
from triage_core.models.rule import ClinicalRule, Predicate

# --- Assessments ---
from triage_core.models.assessment import (
    RuleEvaluationResult,
    SecondaryAssessment,
    SecondaryAssessmentNotUsed,
    SecondaryAssessmentUsed,
    TriageAssessment,
)

# --- Case / queue / escalation ---
from triage_core.models.case import (
    Case,
    EscalationPolicy,
    EscalationRecord,
    HumanValidation,
    QueueEntry,
    QueueStatistics,
    SweepReport,
    ValidationSummary,
)

__all__ = [
    # Enums
    "CaseStatus",
    "EscalationKind",
    "EscalationOutcome",
    "InputMethod",
    "NotificationType",
    "UrgencyLevel",
    "ValidationStatus",
    # Symptoms / rules
    "Symptoms",
    "ClinicalRule",
    "Predicate",
    # Assessments
    "RuleEvaluationResult",
    "SecondaryAssessment",
    "SecondaryAssessmentNotUsed",
    "SecondaryAssessmentUsed",
    "TriageAssessment",
    # Case / queue / escalation
    "Case",
    "EscalationPolicy",
    "EscalationRecord",
    "HumanValidation",
    "QueueEntry",
    "QueueStatistics",
    "SweepReport",
    "ValidationSummary",
]
