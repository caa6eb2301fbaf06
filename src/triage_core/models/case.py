"""Case, validation and escalation models.

``Case`` is the core's view of the record owned by the case store.  The
store is the single source of truth; these objects are snapshots and are
re-read before every decision.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from triage_core.models.assessment import TriageAssessment
from triage_core.models.enums import (
    CaseStatus,
    EscalationKind,
    EscalationOutcome,
    UrgencyLevel,
    ValidationStatus,
)
from triage_core.models.symptoms import Symptoms


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HumanValidation(BaseModel):
    """A supervisor's (or the system's) decision on a triage assessment."""

    model_config = ConfigDict(frozen=True)

    supervisor_id: str
    approved: bool
    override_reason: str | None = None
    notes: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)


class EscalationRecord(BaseModel):
    """Append-only audit entry written whenever a case is escalated."""

    model_config = ConfigDict(frozen=True)

    case_id: str
    kind: EscalationKind
    reason: str
    escalated_by: str
    timestamp: datetime = Field(default_factory=_utcnow)
    new_supervisor: str | None = None
    # Validation on the case at the moment of escalation, if any
    prior_validation: HumanValidation | None = None


class Case(BaseModel):
    """Snapshot of one triage case as stored in the case store."""

    case_id: str
    patient_id: str | None = None
    symptoms: Symptoms = Field(default_factory=Symptoms)
    triage: TriageAssessment | None = None
    status: CaseStatus = CaseStatus.ACTIVE

    # --- Validation queue ---
    validation_status: ValidationStatus | None = None
    assigned_supervisor: str | None = None
    queued_at: datetime | None = None
    queue_priority: int | None = None
    reassigned_at: datetime | None = None
    human_validation: HumanValidation | None = None
    override_info: dict | None = None

    # --- Escalation ---
    escalation_history: list[EscalationRecord] = []
    # Compare-and-swap guard so overlapping sweeps escalate a case once
    last_escalated_at: datetime | None = None
    # Set once by the default-to-higher-care failsafe
    defaulted_at: datetime | None = None

    # Bumped by the store on every write
    version: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def urgency(self) -> UrgencyLevel | None:
        """Final urgency tier, or None before triage has run."""
        return self.triage.urgency if self.triage is not None else None

    @property
    def is_pending_validation(self) -> bool:
        return self.validation_status == ValidationStatus.PENDING


class QueueEntry(BaseModel):
    """Supervisor-facing view of a case waiting for human validation."""

    case_id: str
    patient_id: str | None = None
    urgency: UrgencyLevel
    priority: int
    assigned_supervisor: str | None = None
    queued_at: datetime
    status: ValidationStatus = ValidationStatus.PENDING
    primary_complaint: str = ""
    severity: int = 0
    secondary_used: bool = False
    secondary_confidence: float | None = None


class QueueStatistics(BaseModel):
    """Aggregate counts for the pending validation queue."""

    total_pending: int
    emergency_count: int
    urgent_count: int
    routine_count: int
    self_care_count: int
    average_service_minutes: int


class ValidationSummary(BaseModel):
    """Validation state of one case plus its place in the queue."""

    case_id: str
    validation_status: ValidationStatus | None
    validation: HumanValidation | None = None
    urgency: UrgencyLevel | None = None
    position: int = -1
    estimated_wait_minutes: int = 0


class EscalationPolicy(BaseModel):
    """Per-tier escalation settings.

    ``default_to_higher_care`` controls whether an unresolved case is
    automatically approved at a higher care level when no backup supervisor
    is available.
    """

    model_config = ConfigDict(frozen=True)

    urgency: UrgencyLevel
    max_wait_minutes: int = Field(gt=0)
    default_to_higher_care: bool
    backup_supervisors: list[str] = []


class SweepReport(BaseModel):
    """What one timeout sweep did, per case and per tier."""

    started_at: datetime
    outcomes: dict[str, EscalationOutcome] = {}
    # urgency value -> error message for tiers whose query failed
    failed_tiers: dict[str, str] = {}
    # case_id -> error message for cases whose escalation failed
    failed_cases: dict[str, str] = {}

    @property
    def escalated(self) -> int:
        return sum(
            1 for o in self.outcomes.values() if o != EscalationOutcome.SKIPPED
        )
