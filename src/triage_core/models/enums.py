"""Enumerations shared by the triage models, the store and the scheduler."""

import enum


class UrgencyLevel(str, enum.Enum):
    """Clinical urgency tier, ordered Emergency > Urgent > Routine > Self-care."""

    EMERGENCY = "emergency"
    URGENT = "urgent"
    ROUTINE = "routine"
    SELF_CARE = "self-care"


class InputMethod(str, enum.Enum):
    """How the patient reported their symptoms."""

    TEXT = "text"
    VOICE = "voice"


class CaseStatus(str, enum.Enum):
    """Lifecycle states for a triage case.

    Transitions relevant to this core:
        active -> escalated  (rejected by a supervisor, or defaulted to
                              higher care by the scheduler)
        active -> completed  (care coordination finished, outside this core)
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    ESCALATED = "escalated"
    CANCELLED = "cancelled"


class ValidationStatus(str, enum.Enum):
    """Human-validation queue state of a case."""

    PENDING = "pending"
    COMPLETED = "completed"


class EscalationKind(str, enum.Enum):
    """Why an escalation record was written."""

    TIMEOUT = "timeout"
    REASSIGNMENT = "reassignment"
    DEFAULT_TO_HIGHER_CARE = "default_to_higher_care"
    OVERRIDE = "override"
    SUPERVISOR_UNAVAILABLE = "supervisor_unavailable"


class EscalationOutcome(str, enum.Enum):
    """Terminal state of one escalation attempt.

    Queued -> Escalating -> reassigned | defaulted | notified.  ``skipped``
    means another sweep already handled the case (or it is cooling down).
    """

    REASSIGNED = "reassigned"
    DEFAULTED = "defaulted"
    NOTIFIED = "notified"
    SKIPPED = "skipped"


class NotificationType(str, enum.Enum):
    """Value of the ``notification_type`` message attribute."""

    VALIDATION_REQUIRED = "validation_required"
    EMERGENCY_ALERT = "emergency_alert"
    ESCALATION_REQUIRED = "escalation_required"
    VALIDATION_COMPLETED = "validation_completed"
    QUEUE_STATUS_UPDATE = "queue_status_update"
