"""Triage configuration — reads settings from environment variables.

All settings have sensible defaults.  Escalation values are read per tier
using the tier's upper-case name as suffix, e.g.
``ESCALATION_MAX_WAIT_SELF_CARE`` or ``ESCALATION_BACKUPS_URGENT``.
"""

import os
from dataclasses import dataclass, field

from triage_core.models.enums import UrgencyLevel

# --- Escalation defaults per tier ---
DEFAULT_MAX_WAIT_MINUTES: dict[UrgencyLevel, int] = {
    UrgencyLevel.EMERGENCY: 5,
    UrgencyLevel.URGENT: 15,
    UrgencyLevel.ROUTINE: 60,
    UrgencyLevel.SELF_CARE: 120,
}

DEFAULT_TO_HIGHER_CARE: dict[UrgencyLevel, bool] = {
    UrgencyLevel.EMERGENCY: True,
    UrgencyLevel.URGENT: True,
    UrgencyLevel.ROUTINE: False,
    UrgencyLevel.SELF_CARE: False,
}

DEFAULT_BACKUP_SUPERVISORS: dict[UrgencyLevel, list[str]] = {
    UrgencyLevel.EMERGENCY: ["emergency-supervisor-1", "emergency-supervisor-2"],
    UrgencyLevel.URGENT: ["urgent-supervisor-1", "urgent-supervisor-2"],
    UrgencyLevel.ROUTINE: ["routine-supervisor-1", "routine-supervisor-2"],
    UrgencyLevel.SELF_CARE: ["routine-supervisor-1"],
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_bool(raw: str, *, name: str = "value") -> bool:
    """Parse a boolean env value; raises ``ValueError`` on anything else."""
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name}: expected true/false, got {raw!r}")


def parse_list(raw: str) -> list[str]:
    """Split a comma-separated env value, dropping blanks."""
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class TriageSettings:
    """Immutable triage configuration read from environment at startup."""

    # Escalation policy per tier
    max_wait_minutes: dict[UrgencyLevel, int] = field(
        default_factory=lambda: dict(DEFAULT_MAX_WAIT_MINUTES)
    )
    default_to_higher_care: dict[UrgencyLevel, bool] = field(
        default_factory=lambda: dict(DEFAULT_TO_HIGHER_CARE)
    )
    backup_supervisors: dict[UrgencyLevel, list[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_BACKUP_SUPERVISORS.items()}
    )
    # Minimum gap between two escalations of one case (None = tier max wait)
    escalation_cooldown_minutes: int | None = None
    sweep_interval_seconds: float = 60.0

    # Validation queue
    average_service_minutes: int = 15

    # Secondary assessor (disabled when no URL is set)
    assessor_url: str | None = None
    assessor_api_key: str | None = None
    assessor_model: str = "claude-3-haiku-20240307"
    assessor_max_tokens: int = 500
    assessor_temperature: float = 0.1
    assessor_timeout_seconds: float = 10.0

    # Notifications
    notification_topic: str = "triage-notifications"
    emergency_topic: str = "triage-emergency-alerts"
    # POST target for WebhookNotificationSink (None = log only)
    notification_webhook_url: str | None = None

    # Rule table override (None = packaged clinical_rules.yaml)
    rules_path: str | None = None

    # Logging
    log_level: str = "INFO"


def load_settings() -> TriageSettings:
    """Build settings from environment variables."""
    max_wait: dict[UrgencyLevel, int] = {}
    higher_care: dict[UrgencyLevel, bool] = {}
    backups: dict[UrgencyLevel, list[str]] = {}
    for urgency in UrgencyLevel:
        suffix = urgency.name
        max_wait[urgency] = int(
            os.getenv(f"ESCALATION_MAX_WAIT_{suffix}", str(DEFAULT_MAX_WAIT_MINUTES[urgency]))
        )
        raw_default = os.getenv(f"ESCALATION_DEFAULT_HIGHER_CARE_{suffix}")
        higher_care[urgency] = (
            parse_bool(raw_default, name=f"ESCALATION_DEFAULT_HIGHER_CARE_{suffix}")
            if raw_default
            else DEFAULT_TO_HIGHER_CARE[urgency]
        )
        raw_backups = os.getenv(f"ESCALATION_BACKUPS_{suffix}")
        backups[urgency] = (
            parse_list(raw_backups)
            if raw_backups is not None
            else list(DEFAULT_BACKUP_SUPERVISORS[urgency])
        )

    raw_cooldown = os.getenv("ESCALATION_COOLDOWN_MINUTES")

    return TriageSettings(
        max_wait_minutes=max_wait,
        default_to_higher_care=higher_care,
        backup_supervisors=backups,
        escalation_cooldown_minutes=int(raw_cooldown) if raw_cooldown else None,
        sweep_interval_seconds=float(os.getenv("ESCALATION_SWEEP_INTERVAL_SECONDS", "60")),
        average_service_minutes=int(os.getenv("QUEUE_AVERAGE_SERVICE_MINUTES", "15")),
        assessor_url=os.getenv("SECONDARY_ASSESSOR_URL") or None,
        assessor_api_key=os.getenv("SECONDARY_ASSESSOR_API_KEY") or None,
        assessor_model=os.getenv("SECONDARY_ASSESSOR_MODEL", "claude-3-haiku-20240307"),
        assessor_max_tokens=int(os.getenv("SECONDARY_ASSESSOR_MAX_TOKENS", "500")),
        assessor_temperature=float(os.getenv("SECONDARY_ASSESSOR_TEMPERATURE", "0.1")),
        assessor_timeout_seconds=float(os.getenv("SECONDARY_ASSESSOR_TIMEOUT_SECONDS", "10")),
        notification_topic=os.getenv("NOTIFICATION_TOPIC", "triage-notifications"),
        emergency_topic=os.getenv("EMERGENCY_ALERT_TOPIC", "triage-emergency-alerts"),
        notification_webhook_url=os.getenv("NOTIFICATION_WEBHOOK_URL") or None,
        rules_path=os.getenv("TRIAGE_RULES_PATH") or None,
        log_level=os.getenv("TRIAGE_LOG_LEVEL", "INFO").upper(),
    )
