"""Escalation policy table — per-tier wait limits, failsafe flags and backups.

| Urgency   | Max wait (min) | Default to higher care |
|-----------|----------------|------------------------|
| Emergency | 5              | yes                    |
| Urgent    | 15             | yes                    |
| Routine   | 60             | no                     |
| Self-care | 120            | no                     |
"""

from __future__ import annotations

import logging
from typing import Iterable

from triage_core.config import TriageSettings
from triage_core.models.case import EscalationPolicy
from triage_core.models.enums import UrgencyLevel

logger = logging.getLogger(__name__)

# Tiers for which disabling the failsafe is allowed but unsafe.
_FAILSAFE_TIERS = (UrgencyLevel.EMERGENCY, UrgencyLevel.URGENT)


class EscalationPolicyTable:
    """Lookup of :class:`EscalationPolicy` by urgency tier.

    Unknown tiers fall back to the Self-care policy, the most lenient one.
    """

    def __init__(self, policies: Iterable[EscalationPolicy]) -> None:
        self._policies: dict[UrgencyLevel, EscalationPolicy] = {
            p.urgency: p for p in policies
        }
        missing = [u.value for u in UrgencyLevel if u not in self._policies]
        if missing:
            raise ValueError(f"Escalation policy missing for tiers: {missing}")
        for urgency in _FAILSAFE_TIERS:
            if not self._policies[urgency].default_to_higher_care:
                logger.warning(
                    "Default-to-higher-care is disabled for %s cases; "
                    "unresolved cases will only trigger notifications",
                    urgency.value,
                )

    @classmethod
    def from_settings(cls, settings: TriageSettings) -> EscalationPolicyTable:
        return cls(
            EscalationPolicy(
                urgency=urgency,
                max_wait_minutes=settings.max_wait_minutes[urgency],
                default_to_higher_care=settings.default_to_higher_care[urgency],
                backup_supervisors=settings.backup_supervisors[urgency],
            )
            for urgency in UrgencyLevel
        )

    @classmethod
    def default(cls) -> EscalationPolicyTable:
        return cls.from_settings(TriageSettings())

    def get(self, urgency: UrgencyLevel | str | None) -> EscalationPolicy:
        try:
            return self._policies[UrgencyLevel(urgency)]
        except ValueError:
            return self._policies[UrgencyLevel.SELF_CARE]

    def __iter__(self):
        return iter(self._policies.values())
