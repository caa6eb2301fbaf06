"""EscalationScheduler — timeout detection, backup reassignment and the
default-to-higher-care failsafe.

Per case::

    Queued ──► Resolved                      (supervisor decided in time)
       └────► Escalating ──► Reassigned      (an available backup took it)
                        ├──► Defaulted       (no backup; tier defaults to higher care)
                        └──► Notified        (no backup; tier only alerts)

Sweeps may overlap (several scheduler processes, or a slow sweep and the
next tick).  Each escalation therefore starts with a compare-and-swap
claim on ``last_escalated_at``; the loser of the race skips the case.  The
failsafe is additionally guarded by ``defaulted_at`` so a case is
auto-approved at most once.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable

from triage_core import constants
from triage_core.errors import CaseNotFoundError, ConditionalUpdateError
from triage_core.interfaces import CaseStore, SupervisorRoster
from triage_core.models.case import (
    Case,
    EscalationPolicy,
    EscalationRecord,
    HumanValidation,
    SweepReport,
)
from triage_core.models.enums import (
    CaseStatus,
    EscalationKind,
    EscalationOutcome,
    UrgencyLevel,
    ValidationStatus,
)
from triage_core.notifications import SupervisorNotifier
from triage_core.policy import EscalationPolicyTable
from triage_core.queue import ValidationQueue

logger = logging.getLogger(__name__)

DEFAULTED_NOTES = "Defaulted to higher care level due to supervisor unavailability"


class EscalationScheduler:
    """Escalates cases that waited too long for human validation.

    Args:
        store: case store (single source of truth).
        queue: validation queue over the same store.
        policies: per-tier escalation policy table.
        notifier: supervisor / care-coordinator notifier.
        roster: answers whether a backup supervisor can take work.
        cooldown_minutes: minimum gap between two escalations of one case.
            ``None`` uses the case tier's max wait.
        clock: returns the current UTC time (injectable for tests).
    """

    def __init__(
        self,
        store: CaseStore,
        queue: ValidationQueue,
        policies: EscalationPolicyTable,
        notifier: SupervisorNotifier,
        roster: SupervisorRoster,
        *,
        cooldown_minutes: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._queue = queue
        self._policies = policies
        self._notifier = notifier
        self._roster = roster
        self._cooldown_minutes = cooldown_minutes
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ==================================================================
    # Timeout sweep
    # ==================================================================

    async def check_for_timeout_escalations(
        self, now: datetime | None = None
    ) -> SweepReport:
        """Escalate every overdue pending case, one concurrent task per tier.

        A tier whose query fails is logged and recorded in the report; the
        other tiers still run.  Within a tier, a failing case is logged and
        the sweep moves on; it will be retried on the next sweep.
        """
        now = now or self._clock()
        report = SweepReport(started_at=now)
        policies = list(self._policies)

        results = await asyncio.gather(
            *(self._sweep_tier(policy, now, report) for policy in policies),
            return_exceptions=True,
        )
        for policy, result in zip(policies, results):
            if isinstance(result, Exception):
                logger.error(
                    "Timeout sweep failed for %s tier: %s",
                    policy.urgency.value, result,
                    exc_info=result,
                )
                report.failed_tiers[policy.urgency.value] = str(result)

        logger.info(
            "Timeout sweep complete: escalated=%d, skipped=%d, failed_cases=%d, failed_tiers=%d",
            report.escalated,
            len(report.outcomes) - report.escalated,
            len(report.failed_cases),
            len(report.failed_tiers),
        )
        return report

    async def _sweep_tier(
        self, policy: EscalationPolicy, now: datetime, report: SweepReport
    ) -> None:
        overdue = await self._queue.overdue(policy.urgency, policy.max_wait_minutes, now)
        if overdue:
            logger.info(
                "%d overdue %s case(s) found", len(overdue), policy.urgency.value,
            )
        reason = f"Timeout escalation: exceeded {policy.max_wait_minutes} minutes"
        for case in overdue:
            try:
                outcome = await self.escalate_episode(
                    case, reason, kind=EscalationKind.TIMEOUT, now=now,
                )
            except Exception as exc:
                logger.exception("Escalation failed for case %s", case.case_id)
                report.failed_cases[case.case_id] = str(exc)
                continue
            report.outcomes[case.case_id] = outcome

    async def run_forever(
        self,
        interval_seconds: float = 60.0,
        *,
        stop_event: asyncio.Event | None = None,
        after_sweep: Callable[[SweepReport], Awaitable[None]] | None = None,
    ) -> None:
        """Run a sweep every *interval_seconds* until *stop_event* is set.

        A failing sweep (or ``after_sweep`` hook) is logged; the loop keeps
        going.
        """
        stop_event = stop_event or asyncio.Event()
        logger.info("Escalation scheduler started: interval=%.1fs", interval_seconds)
        while not stop_event.is_set():
            try:
                report = await self.check_for_timeout_escalations()
                if after_sweep is not None:
                    await after_sweep(report)
            except Exception:
                logger.exception("Escalation sweep failed; retrying next interval")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Escalation scheduler stopped")

    # ==================================================================
    # Escalation of one case
    # ==================================================================

    async def escalate_episode(
        self,
        case: Case,
        reason: str,
        *,
        kind: EscalationKind = EscalationKind.TIMEOUT,
        exclude: Iterable[str] = (),
        enforce_cooldown: bool = True,
        now: datetime | None = None,
    ) -> EscalationOutcome:
        """Reassign the case to a backup, default it to higher care, or alert.

        The case is re-read first; a case that is no longer pending, is
        cooling down from a recent escalation, or was claimed by a
        concurrent sweep is skipped.  If anything fails after the claim,
        the claim is released so the next sweep retries, and the error
        propagates.
        """
        now = now or self._clock()
        current = await self._store.get(case.case_id)
        if current is None:
            raise CaseNotFoundError(case.case_id)
        if not current.is_pending_validation:
            return EscalationOutcome.SKIPPED

        policy = self._policies.get(current.urgency)
        claimed = await self._claim(current, policy, now, enforce_cooldown)
        if claimed is None:
            return EscalationOutcome.SKIPPED

        logger.info("Escalating case %s: %s", claimed.case_id, reason)
        try:
            outcome = await self._resolve(claimed, policy, reason, kind, exclude, now)
        except Exception:
            await self._release_claim(claimed, current.last_escalated_at)
            raise
        logger.info("Case %s escalation outcome: %s", claimed.case_id, outcome.value)
        return outcome

    async def find_available_backup_supervisor(
        self, policy: EscalationPolicy, exclude: Iterable[str] = ()
    ) -> str | None:
        """First backup in the tier's list that is available and not excluded."""
        excluded = {s for s in exclude if s}
        for supervisor_id in policy.backup_supervisors:
            if supervisor_id in excluded:
                continue
            if await self._roster.is_available(supervisor_id):
                return supervisor_id
        return None

    async def default_to_higher_care_level(
        self, case: Case, reason: str, *, now: datetime | None = None
    ) -> bool:
        """Auto-approve a pending case at a higher care level.

        Idempotent per case: returns False (and does nothing) if the case
        was already defaulted or is no longer pending.
        """
        now = now or self._clock()
        current = await self._store.get(case.case_id)
        if current is None:
            raise CaseNotFoundError(case.case_id)
        if current.defaulted_at is not None:
            logger.info("Case %s already defaulted to higher care", current.case_id)
            return False

        validation = HumanValidation(
            supervisor_id=constants.SYSTEM_ESCALATION_SUPERVISOR,
            approved=True,
            override_reason=f"Automatic approval due to escalation: {reason}",
            notes=DEFAULTED_NOTES,
            timestamp=now,
        )
        record = EscalationRecord(
            case_id=current.case_id,
            kind=EscalationKind.DEFAULT_TO_HIGHER_CARE,
            reason=reason,
            escalated_by=constants.SYSTEM_ESCALATION_SUPERVISOR,
            timestamp=now,
            prior_validation=current.human_validation,
        )
        try:
            updated = await self._store.update(
                current.case_id,
                {
                    "human_validation": validation,
                    "status": CaseStatus.ESCALATED,
                    "validation_status": ValidationStatus.COMPLETED,
                    "queued_at": None,
                    "queue_priority": None,
                    "assigned_supervisor": None,
                    "defaulted_at": now,
                },
                condition={
                    "defaulted_at": None,
                    "validation_status": ValidationStatus.PENDING,
                },
                append={"escalation_history": [record]},
            )
        except ConditionalUpdateError:
            logger.info(
                "Case %s was resolved or defaulted concurrently; skipping failsafe",
                current.case_id,
            )
            return False

        logger.warning(
            "Case %s defaulted to higher care level: %s", current.case_id, reason,
        )
        await self._notifier.notify_care_coordinator(updated, validation)
        return True

    # ==================================================================
    # Supervisor decisions and availability
    # ==================================================================

    async def handle_override(
        self,
        case: Case,
        validation: HumanValidation,
        *,
        prior_validation: HumanValidation | None = None,
    ) -> None:
        """Record a supervisor decision; escalate rejections with a reason.

        ``override_info`` is always persisted.  A rejection carrying an
        override reason also appends an ``override`` escalation record and
        publishes an escalation notification.  Approvals never escalate.

        *prior_validation* is the validation the case held before this
        decision was written (None if it had none); it goes on the record.
        """
        current = await self._store.get(case.case_id)
        if current is None:
            raise CaseNotFoundError(case.case_id)

        logger.info(
            "Supervisor override decision: case_id=%s, supervisor_id=%s, approved=%s, "
            "override_reason=%r, original_urgency=%s",
            current.case_id,
            validation.supervisor_id,
            validation.approved,
            validation.override_reason,
            current.urgency.value if current.urgency else None,
        )

        override_info = {
            "supervisor_id": validation.supervisor_id,
            "reason": validation.override_reason,
            "timestamp": validation.timestamp.isoformat(),
            "approved": validation.approved,
        }
        escalate = not validation.approved and bool(validation.override_reason)
        reason = f"Supervisor override: {validation.override_reason}"
        append = None
        if escalate:
            record = EscalationRecord(
                case_id=current.case_id,
                kind=EscalationKind.OVERRIDE,
                reason=reason,
                escalated_by=validation.supervisor_id,
                timestamp=validation.timestamp,
                prior_validation=prior_validation,
            )
            append = {"escalation_history": [record]}

        updated = await self._store.update(
            current.case_id, {"override_info": override_info}, append=append,
        )
        if escalate:
            policy = self._policies.get(updated.urgency)
            await self._notifier.send_escalation_notification(
                updated, reason, policy.backup_supervisors,
            )

    async def handle_supervisor_unavailability(
        self, supervisor_id: str, *, now: datetime | None = None
    ) -> dict[str, EscalationOutcome]:
        """Move every pending case off an unavailable supervisor.

        Each case goes through the same backup-or-default logic as a timeout
        (excluding *supervisor_id* from the backups), without the cooldown.
        Per-case failures are logged and do not stop the others.
        """
        now = now or self._clock()
        outcomes: dict[str, EscalationOutcome] = {}
        reason = f"Supervisor unavailable: {supervisor_id}"
        for case in await self._queue.assigned_to(supervisor_id):
            try:
                outcomes[case.case_id] = await self.escalate_episode(
                    case,
                    reason,
                    kind=EscalationKind.SUPERVISOR_UNAVAILABLE,
                    exclude=(supervisor_id,),
                    enforce_cooldown=False,
                    now=now,
                )
            except Exception:
                logger.exception(
                    "Failed to move case %s off supervisor %s", case.case_id, supervisor_id,
                )
        return outcomes

    # ==================================================================
    # Internal helpers
    # ==================================================================

    def _cooldown(self, policy: EscalationPolicy) -> timedelta:
        minutes = (
            self._cooldown_minutes
            if self._cooldown_minutes is not None
            else policy.max_wait_minutes
        )
        return timedelta(minutes=minutes)

    async def _claim(
        self,
        case: Case,
        policy: EscalationPolicy,
        now: datetime,
        enforce_cooldown: bool,
    ) -> Case | None:
        """Stamp ``last_escalated_at`` if nobody else did; None if we lost."""
        last = case.last_escalated_at
        if enforce_cooldown and last is not None and now - last < self._cooldown(policy):
            logger.debug("Case %s escalated recently; cooling down", case.case_id)
            return None
        try:
            return await self._store.update(
                case.case_id,
                {"last_escalated_at": now},
                condition={
                    "last_escalated_at": last,
                    "validation_status": ValidationStatus.PENDING,
                },
            )
        except ConditionalUpdateError:
            logger.info("Case %s claimed by a concurrent sweep; skipping", case.case_id)
            return None

    async def _release_claim(self, claimed: Case, previous: datetime | None) -> None:
        try:
            await self._store.update(
                claimed.case_id,
                {"last_escalated_at": previous},
                condition={"last_escalated_at": claimed.last_escalated_at},
            )
        except (CaseNotFoundError, ConditionalUpdateError):
            logger.warning("Could not release escalation claim on case %s", claimed.case_id)

    async def _resolve(
        self,
        case: Case,
        policy: EscalationPolicy,
        reason: str,
        kind: EscalationKind,
        exclude: Iterable[str],
        now: datetime,
    ) -> EscalationOutcome:
        backup = await self.find_available_backup_supervisor(
            policy, exclude=(case.assigned_supervisor, *exclude),
        )

        if backup is not None:
            record = EscalationRecord(
                case_id=case.case_id,
                kind=EscalationKind.REASSIGNMENT,
                reason=reason,
                escalated_by=constants.SYSTEM_ESCALATION_SUPERVISOR,
                timestamp=now,
                new_supervisor=backup,
                prior_validation=case.human_validation,
            )
            updated = await self._queue.reassign(case.case_id, backup, record=record)
            # Owner learns the case moved; the backup is asked to validate it
            await self._notifier.send_escalation_notification(
                case, reason, policy.backup_supervisors,
            )
            await self._notifier.notify_supervisor(
                updated, backup, is_emergency=case.urgency == UrgencyLevel.EMERGENCY,
            )
            return EscalationOutcome.REASSIGNED

        if policy.default_to_higher_care:
            defaulted = await self.default_to_higher_care_level(case, reason, now=now)
            return EscalationOutcome.DEFAULTED if defaulted else EscalationOutcome.SKIPPED

        record = EscalationRecord(
            case_id=case.case_id,
            kind=kind,
            reason=reason,
            escalated_by=constants.SYSTEM_ESCALATION_SUPERVISOR,
            timestamp=now,
            prior_validation=case.human_validation,
        )
        # Audit record before the notice
        await self._store.update(
            case.case_id, {}, append={"escalation_history": [record]},
        )
        await self._notifier.send_escalation_notification(
            case, reason, policy.backup_supervisors,
        )
        return EscalationOutcome.NOTIFIED
