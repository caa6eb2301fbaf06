"""ValidationQueue — priority queue of cases awaiting human validation.

The queue has no storage of its own: a case is "in the queue" while its
``validation_status`` is ``pending`` in the case store.  Ordering is
priority descending (Emergency 100, Urgent 75, Routine 50, Self-care 25),
then ``queued_at`` ascending, then ``case_id``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from triage_core import constants
from triage_core.errors import CaseNotFoundError, ConditionalUpdateError
from triage_core.interfaces import CaseStore
from triage_core.models.case import (
    Case,
    EscalationRecord,
    QueueEntry,
    QueueStatistics,
)
from triage_core.models.enums import UrgencyLevel, ValidationStatus

logger = logging.getLogger(__name__)

# Priority for a pending case whose tier is unknown
_FALLBACK_PRIORITY = constants.QUEUE_PRIORITY[UrgencyLevel.ROUTINE]


def calculate_priority(urgency: UrgencyLevel | None) -> int:
    if urgency is None:
        return _FALLBACK_PRIORITY
    return constants.QUEUE_PRIORITY.get(urgency, _FALLBACK_PRIORITY)


def to_queue_entry(case: Case) -> QueueEntry:
    """Project a pending case into its supervisor-facing queue entry."""
    secondary = case.triage.secondary_assessment if case.triage else None
    secondary_used = bool(secondary is not None and secondary.used)
    return QueueEntry(
        case_id=case.case_id,
        patient_id=case.patient_id,
        urgency=case.urgency or UrgencyLevel.ROUTINE,
        priority=(
            case.queue_priority
            if case.queue_priority is not None
            else calculate_priority(case.urgency)
        ),
        assigned_supervisor=case.assigned_supervisor,
        queued_at=case.queued_at or case.created_at,
        status=case.validation_status or ValidationStatus.PENDING,
        primary_complaint=case.symptoms.primary_complaint,
        severity=case.symptoms.severity,
        secondary_used=secondary_used,
        secondary_confidence=secondary.confidence if secondary_used else None,
    )


def _sort_key(entry: QueueEntry) -> tuple:
    return (-entry.priority, entry.queued_at, entry.case_id)


class ValidationQueue:
    """Queue operations over a :class:`CaseStore`.

    Args:
        store: case store holding the queue fields.
        average_service_minutes: minutes a supervisor needs per case, used
            for wait estimates.
        clock: returns the current UTC time (injectable for tests).
    """

    def __init__(
        self,
        store: CaseStore,
        *,
        average_service_minutes: int = 15,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._average_service_minutes = average_service_minutes
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def average_service_minutes(self) -> int:
        return self._average_service_minutes

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def enqueue(self, case_id: str, supervisor_id: str | None = None) -> Case:
        """Put a triaged case in the queue, optionally assigned to a supervisor.

        A case that is already pending keeps its ``queued_at``, so repeating
        the request never restarts the escalation timer; only a given
        *supervisor_id* is applied.

        Raises:
            CaseNotFoundError: unknown case.
            ValueError: the case has not been triaged.
            ConditionalUpdateError: the case changed between read and write.
        """
        case = await self._require(case_id)
        if case.triage is None:
            raise ValueError(f"Case {case_id} has no triage assessment to validate")

        if case.is_pending_validation:
            if supervisor_id is None or supervisor_id == case.assigned_supervisor:
                logger.info("Case %s already in validation queue", case_id)
                return case
            updated = await self._store.update(
                case_id,
                {"assigned_supervisor": supervisor_id},
                condition={"version": case.version},
            )
            logger.info(
                "Case %s already queued; assigned to %s", case_id, supervisor_id,
            )
            return updated

        priority = calculate_priority(case.urgency)
        updated = await self._store.update(
            case_id,
            {
                "validation_status": ValidationStatus.PENDING,
                "assigned_supervisor": supervisor_id,
                "queued_at": self._clock(),
                "queue_priority": priority,
                "reassigned_at": None,
            },
            condition={"version": case.version},
        )
        logger.info(
            "Case %s added to validation queue with priority %d", case_id, priority,
        )
        return updated

    async def dequeue(self, case_id: str) -> Case | None:
        """Mark a case's validation completed and clear its queue fields.

        Idempotent: a missing case or one that is no longer pending is left
        untouched.
        """
        case = await self._store.get(case_id)
        if case is None:
            logger.info("Dequeue of unknown case %s ignored", case_id)
            return None
        if not case.is_pending_validation:
            return case
        try:
            updated = await self._store.update(
                case_id,
                {
                    "validation_status": ValidationStatus.COMPLETED,
                    "queued_at": None,
                    "queue_priority": None,
                    "assigned_supervisor": None,
                },
                condition={"validation_status": ValidationStatus.PENDING},
            )
        except ConditionalUpdateError:
            # Completed concurrently by someone else
            return await self._store.get(case_id)
        logger.info("Case %s removed from validation queue", case_id)
        return updated

    async def reassign(
        self,
        case_id: str,
        new_supervisor_id: str,
        *,
        record: EscalationRecord | None = None,
    ) -> Case:
        """Assign a pending case to a different supervisor.

        When *record* is given it is appended to the case's escalation
        history in the same write.

        Raises:
            CaseNotFoundError: unknown case.
            ConditionalUpdateError: the case is no longer pending.
        """
        await self._require(case_id)
        updated = await self._store.update(
            case_id,
            {
                "assigned_supervisor": new_supervisor_id,
                "reassigned_at": self._clock(),
            },
            condition={"validation_status": ValidationStatus.PENDING},
            append={"escalation_history": [record]} if record is not None else None,
        )
        logger.info("Case %s reassigned to supervisor %s", case_id, new_supervisor_id)
        return updated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def entries(
        self,
        supervisor_id: str | None = None,
        urgency: UrgencyLevel | None = None,
        limit: int | None = 20,
    ) -> list[QueueEntry]:
        """Pending entries in queue order, optionally filtered."""
        cases = await self._store.query_pending(urgency=urgency, supervisor=supervisor_id)
        items = sorted((to_queue_entry(c) for c in cases), key=_sort_key)
        return items[:limit] if limit is not None else items

    async def position(self, case_id: str) -> int:
        """1-based queue position, or -1 if the case is not pending."""
        case = await self._store.get(case_id)
        if case is None or not case.is_pending_validation:
            return -1
        for index, entry in enumerate(await self.entries(limit=None)):
            if entry.case_id == case_id:
                return index + 1
        return -1

    async def estimated_wait(self, case_id: str) -> int:
        """Minutes until a supervisor is expected to reach the case."""
        position = await self.position(case_id)
        if position <= 0:
            return 0
        return max(0, (position - 1) * self._average_service_minutes)

    async def overdue(
        self,
        urgency: UrgencyLevel,
        max_wait_minutes: int,
        now: datetime | None = None,
    ) -> list[Case]:
        """Pending cases of a tier queued more than *max_wait_minutes* ago."""
        now = now or self._clock()
        threshold = now - timedelta(minutes=max_wait_minutes)
        cases = await self._store.query_pending(urgency=urgency, queued_before=threshold)
        return sorted(cases, key=lambda c: (c.queued_at or c.created_at, c.case_id))

    async def assigned_to(self, supervisor_id: str) -> list[Case]:
        """Pending cases currently assigned to *supervisor_id*."""
        return await self._store.query_pending(supervisor=supervisor_id)

    async def statistics(self) -> QueueStatistics:
        items = await self.entries(limit=None)
        counts = {u: 0 for u in UrgencyLevel}
        for item in items:
            counts[item.urgency] += 1
        return QueueStatistics(
            total_pending=len(items),
            emergency_count=counts[UrgencyLevel.EMERGENCY],
            urgent_count=counts[UrgencyLevel.URGENT],
            routine_count=counts[UrgencyLevel.ROUTINE],
            self_care_count=counts[UrgencyLevel.SELF_CARE],
            average_service_minutes=self._average_service_minutes,
        )

    # --- Internal helpers ---

    async def _require(self, case_id: str) -> Case:
        case = await self._store.get(case_id)
        if case is None:
            raise CaseNotFoundError(case_id)
        return case
