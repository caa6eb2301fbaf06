"""Abstract interfaces for the triage core's external collaborators.

These ABCs define the contract that adapters must fulfil.  The core never
talks to a database, a model API or a message bus directly; it goes through
one of these.

Typical wiring::

    store: CaseStore = SqlCaseStore(get_session_factory())
    sink: NotificationSink = WebhookNotificationSink(url)
    assessor: SecondaryAssessor = MessagesApiAssessor(url, model=...)
    roster: SupervisorRoster = StaticSupervisorRoster(["supervisor-1"])

    pipeline = TriagePipeline(store, assessor=assessor, ...)
    scheduler = EscalationScheduler(store, queue, policies, notifier, roster)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from triage_core.models.assessment import (
    RuleEvaluationResult,
    SecondaryAssessmentUsed,
)
from triage_core.models.case import Case
from triage_core.models.enums import UrgencyLevel
from triage_core.models.symptoms import Symptoms


class CaseStore(ABC):
    """Persistent storage for triage cases — the single source of truth.

    Every write is expressed as a conditional update so that concurrent
    writers (overlapping sweeps, a supervisor deciding while the scheduler
    escalates) cannot silently overwrite each other.
    """

    @abstractmethod
    async def get(self, case_id: str) -> Case | None:
        """Return the current snapshot of a case, or None if it does not exist."""
        ...

    @abstractmethod
    async def update(
        self,
        case_id: str,
        changes: dict[str, Any],
        *,
        condition: dict[str, Any] | None = None,
        append: dict[str, list] | None = None,
    ) -> Case:
        """Apply *changes* atomically and return the updated case.

        Parameters
        ----------
        changes:
            Field name to new value.  Values are model objects or plain
            values; ``None`` clears a field.
        condition:
            Field name to expected current value.  If any field differs the
            write is rejected.  ``None`` as an expected value means "field
            is unset".
        append:
            List field name to items appended to the stored list.

        Every successful write bumps ``version`` and ``updated_at``.

        Raises
        ------
        CaseNotFoundError
            No case with this id.
        ConditionalUpdateError
            A ``condition`` field did not hold.
        """
        ...

    @abstractmethod
    async def query_pending(
        self,
        *,
        urgency: UrgencyLevel | None = None,
        supervisor: str | None = None,
        queued_before: datetime | None = None,
    ) -> list[Case]:
        """Return cases awaiting human validation, optionally filtered.

        ``queued_before`` keeps only cases whose ``queued_at`` is strictly
        earlier than the given instant.
        """
        ...


class SecondaryAssessor(ABC):
    """Interface for the optional AI-assisted second opinion.

    Implementations make at most one outbound call per invocation.  The
    pipeline guarantees it invokes the assessor at most once per case.
    """

    @abstractmethod
    async def assess(
        self, symptoms: Symptoms, rule_result: RuleEvaluationResult
    ) -> SecondaryAssessmentUsed:
        """Return a secondary assessment for the symptoms and rule result.

        Raises
        ------
        SecondaryAssessmentError
            The model returned no usable response envelope.  Malformed
            JSON inside the response text must *not* raise.
        """
        ...


class NotificationSink(ABC):
    """Message bus used to reach supervisors and care coordinators."""

    @abstractmethod
    async def publish(
        self,
        topic: str,
        subject: str,
        message: str,
        attributes: dict[str, str],
    ) -> str:
        """Publish one message and return its message id.

        Raises
        ------
        NotificationError
            Delivery failed.
        """
        ...


class SupervisorRoster(ABC):
    """Answers whether a supervisor can currently take work."""

    @abstractmethod
    async def is_available(self, supervisor_id: str) -> bool:
        ...
