"""TriagePipeline — orchestrates triage and the human-validation flow.

Data flow::

    Symptoms ─► RuleEngine ─► AssistanceGate ─► (SecondaryAssessor) ─► combine
                                                                         │
              TriageAssessment persisted on the case ◄───────────────────┘
                         │
                         ▼
    request_validation ─► ValidationQueue + supervisor notification
                         │
                         ▼
    record_decision (supervisor)  or  EscalationScheduler (timeout)

Stateless: each call loads the case from the store, computes, and writes
back with a conditional update.  Nothing is cached between calls.

Usage::

    pipeline = TriagePipeline(
        store,
        assessor=MessagesApiAssessor(url, model=...),
        queue=ValidationQueue(store),
        notifier=SupervisorNotifier(sink),
        scheduler=scheduler,
    )
    assessment = await pipeline.triage_case("case-1")
    summary = await pipeline.request_validation("case-1", "supervisor-7")
    case = await pipeline.record_decision("case-1", "supervisor-7", approved=True)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from triage_core.assessor import MessagesApiAssessor
from triage_core.combiner import combine
from triage_core.config import TriageSettings
from triage_core.engine import RuleEngine
from triage_core.errors import CaseNotFoundError, ConditionalUpdateError
from triage_core.gate import AssistanceGate
from triage_core.interfaces import CaseStore, SecondaryAssessor, SupervisorRoster
from triage_core.models.assessment import (
    RuleEvaluationResult,
    SecondaryAssessment,
    SecondaryAssessmentNotUsed,
    TriageAssessment,
)
from triage_core.models.case import Case, HumanValidation, ValidationSummary
from triage_core.models.enums import CaseStatus, UrgencyLevel
from triage_core.notifications import SupervisorNotifier
from triage_core.policy import EscalationPolicyTable
from triage_core.queue import ValidationQueue
from triage_core.roster import StaticSupervisorRoster
from triage_core.ruleset import RuleTable
from triage_core.scheduler import EscalationScheduler

logger = logging.getLogger(__name__)

# Attempts for read-modify-write updates that lose a version race
_MAX_WRITE_ATTEMPTS = 3


class TriagePipeline:
    """Runs triage for stored cases and records supervisor decisions.

    Args:
        store: case store (single source of truth).
        engine: rule engine; defaults to the packaged rule table.
        assessor: optional secondary assessor.  ``None`` disables the
            secondary assessment entirely.
        assessor_timeout_seconds: hard timeout for one assessor call.
        queue: validation queue; required for the validation flow.
        notifier: notifier; required for the validation flow.
        scheduler: escalation scheduler used to escalate rejections.
        clock: returns the current UTC time (injectable for tests).
    """

    def __init__(
        self,
        store: CaseStore,
        *,
        engine: RuleEngine | None = None,
        assessor: SecondaryAssessor | None = None,
        assessor_timeout_seconds: float = 10.0,
        queue: ValidationQueue | None = None,
        notifier: SupervisorNotifier | None = None,
        scheduler: EscalationScheduler | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._engine = engine or RuleEngine()
        self._gate = AssistanceGate(self._engine.table)
        self._assessor = assessor
        self._assessor_timeout = assessor_timeout_seconds
        self._queue = queue
        self._notifier = notifier
        self._scheduler = scheduler
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(
        cls,
        store: CaseStore,
        settings: TriageSettings,
        *,
        roster: SupervisorRoster | None = None,
    ) -> TriagePipeline:
        """Wire a complete pipeline from environment-driven settings.

        The secondary assessor is only created when ``assessor_url`` is set.
        Without *roster*, every configured backup supervisor counts as
        available.
        """
        table = RuleTable.load(settings.rules_path) if settings.rules_path else None
        assessor = None
        if settings.assessor_url:
            assessor = MessagesApiAssessor(
                settings.assessor_url,
                model=settings.assessor_model,
                api_key=settings.assessor_api_key,
                max_tokens=settings.assessor_max_tokens,
                temperature=settings.assessor_temperature,
            )
        queue = ValidationQueue(store, average_service_minutes=settings.average_service_minutes)
        notifier = SupervisorNotifier.from_settings(settings)
        scheduler = EscalationScheduler(
            store,
            queue,
            EscalationPolicyTable.from_settings(settings),
            notifier,
            roster or StaticSupervisorRoster.from_settings(settings),
            cooldown_minutes=settings.escalation_cooldown_minutes,
        )
        return cls(
            store,
            engine=RuleEngine(table),
            assessor=assessor,
            assessor_timeout_seconds=settings.assessor_timeout_seconds,
            queue=queue,
            notifier=notifier,
            scheduler=scheduler,
        )

    @property
    def queue(self) -> ValidationQueue | None:
        return self._queue

    @property
    def scheduler(self) -> EscalationScheduler | None:
        return self._scheduler

    # ==================================================================
    # Triage
    # ==================================================================

    async def triage_case(self, case_id: str, *, force: bool = False) -> TriageAssessment:
        """Assess a case's symptoms and persist the result.

        A case that already carries a triage assessment returns it unchanged
        unless *force* is set.  Triage always completes: a failing or slow
        secondary assessor only removes the secondary contribution.

        Raises:
            CaseNotFoundError: unknown case.
        """
        case = await self._require(case_id)
        if case.triage is not None and not force:
            return case.triage

        symptoms = case.symptoms
        rule_result = self._engine.assess_symptoms(symptoms)
        secondary = await self._secondary_assessment(case, rule_result)
        urgency, final_score = combine(rule_result, secondary)

        assessment = TriageAssessment(
            urgency=urgency,
            rule_based_score=rule_result.score,
            secondary_assessment=secondary,
            final_score=final_score,
            triggered_rules=rule_result.triggered_rules,
            reasoning=rule_result.reasoning,
            assessed_at=self._clock(),
        )
        try:
            await self._store.update(
                case_id, {"triage": assessment}, condition={"version": case.version},
            )
        except ConditionalUpdateError:
            current = await self._require(case_id)
            if current.triage is not None and not force:
                # Triaged concurrently; the stored assessment wins
                return current.triage
            raise

        logger.info(
            "Case %s triaged: urgency=%s, rule_score=%d, final_score=%d, secondary_used=%s",
            case_id, urgency.value, rule_result.score, final_score, secondary.used,
        )
        return assessment

    async def _secondary_assessment(
        self, case: Case, rule_result: RuleEvaluationResult
    ) -> SecondaryAssessment:
        # A used assessment is never recomputed for the same case
        existing = case.triage.secondary_assessment if case.triage else None
        if existing is not None and existing.used:
            logger.info("Case %s already has a secondary assessment; reusing it", case.case_id)
            return existing

        if self._assessor is None:
            return SecondaryAssessmentNotUsed()

        reasons = self._gate.reasons(rule_result, case.symptoms)
        if not reasons:
            return SecondaryAssessmentNotUsed()

        logger.info(
            "Requesting secondary assessment for case %s: %s",
            case.case_id, ", ".join(reasons),
        )
        try:
            return await asyncio.wait_for(
                self._assessor.assess(case.symptoms, rule_result),
                timeout=self._assessor_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Secondary assessment for case %s timed out after %.1fs; "
                "using rule-based result",
                case.case_id, self._assessor_timeout,
            )
        except Exception:
            logger.exception(
                "Secondary assessment for case %s failed; using rule-based result",
                case.case_id,
            )
        return SecondaryAssessmentNotUsed()

    # ==================================================================
    # Human validation
    # ==================================================================

    async def request_validation(
        self, case_id: str, supervisor_id: str | None = None
    ) -> ValidationSummary:
        """Queue a triaged case for supervisor validation and notify.

        A case that already has a human validation, or is already waiting
        in the queue, is not queued or announced again; its current summary
        is returned.

        Raises:
            CaseNotFoundError: unknown case.
            ValueError: the case has not been triaged.
        """
        queue, notifier = self._validation_deps()
        case = await self._require(case_id)
        if case.triage is None:
            raise ValueError(f"Case {case_id} does not have a triage assessment")
        if case.human_validation is not None:
            logger.info("Case %s already has a human validation", case_id)
            return await self.validation_status(case_id)
        if case.is_pending_validation:
            # Keeps queued_at; only a new supervisor assignment is applied
            await queue.enqueue(case_id, supervisor_id)
            logger.info("Case %s already awaiting validation; not notifying again", case_id)
            return await self.validation_status(case_id)

        queued = await queue.enqueue(case_id, supervisor_id)
        await notifier.notify_supervisor(
            queued,
            supervisor_id,
            is_emergency=queued.urgency == UrgencyLevel.EMERGENCY,
        )
        return await self.validation_status(case_id)

    async def record_decision(
        self,
        case_id: str,
        supervisor_id: str,
        approved: bool,
        override_reason: str | None = None,
        notes: str | None = None,
    ) -> Case:
        """Persist a supervisor's decision and take the case off the queue.

        Approved cases become ``active`` and the care coordinator is told;
        rejected cases become ``escalated``, and a rejection with an override
        reason is escalated through the scheduler.

        Raises:
            CaseNotFoundError: unknown case.
            ValueError: empty supervisor id.
        """
        if not supervisor_id:
            raise ValueError("supervisor_id is required")
        queue, notifier = self._validation_deps()

        validation = HumanValidation(
            supervisor_id=supervisor_id,
            approved=approved,
            override_reason=override_reason,
            notes=notes,
            timestamp=self._clock(),
        )
        new_status = CaseStatus.ACTIVE if approved else CaseStatus.ESCALATED
        previous, updated = await self._write_with_retry(
            case_id,
            {
                "human_validation": validation,
                "status": new_status,
            },
        )
        # Clears the queue fields; a no-op if no longer pending
        updated = await queue.dequeue(case_id) or updated
        logger.info(
            "Validation decision recorded: case_id=%s, supervisor_id=%s, approved=%s, status=%s",
            case_id, supervisor_id, approved, new_status.value,
        )

        if not approved and override_reason:
            if self._scheduler is None:
                logger.warning(
                    "Rejection of case %s not escalated: no scheduler configured", case_id,
                )
            else:
                await self._scheduler.handle_override(
                    updated, validation, prior_validation=previous.human_validation,
                )
        if approved:
            await notifier.notify_care_coordinator(updated, validation)
        return await self._require(case_id)

    async def validation_status(self, case_id: str) -> ValidationSummary:
        """Validation state, queue position and wait estimate for a case."""
        queue, _ = self._validation_deps()
        case = await self._require(case_id)
        position = await queue.position(case_id)
        return ValidationSummary(
            case_id=case_id,
            validation_status=case.validation_status,
            validation=case.human_validation,
            urgency=case.urgency,
            position=position,
            estimated_wait_minutes=await queue.estimated_wait(case_id),
        )

    # ==================================================================
    # Internal helpers
    # ==================================================================

    async def _require(self, case_id: str) -> Case:
        case = await self._store.get(case_id)
        if case is None:
            raise CaseNotFoundError(case_id)
        return case

    def _validation_deps(self) -> tuple[ValidationQueue, SupervisorNotifier]:
        if self._queue is None or self._notifier is None:
            raise RuntimeError("Validation flow requires a queue and a notifier")
        return self._queue, self._notifier

    async def _write_with_retry(
        self, case_id: str, changes: dict[str, Any]
    ) -> tuple[Case, Case]:
        """Apply *changes* guarded on the case version, re-reading on conflict.

        Returns the case as it was just before the write and after it.
        """
        for attempt in range(1, _MAX_WRITE_ATTEMPTS):
            case = await self._require(case_id)
            try:
                return case, await self._store.update(
                    case_id, changes, condition={"version": case.version},
                )
            except ConditionalUpdateError:
                logger.info("Case %s changed during write; retrying (%d)", case_id, attempt)
        case = await self._require(case_id)
        return case, await self._store.update(
            case_id, changes, condition={"version": case.version},
        )
