"""Supervisor and care-coordinator notifications.

``SupervisorNotifier`` builds each message (subject and body rendered from
Jinja2 templates, plus routing attributes) and hands it to a
:class:`NotificationSink`.  Emergency alerts and escalations go to the
emergency topic; everything else goes to the general notification topic.

Every published message carries the attributes ``notification_type``,
``urgency_level`` and ``case_id`` plus one type-specific attribute.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Callable

import httpx

from triage_core.config import TriageSettings
from triage_core.errors import NotificationError
from triage_core.interfaces import NotificationSink
from triage_core.models.case import Case, HumanValidation, QueueStatistics
from triage_core.models.enums import NotificationType, UrgencyLevel
from triage_core.prompt import PromptManager

logger = logging.getLogger(__name__)


def wait_minutes(queued_at: datetime | None, now: datetime) -> int:
    """Whole minutes a case has waited in the queue (0 if never queued)."""
    if queued_at is None:
        return 0
    return max(0, math.floor((now - queued_at).total_seconds() / 60))


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

class LoggingNotificationSink(NotificationSink):
    """Sink that only writes messages to the log.  Used when no webhook is set."""

    async def publish(
        self,
        topic: str,
        subject: str,
        message: str,
        attributes: dict[str, str],
    ) -> str:
        message_id = str(uuid.uuid4())
        logger.info(
            "Notification [%s] topic=%s subject=%r attributes=%s",
            message_id, topic, subject, attributes,
        )
        return message_id


class WebhookNotificationSink(NotificationSink):
    """Sink that POSTs each message as JSON to a webhook URL.

    The request body is ``{topic, subject, message, attributes}``.  A
    ``message_id`` in the JSON response is returned when present; otherwise
    a local id is generated.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client

    async def publish(
        self,
        topic: str,
        subject: str,
        message: str,
        attributes: dict[str, str],
    ) -> str:
        payload = {
            "topic": topic,
            "subject": subject,
            "message": message,
            "attributes": attributes,
        }
        try:
            if self._client is not None:
                resp = await self._client.post(self._url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"Webhook delivery failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("message_id"):
            return str(data["message_id"])
        return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# SupervisorNotifier
# ---------------------------------------------------------------------------

class SupervisorNotifier:
    """Renders and publishes the five notification types.

    Args:
        sink: message bus adapter.
        notification_topic: topic for routine traffic.
        emergency_topic: topic for emergency alerts and escalations.
        prompts: template renderer; defaults to the packaged templates.
        clock: returns the current UTC time (injectable for tests).
    """

    def __init__(
        self,
        sink: NotificationSink,
        *,
        notification_topic: str = "triage-notifications",
        emergency_topic: str = "triage-emergency-alerts",
        prompts: PromptManager | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._sink = sink
        self._notification_topic = notification_topic
        self._emergency_topic = emergency_topic
        self._prompts = prompts or PromptManager()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, settings: TriageSettings) -> SupervisorNotifier:
        """Webhook sink when ``notification_webhook_url`` is set, else log only."""
        if settings.notification_webhook_url:
            sink: NotificationSink = WebhookNotificationSink(settings.notification_webhook_url)
        else:
            sink = LoggingNotificationSink()
        return cls(
            sink,
            notification_topic=settings.notification_topic,
            emergency_topic=settings.emergency_topic,
        )

    async def notify_supervisor(
        self, case: Case, supervisor_id: str | None, *, is_emergency: bool = False
    ) -> str:
        """Ask a supervisor to validate a case's triage."""
        ntype = (
            NotificationType.EMERGENCY_ALERT
            if is_emergency
            else NotificationType.VALIDATION_REQUIRED
        )
        topic = self._emergency_topic if is_emergency else self._notification_topic
        return await self._publish(
            ntype,
            topic,
            case,
            extra_attributes={"supervisor_id": supervisor_id or "unassigned"},
            supervisor_id=supervisor_id,
        )

    async def notify_care_coordinator(
        self, case: Case, validation: HumanValidation
    ) -> str:
        """Tell the care coordinator that validation finished."""
        return await self._publish(
            NotificationType.VALIDATION_COMPLETED,
            self._notification_topic,
            case,
            extra_attributes={"approved": str(validation.approved).lower()},
            supervisor_id=validation.supervisor_id,
            validation=validation,
        )

    async def send_escalation_notification(
        self,
        case: Case,
        reason: str,
        backup_supervisors: list[str],
    ) -> str:
        """Alert that a case needs attention beyond its assigned supervisor."""
        return await self._publish(
            NotificationType.ESCALATION_REQUIRED,
            self._emergency_topic,
            case,
            extra_attributes={"escalation_reason": reason},
            reason=reason,
            backup_supervisors=backup_supervisors,
            wait_minutes=wait_minutes(case.queued_at, self._clock()),
        )

    async def send_queue_status_update(self, stats: QueueStatistics) -> str:
        """Publish queue counts to the general topic."""
        now = self._clock()
        subject, body = self._prompts.render_notification(
            NotificationType.QUEUE_STATUS_UPDATE, stats=stats, timestamp=now,
        )
        attributes = {
            "notification_type": NotificationType.QUEUE_STATUS_UPDATE.value,
            "urgency_level": "all",
            "total_pending": str(stats.total_pending),
            "emergency_count": str(stats.emergency_count),
        }
        message_id = await self._sink.publish(
            self._notification_topic, subject, body, attributes,
        )
        logger.info(
            "Queue status update sent: message_id=%s, total_pending=%d",
            message_id, stats.total_pending,
        )
        return message_id

    # --- Internal helpers ---

    async def _publish(
        self,
        ntype: NotificationType,
        topic: str,
        case: Case,
        *,
        extra_attributes: dict[str, str],
        **context,
    ) -> str:
        urgency = case.urgency.value if case.urgency is not None else UrgencyLevel.ROUTINE.value
        subject, body = self._prompts.render_notification(
            ntype, case=case, urgency=urgency, timestamp=self._clock(), **context,
        )
        attributes = {
            "notification_type": ntype.value,
            "urgency_level": urgency,
            "case_id": case.case_id,
            **extra_attributes,
        }
        message_id = await self._sink.publish(topic, subject, body, attributes)
        # Audit trail
        logger.info(
            "Notification sent: message_id=%s, type=%s, case_id=%s, urgency=%s",
            message_id, ntype.value, case.case_id, urgency,
        )
        return message_id
