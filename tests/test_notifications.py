"""SupervisorNotifier, notification sinks and prompt rendering tests.

Routing:
  - validation_required / validation_completed / queue_status_update
    → general notification topic
  - emergency_alert / escalation_required → emergency topic
Every message carries notification_type, urgency_level and case_id.
"""

import json
from datetime import timedelta

import httpx
import pytest

from helpers.fakes import T0, make_case
from triage_core.errors import NotificationError
from triage_core.models.case import HumanValidation, QueueStatistics
from triage_core.models.enums import NotificationType, UrgencyLevel
from triage_core.notifications import (
    LoggingNotificationSink,
    WebhookNotificationSink,
    wait_minutes,
)
from triage_core.prompt import PromptManager


# =====================================================================
# SupervisorNotifier
# =====================================================================


class TestSupervisorNotifier:
    @pytest.mark.asyncio
    async def test_validation_required(self, notifier, sink):
        case = make_case("c1", UrgencyLevel.ROUTINE, complaint="sore throat")
        message_id = await notifier.notify_supervisor(case, "sup-a")

        assert message_id == "msg-1"
        msg = sink.messages[0]
        assert msg["topic"] == "triage-notifications"
        assert msg["subject"] == "Healthcare Validation Required - Case c1"
        assert msg["attributes"] == {
            "notification_type": "validation_required",
            "urgency_level": "routine",
            "case_id": "c1",
            "supervisor_id": "sup-a",
        }
        assert "Primary Complaint: sore throat" in msg["message"]
        assert "Assigned Supervisor: sup-a" in msg["message"]

    @pytest.mark.asyncio
    async def test_urgent_subject_prefix_and_unassigned(self, notifier, sink):
        await notifier.notify_supervisor(make_case("c2", UrgencyLevel.URGENT), None)
        msg = sink.messages[0]
        assert msg["subject"] == "[URGENT] Healthcare Validation Required - Case c2"
        assert msg["attributes"]["supervisor_id"] == "unassigned"

    @pytest.mark.asyncio
    async def test_emergency_alert_goes_to_emergency_topic(self, notifier, sink):
        case = make_case("c3", UrgencyLevel.EMERGENCY, complaint="severe chest pain", severity=9)
        await notifier.notify_supervisor(case, "sup-a", is_emergency=True)
        msg = sink.messages[0]
        assert msg["topic"] == "triage-emergency-alerts"
        assert msg["subject"] == "[EMERGENCY ALERT] Immediate Validation Required - Case c3"
        assert msg["attributes"]["notification_type"] == "emergency_alert"
        assert "EMERGENCY SITUATION DETECTED" in msg["message"]
        assert "Symptom Severity: 9/10" in msg["message"]

    @pytest.mark.asyncio
    async def test_care_coordinator(self, notifier, sink):
        case = make_case("c4", UrgencyLevel.URGENT)
        validation = HumanValidation(supervisor_id="sup-a", approved=True, notes="looks right", timestamp=T0)
        await notifier.notify_care_coordinator(case, validation)
        msg = sink.messages[0]
        assert msg["topic"] == "triage-notifications"
        assert msg["subject"] == "Validation Completed - Case c4"
        assert msg["attributes"]["approved"] == "true"
        assert "Validation Decision: APPROVED" in msg["message"]
        assert "Notes: looks right" in msg["message"]

    @pytest.mark.asyncio
    async def test_escalation_notification(self, notifier, sink, clock):
        case = make_case("c5", UrgencyLevel.EMERGENCY, queued_at=T0, assigned_supervisor="sup-a")
        clock.advance(20)
        await notifier.send_escalation_notification(
            case, "Timeout escalation: exceeded 5 minutes", ["backup-1", "backup-2"],
        )
        msg = sink.messages[0]
        assert msg["topic"] == "triage-emergency-alerts"
        assert msg["subject"] == "[EMERGENCY] Validation Escalation Required - Case c5"
        assert msg["attributes"]["escalation_reason"] == "Timeout escalation: exceeded 5 minutes"
        assert "Wait Time: 20 minutes" in msg["message"]
        assert "Backup Supervisors: backup-1, backup-2" in msg["message"]
        assert "Original Assignment: sup-a" in msg["message"]

    @pytest.mark.asyncio
    async def test_queue_status_update(self, notifier, sink):
        stats = QueueStatistics(
            total_pending=3, emergency_count=1, urgent_count=1, routine_count=1,
            self_care_count=0, average_service_minutes=15,
        )
        await notifier.send_queue_status_update(stats)
        msg = sink.messages[0]
        assert msg["subject"] == "Healthcare Validation Queue Status Update"
        assert msg["attributes"] == {
            "notification_type": "queue_status_update",
            "urgency_level": "all",
            "total_pending": "3",
            "emergency_count": "1",
        }
        assert "Total Pending: 3" in msg["message"]


# =====================================================================
# Sinks
# =====================================================================


class TestSinks:
    @pytest.mark.asyncio
    async def test_logging_sink_returns_id(self, caplog):
        caplog.set_level("INFO")
        message_id = await LoggingNotificationSink().publish("t", "subject", "body", {"a": "b"})
        assert message_id
        assert "subject" in caplog.text

    @pytest.mark.asyncio
    async def test_webhook_posts_payload(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message_id": "remote-42"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            sink = WebhookNotificationSink("https://hooks.test/triage", client=client)
            message_id = await sink.publish("topic-a", "Subj", "Body", {"case_id": "c1"})

        assert message_id == "remote-42"
        assert seen["body"] == {
            "topic": "topic-a",
            "subject": "Subj",
            "message": "Body",
            "attributes": {"case_id": "c1"},
        }

    @pytest.mark.asyncio
    async def test_webhook_without_message_id(self):
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(204))
        ) as client:
            message_id = await WebhookNotificationSink("https://hooks.test", client=client).publish(
                "t", "s", "m", {},
            )
        assert message_id

    @pytest.mark.asyncio
    async def test_webhook_failure_raises(self):
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(503))
        ) as client:
            with pytest.raises(NotificationError):
                await WebhookNotificationSink("https://hooks.test", client=client).publish(
                    "t", "s", "m", {},
                )


# =====================================================================
# Helpers and templates
# =====================================================================


class TestRendering:
    def test_wait_minutes_floors(self):
        assert wait_minutes(T0, T0 + timedelta(seconds=119)) == 1
        assert wait_minutes(None, T0) == 0
        assert wait_minutes(T0 + timedelta(minutes=5), T0) == 0

    def test_every_notification_type_has_a_template(self):
        prompts = PromptManager()
        case = make_case("c9", UrgencyLevel.SELF_CARE)
        validation = HumanValidation(supervisor_id="s", approved=False, override_reason="wrong tier")
        stats = QueueStatistics(
            total_pending=0, emergency_count=0, urgent_count=0, routine_count=0,
            self_care_count=0, average_service_minutes=15,
        )
        for ntype in NotificationType:
            subject, body = prompts.render_notification(
                ntype,
                case=case,
                urgency="self-care",
                timestamp=T0,
                validation=validation,
                reason="r",
                backup_supervisors=[],
                wait_minutes=0,
                stats=stats,
            )
            assert subject and body, ntype

    def test_rejection_body_shows_override_reason(self):
        case = make_case("c10", UrgencyLevel.ROUTINE)
        validation = HumanValidation(supervisor_id="s", approved=False, override_reason="wrong tier")
        _, body = PromptManager().render_notification(
            NotificationType.VALIDATION_COMPLETED,
            case=case, urgency="routine", timestamp=T0, validation=validation,
        )
        assert "Validation Decision: NOT APPROVED" in body
        assert "Override Reason: wrong tier" in body
