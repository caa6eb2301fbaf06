"""PromptManager — Jinja2-based renderer for model prompts and notifications.

Loads templates from the ``template/`` directory.  Two families live there:

  - ``triage_assessment.jinja2`` — the secondary-assessment prompt
  - one body template per notification type, plus a shared subject template
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import jinja2

from triage_core.models.assessment import RuleEvaluationResult
from triage_core.models.enums import NotificationType
from triage_core.models.symptoms import Symptoms

# --- Notification type to body template ---
_NOTIFICATION_TEMPLATES: dict[NotificationType, str] = {
    NotificationType.VALIDATION_REQUIRED: "validation_required.jinja2",
    NotificationType.EMERGENCY_ALERT: "emergency_alert.jinja2",
    NotificationType.VALIDATION_COMPLETED: "validation_completed.jinja2",
    NotificationType.ESCALATION_REQUIRED: "escalation_required.jinja2",
    NotificationType.QUEUE_STATUS_UPDATE: "queue_status_update.jinja2",
}

_SUBJECT_TEMPLATE = "notification_subject.jinja2"
_TRIAGE_TEMPLATE = "triage_assessment.jinja2"


def _isoformat(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return "" if value is None else str(value)


class PromptManager:
    """Jinja2 renderer for the secondary-assessment prompt and supervisor
    notifications.

    Args:
        template_dir: optional override for the template directory.
            Defaults to ``template/`` sibling of this module.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        if template_dir is None:
            template_dir = Path(__file__).parent / "template"
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._env.filters["tojson"] = lambda v: json.dumps(v, ensure_ascii=False, indent=2)
        self._env.filters["isoformat"] = _isoformat

    def render(self, template_name: str, **context) -> str:
        """Render a named template with arbitrary context."""
        template = self._env.get_template(template_name)
        return template.render(**context)

    def render_triage_prompt(
        self, symptoms: Symptoms, rule_result: RuleEvaluationResult
    ) -> str:
        """Render the structured prompt sent to the secondary assessor."""
        return self.render(_TRIAGE_TEMPLATE, symptoms=symptoms, rule_result=rule_result)

    def render_notification(
        self, notification_type: NotificationType, **context
    ) -> tuple[str, str]:
        """Render ``(subject, body)`` for one notification.

        The context must provide whatever the type's template uses; every
        template accepts ``case`` (may be None for queue updates),
        ``urgency`` and ``timestamp``.
        """
        context.setdefault("case", None)
        context.setdefault("urgency", None)
        subject = self.render(
            _SUBJECT_TEMPLATE, notification_type=notification_type.value, **context
        ).strip()
        body = self.render(_NOTIFICATION_TEMPLATES[notification_type], **context)
        return subject, body
