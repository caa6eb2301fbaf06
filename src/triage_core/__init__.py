"""triage_core — clinical urgency triage and validation-escalation SDK.

Public API:
    RuleEngine          — scores symptoms against the clinical rule table
    RuleTable           — loads the YAML rule table into typed models
    AssistanceGate      — decides whether a secondary assessment is warranted
    combine             — merges rule result and secondary assessment
    TriagePipeline      — triage orchestration and the human-validation flow
    ValidationQueue     — priority queue of cases awaiting validation
    EscalationPolicyTable — per-tier wait limits, failsafe flags and backups
    EscalationScheduler — timeout sweeps, backup reassignment, failsafe
    SupervisorNotifier  — renders and publishes supervisor notifications
    PromptManager       — Jinja2 renderer for prompts and notifications
    TriageSettings      — environment-driven configuration (``load_settings``)

Collaborator interfaces and adapters:
    CaseStore, SecondaryAssessor, NotificationSink, SupervisorRoster — ABCs
    MessagesApiAssessor — secondary assessor over a messages-style model API
    WebhookNotificationSink / LoggingNotificationSink — notification sinks
    StaticSupervisorRoster — fixed set of available supervisors
"""

from triage_core.assessor import MessagesApiAssessor, parse_assessment_text
from triage_core.combiner import combine
from triage_core.config import TriageSettings, load_settings
from triage_core.engine import RuleEngine
from triage_core.gate import AssistanceGate
from triage_core.interfaces import (
    CaseStore,
    NotificationSink,
    SecondaryAssessor,
    SupervisorRoster,
)
from triage_core.notifications import (
    LoggingNotificationSink,
    SupervisorNotifier,
    WebhookNotificationSink,
)
from triage_core.pipeline import TriagePipeline
from triage_core.policy import EscalationPolicyTable
from triage_core.prompt import PromptManager
from triage_core.queue import ValidationQueue
from triage_core.roster import StaticSupervisorRoster
from triage_core.ruleset import RuleTable
from triage_core.scheduler import EscalationScheduler

__all__ = [
    # Scoring
    "RuleEngine",
    "RuleTable",
    "AssistanceGate",
    "combine",
    "parse_assessment_text",
    # Orchestration
    "TriagePipeline",
    "ValidationQueue",
    "EscalationPolicyTable",
    "EscalationScheduler",
    "SupervisorNotifier",
    "PromptManager",
    # Configuration
    "TriageSettings",
    "load_settings",
    # Interfaces
    "CaseStore",
    "NotificationSink",
    "SecondaryAssessor",
    "SupervisorRoster",
    # Adapters
    "MessagesApiAssessor",
    "LoggingNotificationSink",
    "WebhookNotificationSink",
    "StaticSupervisorRoster",
]
