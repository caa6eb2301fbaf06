"""triage_store — PostgreSQL persistence layer for triage cases.

This package provides the ORM model, async engine factory, repository and
the ``SqlCaseStore`` adapter that the triage core and the escalation sweep
CLI use as their ``CaseStore``.
"""

from triage_store.config import DatabaseSettings, load_database_settings
from triage_store.engine import create_schema, dispose_engine, get_engine, get_session_factory
from triage_store.models.case import TriageCaseRow
from triage_store.repository import CaseRepository
from triage_store.store import SqlCaseStore

__all__ = [
    "DatabaseSettings",
    "load_database_settings",
    "TriageCaseRow",
    "CaseRepository",
    "SqlCaseStore",
    "create_schema",
    "get_engine",
    "get_session_factory",
    "dispose_engine",
]
