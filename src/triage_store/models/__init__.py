"""ORM models for triage_store."""

from triage_store.models.base import Base
from triage_store.models.case import TriageCaseRow

__all__ = ["Base", "TriageCaseRow"]
