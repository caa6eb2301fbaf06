"""SqlCaseStore — ``CaseStore`` implementation over async SQLAlchemy.

Each call opens its own session and transaction, so the store can be
shared by the pipeline and the escalation scheduler.  Domain models are
converted to column values here; the repository only sees plain values.

Usage::

    from triage_store.engine import get_session_factory
    from triage_store.store import SqlCaseStore

    store = SqlCaseStore(get_session_factory())
    await store.add(Case(case_id="case-1", symptoms=symptoms))
    case = await store.get("case-1")
"""

from __future__ import annotations

import enum
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable

from pydantic_core import to_jsonable_python
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from triage_core.errors import CaseNotFoundError, ConditionalUpdateError
from triage_core.interfaces import CaseStore
from triage_core.models.case import Case
from triage_core.models.enums import UrgencyLevel
from triage_store.models.case import TriageCaseRow
from triage_store.repository import CaseRepository

logger = logging.getLogger(__name__)

# Case fields stored as JSON documents
JSON_FIELDS = frozenset(
    {"symptoms", "triage", "human_validation", "override_info", "escalation_history"}
)
# Case fields that accept ``append``
LIST_FIELDS = frozenset({"escalation_history"})
# Case fields stored in scalar columns (usable in conditions)
SCALAR_FIELDS = frozenset(Case.model_fields) - JSON_FIELDS


def _scalar(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    return value


def to_column_values(changes: dict[str, Any]) -> dict[str, Any]:
    """Convert case field changes into ``triage_cases`` column values.

    Writing ``triage`` also writes the denormalised ``urgency_level``.

    Raises:
        ValueError: a name is not a case field.
    """
    values: dict[str, Any] = {}
    for name, value in changes.items():
        if name in JSON_FIELDS:
            values[name] = to_jsonable_python(value)
        elif name in SCALAR_FIELDS:
            values[name] = _scalar(value)
        else:
            raise ValueError(f"Unknown case field: {name!r}")
    if "triage" in changes:
        triage = changes["triage"]
        values["urgency_level"] = triage.urgency.value if triage is not None else None
    return values


def case_from_row(row: TriageCaseRow) -> Case:
    """Build a ``Case`` snapshot from an ORM row."""
    return Case.model_validate({name: getattr(row, name) for name in Case.model_fields})


class SqlCaseStore(CaseStore):
    """Case store backed by the ``triage_cases`` table.

    Args:
        session_factory: async session factory (see ``triage_store.engine``).
        repository: table access object; a fresh ``CaseRepository`` by default.
        clock: returns the current UTC time, used for ``updated_at``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: CaseRepository | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._repo = repository or CaseRepository()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; commit on success, rollback on error."""
        async with self._session_factory() as db:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    async def add(self, case: Case) -> Case:
        """Insert a new case and return the stored snapshot."""
        values = to_column_values(
            {name: getattr(case, name) for name in Case.model_fields}
        )
        async with self._transaction() as db:
            row = await self._repo.insert(db, values)
            stored = case_from_row(row)
        logger.info("Case %s stored", case.case_id)
        return stored

    async def get(self, case_id: str) -> Case | None:
        async with self._transaction() as db:
            row = await self._repo.get(db, case_id)
            return case_from_row(row) if row is not None else None

    async def update(
        self,
        case_id: str,
        changes: dict[str, Any],
        *,
        condition: dict[str, Any] | None = None,
        append: dict[str, list] | None = None,
    ) -> Case:
        condition = condition or {}
        for name in condition:
            if name not in SCALAR_FIELDS:
                raise ValueError(f"Cannot condition on case field {name!r}")
        for name in append or {}:
            if name not in LIST_FIELDS:
                raise ValueError(f"Cannot append to case field {name!r}")

        values = to_column_values(changes)
        conditions = {name: _scalar(expected) for name, expected in condition.items()}

        async with self._transaction() as db:
            if append:
                # Row lock makes the read-modify-write of the list atomic
                current = await self._repo.get_for_update(db, case_id)
                if current is None:
                    raise CaseNotFoundError(case_id)
                for name, items in append.items():
                    values[name] = list(getattr(current, name) or []) + to_jsonable_python(items)
            values["updated_at"] = self._clock()

            row = await self._repo.update_where(db, case_id, values, conditions)
            if row is None:
                if await self._repo.get(db, case_id) is None:
                    raise CaseNotFoundError(case_id)
                raise ConditionalUpdateError(case_id, condition)
            return case_from_row(row)

    async def query_pending(
        self,
        *,
        urgency: UrgencyLevel | None = None,
        supervisor: str | None = None,
        queued_before: datetime | None = None,
    ) -> list[Case]:
        async with self._transaction() as db:
            rows = await self._repo.query_pending(
                db,
                urgency_level=urgency.value if urgency is not None else None,
                supervisor=supervisor,
                queued_before=queued_before,
            )
            return [case_from_row(row) for row in rows]
