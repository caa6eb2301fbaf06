"""Async repository for the ``triage_cases`` table.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Values passed in are already column-shaped
(enum values as strings, nested documents as JSON-ready dicts); the
conversion from domain models lives in ``triage_store.store``.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from triage_store.models.case import TriageCaseRow


class CaseRepository:
    """Async read/write operations on the ``triage_cases`` table."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def insert(self, db: AsyncSession, values: dict[str, Any]) -> TriageCaseRow:
        """Insert a new case row and return it.

        The caller must ``await db.commit()`` to persist.
        """
        row = TriageCaseRow(**values)
        db.add(row)
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get(self, db: AsyncSession, case_id: str) -> TriageCaseRow | None:
        """Fetch a case by its id."""
        return await db.get(TriageCaseRow, case_id)

    async def get_for_update(self, db: AsyncSession, case_id: str) -> TriageCaseRow | None:
        """Fetch a case and lock its row until the transaction ends."""
        stmt = (
            select(TriageCaseRow)
            .where(TriageCaseRow.case_id == case_id)
            .with_for_update()
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def query_pending(
        self,
        db: AsyncSession,
        *,
        urgency_level: str | None = None,
        supervisor: str | None = None,
        queued_before: datetime | None = None,
    ) -> list[TriageCaseRow]:
        """List cases awaiting validation, oldest first."""
        stmt = select(TriageCaseRow).where(TriageCaseRow.validation_status == "pending")
        if urgency_level is not None:
            stmt = stmt.where(TriageCaseRow.urgency_level == urgency_level)
        if supervisor is not None:
            stmt = stmt.where(TriageCaseRow.assigned_supervisor == supervisor)
        if queued_before is not None:
            stmt = stmt.where(TriageCaseRow.queued_at < queued_before)
        stmt = stmt.order_by(TriageCaseRow.queued_at, TriageCaseRow.case_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Conditional update
    # ------------------------------------------------------------------

    async def update_where(
        self,
        db: AsyncSession,
        case_id: str,
        values: dict[str, Any],
        conditions: dict[str, Any],
    ) -> TriageCaseRow | None:
        """Update one case only if every condition column holds its expected value.

        Issues a single ``UPDATE ... WHERE case_id = :id AND <conditions>
        RETURNING`` and increments ``version``.  A ``None`` expected value
        matches ``IS NULL``.

        Returns the refreshed row, or ``None`` when no row matched (either
        the case does not exist or a condition failed; the caller tells
        them apart).
        """
        clauses = [TriageCaseRow.case_id == case_id]
        for name, expected in conditions.items():
            column = getattr(TriageCaseRow, name)
            clauses.append(column.is_(None) if expected is None else column == expected)

        stmt = (
            update(TriageCaseRow)
            .where(*clauses)
            .values(**values, version=TriageCaseRow.version + 1)
            .returning(TriageCaseRow.case_id)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.scalar_one_or_none() is None:
            return None
        return await db.get(TriageCaseRow, case_id, populate_existing=True)
