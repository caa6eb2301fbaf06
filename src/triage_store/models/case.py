"""TriageCaseRow ORM model — single row per triage case.

Fields the queue and the escalation scheduler filter or compare-and-swap on
are scalar columns.  Nested documents (symptoms, the triage assessment, the
validation decision and the escalation audit trail) live in JSON columns
(JSONB on PostgreSQL) so a case is read back from a single row.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from triage_store.models.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class TriageCaseRow(Base):
    """One row per triage case."""

    __tablename__ = "triage_cases"

    # --- Identity ---
    case_id: Mapped[str] = mapped_column(Text, primary_key=True)
    patient_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)

    # --- Lifecycle ---
    # Stored as the lowercase enum value
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    # --- Patient input and assessment ---
    symptoms: Mapped[dict] = mapped_column(JsonDocument, nullable=False, default=dict)
    triage: Mapped[dict | None] = mapped_column(JsonDocument, nullable=True)
    # Copy of triage.urgency so the queue can filter by tier
    urgency_level: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # --- Validation queue ---
    validation_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    assigned_supervisor: Mapped[str | None] = mapped_column(Text, nullable=True)
    queued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    queue_priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reassigned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    human_validation: Mapped[dict | None] = mapped_column(JsonDocument, nullable=True)
    override_info: Mapped[dict | None] = mapped_column(JsonDocument, nullable=True)

    # --- Escalation ---
    # Append-only list of escalation records
    escalation_history: Mapped[list] = mapped_column(
        JsonDocument, nullable=False, default=list
    )
    last_escalated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    defaulted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # --- Concurrency / timestamps ---
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "validation_status IS NULL OR validation_status IN ('pending', 'completed')",
            name="ck_validation_status",
        ),
        # Pending cases must be queued
        CheckConstraint(
            "validation_status != 'pending' OR queued_at IS NOT NULL",
            name="ck_pending_has_queued_at",
        ),
        # The sweep query: pending cases of one tier ordered by queue time
        Index(
            "ix_pending_by_urgency",
            "urgency_level",
            "queued_at",
            postgresql_where=text("validation_status = 'pending'"),
        ),
        Index(
            "ix_pending_by_supervisor",
            "assigned_supervisor",
            postgresql_where=text("validation_status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TriageCaseRow(case_id={self.case_id!r}, status={self.status!r}, "
            f"validation={self.validation_status!r}, urgency={self.urgency_level!r}, "
            f"version={self.version})>"
        )
