"""ValidationQueue tests over the in-memory case store.

Ordering: priority desc (Emergency 100 > Urgent 75 > Routine 50 >
Self-care 25), then queued_at asc.  Wait estimate: (position - 1) x
average service minutes.
"""

from datetime import timedelta

import pytest

from helpers.fakes import T0, make_case, pending_case
from triage_core.errors import CaseNotFoundError, ConditionalUpdateError
from triage_core.models.enums import UrgencyLevel, ValidationStatus
from triage_core.queue import calculate_priority


class TestPriority:
    @pytest.mark.parametrize("urgency, priority", [
        (UrgencyLevel.EMERGENCY, 100),
        (UrgencyLevel.URGENT, 75),
        (UrgencyLevel.ROUTINE, 50),
        (UrgencyLevel.SELF_CARE, 25),
        (None, 50),
    ])
    def test_priority_by_tier(self, urgency, priority):
        assert calculate_priority(urgency) == priority


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_enqueue_sets_queue_fields(self, store, queue):
        store.add(make_case("c1", UrgencyLevel.URGENT))
        case = await queue.enqueue("c1", "sup-a")
        assert case.validation_status == ValidationStatus.PENDING
        assert case.queue_priority == 75
        assert case.queued_at == T0
        assert case.assigned_supervisor == "sup-a"
        assert case.version == 1

    @pytest.mark.asyncio
    async def test_enqueue_again_keeps_queue_time(self, store, queue, clock):
        store.add(make_case("c1", UrgencyLevel.EMERGENCY))
        await queue.enqueue("c1", "sup-a")
        clock.advance(4)

        case = await queue.enqueue("c1", "sup-b")

        assert case.queued_at == T0
        assert case.assigned_supervisor == "sup-b"
        assert case.is_pending_validation

    @pytest.mark.asyncio
    async def test_enqueue_again_without_supervisor_is_a_no_op(self, store, queue, clock):
        store.add(make_case("c1", UrgencyLevel.ROUTINE))
        await queue.enqueue("c1", "sup-a")
        clock.advance(4)

        case = await queue.enqueue("c1")

        assert case.queued_at == T0
        assert case.assigned_supervisor == "sup-a"
        assert case.version == 1

    @pytest.mark.asyncio
    async def test_enqueue_requires_triage(self, store, queue):
        store.add(make_case("c1", None))
        with pytest.raises(ValueError, match="no triage"):
            await queue.enqueue("c1")

    @pytest.mark.asyncio
    async def test_enqueue_unknown_case(self, queue):
        with pytest.raises(CaseNotFoundError, match="not found"):
            await queue.enqueue("missing")


class TestOrdering:
    @pytest.mark.asyncio
    async def test_priority_then_fifo(self, store, queue, clock):
        store.add(
            make_case("routine-1", UrgencyLevel.ROUTINE),
            make_case("emergency-1", UrgencyLevel.EMERGENCY),
            make_case("urgent-1", UrgencyLevel.URGENT),
            make_case("routine-2", UrgencyLevel.ROUTINE),
            make_case("self-care-1", UrgencyLevel.SELF_CARE),
        )
        for case_id in ["routine-1", "emergency-1", "urgent-1", "routine-2", "self-care-1"]:
            await queue.enqueue(case_id)
            clock.advance(1)

        entries = await queue.entries()
        assert [e.case_id for e in entries] == [
            "emergency-1", "urgent-1", "routine-1", "routine-2", "self-care-1",
        ]
        assert [e.priority for e in entries] == [100, 75, 50, 50, 25]

    @pytest.mark.asyncio
    async def test_position_and_wait(self, store, queue):
        store.add(
            pending_case("e", UrgencyLevel.EMERGENCY, queued_at=T0),
            pending_case("u", UrgencyLevel.URGENT, queued_at=T0),
            pending_case("r", UrgencyLevel.ROUTINE, queued_at=T0),
            make_case("idle", UrgencyLevel.ROUTINE),
        )
        assert await queue.position("e") == 1
        assert await queue.position("r") == 3
        assert await queue.estimated_wait("e") == 0
        assert await queue.estimated_wait("r") == 30
        assert await queue.position("idle") == -1
        assert await queue.estimated_wait("idle") == 0
        assert await queue.position("missing") == -1

    @pytest.mark.asyncio
    async def test_entries_filtered_and_limited(self, store, queue):
        store.add(
            pending_case("a", UrgencyLevel.URGENT, queued_at=T0, supervisor="sup-a"),
            pending_case("b", UrgencyLevel.ROUTINE, queued_at=T0, supervisor="sup-b"),
            pending_case("c", UrgencyLevel.ROUTINE, queued_at=T0, supervisor="sup-a"),
        )
        assert [e.case_id for e in await queue.entries(supervisor_id="sup-a")] == ["a", "c"]
        assert [e.case_id for e in await queue.entries(urgency=UrgencyLevel.ROUTINE)] == ["b", "c"]
        assert len(await queue.entries(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_statistics(self, store, queue):
        store.add(
            pending_case("e", UrgencyLevel.EMERGENCY, queued_at=T0),
            pending_case("r1", UrgencyLevel.ROUTINE, queued_at=T0),
            pending_case("r2", UrgencyLevel.ROUTINE, queued_at=T0),
        )
        stats = await queue.statistics()
        assert stats.total_pending == 3
        assert stats.emergency_count == 1
        assert stats.urgent_count == 0
        assert stats.routine_count == 2
        assert stats.self_care_count == 0
        assert stats.average_service_minutes == 15


class TestDequeue:
    @pytest.mark.asyncio
    async def test_dequeue_clears_queue_fields(self, store, queue):
        store.add(pending_case("c1", UrgencyLevel.URGENT, queued_at=T0, supervisor="sup-a"))
        case = await queue.dequeue("c1")
        assert case.validation_status == ValidationStatus.COMPLETED
        assert case.queued_at is None
        assert case.queue_priority is None
        assert case.assigned_supervisor is None
        assert await queue.position("c1") == -1

    @pytest.mark.asyncio
    async def test_dequeue_is_idempotent(self, store, queue):
        store.add(pending_case("c1", UrgencyLevel.URGENT, queued_at=T0))
        first = await queue.dequeue("c1")
        second = await queue.dequeue("c1")
        assert second.version == first.version
        assert await queue.dequeue("missing") is None


class TestReassignAndOverdue:
    @pytest.mark.asyncio
    async def test_reassign_pending_case(self, store, queue, clock):
        store.add(pending_case("c1", UrgencyLevel.URGENT, queued_at=T0, supervisor="sup-a"))
        clock.advance(3)
        case = await queue.reassign("c1", "sup-b")
        assert case.assigned_supervisor == "sup-b"
        assert case.reassigned_at == clock.now
        # Queue time is kept so the case keeps its place
        assert case.queued_at == T0

    @pytest.mark.asyncio
    async def test_reassign_completed_case_rejected(self, store, queue):
        store.add(make_case("c1", UrgencyLevel.URGENT, validation_status=ValidationStatus.COMPLETED))
        with pytest.raises(ConditionalUpdateError):
            await queue.reassign("c1", "sup-b")

    @pytest.mark.asyncio
    async def test_overdue_is_strict(self, store, queue, clock):
        store.add(
            pending_case("on-time", UrgencyLevel.URGENT, queued_at=T0),
            pending_case("late", UrgencyLevel.URGENT, queued_at=T0 - timedelta(minutes=1)),
            pending_case("other-tier", UrgencyLevel.ROUTINE, queued_at=T0 - timedelta(minutes=120)),
        )
        clock.advance(15)
        overdue = await queue.overdue(UrgencyLevel.URGENT, 15)
        assert [c.case_id for c in overdue] == ["late"]

    @pytest.mark.asyncio
    async def test_assigned_to(self, store, queue):
        store.add(
            pending_case("a", UrgencyLevel.URGENT, queued_at=T0, supervisor="sup-a"),
            pending_case("b", UrgencyLevel.URGENT, queued_at=T0, supervisor="sup-b"),
        )
        assert [c.case_id for c in await queue.assigned_to("sup-a")] == ["a"]
