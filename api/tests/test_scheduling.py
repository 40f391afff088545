# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for availability rules and the scheduling engine.
"""

import logging

import pytest

from domain import scheduling as rules
from domain.errors import ConflictError, NotFoundError, PreconditionError, StaleWriteError
from models.entities import Assignment, AvailabilityBlock, Official, OrganizationApplication
from models.enums import AssignmentStatus, BlockType, OrganizationType
from services.memory import InMemoryAssignmentRepository, InMemoryAvailabilityRepository
from services.scheduling import SchedulingEngine
from utils.timeslots import STANDARD_HOURS


def block(official_id="o1", on_date="2025-03-20", at_time=None, **kwargs) -> AvailabilityBlock:
    return AvailabilityBlock(official_id=official_id, block_date=on_date, block_time=at_time, **kwargs)


def booking(official_id="o1", on_date="2025-03-20", at_time="10:00", **kwargs) -> Assignment:
    return Assignment(
        official_id=official_id, official_name="Ana", official_rut="1-9",
        organization_id=kwargs.pop("organization_id", "app-1"), organization_name="Junta",
        scheduled_date=on_date, scheduled_time=at_time, location="Sede", **kwargs
    )


@pytest.fixture
def engine(clock):
    ids = iter(f"id-{n}" for n in range(1, 1000))
    return SchedulingEngine(
        InMemoryAvailabilityRepository(),
        InMemoryAssignmentRepository(),
        clock=clock,
        id_factory=lambda: next(ids)
    )


@pytest.fixture
def ana():
    return Official(id="o1", name="Ana Rojas", rut="11.111.111-1")


@pytest.fixture
def junta():
    return OrganizationApplication(
        id="app-1",
        organization_name="Junta de Vecinos Villa Esperanza",
        organization_type=OrganizationType.JUNTA_VECINOS,
        creator_id="u1"
    )


class TestAvailabilityRules:
    """Test pure availability functions."""

    def test_full_day_block_covers_every_time(self):
        """Test a whole-day block makes any slot unavailable."""
        blocks = [block()]
        for hour in ("09:00", "13:37", "18:00"):
            assert not rules.is_available(blocks, "o1", "2025-03-20", hour)
        assert rules.is_available(blocks, "o1", "2025-03-21", "09:00")

    def test_time_block_matches_after_normalization(self):
        """Test a slot block matches loosely formatted times."""
        blocks = [block(at_time="09:00")]
        assert not rules.is_available(blocks, "o1", "2025-03-20", "9")
        assert not rules.is_available(blocks, "o1", "2025-03-20", "09:00:00")
        assert rules.is_available(blocks, "o1", "2025-03-20", "10:00")

    def test_inactive_and_foreign_blocks_ignored(self):
        """Test only the official's active blocks count."""
        blocks = [block(active=False), block(official_id="o2")]
        assert rules.is_available(blocks, "o1", "2025-03-20", "09:00")

    def test_find_blocking_prefers_whole_day(self):
        """Test the whole-day block is reported before a slot block."""
        slot = block(at_time="10:00")
        whole = block(reason="Feriado", block_type=BlockType.HOLIDAY)
        assert rules.find_blocking([slot, whole], "o1", "2025-03-20", "10:00") is whole

    def test_conflicts_skip_cancelled_and_excluded(self):
        """Test cancelled bookings and the excluded id are not conflicts."""
        active = booking(id="a1")
        cancelled = booking(id="a2", status=AssignmentStatus.CANCELLED)
        assignments = [active, cancelled]
        assert rules.conflicting_assignments(assignments, "o1", "2025-03-20", "10") == [active]
        assert not rules.has_conflict(assignments, "o1", "2025-03-20", "10:00", exclude_id="a1")
        assert not rules.has_conflict(assignments, "o1", "2025-03-20", "11:00")

    def test_blocked_times_in_day(self):
        """Test the day summary lists blocked times once, sorted."""
        blocks = [block(at_time="15:00"), block(at_time="09:00"), block(on_date="2025-03-21")]
        day = rules.blocked_times_in_day(blocks, "o1", "2025-03-20")
        assert not day.full_day
        assert day.times == ["09:00", "15:00"]
        assert rules.blocked_times_in_day(blocks, "o1", "2025-03-21").full_day

    def test_blocked_days_in_month(self):
        """Test only whole-day blocks of the month are listed."""
        blocks = [
            block(on_date="2025-03-21"),
            block(on_date="2025-03-05"),
            block(on_date="2025-03-05", at_time="10:00"),
            block(on_date="2025-03-07", at_time="10:00"),
            block(on_date="2025-04-01")
        ]
        assert rules.blocked_days_in_month(blocks, "o1", 2025, 3) == ["2025-03-05", "2025-03-21"]

    def test_available_times(self):
        """Test blocked and booked hours are removed from the standard hours."""
        blocks = [block(at_time="09:00")]
        assignments = [booking(at_time="10:00"), booking(at_time="11:00", status=AssignmentStatus.CANCELLED)]
        free = rules.available_times(blocks, assignments, "o1", "2025-03-20")
        assert "09:00" not in free
        assert "10:00" not in free
        assert "11:00" in free
        assert len(free) == len(STANDARD_HOURS) - 2
        assert rules.available_times([block()], [], "o1", "2025-03-20") == []

    def test_assignment_stats(self, clock):
        """Test per-status counters."""
        done = booking(id="a1")
        done.mark_validated("cert", "o1", clock.now)
        stats = rules.assignment_stats([
            done,
            booking(id="a2"),
            booking(id="a3", status=AssignmentStatus.CANCELLED)
        ])
        assert stats == {
            "total": 3, "pending": 1, "completed": 1, "cancelled": 1, "signaturesValidated": 1
        }


class TestSchedulingEngineBlocks:
    """Test block management through the engine."""

    def test_create_block_normalizes(self, engine, clock):
        """Test stored blocks use canonical date and time."""
        created = engine.create_block("o1", "2025-03-20T00:00:00", "9.00", reason="Dentist", created_by="o1")
        assert created.id == "id-1"
        assert created.block_date == "2025-03-20"
        assert created.block_time == "09:00"
        assert created.created_at == clock.now
        assert not engine.is_available("o1", "2025-03-20", "09:00")
        assert engine.is_available("o1", "2025-03-20", "10:00")

    def test_duplicate_block_rejected(self, engine):
        """Test the same date and time cannot be blocked twice."""
        engine.block_time("o1", "2025-03-20", "09:00")
        with pytest.raises(ConflictError, match="Duplicate block"):
            engine.block_time("o1", "2025-03-20", "9")
        engine.block_full_day("o1", "2025-03-20")
        with pytest.raises(ConflictError):
            engine.block_full_day("o1", "2025-03-20")

    def test_invalid_time_rejected(self, engine):
        """Test malformed times never reach the store."""
        with pytest.raises(ValueError):
            engine.block_time("o1", "2025-03-20", "25:00")
        assert engine.blocks_for_official("o1") == []

    def test_delete_block_checks_owner(self, engine):
        """Test an official can only delete their own blocks."""
        created = engine.block_full_day("o1", "2025-03-20")
        with pytest.raises(NotFoundError):
            engine.delete_block("o2", created.id)
        engine.delete_block("o1", created.id)
        assert engine.is_available("o1", "2025-03-20", "10:00")
        with pytest.raises(NotFoundError):
            engine.delete_block("o1", created.id)

    def test_month_and_clear(self, engine):
        """Test month summary and clearing every block of an official."""
        engine.block_full_day("o1", "2025-03-20", block_type=BlockType.VACATION)
        engine.block_full_day("o1", "2025-03-21", block_type=BlockType.VACATION)
        engine.block_time("o1", "2025-03-22", "10:00")
        engine.block_full_day("o2", "2025-03-20")
        assert engine.blocked_days_in_month("o1", 2025, 3) == ["2025-03-20", "2025-03-21"]
        assert engine.clear_blocks("o1") == 3
        assert engine.blocked_days_in_month("o1", 2025, 3) == []
        assert engine.blocked_days_in_month("o2", 2025, 3) == ["2025-03-20"]


class TestSchedulingEngineBookings:
    """Test booking checks and commits."""

    def test_book_creates_pending_assignment(self, engine, ana, junta):
        """Test a free slot is booked with canonical values."""
        assignment = engine.book(ana, junta, "2025-03-20", "10", " Sede vecinal ", created_by="admin")
        assert assignment.status == AssignmentStatus.PENDING
        assert assignment.scheduled_time == "10:00"
        assert assignment.location == "Sede vecinal"
        assert assignment.official_name == "Ana Rojas"
        assert assignment.organization_name == junta.organization_name
        assert engine.has_conflict("o1", "2025-03-20", "10:00")
        assert engine.assignments_for_official("o1")[0].id == assignment.id

    def test_blocked_slot_is_hard_failure(self, engine, ana, junta):
        """Test override never books through an availability block."""
        engine.block_full_day("o1", "2025-03-20", reason="Feriado")
        with pytest.raises(PreconditionError, match="not available on 2025-03-20.*Feriado"):
            engine.book(ana, junta, "2025-03-20", "10:00", "Sede", override=True)
        assert engine.assignments_for_official("o1") == []

    def test_double_booking_needs_override(self, engine, ana, junta, caplog):
        """Test a conflict is reported and can be confirmed."""
        engine.book(ana, junta, "2025-03-20", "10:00", "Sede")
        with pytest.raises(ConflictError, match="override"):
            engine.book(ana, junta, "2025-03-20", "10:00", "Otra sede")

        with caplog.at_level(logging.WARNING, logger="services.scheduling"):
            second = engine.book(ana, junta, "2025-03-20", "10:00", "Otra sede", override=True)
        assert second.status == AssignmentStatus.PENDING
        assert len(engine.conflicting_assignments("o1", "2025-03-20", "10:00")) == 2
        assert "override" in caplog.text

    def test_excluded_assignment_is_not_a_conflict(self, engine, ana, junta):
        """Test rebooking the same slot ignores the booking being replaced."""
        first = engine.book(ana, junta, "2025-03-20", "10:00", "Sede")
        engine.book(ana, junta, "2025-03-20", "10:00", "Sede", exclude_assignment_id=first.id)

    def test_inactive_official_and_missing_location(self, engine, ana, junta):
        """Test booking preconditions."""
        with pytest.raises(PreconditionError, match="location"):
            engine.book(ana, junta, "2025-03-20", "10:00", "   ")
        ana.active = False
        with pytest.raises(PreconditionError, match="not active"):
            engine.book(ana, junta, "2025-03-20", "10:00", "Sede")

    def test_cancel_frees_the_slot(self, engine, ana, junta):
        """Test a cancelled booking no longer conflicts."""
        assignment = engine.book(ana, junta, "2025-03-20", "10:00", "Sede")
        cancelled = engine.cancel_assignment(assignment.id, "Assembly moved", "admin", expected_version=1)
        assert cancelled.status == AssignmentStatus.CANCELLED
        assert cancelled.cancellation_reason == "Assembly moved"
        assert cancelled.version == 2
        assert not engine.has_conflict("o1", "2025-03-20", "10:00")
        assert "10:00" in engine.available_times("o1", "2025-03-20")

    def test_cancel_with_stale_version(self, engine, ana, junta):
        """Test a stale cancel is rejected."""
        assignment = engine.book(ana, junta, "2025-03-20", "10:00", "Sede")
        engine.complete_assignment(assignment.id)
        with pytest.raises(StaleWriteError):
            engine.cancel_assignment(assignment.id, "late", expected_version=1)

    def test_stats(self, engine, ana, junta):
        """Test the official's booking statistics."""
        first = engine.book(ana, junta, "2025-03-20", "10:00", "Sede")
        engine.book(ana, junta, "2025-03-20", "11:00", "Sede")
        engine.complete_assignment(first.id, "o1")
        stats = engine.official_stats("o1")
        assert stats["total"] == 2
        assert stats["completed"] == 1
        assert stats["pending"] == 1
