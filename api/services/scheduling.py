# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Scheduling engine: availability blocks and Ministro de Fe bookings.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from opentelemetry import trace

from domain import scheduling as rules
from domain.errors import ConflictError, NotFoundError, PreconditionError
from models.base import generate_object_id, utcnow
from models.entities import Assignment, AvailabilityBlock, Official, OrganizationApplication
from models.enums import BlockType
from utils.timeslots import normalize_date, normalize_time
from .repositories import AssignmentRepository, AvailabilityRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SchedulingEngine:
    """
    Answers availability questions and commits bookings.

    Availability blocks are a hard constraint. A double booking of the same
    official at the same slot is only advisory: it is reported as a
    conflict unless the administrator explicitly overrides it.
    """

    def __init__(
        self,
        availability: AvailabilityRepository,
        assignments: AssignmentRepository,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = generate_object_id
    ):
        self.availability = availability
        self.assignments = assignments
        self.clock = clock
        self.id_factory = id_factory

    # Queries

    def is_available(self, official_id: str, on_date: str, at_time: str) -> bool:
        blocks = self.availability.for_official(official_id, normalize_date(on_date))
        return rules.is_available(blocks, official_id, on_date, at_time)

    def has_conflict(
        self,
        official_id: str,
        on_date: str,
        at_time: str,
        exclude_assignment_id: Optional[str] = None
    ) -> bool:
        booked = self.assignments.for_official(official_id, normalize_date(on_date))
        return rules.has_conflict(booked, official_id, on_date, at_time, exclude_assignment_id)

    def conflicting_assignments(self, official_id: str, on_date: str, at_time: str) -> List[Assignment]:
        booked = self.assignments.for_official(official_id, normalize_date(on_date))
        return rules.conflicting_assignments(booked, official_id, on_date, at_time)

    def blocked_times_in_day(self, official_id: str, on_date: str) -> rules.DayBlocks:
        blocks = self.availability.for_official(official_id, normalize_date(on_date))
        return rules.blocked_times_in_day(blocks, official_id, on_date)

    def blocked_days_in_month(self, official_id: str, year: int, month: int) -> List[str]:
        return rules.blocked_days_in_month(self.availability.for_official(official_id), official_id, year, month)

    def available_times(self, official_id: str, on_date: str) -> List[str]:
        on_date = normalize_date(on_date)
        return rules.available_times(
            self.availability.for_official(official_id, on_date),
            self.assignments.for_official(official_id, on_date),
            official_id,
            on_date
        )

    def blocks_for_official(self, official_id: str) -> List[AvailabilityBlock]:
        return self.availability.for_official(official_id)

    def assignments_for_official(self, official_id: str) -> List[Assignment]:
        return self.assignments.for_official(official_id)

    def official_stats(self, official_id: str) -> Dict[str, int]:
        return rules.assignment_stats(self.assignments.for_official(official_id))

    # Availability blocks

    def create_block(
        self,
        official_id: str,
        on_date: str,
        at_time: Optional[str] = None,
        block_type: BlockType = BlockType.MANUAL,
        reason: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> AvailabilityBlock:
        """
        Block a whole day (``at_time`` None) or a single slot.

        Raises:
            ConflictError: An active block already covers the same date and time.
        """
        with tracer.start_as_current_span("scheduling.create_block") as span:
            on_date = normalize_date(on_date)
            at_time = normalize_time(at_time) if at_time else None
            span.set_attributes({
                "official.id": official_id,
                "block.date": on_date,
                "block.full_day": at_time is None
            })

            existing = self.availability.for_official(official_id, on_date)
            if rules.find_duplicate_block(existing, official_id, on_date, at_time):
                raise ConflictError(
                    "Duplicate block: the official already has an active block "
                    f"for {on_date} {at_time or '(whole day)'}"
                )

            now = self.clock()
            block = AvailabilityBlock(
                id=self.id_factory(),
                official_id=official_id,
                block_date=on_date,
                block_time=at_time,
                block_type=block_type,
                reason=reason,
                created_at=now,
                updated_at=now,
                created_by=created_by,
                updated_by=created_by
            )
            block = self.availability.add(block)
            logger.info(
                "Availability block created",
                extra={"extra_fields": {
                    "official_id": official_id,
                    "date": on_date,
                    "time": at_time,
                    "block_type": block.block_type
                }}
            )
            return block

    def block_full_day(self, official_id: str, on_date: str, reason: Optional[str] = None,
                       block_type: BlockType = BlockType.MANUAL, created_by: Optional[str] = None) -> AvailabilityBlock:
        return self.create_block(official_id, on_date, None, block_type, reason, created_by)

    def block_time(self, official_id: str, on_date: str, at_time: str, reason: Optional[str] = None,
                   created_by: Optional[str] = None) -> AvailabilityBlock:
        return self.create_block(official_id, on_date, at_time, BlockType.MANUAL, reason, created_by)

    def delete_block(self, official_id: str, block_id: str) -> None:
        block = self.availability.get(block_id)
        if block.official_id != official_id:
            raise NotFoundError("Availability block", block_id)
        self.availability.delete(block_id)
        logger.info(f"Availability block {block_id} deleted for official {official_id}")

    def clear_blocks(self, official_id: str) -> int:
        return self.availability.clear_for_official(official_id)

    # Bookings

    def check_slot(
        self,
        official_id: str,
        on_date: str,
        at_time: str,
        override: bool = False,
        exclude_assignment_id: Optional[str] = None
    ) -> None:
        """
        Raise unless the official can be booked at the slot.

        Raises:
            PreconditionError: The slot is covered by an availability block.
            ConflictError: Another active booking exists and ``override`` is False.
        """
        blocks = self.availability.for_official(official_id, normalize_date(on_date))
        blocking = rules.find_blocking(blocks, official_id, on_date, at_time)
        if blocking is not None:
            scope = "the whole day" if blocking.is_full_day else blocking.block_time
            reason = f": {blocking.reason}" if blocking.reason else ""
            raise PreconditionError(
                f"The official is not available on {blocking.block_date} ({scope} blocked){reason}"
            )

        if self.has_conflict(official_id, on_date, at_time, exclude_assignment_id):
            if not override:
                raise ConflictError(
                    f"The official already has a booking on {normalize_date(on_date)} "
                    f"at {normalize_time(at_time)}; confirm with override to book anyway"
                )
            logger.warning(
                "Double booking confirmed by administrator override",
                extra={"extra_fields": {
                    "official_id": official_id,
                    "date": normalize_date(on_date),
                    "time": normalize_time(at_time)
                }}
            )

    def book(
        self,
        official: Official,
        application: OrganizationApplication,
        on_date: str,
        at_time: str,
        location: str,
        override: bool = False,
        created_by: Optional[str] = None,
        exclude_assignment_id: Optional[str] = None
    ) -> Assignment:
        """Check the slot and persist a pending assignment."""
        with tracer.start_as_current_span("scheduling.book") as span:
            span.set_attributes({
                "official.id": official.id,
                "application.id": application.id,
                "booking.override": override
            })
            if not official.active:
                raise PreconditionError(f"Official {official.name} is not active")
            if not location or not location.strip():
                raise PreconditionError("A location is required for the assembly")

            self.check_slot(official.id, on_date, at_time, override, exclude_assignment_id)

            now = self.clock()
            assignment = Assignment(
                id=self.id_factory(),
                official_id=official.id,
                official_name=official.name,
                official_rut=official.rut,
                organization_id=application.id,
                organization_name=application.organization_name,
                scheduled_date=on_date,
                scheduled_time=at_time,
                location=location.strip(),
                created_at=now,
                updated_at=now,
                created_by=created_by,
                updated_by=created_by
            )
            return self.assignments.create(assignment)

    def cancel_assignment(
        self,
        assignment_id: str,
        reason: Optional[str],
        user_id: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> Assignment:
        assignment = self.assignments.get(assignment_id)
        assignment.require_version(expected_version)
        assignment.cancel(reason, user_id, self.clock())
        logger.info(f"Assignment {assignment_id} cancelled: {reason}")
        return self.assignments.update(assignment)

    def complete_assignment(
        self,
        assignment_id: str,
        user_id: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> Assignment:
        assignment = self.assignments.get(assignment_id)
        assignment.require_version(expected_version)
        assignment.complete(user_id, self.clock())
        return self.assignments.update(assignment)
