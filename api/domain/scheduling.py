# SPDX-License-Identifier: Apache-2.0

"""
Scheduling rules for Ministro de Fe bookings.

Pure functions over availability blocks and assignments. All dates and
times are canonicalized before comparison, so callers may pass loosely
formatted input.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from models.entities import Assignment, AvailabilityBlock
from models.enums import AssignmentStatus
from utils.timeslots import STANDARD_HOURS, normalize_date, normalize_time


@dataclass
class DayBlocks:
    """Blocked state of one official's day."""
    full_day: bool = False
    times: List[str] = field(default_factory=list)


def _active_blocks(blocks: Iterable[AvailabilityBlock], official_id: str, on_date: str):
    return [
        block for block in blocks
        if block.active and block.official_id == official_id and block.block_date == on_date
    ]


def find_blocking(
    blocks: Iterable[AvailabilityBlock],
    official_id: str,
    on_date: str,
    at_time: str
) -> Optional[AvailabilityBlock]:
    """First active block that makes the slot unavailable, whole-day blocks first."""
    on_date = normalize_date(on_date)
    at_time = normalize_time(at_time)
    day_blocks = _active_blocks(blocks, official_id, on_date)
    for block in day_blocks:
        if block.is_full_day:
            return block
    for block in day_blocks:
        if block.block_time == at_time:
            return block
    return None


def is_available(
    blocks: Iterable[AvailabilityBlock],
    official_id: str,
    on_date: str,
    at_time: str
) -> bool:
    return find_blocking(blocks, official_id, on_date, at_time) is None


def find_duplicate_block(
    blocks: Iterable[AvailabilityBlock],
    official_id: str,
    on_date: str,
    at_time: Optional[str]
) -> Optional[AvailabilityBlock]:
    """Active block already covering exactly (official, date, time-or-whole-day)."""
    on_date = normalize_date(on_date)
    at_time = normalize_time(at_time) if at_time else None
    for block in _active_blocks(blocks, official_id, on_date):
        if block.block_time == at_time:
            return block
    return None


def conflicting_assignments(
    assignments: Iterable[Assignment],
    official_id: str,
    on_date: str,
    at_time: str,
    exclude_id: Optional[str] = None
) -> List[Assignment]:
    """Non-cancelled bookings of the official at exactly the same slot."""
    on_date = normalize_date(on_date)
    at_time = normalize_time(at_time)
    return [
        assignment for assignment in assignments
        if assignment.official_id == official_id
        and assignment.is_active()
        and assignment.scheduled_date == on_date
        and assignment.scheduled_time == at_time
        and assignment.id != exclude_id
    ]


def has_conflict(
    assignments: Iterable[Assignment],
    official_id: str,
    on_date: str,
    at_time: str,
    exclude_id: Optional[str] = None
) -> bool:
    return bool(conflicting_assignments(assignments, official_id, on_date, at_time, exclude_id))


def blocked_times_in_day(
    blocks: Iterable[AvailabilityBlock],
    official_id: str,
    on_date: str
) -> DayBlocks:
    day = DayBlocks()
    for block in _active_blocks(blocks, official_id, normalize_date(on_date)):
        if block.is_full_day:
            day.full_day = True
        elif block.block_time not in day.times:
            day.times.append(block.block_time)
    day.times.sort()
    return day


def blocked_days_in_month(
    blocks: Iterable[AvailabilityBlock],
    official_id: str,
    year: int,
    month: int
) -> List[str]:
    """Dates of the month that carry an active whole-day block."""
    prefix = f"{year:04d}-{month:02d}-"
    days = {
        block.block_date for block in blocks
        if block.active and block.is_full_day
        and block.official_id == official_id
        and block.block_date.startswith(prefix)
    }
    return sorted(days)


def available_times(
    blocks: Iterable[AvailabilityBlock],
    assignments: Iterable[Assignment],
    official_id: str,
    on_date: str,
    hours: Iterable[str] = STANDARD_HOURS
) -> List[str]:
    """Standard hours on which the official is neither blocked nor booked."""
    blocks = list(blocks)
    day = blocked_times_in_day(blocks, official_id, on_date)
    if day.full_day:
        return []
    booked = {
        assignment.scheduled_time
        for assignment in active_assignments_on_day(assignments, official_id, on_date)
    }
    return [hour for hour in hours if hour not in day.times and hour not in booked]


def active_assignments_on_day(
    assignments: Iterable[Assignment],
    official_id: str,
    on_date: str
) -> List[Assignment]:
    on_date = normalize_date(on_date)
    return [
        assignment for assignment in assignments
        if assignment.official_id == official_id
        and assignment.is_active()
        and assignment.scheduled_date == on_date
    ]


def assignment_stats(assignments: Iterable[Assignment]) -> Dict[str, int]:
    """Counts per status plus validated signatures for one official."""
    stats = {
        "total": 0,
        AssignmentStatus.PENDING.value: 0,
        AssignmentStatus.COMPLETED.value: 0,
        AssignmentStatus.CANCELLED.value: 0,
        "signaturesValidated": 0,
    }
    for assignment in assignments:
        stats["total"] += 1
        stats[AssignmentStatus(assignment.status).value] += 1
        if assignment.signatures_validated:
            stats["signaturesValidated"] += 1
    return stats
