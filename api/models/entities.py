# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the community organization certification workflow.
"""

import re
from datetime import date, datetime
from typing import Annotated, List, Optional, Dict, Any, Tuple, Union, Literal
from pydantic import Field, field_validator, model_validator

from .base import BaseEntity, DomainModel, FrozenModel, generate_object_id, utcnow
from .enums import (
    ApplicationStatus,
    AssignmentStatus,
    AttendeeSource,
    BlockType,
    BoardRole,
    BOARD_ROLE_LABELS,
    CorrectionKind,
    DissolutionReason,
    NotificationType,
    OrganizationType
)
from domain.errors import PreconditionError
from utils import identity
from utils.timeslots import normalize_date, normalize_time

COMMISSION_SIZE = 3
COMMISSION_LABEL = "Electoral Commission"


def _required_text(value: str, label: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{label} cannot be empty")
    return str(value).strip()


# People

class FoundingMember(DomainModel):
    """Founding member listed on the application roster."""

    id: str = Field(default_factory=generate_object_id, description="Roster identifier")
    name: str = Field(..., max_length=200, description="Full name")
    rut: str = Field(..., max_length=20, description="Chilean national id")
    birth_date: Optional[str] = Field(None, description="YYYY-MM-DD birth date")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return _required_text(v, "Member name")

    @field_validator('rut')
    @classmethod
    def validate_rut(cls, v):
        return _required_text(v, "Member RUT")

    def is_minor(self, today: Optional[date] = None) -> bool:
        return identity.is_minor(self.birth_date, today)

    def as_person(self) -> "MemberPerson":
        """Reference to this member for the validation protocol."""
        return MemberPerson(id=self.id, name=self.name, rut=self.rut, birth_date=self.birth_date)


class MemberPerson(FrozenModel):
    """Person resolved from the founding roster."""

    source: Literal["member"] = "member"
    id: str
    name: str
    rut: str
    birth_date: Optional[str] = None

    def is_minor(self, today: Optional[date] = None) -> bool:
        return identity.is_minor(self.birth_date, today)


class ManualPerson(FrozenModel):
    """Person typed in by the official, not present on the roster."""

    source: Literal["manual"] = "manual"
    id: None = None
    manual_name: str
    manual_rut: str
    birth_date: Optional[str] = None

    @field_validator('manual_name')
    @classmethod
    def validate_manual_name(cls, v):
        return _required_text(v, "Name")

    @field_validator('manual_rut')
    @classmethod
    def validate_manual_rut(cls, v):
        return _required_text(v, "RUT")

    @property
    def name(self) -> str:
        return self.manual_name

    @property
    def rut(self) -> str:
        return self.manual_rut

    def is_minor(self, today: Optional[date] = None) -> bool:
        return identity.is_minor(self.birth_date, today)


PersonRef = Annotated[Union[MemberPerson, ManualPerson], Field(discriminator="source")]


def same_person(first, second) -> bool:
    """Whether two person references denote the same individual."""
    return identity.same_person(
        first.id, first.name, first.rut,
        second.id, second.name, second.rut
    )


# Signatures and seats

class AttachmentRef(FrozenModel):
    """Content-addressed reference to a stored attachment."""

    sha256: str = Field(..., description="Hex SHA-256 of the content")
    content_type: str = Field(default="application/octet-stream")
    size: int = Field(..., ge=0)

    @field_validator('sha256')
    @classmethod
    def validate_sha256(cls, v):
        if not re.match(r'^[0-9a-f]{64}$', v):
            raise ValueError('sha256 must be 64 lowercase hex characters')
        return v


class Seat(FrozenModel):
    """A person holding a position, with their captured signature."""

    person: PersonRef
    signature: Optional[AttachmentRef] = None


class AdditionalSeat(Seat):
    """Optional extra board seat with a free-text title."""

    cargo: str

    @field_validator('cargo')
    @classmethod
    def validate_cargo(cls, v):
        return _required_text(v, "Cargo")


class Attendee(FrozenModel):
    """Person present at the constitutive assembly."""

    person: PersonRef
    signature: Optional[AttachmentRef] = None
    source: AttendeeSource = AttendeeSource.MEMBER
    signature_from_previous: bool = False


class Directorio(FrozenModel):
    """Provisional board."""

    president: Seat
    secretary: Seat
    treasurer: Seat

    def seat_for(self, role: BoardRole) -> Seat:
        return getattr(self, BoardRole(role).value)


def board_seats(
    directorio: Directorio,
    additional_members: List[AdditionalSeat]
) -> List[Tuple[str, Seat]]:
    """Labelled board seats: the three fixed roles then the additional ones."""
    seats = [(BOARD_ROLE_LABELS[role], directorio.seat_for(role)) for role in BoardRole]
    seats.extend((seat.cargo, seat) for seat in additional_members)
    return seats


def commission_overlap_message(name: str, role_label: str) -> str:
    return (
        f"{name} cannot be part of the {COMMISSION_LABEL} because they "
        f"already hold the {role_label} seat on the Directorio"
    )


def certification_problems(
    directorio: Directorio,
    additional_members: List[AdditionalSeat],
    commission: List[Seat],
    attendees: List[Attendee],
    today: Optional[date] = None
) -> List[str]:
    """
    Check every certification rule and return the problems found.

    Rules: board seats reference pairwise-distinct people; the commission
    has exactly three distinct people, none of them on the board; nobody on
    the board or the commission is a minor; every seat and attendee has a
    signature.
    """
    problems: List[str] = []
    board = board_seats(directorio, additional_members)

    for index, (label, seat) in enumerate(board):
        for other_label, other in board[:index]:
            if same_person(seat.person, other.person):
                problems.append(
                    f"Roles must be distinct: {seat.person.name} is already assigned as {other_label}"
                )

    if len(commission) != COMMISSION_SIZE:
        problems.append(f"The {COMMISSION_LABEL} must have exactly {COMMISSION_SIZE} members")

    for index, seat in enumerate(commission):
        if any(same_person(seat.person, other.person) for other in commission[:index]):
            problems.append(f"{seat.person.name} appears more than once in the {COMMISSION_LABEL}")
        for label, board_seat in board:
            if same_person(seat.person, board_seat.person):
                problems.append(commission_overlap_message(seat.person.name, label))

    seated = board + [(COMMISSION_LABEL, seat) for seat in commission]
    for label, seat in seated:
        if seat.person.is_minor(today):
            problems.append(f"{seat.person.name} is under 18 and cannot hold the {label} seat")
        if seat.signature is None:
            problems.append(f"Missing signature for {seat.person.name} ({label})")

    for index, attendee in enumerate(attendees):
        if any(same_person(attendee.person, other.person) for other in attendees[:index]):
            problems.append(f"{attendee.person.name} is listed twice as an attendee")
        if attendee.signature is None:
            problems.append(f"Missing signature for attendee {attendee.person.name}")

    return problems


class CertificationRecord(FrozenModel):
    """Immutable outcome of the constitutive assembly validation."""

    id: str = Field(default_factory=generate_object_id)
    application_id: str
    assignment_id: str
    official_id: str
    directorio: Directorio
    additional_members: List[AdditionalSeat] = Field(default_factory=list)
    comision_electoral: List[Seat]
    attendees: List[Attendee] = Field(default_factory=list)
    official_signature: AttachmentRef
    notes: str = ""
    certified_at: datetime
    recommended_attendees: int = 0
    warnings: List[str] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_invariants(self):
        """Reject records that break board or commission rules."""
        problems = certification_problems(
            self.directorio,
            self.additional_members,
            self.comision_electoral,
            self.attendees,
            today=self.certified_at.date()
        )
        if problems:
            raise ValueError("; ".join(problems))
        return self


# Corrections

class Correction(FrozenModel):
    """One reviewer annotation on an application."""

    kind: CorrectionKind
    key: str
    comment: str = ""
    label: Optional[str] = None

    @field_validator('key')
    @classmethod
    def validate_key(cls, v):
        return _required_text(v, "Correction key")


class CorrectionSet(DomainModel):
    """Corrections attached to a rejected application."""

    items: List[Correction] = Field(default_factory=list)
    general_comment: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    created_by: Optional[str] = None
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    user_response: Optional[str] = None
    field_responses: Dict[str, str] = Field(default_factory=dict)

    def count(self) -> int:
        return len(self.items)

    def is_outstanding(self) -> bool:
        return not self.resolved and bool(self.items)

    def to_buckets(self) -> Dict[str, Dict[str, Dict[str, Optional[str]]]]:
        """Render as the five keyed buckets used by documents and the UI."""
        buckets: Dict[str, Dict[str, Dict[str, Optional[str]]]] = {
            kind.value: {} for kind in CorrectionKind
        }
        for item in self.items:
            buckets[CorrectionKind(item.kind).value][item.key] = {
                "comment": item.comment,
                "label": item.label
            }
        return buckets

    def resolve(
        self,
        user_response: Optional[str],
        field_responses: Optional[Dict[str, str]],
        at: datetime
    ) -> None:
        """Record the applicant's answer to the corrections."""
        self.resolved = True
        self.resolved_at = at
        self.user_response = user_response
        self.field_responses = dict(field_responses or {})


# Workflow records

class StatusHistoryEntry(FrozenModel):
    """Append-only entry of the application status history."""

    status: ApplicationStatus
    at: datetime = Field(..., alias="date")
    comment: Optional[str] = None
    actor: Optional[str] = None
    corrections: Optional[List[Correction]] = None


class MinistroData(FrozenModel):
    """Official and slot confirmed for the constitutive assembly."""

    official_id: str
    name: str
    rut: str
    scheduled_date: str
    scheduled_time: str
    location: str
    assignment_id: str
    assigned_at: datetime


class AppointmentChange(FrozenModel):
    """Trace of a rescheduled assembly."""

    changed_at: datetime
    changed_by: Optional[str] = None
    previous: MinistroData
    current: MinistroData


class Official(BaseEntity):
    """Ministro de Fe available for constitutive assemblies."""

    name: str = Field(..., max_length=200, description="Full name")
    rut: str = Field(..., max_length=20, description="Chilean national id")
    email: Optional[str] = Field(None, description="Contact email")
    phone: Optional[str] = Field(None, max_length=30, description="Contact phone")
    active: bool = Field(default=True, description="Whether the official takes bookings")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return _required_text(v, "Official name")

    @field_validator('rut')
    @classmethod
    def validate_rut(cls, v):
        return _required_text(v, "Official RUT")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        if v is None:
            return v
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()


class AvailabilityBlock(BaseEntity):
    """Day or slot in which an official cannot take assemblies."""

    official_id: str
    block_date: str = Field(..., alias="date", description="YYYY-MM-DD")
    block_time: Optional[str] = Field(None, alias="time", description="HH:MM, None blocks the whole day")
    block_type: BlockType = BlockType.MANUAL
    reason: Optional[str] = Field(None, max_length=500)
    active: bool = True

    @field_validator('block_date', mode='before')
    @classmethod
    def validate_block_date(cls, v):
        return normalize_date(v)

    @field_validator('block_time', mode='before')
    @classmethod
    def validate_block_time(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return normalize_time(v)

    @property
    def is_full_day(self) -> bool:
        return self.block_time is None


class Assignment(BaseEntity):
    """Booking of an official for an organization's assembly."""

    official_id: str
    official_name: str
    official_rut: str
    organization_id: str
    organization_name: str
    scheduled_date: str
    scheduled_time: str
    location: str
    status: AssignmentStatus = AssignmentStatus.PENDING
    signatures_validated: bool = False
    validated_at: Optional[datetime] = None
    validated_by: Optional[str] = None
    certification_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @field_validator('scheduled_date', mode='before')
    @classmethod
    def validate_scheduled_date(cls, v):
        return normalize_date(v)

    @field_validator('scheduled_time', mode='before')
    @classmethod
    def validate_scheduled_time(cls, v):
        return normalize_time(v)

    def is_active(self) -> bool:
        """Cancelled bookings no longer hold the slot."""
        return self.status != AssignmentStatus.CANCELLED

    def cancel(self, reason: Optional[str], user_id: Optional[str], at: datetime) -> None:
        if self.status == AssignmentStatus.CANCELLED:
            raise PreconditionError("Assignment is already cancelled")
        if self.signatures_validated:
            raise PreconditionError("Cannot cancel an assignment whose signatures were validated")
        self.status = AssignmentStatus.CANCELLED
        self.cancelled_at = at
        self.cancellation_reason = reason
        self.update_timestamp(user_id, at)

    def complete(self, user_id: Optional[str], at: datetime) -> None:
        if self.status != AssignmentStatus.PENDING:
            raise PreconditionError(f"Cannot complete an assignment in status {self.status}")
        self.status = AssignmentStatus.COMPLETED
        self.completed_at = at
        self.update_timestamp(user_id, at)

    def mark_validated(self, certification_id: str, user_id: Optional[str], at: datetime) -> None:
        """Record that the assembly signatures were certified."""
        if self.status == AssignmentStatus.CANCELLED:
            raise PreconditionError("Cannot validate a cancelled assignment")
        if self.signatures_validated:
            raise PreconditionError("Signatures were already validated for this assignment")
        self.signatures_validated = True
        self.validated_at = at
        self.validated_by = user_id
        self.certification_id = certification_id
        if self.status == AssignmentStatus.PENDING:
            self.status = AssignmentStatus.COMPLETED
            self.completed_at = at
        self.update_timestamp(user_id, at)


class OrganizationApplication(BaseEntity):
    """Application to constitute a community organization."""

    organization_name: str = Field(..., max_length=200)
    organization_type: OrganizationType
    address: Optional[str] = Field(None, max_length=200)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    creator_id: str = Field(..., description="Applicant user id")
    members: List[FoundingMember] = Field(default_factory=list)
    election_date: Optional[str] = None
    election_time: Optional[str] = None
    assembly_address: Optional[str] = Field(None, max_length=200)
    status: ApplicationStatus = ApplicationStatus.WAITING_MINISTRO_REQUEST
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    ministro_data: Optional[MinistroData] = None
    appointment_changes: List[AppointmentChange] = Field(default_factory=list)
    appointment_was_modified: bool = False
    certification_record: Optional[CertificationRecord] = None
    provisional_directorio_expires_at: Optional[datetime] = None
    corrections: Optional[CorrectionSet] = None
    dissolved_at: Optional[datetime] = None
    dissolution_reason: Optional[DissolutionReason] = None
    dissolution_details: Optional[str] = None
    dissolved_by: Optional[str] = None

    @field_validator('organization_name')
    @classmethod
    def validate_organization_name(cls, v):
        return _required_text(v, "Organization name")

    @field_validator('election_date', mode='before')
    @classmethod
    def validate_election_date(cls, v):
        return normalize_date(v) if v else None

    @field_validator('election_time', mode='before')
    @classmethod
    def validate_election_time(cls, v):
        return normalize_time(v) if v else None

    @field_validator('members')
    @classmethod
    def validate_members(cls, v):
        """Roster ids must be unique."""
        seen = set()
        for member in v:
            if member.id in seen:
                raise ValueError(f'Duplicate member id: {member.id}')
            seen.add(member.id)
        return v

    def member_by_id(self, member_id: str) -> Optional[FoundingMember]:
        return next((m for m in self.members if m.id == member_id), None)

    def has_outstanding_corrections(self) -> bool:
        return self.corrections is not None and self.corrections.is_outstanding()

    def record_status(
        self,
        status: ApplicationStatus,
        at: datetime,
        actor: Optional[str] = None,
        comment: Optional[str] = None,
        corrections: Optional[List[Correction]] = None
    ) -> None:
        """Set the status and append the matching history entry."""
        self.status = status
        self.status_history.append(StatusHistoryEntry(
            status=status,
            at=at,
            comment=comment,
            actor=actor,
            corrections=list(corrections) if corrections else None
        ))
        self.update_timestamp(actor, at)


class Notification(DomainModel):
    """Message handed to the notification sink."""

    id: str = Field(default_factory=generate_object_id)
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class AuditLog(DomainModel):
    """Audit log entry for workflow accountability."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    timestamp: datetime = Field(default_factory=utcnow, description="Action timestamp")
    user_id: Optional[str] = Field(None, description="User who performed the action")
    entity: str = Field(..., description="Entity type")
    entity_id: str = Field(..., description="Entity identifier")
    action: str = Field(..., description="Action performed")
    before: Optional[Dict[str, Any]] = Field(None, description="State before action")
    after: Optional[Dict[str, Any]] = Field(None, description="State after action")
    trace_id: Optional[str] = Field(None, description="OpenTelemetry trace ID")
    span_id: Optional[str] = Field(None, description="OpenTelemetry span ID")
    schema_version: int = Field(default=1, description="Schema version")

    @field_validator('entity')
    @classmethod
    def validate_entity(cls, v):
        """Validate entity type."""
        valid_entities = ['application', 'assignment', 'official', 'availability_block']
        if v not in valid_entities:
            raise ValueError(f'Invalid entity type: {v}')
        return v
