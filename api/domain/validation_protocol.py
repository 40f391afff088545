# SPDX-License-Identifier: Apache-2.0

"""
Constitutive assembly validation protocol.

The Ministro de Fe collects, in order: the directorio (president, secretary,
treasurer), optional additional board seats, the three-member electoral
commission, the attendee roster and a final confirmation with their own
signature. Each step is validated before the next one opens, and
finalization re-checks every rule before emitting the immutable
CertificationRecord.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Set

from models.entities import (
    COMMISSION_LABEL,
    COMMISSION_SIZE,
    AdditionalSeat,
    AttachmentRef,
    Attendee,
    CertificationRecord,
    Directorio,
    FoundingMember,
    ManualPerson,
    MemberPerson,
    Seat,
    certification_problems,
    commission_overlap_message,
    same_person
)
from models.enums import (
    AttendeeSource,
    BoardRole,
    BOARD_ROLE_LABELS,
    OrganizationType,
    ProtocolStep
)
from .errors import ConflictError, NotFoundError, PreconditionError

logger = logging.getLogger(__name__)

RECOMMENDED_ATTENDEES: Dict[str, int] = {
    OrganizationType.JUNTA_VECINOS.value: 50,
}
DEFAULT_RECOMMENDED_ATTENDEES = 15


def recommended_attendees(organization_type: OrganizationType) -> int:
    """Advisory minimum attendance for the organization category."""
    return RECOMMENDED_ATTENDEES.get(OrganizationType(organization_type).value, DEFAULT_RECOMMENDED_ATTENDEES)


@dataclass
class ValidationResult:
    """Result of validating one protocol step."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    has_conflict: bool = False


class _Collector:
    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []
        self.conflict = False

    def error(self, message: str, conflict: bool = False) -> None:
        self.errors.append(message)
        self.conflict = self.conflict or conflict

    def result(self) -> ValidationResult:
        return ValidationResult(
            is_valid=not self.errors,
            errors=self.errors,
            warnings=self.warnings,
            has_conflict=self.conflict
        )


class ValidationSession:
    """
    Stateful, step-ordered validation run by the official.

    Nothing is persisted until ``finalize`` returns the record; an abandoned
    session leaves no trace.
    """

    def __init__(
        self,
        application_id: str,
        assignment_id: str,
        official_id: str,
        organization_type: OrganizationType,
        members: List[FoundingMember],
        today: Optional[date] = None
    ):
        self.application_id = application_id
        self.assignment_id = assignment_id
        self.official_id = official_id
        self.organization_type = OrganizationType(organization_type)
        self._members: Dict[str, FoundingMember] = {member.id: member for member in members}
        self._today = today or date.today()

        self._board: Dict[BoardRole, Seat] = {}
        self._additional: List[AdditionalSeat] = []
        self._commission: List[Optional[Seat]] = [None] * COMMISSION_SIZE
        self._extra_attendees: List[Attendee] = []
        self._notes = ""
        self._official_signature: Optional[AttachmentRef] = None
        self._completed: Set[ProtocolStep] = set()

    # People

    def resolve_member(self, member_id: str) -> MemberPerson:
        member = self._members.get(member_id)
        if member is None:
            raise NotFoundError("Founding member", member_id)
        return member.as_person()

    @staticmethod
    def manual_person(name: str, rut: str, birth_date: Optional[str] = None) -> ManualPerson:
        return ManualPerson(manual_name=name, manual_rut=rut, birth_date=birth_date)

    def _is_minor(self, person) -> bool:
        return person.is_minor(self._today)

    def _require_adult(self, person, label: str) -> None:
        if self._is_minor(person):
            raise PreconditionError(f"{person.name} is under 18 and cannot hold the {label} seat")

    # Step bookkeeping

    @property
    def current_step(self) -> Optional[ProtocolStep]:
        """First step not yet completed, None when all are."""
        for step in ProtocolStep:
            if step not in self._completed:
                return step
        return None

    def is_completed(self, step: ProtocolStep) -> bool:
        return ProtocolStep(step) in self._completed

    def _reopen(self, step: ProtocolStep) -> None:
        """Editing a step invalidates it and every later step."""
        self._completed = {done for done in self._completed if done < step}

    # Step 1: directorio

    def assign_role(
        self,
        role: BoardRole,
        person,
        signature: Optional[AttachmentRef] = None
    ) -> None:
        role = BoardRole(role)
        self._require_adult(person, BOARD_ROLE_LABELS[role])
        self._reopen(ProtocolStep.DIRECTORIO)
        self._board[role] = Seat(person=person, signature=signature)

    def sign_role(self, role: BoardRole, signature: AttachmentRef) -> None:
        role = BoardRole(role)
        seat = self._board.get(role)
        if seat is None:
            raise PreconditionError(f"No person assigned as {BOARD_ROLE_LABELS[role]}")
        self._reopen(ProtocolStep.DIRECTORIO)
        self._board[role] = seat.model_copy(update={"signature": signature})

    def clear_role(self, role: BoardRole) -> None:
        self._reopen(ProtocolStep.DIRECTORIO)
        self._board.pop(BoardRole(role), None)

    def eligible_members(self) -> List[FoundingMember]:
        """Roster members that can still take a seat: adults not yet seated."""
        seated = [seat.person for seat in self._all_seats()]
        return [
            member for member in self._members.values()
            if not member.is_minor(self._today)
            and not any(same_person(member.as_person(), person) for person in seated)
        ]

    def _all_seats(self) -> List[Seat]:
        seats = list(self._board.values()) + list(self._additional)
        seats.extend(seat for seat in self._commission if seat is not None)
        return seats

    def validate_directorio(self) -> ValidationResult:
        check = _Collector()
        seen = []
        for role in BoardRole:
            label = BOARD_ROLE_LABELS[role]
            seat = self._board.get(role)
            if seat is None:
                check.error(f"{label} has not been selected")
                continue
            for other_label, other in seen:
                if same_person(seat.person, other.person):
                    check.error(
                        f"Roles must be distinct: {seat.person.name} is already assigned as {other_label}",
                        conflict=True
                    )
            seen.append((label, seat))
            if self._is_minor(seat.person):
                check.error(f"{seat.person.name} is under 18 and cannot hold the {label} seat")
            if seat.signature is None:
                check.error(f"Missing signature for {seat.person.name} ({label})")
        return check.result()

    # Step 2: additional board seats

    def add_additional_seat(
        self,
        cargo: str,
        person,
        signature: Optional[AttachmentRef] = None
    ) -> int:
        """Add a seat and return its index."""
        seat = AdditionalSeat(cargo=cargo, person=person, signature=signature)
        self._require_adult(person, seat.cargo)
        self._reopen(ProtocolStep.ADDITIONAL_SEATS)
        self._additional.append(seat)
        return len(self._additional) - 1

    def sign_additional_seat(self, index: int, signature: AttachmentRef) -> None:
        seat = self._additional_at(index)
        self._reopen(ProtocolStep.ADDITIONAL_SEATS)
        self._additional[index] = seat.model_copy(update={"signature": signature})

    def remove_additional_seat(self, index: int) -> None:
        self._additional_at(index)
        self._reopen(ProtocolStep.ADDITIONAL_SEATS)
        del self._additional[index]

    def _additional_at(self, index: int) -> AdditionalSeat:
        if not 0 <= index < len(self._additional):
            raise PreconditionError(f"No additional seat at position {index + 1}")
        return self._additional[index]

    def validate_additional_seats(self) -> ValidationResult:
        check = _Collector()
        board = [(BOARD_ROLE_LABELS[role], seat) for role, seat in self._board.items()]
        for seat in self._additional:
            for label, other in board:
                if same_person(seat.person, other.person):
                    check.error(
                        f"Roles must be distinct: {seat.person.name} is already assigned as {label}",
                        conflict=True
                    )
            board.append((seat.cargo, seat))
            if self._is_minor(seat.person):
                check.error(f"{seat.person.name} is under 18 and cannot hold the {seat.cargo} seat")
            if seat.signature is None:
                check.error(f"Missing signature for {seat.person.name} ({seat.cargo})")
        return check.result()

    # Step 3: electoral commission

    def set_commission_member(
        self,
        index: int,
        person,
        signature: Optional[AttachmentRef] = None
    ) -> None:
        if not 0 <= index < COMMISSION_SIZE:
            raise PreconditionError(f"The {COMMISSION_LABEL} has {COMMISSION_SIZE} seats")
        self._require_adult(person, COMMISSION_LABEL)
        self._reopen(ProtocolStep.ELECTORAL_COMMISSION)
        self._commission[index] = Seat(person=person, signature=signature)

    def sign_commission_member(self, index: int, signature: AttachmentRef) -> None:
        if not 0 <= index < COMMISSION_SIZE or self._commission[index] is None:
            raise PreconditionError(f"No {COMMISSION_LABEL} member at position {index + 1}")
        self._reopen(ProtocolStep.ELECTORAL_COMMISSION)
        self._commission[index] = self._commission[index].model_copy(update={"signature": signature})

    def validate_commission(self) -> ValidationResult:
        check = _Collector()
        board = [(BOARD_ROLE_LABELS[role], seat) for role, seat in self._board.items()]
        board.extend((seat.cargo, seat) for seat in self._additional)
        chosen: List[Seat] = []
        for position, seat in enumerate(self._commission, start=1):
            if seat is None:
                check.error(f"{COMMISSION_LABEL} member {position} has not been selected")
                continue
            for label, board_seat in board:
                if same_person(seat.person, board_seat.person):
                    check.error(commission_overlap_message(seat.person.name, label), conflict=True)
            if any(same_person(seat.person, other.person) for other in chosen):
                check.error(
                    f"{seat.person.name} appears more than once in the {COMMISSION_LABEL}",
                    conflict=True
                )
            chosen.append(seat)
            if self._is_minor(seat.person):
                check.error(f"{seat.person.name} is under 18 and cannot hold the {COMMISSION_LABEL} seat")
            if seat.signature is None:
                check.error(f"Missing signature for {seat.person.name} ({COMMISSION_LABEL})")
        return check.result()

    # Step 4: attendees

    def seeded_attendees(self) -> List[Attendee]:
        """Board and commission members, carrying over their signatures."""
        seeded: List[Attendee] = []
        sources = [(AttendeeSource.DIRECTORIO, self._board.get(role)) for role in BoardRole]
        sources.extend((AttendeeSource.ADDITIONAL, seat) for seat in self._additional)
        sources.extend((AttendeeSource.COMMISSION, seat) for seat in self._commission)
        for source, seat in sources:
            if seat is None:
                continue
            if any(same_person(seat.person, attendee.person) for attendee in seeded):
                continue
            seeded.append(Attendee(
                person=seat.person,
                signature=seat.signature,
                source=source,
                signature_from_previous=True
            ))
        return seeded

    def attendees(self) -> List[Attendee]:
        return self.seeded_attendees() + list(self._extra_attendees)

    def _add_attendee(self, attendee: Attendee) -> None:
        if any(same_person(attendee.person, other.person) for other in self.attendees()):
            raise ConflictError(f"{attendee.person.name} is already on the attendee list")
        self._reopen(ProtocolStep.ATTENDEES)
        self._extra_attendees.append(attendee)

    def add_member_attendee(self, member_id: str, signature: Optional[AttachmentRef] = None) -> None:
        self._add_attendee(Attendee(
            person=self.resolve_member(member_id),
            signature=signature,
            source=AttendeeSource.MEMBER
        ))

    def add_external_attendee(
        self,
        name: str,
        rut: str,
        signature: Optional[AttachmentRef] = None,
        birth_date: Optional[str] = None
    ) -> None:
        self._add_attendee(Attendee(
            person=self.manual_person(name, rut, birth_date),
            signature=signature,
            source=AttendeeSource.EXTERNAL
        ))

    def remove_attendee(self, index: int) -> None:
        """Remove an added attendee; seeded ones follow their seats."""
        if not 0 <= index < len(self._extra_attendees):
            raise PreconditionError(f"No added attendee at position {index + 1}")
        self._reopen(ProtocolStep.ATTENDEES)
        del self._extra_attendees[index]

    def validate_attendees(self) -> ValidationResult:
        check = _Collector()
        for attendee in self._extra_attendees:
            if attendee.signature is None:
                check.error(f"Missing signature for attendee {attendee.person.name}")
        total = len(self.attendees())
        minimum = recommended_attendees(self.organization_type)
        if total < minimum:
            check.warnings.append(
                f"{total} attendee(s) registered; {minimum} are recommended "
                f"for {self.organization_type.value}"
            )
        return check.result()

    # Step 5: confirmation

    def confirm(self, official_signature: Optional[AttachmentRef], notes: str = "") -> None:
        self._reopen(ProtocolStep.CONFIRMATION)
        self._official_signature = official_signature
        self._notes = (notes or "").strip()

    def validate_confirmation(self) -> ValidationResult:
        check = _Collector()
        if self._official_signature is None:
            check.error("The Ministro de Fe signature is required")
        return check.result()

    # Driving the steps

    def validate_step(self, step: ProtocolStep) -> ValidationResult:
        validators = {
            ProtocolStep.DIRECTORIO: self.validate_directorio,
            ProtocolStep.ADDITIONAL_SEATS: self.validate_additional_seats,
            ProtocolStep.ELECTORAL_COMMISSION: self.validate_commission,
            ProtocolStep.ATTENDEES: self.validate_attendees,
            ProtocolStep.CONFIRMATION: self.validate_confirmation,
        }
        return validators[ProtocolStep(step)]()

    def complete_step(self, step: ProtocolStep) -> ValidationResult:
        """
        Validate a step and unlock the next one.

        Raises:
            PreconditionError: An earlier step is still open, or data is missing.
            ConflictError: A person is repeated or sits on both board and commission.
        """
        step = ProtocolStep(step)
        for earlier in ProtocolStep:
            if earlier < step and earlier not in self._completed:
                raise PreconditionError(f"Step {earlier.value} ({earlier.name.lower()}) must be completed first")

        result = self.validate_step(step)
        if not result.is_valid:
            error_class = ConflictError if result.has_conflict else PreconditionError
            raise error_class("; ".join(result.errors), errors=result.errors)

        self._completed.add(step)
        if result.warnings:
            logger.warning(
                f"Validation step {step.name} completed with warnings",
                extra={"extra_fields": {
                    "assignment_id": self.assignment_id,
                    "warnings": result.warnings
                }}
            )
        return result

    def finalize(self, certified_at: datetime) -> CertificationRecord:
        """Re-check every rule and emit the immutable record."""
        missing = [step for step in ProtocolStep if step not in self._completed]
        if missing:
            names = ", ".join(step.name.lower() for step in missing)
            raise PreconditionError(f"Validation steps not completed: {names}")

        directorio = Directorio(
            president=self._board[BoardRole.PRESIDENT],
            secretary=self._board[BoardRole.SECRETARY],
            treasurer=self._board[BoardRole.TREASURER]
        )
        commission = [seat for seat in self._commission if seat is not None]
        attendees = self.attendees()

        problems = certification_problems(
            directorio,
            self._additional,
            commission,
            attendees,
            today=certified_at.date()
        )
        if self._official_signature is None:
            problems.append("The Ministro de Fe signature is required")
        if problems:
            raise PreconditionError("; ".join(problems), errors=problems)

        warnings = self.validate_attendees().warnings
        return CertificationRecord(
            application_id=self.application_id,
            assignment_id=self.assignment_id,
            official_id=self.official_id,
            directorio=directorio,
            additional_members=list(self._additional),
            comision_electoral=commission,
            attendees=attendees,
            official_signature=self._official_signature,
            notes=self._notes,
            certified_at=certified_at,
            recommended_attendees=recommended_attendees(self.organization_type),
            warnings=warnings
        )

