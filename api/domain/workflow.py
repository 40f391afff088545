# SPDX-License-Identifier: Apache-2.0

"""
Organization application state machine.

Every transition validates the current status against a single transition
table, applies its own preconditions and appends exactly one history
entry. Functions mutate the application passed in; persistence belongs to
the service layer.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional, Sequence

from models.entities import (
    AppointmentChange,
    CertificationRecord,
    Correction,
    CorrectionSet,
    MinistroData,
    OrganizationApplication
)
from models.enums import ApplicationStatus, DissolutionReason
from .errors import PreconditionError

logger = logging.getLogger(__name__)

S = ApplicationStatus

ALLOWED_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    S.WAITING_MINISTRO_REQUEST: frozenset({S.MINISTRO_SCHEDULED}),
    S.MINISTRO_SCHEDULED: frozenset({S.MINISTRO_SCHEDULED, S.MINISTRO_APPROVED}),
    S.MINISTRO_APPROVED: frozenset({S.PENDING_REVIEW}),
    S.PENDING_REVIEW: frozenset({S.IN_REVIEW}),
    S.IN_REVIEW: frozenset({S.REJECTED, S.SENT_TO_REGISTRY}),
    S.REJECTED: frozenset({S.PENDING_REVIEW}),
    S.SENT_TO_REGISTRY: frozenset({S.APPROVED, S.REJECTED}),
    S.APPROVED: frozenset({S.DISSOLVED}),
    S.DISSOLVED: frozenset(),
}

PROVISIONAL_DIRECTORIO_DAYS = 60


def can_transition(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    return ApplicationStatus(target) in ALLOWED_TRANSITIONS[ApplicationStatus(current)]


def _require(
    app: OrganizationApplication,
    target: ApplicationStatus,
    from_status: Optional[ApplicationStatus] = None
) -> None:
    current = ApplicationStatus(app.status)
    if from_status is not None and current != from_status:
        raise PreconditionError(
            f"Application {app.id} must be in status {from_status.value} "
            f"to move to {target.value}, found {current.value}"
        )
    if not can_transition(current, target):
        raise PreconditionError(
            f"Application {app.id} cannot move from {current.value} to {target.value}"
        )


def review_outcome(corrections: Sequence[Correction]) -> ApplicationStatus:
    """
    Only admissible outcome of a review given its corrections.

    Any correction means the application goes back to the applicant; none
    means it can be forwarded to the registry.
    """
    return S.REJECTED if corrections else S.SENT_TO_REGISTRY


def _require_review_outcome(corrections: Sequence[Correction], expected: ApplicationStatus) -> None:
    if review_outcome(corrections) == expected:
        return
    if expected == S.REJECTED:
        raise PreconditionError("A rejection requires at least one correction")
    raise PreconditionError(
        f"Cannot send to registry with {len(corrections)} outstanding correction(s)"
    )


def schedule_official(
    app: OrganizationApplication,
    ministro: MinistroData,
    at: datetime,
    actor: Optional[str] = None
) -> Optional[MinistroData]:
    """
    Attach the booked official and move to MINISTRO_SCHEDULED.

    From MINISTRO_SCHEDULED this is a reschedule: the previous booking is
    recorded in ``appointment_changes``. Returns the replaced booking, if any.
    """
    _require(app, S.MINISTRO_SCHEDULED)
    previous = app.ministro_data
    rescheduled = ApplicationStatus(app.status) == S.MINISTRO_SCHEDULED and previous is not None

    if rescheduled:
        app.appointment_changes.append(AppointmentChange(
            changed_at=at,
            changed_by=actor,
            previous=previous,
            current=ministro
        ))
        app.appointment_was_modified = True

    app.ministro_data = ministro
    verb = "rescheduled" if rescheduled else "scheduled"
    app.record_status(
        S.MINISTRO_SCHEDULED,
        at,
        actor,
        f"Ministro de Fe {ministro.name} {verb} for {ministro.scheduled_date} "
        f"{ministro.scheduled_time} at {ministro.location}"
    )
    return previous if rescheduled else None


def complete_certification(
    app: OrganizationApplication,
    record: CertificationRecord,
    at: datetime,
    actor: Optional[str] = None
) -> None:
    """Attach the certification record and move to MINISTRO_APPROVED."""
    _require(app, S.MINISTRO_APPROVED)
    if record.application_id != app.id:
        raise PreconditionError("Certification record belongs to a different application")
    if app.ministro_data is None or record.assignment_id != app.ministro_data.assignment_id:
        raise PreconditionError("Certification record does not match the scheduled assignment")

    app.certification_record = record
    app.provisional_directorio_expires_at = record.certified_at + timedelta(days=PROVISIONAL_DIRECTORIO_DAYS)
    app.record_status(
        S.MINISTRO_APPROVED,
        at,
        actor,
        "Constitutive assembly certified by the Ministro de Fe"
    )


def submit_for_review(
    app: OrganizationApplication,
    at: datetime,
    actor: Optional[str] = None,
    comment: Optional[str] = None
) -> None:
    _require(app, S.PENDING_REVIEW, from_status=S.MINISTRO_APPROVED)
    if app.certification_record is None:
        raise PreconditionError("Application has no certification record")
    app.record_status(S.PENDING_REVIEW, at, actor, comment or "Submitted for municipal review")


def start_review(
    app: OrganizationApplication,
    at: datetime,
    actor: Optional[str] = None
) -> None:
    _require(app, S.IN_REVIEW)
    app.record_status(S.IN_REVIEW, at, actor, "Review started")


def reject_with_corrections(
    app: OrganizationApplication,
    corrections: CorrectionSet,
    at: datetime,
    actor: Optional[str] = None
) -> None:
    """Send the application back to the applicant with the given corrections."""
    _require(app, S.REJECTED, from_status=S.IN_REVIEW)
    _require_review_outcome(corrections.items, S.REJECTED)
    _attach_rejection(app, corrections, at, actor)


def registry_reject(
    app: OrganizationApplication,
    corrections: CorrectionSet,
    at: datetime,
    actor: Optional[str] = None
) -> None:
    """Rejection issued by the registry after forwarding."""
    _require(app, S.REJECTED, from_status=S.SENT_TO_REGISTRY)
    _require_review_outcome(corrections.items, S.REJECTED)
    _attach_rejection(app, corrections, at, actor)


def _attach_rejection(
    app: OrganizationApplication,
    corrections: CorrectionSet,
    at: datetime,
    actor: Optional[str]
) -> None:
    app.corrections = corrections
    app.record_status(
        S.REJECTED,
        at,
        actor,
        corrections.general_comment or f"{corrections.count()} correction(s) required",
        corrections=corrections.items
    )


def send_to_registry(
    app: OrganizationApplication,
    pending: Sequence[Correction],
    at: datetime,
    actor: Optional[str] = None
) -> None:
    """Forward a clean application. ``pending`` is the reviewer's working set."""
    _require(app, S.SENT_TO_REGISTRY, from_status=S.IN_REVIEW)
    outstanding: List[Correction] = list(pending)
    if app.has_outstanding_corrections():
        outstanding.extend(app.corrections.items)
    _require_review_outcome(outstanding, S.SENT_TO_REGISTRY)
    app.record_status(S.SENT_TO_REGISTRY, at, actor, "Sent to the registry")


def approve(
    app: OrganizationApplication,
    at: datetime,
    actor: Optional[str] = None,
    comment: Optional[str] = None
) -> None:
    _require(app, S.APPROVED, from_status=S.SENT_TO_REGISTRY)
    app.record_status(S.APPROVED, at, actor, comment or "Organization approved")


def resubmit(
    app: OrganizationApplication,
    user_response: Optional[str],
    field_responses: Optional[Dict[str, str]],
    at: datetime,
    actor: Optional[str] = None
) -> None:
    """Applicant answers the corrections; the application returns to PENDING_REVIEW."""
    _require(app, S.PENDING_REVIEW, from_status=S.REJECTED)
    if app.corrections is not None:
        app.corrections.resolve(user_response, field_responses, at)
    app.record_status(
        S.PENDING_REVIEW,
        at,
        actor,
        user_response or "Corrections submitted by the applicant"
    )


def dissolve(
    app: OrganizationApplication,
    reason: DissolutionReason,
    details: Optional[str],
    at: datetime,
    actor: Optional[str] = None
) -> None:
    """Dissolve an approved organization. There is no way back."""
    _require(app, S.DISSOLVED, from_status=S.APPROVED)
    reason = DissolutionReason(reason)
    if reason == DissolutionReason.OTRA and not (details and details.strip()):
        raise PreconditionError("Details are required when the dissolution reason is 'otra'")

    app.dissolved_at = at
    app.dissolution_reason = reason
    app.dissolution_details = details
    app.dissolved_by = actor
    comment = f"Dissolved: {reason.value}"
    if details:
        comment = f"{comment} - {details}"
    app.record_status(S.DISSOLVED, at, actor, comment)
    logger.info(f"Application {app.id} dissolved ({reason.value})")
