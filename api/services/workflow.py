# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Organization workflow service.

Loads an application, applies one state-machine transition from
``domain.workflow``, persists it with a version check, writes the audit
entry and notifies the applicant.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from opentelemetry import trace

from domain import workflow as machine
from domain.corrections import CorrectionTracker
from domain.errors import DomainError, PreconditionError
from models.base import generate_object_id, utcnow
from models.entities import (
    Assignment,
    CertificationRecord,
    Correction,
    MinistroData,
    OrganizationApplication
)
from models.enums import ApplicationStatus, DissolutionReason, NotificationType
from .audit import AuditService
from .repositories import (
    ApplicationRepository,
    AssignmentRepository,
    NotificationSink,
    OfficialRegistry
)
from .scheduling import SchedulingEngine

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

STATUS_TITLES: Dict[str, str] = {
    ApplicationStatus.MINISTRO_SCHEDULED.value: "Ministro de Fe scheduled",
    ApplicationStatus.MINISTRO_APPROVED.value: "Constitutive assembly certified",
    ApplicationStatus.PENDING_REVIEW.value: "Application submitted for review",
    ApplicationStatus.IN_REVIEW.value: "Application under review",
    ApplicationStatus.REJECTED.value: "Corrections required",
    ApplicationStatus.SENT_TO_REGISTRY.value: "Application sent to the registry",
    ApplicationStatus.APPROVED.value: "Organization approved",
    ApplicationStatus.DISSOLVED.value: "Organization dissolved",
}

CorrectionsInput = Union[CorrectionTracker, Iterable[Correction]]


class OrganizationWorkflowService:
    """Application lifecycle operations with persistence and side effects."""

    def __init__(
        self,
        applications: ApplicationRepository,
        officials: OfficialRegistry,
        assignments: AssignmentRepository,
        engine: SchedulingEngine,
        notifications: NotificationSink,
        audit: AuditService,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = generate_object_id
    ):
        self.applications = applications
        self.officials = officials
        self.assignments = assignments
        self.engine = engine
        self.notifications = notifications
        self.audit = audit
        self.clock = clock
        self.id_factory = id_factory

    # Queries

    def get_application(self, application_id: str) -> OrganizationApplication:
        return self.applications.get(application_id)

    def list_applications(
        self,
        status: Optional[ApplicationStatus] = None,
        creator_id: Optional[str] = None
    ) -> List[OrganizationApplication]:
        if status is not None:
            found = self.applications.find_by_status(ApplicationStatus(status))
            if creator_id is not None:
                found = [app for app in found if app.creator_id == creator_id]
            return found
        if creator_id is not None:
            return self.applications.find_by_creator(creator_id)
        return self.applications.list_all()

    # Creation

    def create_application(
        self,
        data: Dict[str, Any],
        actor: Optional[str] = None
    ) -> OrganizationApplication:
        """Register a new application in WAITING_MINISTRO_REQUEST."""
        with tracer.start_as_current_span("workflow.create_application") as span:
            now = self.clock()
            fields = dict(data)
            fields.setdefault("creator_id", actor)
            fields.update({
                "id": self.id_factory(),
                "status": ApplicationStatus.WAITING_MINISTRO_REQUEST,
                "created_at": now,
                "updated_at": now,
                "created_by": actor,
                "updated_by": actor
            })
            application = OrganizationApplication.model_validate(fields)
            application.record_status(
                ApplicationStatus.WAITING_MINISTRO_REQUEST,
                now,
                actor,
                "Application created"
            )
            application = self.applications.create(application)
            span.set_attribute("application.id", application.id)

            self.audit.log_action(
                actor, "application", application.id, "create",
                after={"status": application.status, "organizationName": application.organization_name}
            )
            logger.info(
                "Application created",
                extra={"extra_fields": {
                    "application_id": application.id,
                    "organization_type": application.organization_type,
                    "members": len(application.members)
                }}
            )
            return application

    # Scheduling

    def schedule_official(
        self,
        application_id: str,
        official_id: str,
        on_date: str,
        at_time: str,
        location: str,
        override: bool = False,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> Tuple[OrganizationApplication, Assignment]:
        """
        Book an official for the constitutive assembly.

        Scheduling again from MINISTRO_SCHEDULED reschedules: the previous
        booking is cancelled and the change is recorded on the application.

        Raises:
            PreconditionError: Wrong status, inactive official or blocked slot.
            ConflictError: The official is already booked and ``override`` is False.
            StaleWriteError: ``expected_version`` does not match.
        """
        with tracer.start_as_current_span("workflow.schedule_official") as span:
            span.set_attributes({
                "application.id": application_id,
                "official.id": official_id,
                "booking.override": override
            })
            application = self.applications.get(application_id)
            application.require_version(expected_version)
            current = ApplicationStatus(application.status)
            if not machine.can_transition(current, ApplicationStatus.MINISTRO_SCHEDULED):
                raise PreconditionError(
                    f"Application {application.id} cannot be scheduled in status {current.value}"
                )

            previous = application.ministro_data
            official = self.officials.get(official_id)
            replaced_id = None
            if previous is not None and previous.official_id == official.id:
                replaced_id = previous.assignment_id

            assignment = self.engine.book(
                official,
                application,
                on_date,
                at_time,
                location,
                override=override,
                created_by=actor,
                exclude_assignment_id=replaced_id
            )

            now = self.clock()
            ministro = MinistroData(
                official_id=official.id,
                name=official.name,
                rut=official.rut,
                scheduled_date=assignment.scheduled_date,
                scheduled_time=assignment.scheduled_time,
                location=assignment.location,
                assignment_id=assignment.id,
                assigned_at=now
            )
            replaced = machine.schedule_official(application, ministro, now, actor)
            try:
                application = self.applications.update(application)
            except DomainError:
                logger.warning(
                    "Scheduling aborted, releasing booking",
                    extra={"extra_fields": {"application_id": application_id, "assignment_id": assignment.id}}
                )
                self.engine.cancel_assignment(assignment.id, "Scheduling aborted", actor)
                raise

            if replaced is not None:
                self._release(replaced.assignment_id, actor)

            self.audit.log_action(
                actor, "application", application.id,
                "reschedule" if replaced else "schedule",
                before={"status": current.value, "assignmentId": previous.assignment_id if previous else None},
                after={"status": application.status, "assignmentId": assignment.id}
            )
            self._notify_schedule(application, ministro, replaced)
            return application, assignment

    def _release(self, assignment_id: str, actor: Optional[str]) -> None:
        """Cancel the replaced booking unless it was already cancelled."""
        previous = self.assignments.get(assignment_id)
        if previous.is_active():
            self.engine.cancel_assignment(assignment_id, "Rescheduled", actor, expected_version=previous.version)

    def _notify_schedule(
        self,
        application: OrganizationApplication,
        ministro: MinistroData,
        replaced: Optional[MinistroData]
    ) -> None:
        when = f"{ministro.scheduled_date} {ministro.scheduled_time}"
        data = {
            "applicationId": application.id,
            "assignmentId": ministro.assignment_id,
            "date": ministro.scheduled_date,
            "time": ministro.scheduled_time,
            "location": ministro.location
        }
        if replaced is None:
            self.notifications.create(
                application.creator_id,
                NotificationType.MINISTRO_ASSIGNED,
                "Ministro de Fe assigned",
                f"{ministro.name} will certify the assembly of "
                f"{application.organization_name} on {when} at {ministro.location}",
                data
            )
        else:
            data["previous"] = {
                "officialId": replaced.official_id,
                "date": replaced.scheduled_date,
                "time": replaced.scheduled_time,
                "location": replaced.location
            }
            self.notifications.create(
                application.creator_id,
                NotificationType.SCHEDULE_CHANGE,
                "Assembly rescheduled",
                f"The assembly of {application.organization_name} was moved to {when} "
                f"at {ministro.location} with {ministro.name}",
                data
            )
        self.notifications.create(
            ministro.official_id,
            NotificationType.MINISTRO_ASSIGNED,
            "New assembly assigned",
            f"Constitutive assembly of {application.organization_name} on {when} at {ministro.location}",
            data
        )

    # Certification

    def complete_certification(
        self,
        application_id: str,
        record: CertificationRecord,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> OrganizationApplication:
        """Attach the certification record and mark the assignment validated."""
        with tracer.start_as_current_span("workflow.complete_certification") as span:
            span.set_attributes({
                "application.id": application_id,
                "assignment.id": record.assignment_id
            })
            application = self.applications.get(application_id)
            application.require_version(expected_version)
            before = application.status

            assignment = self.assignments.get(record.assignment_id)
            original = assignment.model_copy(deep=True)
            now = self.clock()
            assignment.mark_validated(record.id, actor, now)
            machine.complete_certification(application, record, now, actor)

            assignment = self.assignments.update(assignment)
            try:
                application = self.applications.update(application)
            except DomainError:
                logger.warning(
                    "Certification aborted, restoring assignment",
                    extra={"extra_fields": {"application_id": application_id, "assignment_id": assignment.id}}
                )
                original.version = assignment.version
                self.assignments.update(original)
                raise

            self.audit.log_action(
                actor, "application", application.id, "certify",
                before={"status": before},
                after={"status": application.status, "certificationId": record.id}
            )
            self.audit.log_action(
                actor, "assignment", assignment.id, "validate_signatures",
                after={"certificationId": record.id}
            )
            self.notifications.create(
                application.creator_id,
                NotificationType.CERTIFICATION_COMPLETED,
                STATUS_TITLES[ApplicationStatus.MINISTRO_APPROVED.value],
                f"The constitutive assembly of {application.organization_name} was certified. "
                f"The provisional directorio is valid until "
                f"{application.provisional_directorio_expires_at.date().isoformat()}",
                {"applicationId": application.id, "certificationId": record.id}
            )
            return application

    # Review and registry

    def submit_for_review(self, application_id: str, actor: Optional[str] = None,
                          comment: Optional[str] = None,
                          expected_version: Optional[int] = None) -> OrganizationApplication:
        return self._transition(
            application_id, expected_version, actor, "submit",
            lambda app, now: machine.submit_for_review(app, now, actor, comment)
        )

    def start_review(self, application_id: str, actor: Optional[str] = None,
                     expected_version: Optional[int] = None) -> OrganizationApplication:
        return self._transition(
            application_id, expected_version, actor, "start_review",
            lambda app, now: machine.start_review(app, now, actor),
            notify=False
        )

    def reject_with_corrections(
        self,
        application_id: str,
        corrections: CorrectionsInput,
        general_comment: Optional[str] = None,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> OrganizationApplication:
        """Return an application in review to the applicant."""
        def apply(app: OrganizationApplication, now: datetime) -> None:
            snapshot = _as_tracker(corrections).snapshot(general_comment, now, actor)
            machine.reject_with_corrections(app, snapshot, now, actor)

        return self._transition(
            application_id, expected_version, actor, "reject", apply,
            notification_type=NotificationType.CORRECTION_REQUIRED
        )

    def registry_reject(
        self,
        application_id: str,
        corrections: CorrectionsInput,
        general_comment: Optional[str] = None,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> OrganizationApplication:
        """Registry rejection of a forwarded application."""
        def apply(app: OrganizationApplication, now: datetime) -> None:
            snapshot = _as_tracker(corrections).snapshot(general_comment, now, actor)
            machine.registry_reject(app, snapshot, now, actor)

        return self._transition(
            application_id, expected_version, actor, "registry_reject", apply,
            notification_type=NotificationType.CORRECTION_REQUIRED
        )

    def send_to_registry(
        self,
        application_id: str,
        pending: CorrectionsInput = (),
        actor: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> OrganizationApplication:
        return self._transition(
            application_id, expected_version, actor, "send_to_registry",
            lambda app, now: machine.send_to_registry(app, _as_tracker(pending).items(), now, actor)
        )

    def approve(self, application_id: str, actor: Optional[str] = None,
                comment: Optional[str] = None,
                expected_version: Optional[int] = None) -> OrganizationApplication:
        return self._transition(
            application_id, expected_version, actor, "approve",
            lambda app, now: machine.approve(app, now, actor, comment)
        )

    def resubmit(
        self,
        application_id: str,
        user_response: Optional[str] = None,
        field_responses: Optional[Dict[str, str]] = None,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> OrganizationApplication:
        return self._transition(
            application_id, expected_version, actor, "resubmit",
            lambda app, now: machine.resubmit(app, user_response, field_responses, now, actor)
        )

    def dissolve(
        self,
        application_id: str,
        reason: DissolutionReason,
        details: Optional[str] = None,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> OrganizationApplication:
        return self._transition(
            application_id, expected_version, actor, "dissolve",
            lambda app, now: machine.dissolve(app, reason, details, now, actor)
        )

    def _transition(
        self,
        application_id: str,
        expected_version: Optional[int],
        actor: Optional[str],
        action: str,
        apply: Callable[[OrganizationApplication, datetime], None],
        notify: bool = True,
        notification_type: NotificationType = NotificationType.STATUS_CHANGE
    ) -> OrganizationApplication:
        with tracer.start_as_current_span(f"workflow.{action}") as span:
            span.set_attribute("application.id", application_id)
            application = self.applications.get(application_id)
            application.require_version(expected_version)
            before = application.status

            apply(application, self.clock())
            application = self.applications.update(application)

            span.set_attributes({
                "application.status.before": before,
                "application.status.after": application.status
            })
            self.audit.log_action(
                actor, "application", application.id, action,
                before={"status": before},
                after={"status": application.status}
            )
            logger.info(
                f"Application {application.id} moved from {before} to {application.status}",
                extra={"extra_fields": {"action": action, "actor": actor}}
            )
            if notify:
                self._notify_status(application, notification_type)
            return application

    def _notify_status(self, application: OrganizationApplication, notification_type: NotificationType) -> None:
        latest = application.status_history[-1]
        data: Dict[str, Any] = {"applicationId": application.id, "status": application.status}
        if application.corrections is not None and notification_type == NotificationType.CORRECTION_REQUIRED:
            data["corrections"] = application.corrections.to_buckets()
        self.notifications.create(
            application.creator_id,
            notification_type,
            STATUS_TITLES.get(application.status, "Application updated"),
            f"{application.organization_name}: {latest.comment or application.status}",
            data
        )


def _as_tracker(corrections: CorrectionsInput) -> CorrectionTracker:
    if isinstance(corrections, CorrectionTracker):
        return corrections
    return CorrectionTracker(corrections)
