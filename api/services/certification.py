# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Certification service: runs the assembly validation protocol for an
assignment and hands the resulting record to the workflow.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple, Union

from opentelemetry import trace

from domain.errors import PreconditionError
from domain.validation_protocol import ValidationSession
from models.base import utcnow
from models.entities import AttachmentRef, CertificationRecord, OrganizationApplication
from models.enums import AssignmentStatus, BoardRole, ProtocolStep
from models.requests import CertifyRequest, PersonInput
from .attachments import store_signature
from .repositories import ApplicationRepository, AssignmentRepository, AttachmentStore
from .workflow import OrganizationWorkflowService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CertificationService:
    """Builds validation sessions and certifies assemblies."""

    def __init__(
        self,
        applications: ApplicationRepository,
        assignments: AssignmentRepository,
        attachments: AttachmentStore,
        workflow: OrganizationWorkflowService,
        clock: Callable[[], datetime] = utcnow
    ):
        self.applications = applications
        self.assignments = assignments
        self.attachments = attachments
        self.workflow = workflow
        self.clock = clock

    def start_session(self, assignment_id: str) -> ValidationSession:
        """
        Open a protocol session for a pending assignment.

        Raises:
            NotFoundError: Unknown assignment or application.
            PreconditionError: The assignment is cancelled, already validated or
                no longer the application's current booking.
        """
        assignment = self.assignments.get(assignment_id)
        if AssignmentStatus(assignment.status) == AssignmentStatus.CANCELLED:
            raise PreconditionError(f"Assignment {assignment_id} is cancelled")
        if assignment.signatures_validated:
            raise PreconditionError(f"Signatures were already validated for assignment {assignment_id}")

        application = self.applications.get(assignment.organization_id)
        if application.ministro_data is None or application.ministro_data.assignment_id != assignment.id:
            raise PreconditionError(
                f"Assignment {assignment_id} is not the current booking of application {application.id}"
            )

        return ValidationSession(
            application_id=application.id,
            assignment_id=assignment.id,
            official_id=assignment.official_id,
            organization_type=application.organization_type,
            members=application.members,
            today=self.clock().date()
        )

    def certify(
        self,
        assignment_id: str,
        payload: CertifyRequest,
        actor: Optional[str] = None
    ) -> Tuple[OrganizationApplication, CertificationRecord]:
        """Run every protocol step from one request body and complete the certification."""
        with tracer.start_as_current_span("certification.certify") as span:
            span.set_attribute("assignment.id", assignment_id)
            session = self.start_session(assignment_id)

            for role, seat in (
                (BoardRole.PRESIDENT, payload.president),
                (BoardRole.SECRETARY, payload.secretary),
                (BoardRole.TREASURER, payload.treasurer),
            ):
                person, signature = self._resolve(session, seat)
                session.assign_role(role, person, signature)
            session.complete_step(ProtocolStep.DIRECTORIO)

            for seat in payload.additional_members:
                person, signature = self._resolve(session, seat)
                session.add_additional_seat(seat.cargo, person, signature)
            session.complete_step(ProtocolStep.ADDITIONAL_SEATS)

            for index, seat in enumerate(payload.comision_electoral):
                person, signature = self._resolve(session, seat)
                session.set_commission_member(index, person, signature)
            session.complete_step(ProtocolStep.ELECTORAL_COMMISSION)

            for attendee in payload.attendees:
                signature = self._signature(attendee.signature)
                if attendee.member_id:
                    session.add_member_attendee(attendee.member_id, signature)
                else:
                    session.add_external_attendee(attendee.name, attendee.rut, signature, attendee.birth_date)
            attendee_result = session.complete_step(ProtocolStep.ATTENDEES)

            session.confirm(self._signature(payload.official_signature), payload.notes)
            session.complete_step(ProtocolStep.CONFIRMATION)

            record = session.finalize(self.clock())
            application = self.workflow.complete_certification(
                record.application_id,
                record,
                actor,
                payload.expected_version
            )
            span.set_attributes({
                "certification.id": record.id,
                "certification.attendees": len(record.attendees),
                "certification.warnings": len(attendee_result.warnings)
            })
            logger.info(
                "Assembly certified",
                extra={"extra_fields": {
                    "assignment_id": assignment_id,
                    "application_id": application.id,
                    "certification_id": record.id,
                    "warnings": record.warnings
                }}
            )
            return application, record

    def _resolve(self, session: ValidationSession, seat: PersonInput):
        if seat.member_id:
            person = session.resolve_member(seat.member_id)
        else:
            person = session.manual_person(seat.name, seat.rut, seat.birth_date)
        return person, self._signature(seat.signature)

    def _signature(self, value: Optional[Union[str, bytes]]) -> Optional[AttachmentRef]:
        if not value:
            return None
        try:
            return store_signature(self.attachments, value)
        except ValueError as e:
            raise PreconditionError(f"Invalid signature: {e}")
