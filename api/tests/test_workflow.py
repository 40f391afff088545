# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the application state machine.
"""

from datetime import datetime, timedelta, timezone

import pytest

from domain import workflow as machine
from domain.errors import PreconditionError
from models.entities import (
    AttachmentRef,
    CertificationRecord,
    Correction,
    CorrectionSet,
    Directorio,
    MemberPerson,
    MinistroData,
    OrganizationApplication,
    Seat
)
from models.enums import ApplicationStatus, CorrectionKind, DissolutionReason, OrganizationType

S = ApplicationStatus
AT = datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)
SIG = AttachmentRef(sha256="b" * 64, content_type="image/png", size=4)


def ministro(assignment_id="asg-1", time="10:00") -> MinistroData:
    return MinistroData(
        official_id="o1", name="Ana Rojas", rut="11.111.111-1",
        scheduled_date="2025-03-20", scheduled_time=time, location="Sede",
        assignment_id=assignment_id, assigned_at=AT
    )


def signed(n: int) -> Seat:
    return Seat(person=MemberPerson(id=f"m{n}", name=f"Member {n}", rut=f"{n}-0"), signature=SIG)


def certification(application_id="app-1", assignment_id="asg-1") -> CertificationRecord:
    return CertificationRecord(
        application_id=application_id,
        assignment_id=assignment_id,
        official_id="o1",
        directorio=Directorio(president=signed(1), secretary=signed(2), treasurer=signed(3)),
        comision_electoral=[signed(4), signed(5), signed(6)],
        official_signature=SIG,
        certified_at=AT
    )


def corrections(*keys) -> CorrectionSet:
    return CorrectionSet(items=[Correction(kind=CorrectionKind.FIELD, key=key) for key in keys])


def application_in(status: ApplicationStatus) -> OrganizationApplication:
    """Walk a fresh application to the requested status."""
    app = OrganizationApplication(
        id="app-1",
        organization_name="Junta de Vecinos Villa Esperanza",
        organization_type=OrganizationType.JUNTA_VECINOS,
        creator_id="u1"
    )
    path = [
        (S.MINISTRO_SCHEDULED, lambda: machine.schedule_official(app, ministro(), AT)),
        (S.MINISTRO_APPROVED, lambda: machine.complete_certification(app, certification(), AT)),
        (S.PENDING_REVIEW, lambda: machine.submit_for_review(app, AT)),
        (S.IN_REVIEW, lambda: machine.start_review(app, AT)),
        (S.SENT_TO_REGISTRY, lambda: machine.send_to_registry(app, [], AT)),
        (S.APPROVED, lambda: machine.approve(app, AT)),
        (S.DISSOLVED, lambda: machine.dissolve(app, DissolutionReason.INACTIVA, None, AT)),
    ]
    for reached, step in path:
        if app.status == status:
            break
        step()
        assert app.status == reached
    return app


class TestTransitionTable:
    """Test the allowed transition table."""

    def test_dissolved_is_terminal(self):
        for target in S:
            assert not machine.can_transition(S.DISSOLVED, target)

    def test_reschedule_is_a_self_loop(self):
        assert machine.can_transition(S.MINISTRO_SCHEDULED, S.MINISTRO_SCHEDULED)
        assert not machine.can_transition(S.WAITING_MINISTRO_REQUEST, S.MINISTRO_APPROVED)

    def test_every_status_has_an_entry(self):
        assert set(machine.ALLOWED_TRANSITIONS) == set(S)

    def test_review_outcome(self):
        """Test corrections decide between rejection and forwarding."""
        assert machine.review_outcome([]) == S.SENT_TO_REGISTRY
        assert machine.review_outcome(corrections("address").items) == S.REJECTED


class TestScheduling:
    """Test scheduling and rescheduling."""

    def test_first_schedule(self):
        """Test scheduling attaches the ministro and appends one history entry."""
        app = application_in(S.WAITING_MINISTRO_REQUEST)
        replaced = machine.schedule_official(app, ministro(), AT, actor="admin")
        assert replaced is None
        assert app.status == S.MINISTRO_SCHEDULED
        assert app.ministro_data.assignment_id == "asg-1"
        assert len(app.status_history) == 1
        assert "Ana Rojas scheduled" in app.status_history[0].comment
        assert not app.appointment_was_modified

    def test_reschedule_records_change(self):
        """Test a reschedule keeps a trace of the previous booking."""
        app = application_in(S.MINISTRO_SCHEDULED)
        replaced = machine.schedule_official(app, ministro("asg-2", "15:00"), AT + timedelta(days=1), actor="admin")
        assert replaced.assignment_id == "asg-1"
        assert app.ministro_data.assignment_id == "asg-2"
        assert app.appointment_was_modified
        assert len(app.appointment_changes) == 1
        change = app.appointment_changes[0]
        assert change.previous.scheduled_time == "10:00"
        assert change.current.scheduled_time == "15:00"
        assert change.changed_by == "admin"
        assert "rescheduled" in app.status_history[-1].comment

    def test_cannot_schedule_after_certification(self):
        app = application_in(S.MINISTRO_APPROVED)
        with pytest.raises(PreconditionError, match="cannot move from ministro_approved"):
            machine.schedule_official(app, ministro("asg-2"), AT)


class TestCertification:
    """Test attaching the certification record."""

    def test_complete_certification(self):
        """Test the record is attached and the provisional board expiry set."""
        app = application_in(S.MINISTRO_SCHEDULED)
        record = certification()
        machine.complete_certification(app, record, AT, actor="o1")
        assert app.status == S.MINISTRO_APPROVED
        assert app.certification_record == record
        assert app.provisional_directorio_expires_at == AT + timedelta(days=60)

    def test_record_for_another_assignment(self):
        """Test a record must match the scheduled booking."""
        app = application_in(S.MINISTRO_SCHEDULED)
        with pytest.raises(PreconditionError, match="scheduled assignment"):
            machine.complete_certification(app, certification(assignment_id="asg-9"), AT)
        assert app.status == S.MINISTRO_SCHEDULED
        assert app.certification_record is None

    def test_record_for_another_application(self):
        app = application_in(S.MINISTRO_SCHEDULED)
        with pytest.raises(PreconditionError, match="different application"):
            machine.complete_certification(app, certification(application_id="app-2"), AT)

    def test_certify_twice(self):
        """Test certification only happens from MINISTRO_SCHEDULED."""
        app = application_in(S.MINISTRO_APPROVED)
        with pytest.raises(PreconditionError):
            machine.complete_certification(app, certification(), AT)

    def test_submit_requires_certification_status(self):
        app = application_in(S.MINISTRO_SCHEDULED)
        with pytest.raises(PreconditionError, match="must be in status ministro_approved"):
            machine.submit_for_review(app, AT)


class TestReview:
    """Test review outcomes."""

    def test_reject_requires_corrections(self):
        app = application_in(S.IN_REVIEW)
        with pytest.raises(PreconditionError, match="at least one correction"):
            machine.reject_with_corrections(app, corrections(), AT)
        assert app.status == S.IN_REVIEW

    def test_reject_with_corrections(self):
        """Test the rejection stores corrections on the application and history."""
        app = application_in(S.IN_REVIEW)
        rejection = corrections("address", "contactEmail")
        rejection.general_comment = "Please complete the contact data"
        machine.reject_with_corrections(app, rejection, AT, actor="admin")
        assert app.status == S.REJECTED
        assert app.corrections.count() == 2
        last = app.status_history[-1]
        assert last.comment == "Please complete the contact data"
        assert [c.key for c in last.corrections] == ["address", "contactEmail"]

    def test_send_to_registry_blocked_by_pending_marks(self):
        """Test forwarding is refused while the reviewer has marks."""
        app = application_in(S.IN_REVIEW)
        with pytest.raises(PreconditionError, match="1 outstanding correction"):
            machine.send_to_registry(app, corrections("address").items, AT)

    def test_resubmit_resolves_corrections(self):
        """Test the rejection loop returns to review with resolved corrections."""
        app = application_in(S.IN_REVIEW)
        machine.reject_with_corrections(app, corrections("address"), AT)
        machine.resubmit(app, "Address fixed", {"address": "Los Aromos 123"}, AT, actor="u1")
        assert app.status == S.PENDING_REVIEW
        assert app.corrections.resolved
        assert not app.has_outstanding_corrections()

        machine.start_review(app, AT)
        machine.send_to_registry(app, [], AT)
        assert app.status == S.SENT_TO_REGISTRY

    def test_send_to_registry_with_unresolved_stored_corrections(self):
        """Test stored corrections that were never answered block forwarding."""
        app = application_in(S.IN_REVIEW)
        app.corrections = corrections("address")
        with pytest.raises(PreconditionError):
            machine.send_to_registry(app, [], AT)

    def test_registry_reject(self):
        app = application_in(S.SENT_TO_REGISTRY)
        machine.registry_reject(app, corrections("statutes"), AT)
        assert app.status == S.REJECTED

    def test_registry_reject_needs_registry_status(self):
        app = application_in(S.IN_REVIEW)
        with pytest.raises(PreconditionError, match="sent_registry"):
            machine.registry_reject(app, corrections("statutes"), AT)

    def test_approve_only_from_registry(self):
        app = application_in(S.IN_REVIEW)
        with pytest.raises(PreconditionError):
            machine.approve(app, AT)


class TestDissolution:
    """Test dissolving approved organizations."""

    def test_dissolve(self):
        app = application_in(S.APPROVED)
        machine.dissolve(app, DissolutionReason.SOLICITUD_USUARIO, "Members moved away", AT, actor="admin")
        assert app.status == S.DISSOLVED
        assert app.dissolved_by == "admin"
        assert app.dissolution_reason == DissolutionReason.SOLICITUD_USUARIO
        assert app.status_history[-1].comment == "Dissolved: solicitud_usuario - Members moved away"

    def test_other_reason_needs_details(self):
        app = application_in(S.APPROVED)
        with pytest.raises(PreconditionError, match="Details are required"):
            machine.dissolve(app, DissolutionReason.OTRA, "  ", AT)
        assert app.status == S.APPROVED

    def test_no_transition_after_dissolution(self):
        app = application_in(S.DISSOLVED)
        with pytest.raises(PreconditionError):
            machine.dissolve(app, DissolutionReason.INACTIVA, None, AT)
        with pytest.raises(PreconditionError):
            machine.schedule_official(app, ministro("asg-3"), AT)

    def test_history_grows_by_one_per_transition(self):
        """Test each transition appends exactly one entry."""
        app = application_in(S.DISSOLVED)
        assert len(app.status_history) == 7
        assert [entry.status for entry in app.status_history][-1] == S.DISSOLVED
