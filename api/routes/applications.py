# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Organization application endpoints: creation, scheduling and the review
workflow.
"""

from flask import Blueprint, jsonify, current_app, request
from opentelemetry import trace
import logging

from domain.corrections import CorrectionTracker
from domain.errors import NotFoundError
from models.enums import ApplicationStatus
from models.requests import (
    CreateApplicationRequest,
    DissolveRequest,
    RejectRequest,
    ResubmitRequest,
    ScheduleRequest,
    SendToRegistryRequest,
    TransitionRequest
)
from utils.request import RequestParser, ResponseBuilder

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

applications_bp = Blueprint('applications', __name__, url_prefix='/api/applications')


def _workflow():
    return current_app.container.workflow


def _tracker(corrections) -> CorrectionTracker:
    tracker = CorrectionTracker()
    for item in corrections:
        tracker.mark(item.kind, item.key, item.comment, item.label)
    return tracker


@applications_bp.post('')
def create_application():
    """Create an application waiting for a Ministro de Fe."""
    actor = RequestParser.get_actor()
    body = RequestParser.parse_model(CreateApplicationRequest)
    application = _workflow().create_application(body.model_dump(exclude_none=True), actor)
    return jsonify(ResponseBuilder.resource(application)), 201


@applications_bp.get('')
def list_applications():
    """List applications, optionally by ``status`` and ``creator``."""
    status = request.args.get('status')
    applications = _workflow().list_applications(
        status=ApplicationStatus(status) if status else None,
        creator_id=request.args.get('creator')
    )
    return jsonify(ResponseBuilder.collection(applications))


@applications_bp.get('/<application_id>')
def get_application(application_id: str):
    return jsonify(ResponseBuilder.resource(_workflow().get_application(application_id)))


@applications_bp.post('/<application_id>/schedule')
def schedule_official(application_id: str):
    """
    Book the Ministro de Fe.

    A booking that collides with another one is refused with 409 unless the
    body carries ``override: true``.
    """
    with tracer.start_as_current_span("applications.schedule") as span:
        span.set_attribute("application.id", application_id)
        body = RequestParser.parse_model(ScheduleRequest)
        application, assignment = _workflow().schedule_official(
            application_id,
            body.official_id,
            body.date,
            body.time,
            body.location,
            override=body.override,
            actor=RequestParser.get_actor(),
            expected_version=body.expected_version
        )
        return jsonify({
            "application": ResponseBuilder.resource(application),
            "assignment": ResponseBuilder.resource(assignment)
        }), 201


@applications_bp.post('/<application_id>/submit')
def submit_for_review(application_id: str):
    body = RequestParser.parse_model(TransitionRequest, required=False)
    application = _workflow().submit_for_review(
        application_id, RequestParser.get_actor(), body.comment, body.expected_version
    )
    return jsonify(ResponseBuilder.resource(application))


@applications_bp.post('/<application_id>/start-review')
def start_review(application_id: str):
    body = RequestParser.parse_model(TransitionRequest, required=False)
    application = _workflow().start_review(application_id, RequestParser.get_actor(), body.expected_version)
    return jsonify(ResponseBuilder.resource(application))


@applications_bp.post('/<application_id>/reject')
def reject_with_corrections(application_id: str):
    """Send the application back with the reviewer's corrections."""
    body = RequestParser.parse_model(RejectRequest)
    application = _workflow().reject_with_corrections(
        application_id,
        _tracker(body.corrections),
        body.general_comment,
        RequestParser.get_actor(),
        body.expected_version
    )
    return jsonify(ResponseBuilder.resource(application))


@applications_bp.post('/<application_id>/send-to-registry')
def send_to_registry(application_id: str):
    body = RequestParser.parse_model(SendToRegistryRequest, required=False)
    application = _workflow().send_to_registry(
        application_id,
        _tracker(body.pending_corrections),
        RequestParser.get_actor(),
        body.expected_version
    )
    return jsonify(ResponseBuilder.resource(application))


@applications_bp.post('/<application_id>/registry-reject')
def registry_reject(application_id: str):
    body = RequestParser.parse_model(RejectRequest)
    application = _workflow().registry_reject(
        application_id,
        _tracker(body.corrections),
        body.general_comment,
        RequestParser.get_actor(),
        body.expected_version
    )
    return jsonify(ResponseBuilder.resource(application))


@applications_bp.post('/<application_id>/approve')
def approve(application_id: str):
    body = RequestParser.parse_model(TransitionRequest, required=False)
    application = _workflow().approve(
        application_id, RequestParser.get_actor(), body.comment, body.expected_version
    )
    return jsonify(ResponseBuilder.resource(application))


@applications_bp.post('/<application_id>/resubmit')
def resubmit(application_id: str):
    """Applicant answers the corrections."""
    body = RequestParser.parse_model(ResubmitRequest, required=False)
    application = _workflow().resubmit(
        application_id,
        body.user_response,
        body.field_responses,
        RequestParser.get_actor(),
        body.expected_version
    )
    return jsonify(ResponseBuilder.resource(application))


@applications_bp.post('/<application_id>/dissolve')
def dissolve(application_id: str):
    body = RequestParser.parse_model(DissolveRequest)
    application = _workflow().dissolve(
        application_id,
        body.reason,
        body.details,
        RequestParser.get_actor(),
        body.expected_version
    )
    return jsonify(ResponseBuilder.resource(application))


@applications_bp.get('/<application_id>/certificate')
def get_certificate(application_id: str):
    """Summary of the certified constitutive assembly."""
    services = current_app.container
    application = services.workflow.get_application(application_id)
    if application.certification_record is None:
        raise NotFoundError("Certification record", application_id)
    return jsonify(services.documents.generate(application.certification_record, application))
