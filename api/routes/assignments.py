# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Assignment endpoints: conflict checks, cancellation and the assembly
certification run by the Ministro de Fe.
"""

from flask import Blueprint, jsonify, current_app
from opentelemetry import trace
import logging

from models.requests import CancelAssignmentRequest, CertifyRequest
from utils.request import RequestParser, ResponseBuilder
from utils.timeslots import normalize_date, normalize_time

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

assignments_bp = Blueprint('assignments', __name__, url_prefix='/api/assignments')


@assignments_bp.get('/conflict')
def check_conflict():
    """Whether the official already has a booking at the slot."""
    engine = current_app.container.engine
    official_id = RequestParser.require_arg('officialId')
    on_date = normalize_date(RequestParser.require_arg('date'))
    at_time = normalize_time(RequestParser.require_arg('time'))
    conflicting = engine.conflicting_assignments(official_id, on_date, at_time)
    return jsonify({
        "officialId": official_id,
        "date": on_date,
        "time": at_time,
        "hasConflict": bool(conflicting),
        "isAvailable": engine.is_available(official_id, on_date, at_time),
        "conflicts": [
            {"assignmentId": a.id, "organizationName": a.organization_name, "location": a.location}
            for a in conflicting
        ]
    })


@assignments_bp.get('/<assignment_id>')
def get_assignment(assignment_id: str):
    return jsonify(ResponseBuilder.resource(current_app.container.assignments.get(assignment_id)))


@assignments_bp.post('/<assignment_id>/cancel')
def cancel_assignment(assignment_id: str):
    services = current_app.container
    actor = RequestParser.get_actor()
    body = RequestParser.parse_model(CancelAssignmentRequest, required=False)
    assignment = services.engine.cancel_assignment(assignment_id, body.reason, actor, body.expected_version)
    services.audit.log_action(
        actor, "assignment", assignment.id, "cancel",
        after={"status": assignment.status, "reason": body.reason}
    )
    return jsonify(ResponseBuilder.resource(assignment))


@assignments_bp.post('/<assignment_id>/certify')
def certify(assignment_id: str):
    """
    Run the validation protocol from one request body.

    Signatures are data URLs or base64 strings. On success the application
    moves to MINISTRO_APPROVED and the record is returned with it.
    """
    with tracer.start_as_current_span("assignments.certify") as span:
        span.set_attribute("assignment.id", assignment_id)
        body = RequestParser.parse_model(CertifyRequest)
        application, record = current_app.container.certification.certify(
            assignment_id,
            body,
            RequestParser.get_actor()
        )
        return jsonify({
            "application": ResponseBuilder.resource(application),
            "certification": ResponseBuilder.resource(record)
        }), 201
