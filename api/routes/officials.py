# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Ministro de Fe endpoints: registry, availability blocks and bookings.
"""

from flask import Blueprint, jsonify, current_app, request
from werkzeug.exceptions import BadRequest
from opentelemetry import trace
import logging

from domain.errors import ConflictError
from models.entities import Official
from models.requests import CreateBlockRequest, CreateOfficialRequest, UpdateOfficialRequest
from utils.identity import normalize_rut
from utils.request import RequestParser, ResponseBuilder
from utils.timeslots import normalize_date

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

officials_bp = Blueprint('officials', __name__, url_prefix='/api/officials')


def _services():
    return current_app.container


def _ensure_unique_rut(rut: str, official_id: str = None) -> None:
    key = normalize_rut(rut)
    for other in _services().officials.list_all():
        if other.id != official_id and normalize_rut(other.rut) == key:
            raise ConflictError(f"An official with RUT {rut} already exists")


@officials_bp.post('')
def create_official():
    """Register a Ministro de Fe."""
    with tracer.start_as_current_span("officials.create"):
        services = _services()
        actor = RequestParser.get_actor()
        body = RequestParser.parse_model(CreateOfficialRequest)
        _ensure_unique_rut(body.rut)

        official = Official(**body.model_dump(), created_by=actor, updated_by=actor)
        official = services.officials.create(official)
        services.audit.log_action(
            actor, "official", official.id, "create",
            after={"name": official.name, "active": official.active}
        )
        return jsonify(ResponseBuilder.resource(official)), 201


@officials_bp.get('')
def list_officials():
    """List officials; ``?active=true`` returns only those taking bookings."""
    officials = _services().officials
    active = RequestParser.get_bool_arg('active')
    found = officials.get_active() if active else officials.list_all()
    if active is False:
        found = [official for official in found if not official.active]
    return jsonify(ResponseBuilder.collection(found))


@officials_bp.get('/<official_id>')
def get_official(official_id: str):
    return jsonify(ResponseBuilder.resource(_services().officials.get(official_id)))


@officials_bp.patch('/<official_id>')
def update_official(official_id: str):
    """Update contact data."""
    with tracer.start_as_current_span("officials.update") as span:
        span.set_attribute("official.id", official_id)
        services = _services()
        actor = RequestParser.get_actor()
        body = RequestParser.parse_model(UpdateOfficialRequest)
        changes = body.model_dump(exclude_unset=True)
        if changes.get('rut'):
            _ensure_unique_rut(changes['rut'], official_id)

        official = services.officials.get(official_id)
        before = {key: getattr(official, key) for key in changes}
        for key, value in changes.items():
            setattr(official, key, value)
        official.update_timestamp(actor)
        official = services.officials.update(official)

        services.audit.log_action(actor, "official", official.id, "update", before=before, after=changes)
        return jsonify(ResponseBuilder.resource(official))


@officials_bp.post('/<official_id>/toggle-active')
def toggle_active(official_id: str):
    services = _services()
    actor = RequestParser.get_actor()
    official = services.officials.toggle_active(official_id, actor)
    services.audit.log_action(
        actor, "official", official.id, "toggle_active",
        before={"active": not official.active},
        after={"active": official.active}
    )
    logger.info(f"Official {official.id} {'activated' if official.active else 'deactivated'}")
    return jsonify(ResponseBuilder.resource(official))


@officials_bp.get('/<official_id>/availability')
def get_availability(official_id: str):
    """
    Availability of an official on one day.

    With ``?time=HH:MM`` the response also answers whether that slot is free
    and whether it is already booked.
    """
    engine = _services().engine
    _services().officials.get(official_id)
    on_date = normalize_date(RequestParser.require_arg('date'))

    blocked = engine.blocked_times_in_day(official_id, on_date)
    body = {
        "officialId": official_id,
        "date": on_date,
        "fullDayBlocked": blocked.full_day,
        "blockedTimes": blocked.times,
        "availableTimes": engine.available_times(official_id, on_date)
    }
    at_time = request.args.get('time')
    if at_time:
        body["time"] = at_time
        body["isAvailable"] = engine.is_available(official_id, on_date, at_time)
        body["hasConflict"] = engine.has_conflict(official_id, on_date, at_time)
    return jsonify(body)


@officials_bp.post('/<official_id>/blocks')
def create_block(official_id: str):
    """Block a whole day (no ``time``) or a single slot."""
    services = _services()
    actor = RequestParser.get_actor()
    body = RequestParser.parse_model(CreateBlockRequest)
    services.officials.get(official_id)

    block = services.engine.create_block(
        official_id,
        body.date,
        body.time,
        block_type=body.block_type,
        reason=body.reason,
        created_by=actor
    )
    services.audit.log_action(
        actor, "availability_block", block.id, "create",
        after={"officialId": official_id, "date": block.block_date, "time": block.block_time}
    )
    return jsonify(ResponseBuilder.resource(block)), 201


@officials_bp.get('/<official_id>/blocks')
def list_blocks(official_id: str):
    """Blocks of an official; ``?month=YYYY-MM`` narrows to one month."""
    engine = _services().engine
    blocks = engine.blocks_for_official(official_id)
    month = request.args.get('month')
    extra = {}
    if month:
        try:
            year, month_number = (int(part) for part in month.split('-', 1))
        except ValueError:
            raise BadRequest(f"Invalid month: {month}")
        prefix = f"{year:04d}-{month_number:02d}-"
        blocks = [block for block in blocks if block.block_date.startswith(prefix)]
        extra["blockedDays"] = engine.blocked_days_in_month(official_id, year, month_number)
    return jsonify(ResponseBuilder.collection(blocks, **extra))


@officials_bp.delete('/<official_id>/blocks/<block_id>')
def delete_block(official_id: str, block_id: str):
    services = _services()
    services.engine.delete_block(official_id, block_id)
    services.audit.log_action(RequestParser.get_actor(), "availability_block", block_id, "delete")
    return '', 204


@officials_bp.get('/<official_id>/assignments')
def list_assignments(official_id: str):
    """Bookings of an official with status counts."""
    engine = _services().engine
    _services().officials.get(official_id)
    return jsonify(ResponseBuilder.collection(
        engine.assignments_for_official(official_id),
        stats=engine.official_stats(official_id)
    ))
