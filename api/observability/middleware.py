"""
Observability Middleware

Request timing, span attributes and one structured log line per request.
Path parameters naming an application, official or assignment are copied
onto the span so traces can be searched by resource.
"""

import time
import logging
from flask import Flask, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

from utils.request import USER_HEADER

logger = logging.getLogger(__name__)

# view arg -> span attribute
RESOURCE_ATTRIBUTES = {
    "application_id": "application.id",
    "official_id": "official.id",
    "assignment_id": "assignment.id",
    "block_id": "block.id",
}


def _resources() -> dict:
    view_args = request.view_args or {}
    return {
        attribute: view_args[arg]
        for arg, attribute in RESOURCE_ATTRIBUTES.items()
        if arg in view_args
    }


def add_observability_middleware(app: Flask, instrument: bool = True):
    """Register request hooks; ``instrument`` also enables Flask auto-instrumentation."""
    if instrument:
        FlaskInstrumentor().instrument_app(app)

    @app.before_request
    def before_request():
        g.start_time = time.perf_counter()
        g.trace_id = None
        g.actor = request.headers.get(USER_HEADER) or None

        span = trace.get_current_span()
        if span.is_recording():
            g.trace_id = format(span.get_span_context().trace_id, "032x")
            span.set_attributes(_resources())
            if g.actor:
                span.set_attribute("enduser.id", g.actor)

    @app.after_request
    def after_request(response):
        duration_ms = round((time.perf_counter() - g.get('start_time', time.perf_counter())) * 1000, 2)

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("http.duration_ms", duration_ms)

        fields = {
            "method": request.method,
            "path": request.path,
            "endpoint": request.endpoint,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "actor": g.get('actor'),
            "trace_id": g.get('trace_id')
        }
        fields.update(_resources())
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, "HTTP request completed", extra={"extra_fields": fields})

        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id
        return response
