# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with RFC 7807 problem responses.
Maps domain errors and request validation failures to HTTP statuses.
"""

from flask import Flask, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException
from typing import Any, Dict, List, Optional, Tuple
from opentelemetry import trace
import logging
import os

from domain.errors import (
    ConflictError,
    DomainError,
    NotFoundError,
    PreconditionError,
    StaleWriteError
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

PROBLEM_BASE_URL = "https://api.organizaciones.local/problems"

# Most specific first: StaleWriteError is also a ConflictError.
DOMAIN_ERRORS: List[Tuple[type, int, str, str]] = [
    (NotFoundError, 404, "resource-not-found", "Resource Not Found"),
    (StaleWriteError, 409, "stale-write", "Stale Write"),
    (ConflictError, 409, "resource-conflict", "Resource Conflict"),
    (PreconditionError, 422, "precondition-failed", "Precondition Failed"),
]


def build_problem(
    error_type: str,
    title: str,
    status: int,
    detail: str,
    instance: str,
    errors: Optional[List[Any]] = None
) -> Dict[str, Any]:
    """Build an RFC 7807 problem body."""
    problem = {
        'type': f"{PROBLEM_BASE_URL}/{error_type}",
        'title': title,
        'status': status,
        'detail': detail,
        'instance': instance
    }
    if errors:
        problem['errors'] = errors
    return problem


class ErrorHandlerMiddleware:
    """Centralized error handling for the Flask application."""

    def __init__(self, app: Flask):
        self.app = app
        self.production = os.getenv('ENVIRONMENT', 'development') == 'production'
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(DomainError)
        def handle_domain_error(error):
            return self.handle_domain_error(error)

        @self.app.errorhandler(ValidationError)
        def handle_validation_error(error):
            return self.handle_validation_error(error)

        @self.app.errorhandler(ValueError)
        def handle_value_error(error):
            return self.handle_value_error(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error):
            return self.handle_http_exception(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)

    def handle_domain_error(self, error: DomainError) -> Tuple[Dict[str, Any], int]:
        status, error_type, title = 422, "domain-error", "Domain Error"
        for error_class, code, kind, label in DOMAIN_ERRORS:
            if isinstance(error, error_class):
                status, error_type, title = code, kind, label
                break

        with tracer.start_as_current_span("error_handler.domain_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": status,
                "http.method": request.method,
                "http.path": request.path
            })
            logger.warning(
                f"Domain error: {title}",
                extra={
                    "extra_fields": {
                        "error_type": error_type,
                        "status_code": status,
                        "detail": error.message,
                        "path": request.path,
                        "method": request.method
                    }
                }
            )
            return build_problem(error_type, title, status, error.message, request.path, error.errors), status

    def handle_validation_error(self, error: ValidationError) -> Tuple[Dict[str, Any], int]:
        """Request body failed model validation."""
        errors = [
            {
                'field': '.'.join(str(part) for part in item['loc']),
                'message': item['msg']
            }
            for item in error.errors()
        ]
        logger.warning(
            "Request validation failed",
            extra={
                "extra_fields": {
                    "path": request.path,
                    "method": request.method,
                    "error_count": len(errors)
                }
            }
        )
        detail = f"{len(errors)} validation error(s) in the request"
        return build_problem("validation-error", "Validation Error", 400, detail, request.path, errors), 400

    def handle_value_error(self, error: ValueError) -> Tuple[Dict[str, Any], int]:
        """Unparseable date, time or signature in query parameters or path."""
        logger.warning(
            f"Invalid value: {error}",
            extra={"extra_fields": {"path": request.path, "method": request.method}}
        )
        return build_problem("invalid-value", "Invalid Value", 400, str(error), request.path), 400

    def handle_http_exception(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """Handle werkzeug errors (unknown route, method not allowed, bad JSON)."""
        title = error.name
        detail = str(error.description) if error.description else title
        error_type = title.lower().replace(' ', '-')
        if error.code >= 500:
            logger.error(f"Server error: {title}", extra={"extra_fields": {"path": request.path}})
        return build_problem(error_type, title, error.code, detail, request.path), error.code

    def handle_unexpected_error(self, error: Exception) -> Tuple[Dict[str, Any], int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        Details are hidden in production.
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "extra_fields": {
                        "error_class": error.__class__.__name__,
                        "error_message": str(error),
                        "path": request.path,
                        "method": request.method
                    }
                },
                exc_info=True
            )

            detail = "An unexpected error occurred"
            if not self.production:
                detail = f"{error.__class__.__name__}: {str(error)}"

            return build_problem("internal-server-error", "Internal Server Error", 500, detail, request.path), 500
