"""
Community Organizations API - Flask Application Entry Point

This module initializes the Flask application with OpenAPI 3.0 support,
configures middleware and registers the officials, applications and
assignments endpoints.
"""

import os
from typing import Optional

from flask import current_app, jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from observability.config import setup_observability
from observability.middleware import add_observability_middleware
from middleware.error_handler import ErrorHandlerMiddleware
from models.base import utcnow
from services.container import Container, build_container

# OpenAPI info
info = Info(
    title="Community Organizations API",
    version="1.0.0",
    description="Certification workflow for community organizations: Ministro de Fe "
                "scheduling, constitutive assembly validation and municipal review"
)

# API tags for organization
tags = [
    Tag(name="Officials", description="Ministros de Fe, availability and bookings"),
    Tag(name="Applications", description="Organization application workflow"),
    Tag(name="Assignments", description="Assembly bookings and certification"),
    Tag(name="Health", description="System health and status")
]


def create_app(container: Optional[Container] = None) -> OpenAPI:
    """
    Application factory.

    Args:
        container: Pre-built services; built from the environment when omitted
    """
    tracing = setup_observability()

    app = OpenAPI(__name__, info=info, tags=tags)

    # Environment configuration
    app.config['ENVIRONMENT'] = os.getenv('ENVIRONMENT', 'development')
    app.config['DEBUG'] = os.getenv('DEBUG', 'false').lower() == 'true'
    app.config['OTEL_ENABLED'] = tracing

    add_observability_middleware(app, instrument=tracing)
    ErrorHandlerMiddleware(app)

    app.container = container or build_container()

    from routes.officials import officials_bp
    from routes.applications import applications_bp
    from routes.assignments import assignments_bp

    app.register_blueprint(officials_bp)
    app.register_blueprint(applications_bp)
    app.register_blueprint(assignments_bp)

    @app.route('/health')
    def health_check():
        """Liveness plus a MongoDB ping when that backend is configured."""
        services = current_app.container
        body = {
            "status": "healthy",
            "service": "organizaciones-api",
            "version": info.version,
            "environment": current_app.config['ENVIRONMENT'],
            "timestamp": utcnow().isoformat()
        }
        status_code = 200
        if services.mongo_service is not None:
            mongodb = services.mongo_service.health_check()
            body["mongodb"] = mongodb
            if mongodb["status"] != "healthy":
                body["status"] = "unhealthy"
                status_code = 503
        return jsonify(body), status_code

    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
