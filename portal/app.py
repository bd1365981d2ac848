# SPDX-License-Identifier: Apache-2.0

"""
Beneficiary Portal API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support, wires the
persistence, session and portal services, and registers the error handling and
observability middleware.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .middleware.error_handler import ErrorHandlerMiddleware
from .services.hal import create_hal_formatter
from .services.mongodb import MongoDBService
from .services.credentials import CredentialService
from .services.sessions import SessionStore
from .services.portal import PortalService
from .routes.portal import portal_bp

# OpenAPI info
info = Info(
    title="Beneficiary Portal API",
    version="1.0.0",
    description="Beneficiary lookup, self-registration and PIN-protected self-service edits"
)

# API tags for organization
tags = [
    Tag(name="Portal", description="Beneficiary lookup, registration and self-service edits"),
    Tag(name="Health", description="System health and status")
]


def load_config() -> Dict[str, Any]:
    """Read application configuration from the environment."""
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        # Database configuration
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/beneficiary_portal_dev'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'beneficiary_portal_dev'),
        'BACKEND_TIMEOUT_MS': int(os.getenv('BACKEND_TIMEOUT_MS', '10000')),
        # Session configuration
        'REDIS_URL': os.getenv('REDIS_URL', 'redis://localhost:6379'),
        'SESSION_TTL_SECONDS': int(os.getenv('SESSION_TTL_SECONDS', '1800')),
        'SUCCESS_NOTICE_SECONDS': float(os.getenv('SUCCESS_NOTICE_SECONDS', '3')),
        # Security configuration
        'PIN_HASH_ROUNDS': int(os.getenv('PIN_HASH_ROUNDS', '12')),
        # API configuration
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'OTEL_ENABLED': os.getenv('OTEL_ENABLED', 'true').lower() == 'true',
    }


def create_app(
    config: Optional[Dict[str, Any]] = None,
    mongodb_service: Optional[MongoDBService] = None,
    backend: Optional[CredentialService] = None,
    session_store: Optional[SessionStore] = None
) -> OpenAPI:
    """
    Build the portal application.

    Args:
        config: Overrides applied on top of the environment configuration
        mongodb_service: MongoDB driver; built from MONGODB_URI when omitted
        backend: Credential service; built on the MongoDB driver when omitted
        session_store: Session store; built from REDIS_URL when omitted
    """
    # Initialize observability first
    setup_observability()

    app = OpenAPI(__name__, info=info)
    app.config.update(load_config())
    if config:
        app.config.update(config)

    # Add observability middleware
    add_observability_middleware(app)

    # Initialize services
    if mongodb_service is None:
        mongodb_service = MongoDBService(
            app.config['MONGODB_URI'],
            app.config['MONGODB_DATABASE'],
            app.config['BACKEND_TIMEOUT_MS']
        )
    if backend is None:
        backend = CredentialService(mongodb_service, pin_hash_rounds=app.config['PIN_HASH_ROUNDS'])
    if session_store is None:
        session_store = SessionStore(app.config['REDIS_URL'], app.config['SESSION_TTL_SECONDS'])

    portal_service = PortalService(
        backend,
        session_store,
        notice_seconds=app.config['SUCCESS_NOTICE_SECONDS']
    )

    # Initialize middleware
    hal_formatter = create_hal_formatter(app.config['BASE_URL'])
    ErrorHandlerMiddleware(app, hal_formatter)

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.session_store = session_store
    app.portal_service = portal_service
    app.hal_formatter = hal_formatter

    # Register routes
    app.register_api(portal_bp)

    @app.get('/api/healthz', tags=[tags[1]])
    def health_check():
        """Health of the MongoDB backend and the Redis session store."""
        dependencies = {
            "mongodb": app.mongodb_service.health_check(),
            "redis": app.session_store.health_check()
        }
        healthy = all(dep.get("status") == "healthy" for dep in dependencies.values())

        health_data = {
            "status": "healthy" if healthy else "degraded",
            "environment": app.config['ENVIRONMENT'],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "dependencies": dependencies
        }
        links = {"self": hal_formatter.builder.link_builder.build_link("/api/healthz", title="Health")}
        return jsonify(hal_formatter.builder.build_resource_response(health_data, links)), (200 if healthy else 503)

    return app


if __name__ == '__main__':
    application = create_app()
    application.mongodb_service.create_indexes()
    try:
        application.run(
            host='0.0.0.0',
            port=int(os.getenv('PORT', '5000')),
            debug=application.config['DEBUG']
        )
    finally:
        application.mongodb_service.close_connection()
