# SPDX-License-Identifier: Apache-2.0

"""
Portal session endpoints.

Each endpoint loads the caller's portal session, hands one user action to the
portal service and answers with the resulting session view. Errors raised by
the service are rendered by the error handler middleware.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from pydantic import BaseModel, ValidationError
from opentelemetry import trace
import logging
from typing import Any, Dict, Type, TypeVar

from ..middleware.error_handler import ValidationException
from ..models.requests import (
    SessionPath,
    SearchRequest,
    SelectTabRequest,
    ContactEditRequest,
    PinSetupRequest,
    RegistrationUpdateRequest,
    RegistrationSubmitRequest
)

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

RequestModel = TypeVar("RequestModel", bound=BaseModel)

# Create API blueprint
portal_tag = Tag(name="Portal", description="Beneficiary lookup, registration and self-service edits")
portal_bp = APIBlueprint(
    'portal',
    __name__,
    url_prefix='/api/portal',
    abp_tags=[portal_tag]
)


def _parse_body(model: Type[RequestModel]) -> RequestModel:
    """Validate the JSON body against a request model."""
    request_data = request.get_json(silent=True)
    if request_data is None:
        request_data = {}
    if not isinstance(request_data, dict):
        raise ValidationException("Request body must be a JSON object")

    try:
        return model(**request_data)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        # Never echo the rejected input; it may contain a PIN
        logger.warning(
            "Request body validation failed",
            extra={"path": request.path, "fields": [error["field"] for error in errors]}
        )
        raise ValidationException("Request body validation failed", errors) from e


def _changes(body: BaseModel) -> Dict[str, Any]:
    """Fields the client actually sent."""
    changes = body.model_dump(exclude_unset=True)
    return {name: value for name, value in changes.items() if value is not None}


def _session_response(session, status: int = 200):
    return jsonify(current_app.hal_formatter.format_session(session)), status


def _service():
    return current_app.portal_service


@portal_bp.post('/sessions')
def open_session():
    """Open a new portal session in the search step."""
    session = _service().open_session()
    response, status = _session_response(session, 201)
    response.headers['Location'] = f"/api/portal/sessions/{session.id}"
    return response, status


@portal_bp.get('/sessions/<session_id>')
def get_session(path: SessionPath):
    """Current view of a portal session."""
    return _session_response(_service().load_session(path.session_id))


@portal_bp.delete('/sessions/<session_id>')
def discard_session(path: SessionPath):
    """Discard a portal session and everything it holds."""
    service = _service()
    service.load_session(path.session_id)
    service.discard_session(path.session_id)
    return '', 204


@portal_bp.post('/sessions/<session_id>/search')
def submit_search(path: SessionPath):
    """Look up a beneficiary by national ID."""
    body = _parse_body(SearchRequest)
    with tracer.start_as_current_span("portal.route.search", attributes={"session.id": path.session_id}):
        service = _service()
        session = service.load_session(path.session_id)
        return _session_response(service.submit_search(session, body.national_id))


@portal_bp.post('/sessions/<session_id>/reset')
def new_search(path: SessionPath):
    """Return to an empty search."""
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.new_search(session))


@portal_bp.post('/sessions/<session_id>/tab')
def select_tab(path: SessionPath):
    body = _parse_body(SelectTabRequest)
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.select_tab(session, body.tab))


@portal_bp.delete('/sessions/<session_id>/error')
def dismiss_error(path: SessionPath):
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.dismiss_error(session))


# Profile edits

@portal_bp.post('/sessions/<session_id>/edit')
def start_edit(path: SessionPath):
    """Enter edit mode with the current contact details."""
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.start_edit(session))


@portal_bp.patch('/sessions/<session_id>/edit')
def update_edit(path: SessionPath):
    """Change pending contact details."""
    body = _parse_body(ContactEditRequest)
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.update_edit(session, _changes(body)))


@portal_bp.delete('/sessions/<session_id>/edit')
def cancel_edit(path: SessionPath):
    """Leave edit mode discarding pending changes."""
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.cancel_edit(session))


@portal_bp.post('/sessions/<session_id>/edit/save')
def request_save(path: SessionPath):
    """Save pending changes, or open the PIN prompt when no PIN exists yet."""
    with tracer.start_as_current_span("portal.route.save", attributes={"session.id": path.session_id}):
        service = _service()
        session = service.load_session(path.session_id)
        return _session_response(service.request_save(session))


@portal_bp.post('/sessions/<session_id>/pin')
def create_pin_and_save(path: SessionPath):
    """Create a PIN and save pending changes in one step."""
    body = _parse_body(PinSetupRequest)
    with tracer.start_as_current_span("portal.route.create_pin", attributes={"session.id": path.session_id}):
        service = _service()
        session = service.load_session(path.session_id)
        return _session_response(service.create_pin_and_save(session, body.pin, body.confirm_pin))


@portal_bp.delete('/sessions/<session_id>/pin')
def close_pin_prompt(path: SessionPath):
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.close_pin_prompt(session))


# Registration wizard

@portal_bp.post('/sessions/<session_id>/registration')
def start_registration(path: SessionPath):
    """Start registering the national ID that was not found."""
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.start_registration(session))


@portal_bp.patch('/sessions/<session_id>/registration')
def update_registration(path: SessionPath):
    """Change registration draft fields."""
    body = _parse_body(RegistrationUpdateRequest)
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.update_registration(session, _changes(body)))


@portal_bp.post('/sessions/<session_id>/registration/next')
def next_registration_step(path: SessionPath):
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.next_registration_step(session))


@portal_bp.post('/sessions/<session_id>/registration/back')
def previous_registration_step(path: SessionPath):
    service = _service()
    session = service.load_session(path.session_id)
    return _session_response(service.previous_registration_step(session))


@portal_bp.post('/sessions/<session_id>/registration/submit')
def submit_registration(path: SessionPath):
    """Submit the registration with the chosen PIN."""
    body = _parse_body(RegistrationSubmitRequest)
    with tracer.start_as_current_span("portal.route.register", attributes={"session.id": path.session_id}):
        service = _service()
        session = service.load_session(path.session_id)
        return _session_response(service.submit_registration(session, body.pin, body.confirm_pin))
