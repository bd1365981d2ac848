# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Portal exceptions and their rendering as HAL problem documents.

Services raise the CustomException subclasses below; ErrorHandlerMiddleware
turns them, and any other failure, into RFC 7807 responses.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, Optional, Tuple
from opentelemetry import trace
import logging

from ..services.hal import HalFormatter

logger = logging.getLogger(__name__)


class CustomException(Exception):
    """Base class for custom application exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Exception for malformed request bodies."""

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class FieldValidationError(ValidationException):
    """Field-scoped validation failure that blocks a state transition."""

    def __init__(self, message: str, field_errors: Dict[str, str]):
        super().__init__(
            message,
            [{"field": name, "message": text} for name, text in field_errors.items()]
        )
        self.status_code = 422
        self.field_errors = dict(field_errors)


class NotFoundException(CustomException):
    """Exception for resource not found errors."""

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class SessionNotFoundError(NotFoundException):
    """Portal session is unknown or expired."""

    def __init__(self, session_id: str):
        super().__init__(f"Portal session {session_id} not found or expired")
        self.session_id = session_id


class ConflictException(CustomException):
    """Exception for resource conflict errors."""

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")


class InvalidTransitionError(ConflictException):
    """Action not allowed in the session's current state."""
    pass


class OperationInProgressError(ConflictException):
    """Another operation of the same session is still in flight."""

    def __init__(self, message: str = "Another operation is already in progress"):
        super().__init__(message)


class OperationError(CustomException):
    """A backend call failed; the session was rolled back to its last stable state."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, 502, "operation-failed")
        self.operation = operation


class ServiceUnavailableException(CustomException):
    """Exception for service unavailable errors."""

    def __init__(self, message: str):
        super().__init__(message, 503, "service-unavailable")


class ErrorHandlerMiddleware:
    """Renders every failure of a portal request as an RFC 7807 problem with HAL links."""

    HTTP_PROBLEMS = {
        400: ("bad-request", "Bad Request"),
        404: ("resource-not-found", "Resource Not Found"),
        405: ("method-not-allowed", "Method Not Allowed"),
        409: ("resource-conflict", "Resource Conflict"),
        415: ("unsupported-media-type", "Unsupported Media Type"),
        422: ("validation-error", "Validation Error"),
    }

    def __init__(self, app: Flask, hal_formatter: HalFormatter):
        self.app = app
        self.hal_formatter = hal_formatter
        self.register_error_handlers()

    @property
    def _hide_details(self) -> bool:
        return self.app.config.get('ENVIRONMENT') == 'production'

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(CustomException)
        def handle_portal_error(error):
            return self.handle_custom_exception(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error):
            return self.handle_http_error(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)

    def _request_context(self, **fields: Any) -> Dict[str, Any]:
        context = {
            "method": request.method,
            "path": request.path,
            "session_id": (request.view_args or {}).get('session_id'),
        }
        context.update(fields)
        return context

    def handle_custom_exception(self, error: CustomException) -> Tuple[Any, int]:
        """Render an exception raised by the portal flows."""
        span = trace.get_current_span()
        span.set_attributes({"error.type": error.error_type, "error.status": error.status_code})

        context = self._request_context(
            error_type=error.error_type,
            status_code=error.status_code,
            error_message=error.message
        )
        if isinstance(error, OperationError):
            context["operation"] = error.operation
        if error.status_code >= 500:
            logger.error(f"Portal request failed: {error.error_type}", extra=context)
        else:
            logger.warning(f"Portal request rejected: {error.error_type}", extra=context)

        formatter = self.hal_formatter
        if isinstance(error, ValidationException):
            body = formatter.format_validation_error(
                error.message, request.path, error.validation_errors, error.status_code
            )
        elif isinstance(error, NotFoundException):
            body = formatter.format_not_found_error(error.message, request.path)
        elif isinstance(error, ConflictException):
            body = formatter.format_conflict_error(error.message, request.path)
        elif isinstance(error, OperationError):
            body = formatter.format_operation_error(error.message, request.path, error.status_code)
        else:
            body = formatter.format_server_error(error.message, request.path, error.status_code)
        return jsonify(body), error.status_code

    def handle_http_error(self, error: HTTPException) -> Tuple[Any, int]:
        """Render a werkzeug HTTP error such as an unknown route or method."""
        status = error.code or 500
        detail = str(error.description) if error.description else error.name
        logger.warning(
            f"HTTP error {status}",
            extra=self._request_context(status_code=status, detail=detail)
        )

        if status in self.HTTP_PROBLEMS:
            error_type, title = self.HTTP_PROBLEMS[status]
            body = self.hal_formatter.builder.build_error_response(
                error_type, title, status, detail, request.path
            )
            return jsonify(body), status

        if self._hide_details:
            detail = "An internal server error occurred"
        return jsonify(self.hal_formatter.format_server_error(detail, request.path, status)), status

    def handle_unexpected_error(self, error: Exception) -> Tuple[Any, int]:
        """Render any other exception as a 500 problem."""
        span = trace.get_current_span()
        span.record_exception(error)
        span.set_attribute("error.class", error.__class__.__name__)

        logger.error(
            f"Unexpected error: {error.__class__.__name__}",
            extra=self._request_context(error_class=error.__class__.__name__, error_message=str(error)),
            exc_info=error
        )

        detail = "An unexpected error occurred"
        if not self._hide_details:
            detail = f"{error.__class__.__name__}: {str(error)}"
        return jsonify(self.hal_formatter.format_server_error(detail, request.path)), 500
