# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Portal service: drives the search/profile flow and the registration wizard.

Every public method takes the caller's PortalSession, applies one user action
and persists the resulting state. Backend calls run inside an in-flight guard;
when one fails the session is put back into the stable state it had before the
attempt and an OperationError is raised. While an operation is in flight every
other action on the same session is refused.
"""

import functools
import logging
import os
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from opentelemetry import trace

from ..domain.registration import WizardTransitionError
from ..domain.session import PortalSession, SessionTransitionError
from ..domain.validation import (
    ValidationResult,
    validate_contact_changes,
    validate_national_id,
    validate_pin_pair
)
from ..middleware.error_handler import (
    FieldValidationError,
    InvalidTransitionError,
    OperationError,
    OperationInProgressError
)
from ..models.base import utc_now
from ..models.enums import AuditAction, AuditVisibility, PortalStep, ProfileTab
from .credentials import CredentialService, DuplicateRecordError
from .sessions import SessionStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

SUBJECT_KIND = "beneficiary"

SAVED_MESSAGE = "Changes saved successfully"
PIN_SAVED_MESSAGE = "PIN created and changes saved successfully"
REGISTERED_MESSAGE = "Registration submitted successfully"

SEARCH_FAILED = "An error occurred during the search"
SAVE_FAILED = "An error occurred while saving changes"
REGISTRATION_FAILED = "An error occurred while submitting the registration"


def maps_transition_errors(method: Callable) -> Callable:
    """Report domain transition errors as HTTP conflicts."""

    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except (SessionTransitionError, WizardTransitionError) as e:
            raise InvalidTransitionError(str(e)) from e

    return wrapper


def rejects_while_loading(method: Callable) -> Callable:
    """Refuse to change a session while one of its operations is in flight."""

    @functools.wraps(method)
    def wrapper(self, session: PortalSession, *args, **kwargs):
        if self.sessions.operation_in_progress(session.id):
            raise OperationInProgressError()
        if session.is_loading:
            # Marker expired without the flag being cleared
            logger.warning("Clearing stale loading flag", extra={"session_id": session.id})
            session.is_loading = False
        return method(self, session, *args, **kwargs)

    return wrapper


def _failure_message(default: str, error: Exception) -> str:
    """Message shown for a failed backend call. Duplicate records report their own message."""
    if isinstance(error, DuplicateRecordError):
        return str(error)
    return default


def _restore(session: PortalSession, snapshot: PortalSession) -> None:
    for name in PortalSession.model_fields:
        setattr(session, name, getattr(snapshot, name))


class PortalService:
    """Orchestrates portal sessions against the credential service."""

    def __init__(
        self,
        backend: CredentialService,
        sessions: SessionStore,
        notice_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.backend = backend
        self.sessions = sessions
        self.notice_seconds = (
            notice_seconds if notice_seconds is not None
            else float(os.getenv('SUCCESS_NOTICE_SECONDS', '3'))
        )
        self.clock = clock

    # Session lifecycle

    def open_session(self) -> PortalSession:
        session = PortalSession()
        self.sessions.save(session)
        logger.info("Portal session opened", extra={"session_id": session.id})
        return session

    def load_session(self, session_id: str) -> PortalSession:
        """Load a session, clearing a success notice whose time is up."""
        session = self.sessions.load(session_id)
        if session.expire_notice(self.clock()):
            self.sessions.save(session)
        return session

    def discard_session(self, session_id: str) -> None:
        self.sessions.delete(session_id)
        logger.info("Portal session discarded", extra={"session_id": session_id})

    # Guards

    @contextmanager
    def _in_flight(self, session: PortalSession, operation: str):
        """Run backend calls with the session marked as loading."""
        if not self.sessions.begin_operation(session.id):
            raise OperationInProgressError()

        with tracer.start_as_current_span(f"portal.{operation}") as span:
            span.set_attributes({"session.id": session.id, "portal.operation": operation})
            session.is_loading = True
            try:
                self.sessions.save(session)
                yield span
            finally:
                session.is_loading = False
                self.sessions.end_operation(session.id)
                self.sessions.save(session)

    def _operation_failed(
        self,
        session: PortalSession,
        snapshot: PortalSession,
        message: str,
        operation: str,
        error: Exception
    ) -> OperationError:
        span = trace.get_current_span()
        span.record_exception(error)
        span.set_status(trace.Status(trace.StatusCode.ERROR, str(error)))
        logger.error(
            f"Portal operation failed: {operation}",
            extra={"session_id": session.id, "operation": operation, "error": str(error)},
            exc_info=True
        )
        _restore(session, snapshot)
        session.record_operation_failure(message)
        return OperationError(message, operation)

    def _reject(self, session: PortalSession, result: ValidationResult) -> FieldValidationError:
        session.record_validation_failure(result)
        self.sessions.save(session)
        return FieldValidationError(result.first_error, result.errors)

    def _audit(self, description: str, subject_name: str, action: AuditAction, **kwargs: Any) -> None:
        self.backend.record_audit_entry(description, subject_name, SUBJECT_KIND, action, **kwargs)

    # Search

    @rejects_while_loading
    @maps_transition_errors
    def submit_search(self, session: PortalSession, national_id: str) -> PortalSession:
        """
        Look up a beneficiary by national ID.

        A miss moves the session to not_found; it is not an error. A hit loads
        the packages and credential state and records a public review entry.

        Raises:
            FieldValidationError: If the national ID is not 9 digits
            OperationError: If a backend call fails
        """
        session.require_step(PortalStep.SEARCH)
        session.clear_messages()
        session.national_id = national_id

        result = validate_national_id(national_id)
        if not result.is_valid:
            raise self._reject(session, result)

        snapshot = session.model_copy(deep=True)
        with self._in_flight(session, "submit_search") as span:
            try:
                beneficiary = self.backend.lookup_beneficiary_by_national_id(national_id)
                if beneficiary is None:
                    span.set_attribute("beneficiary.found", False)
                    session.enter_not_found(national_id)
                    logger.info("Beneficiary not found", extra={"session_id": session.id})
                    return session

                packages = self.backend.list_packages_for_beneficiary(beneficiary.id)
                credential = self.backend.get_credential_by_national_id(national_id)
            except Exception as e:
                raise self._operation_failed(session, snapshot, SEARCH_FAILED, "submit_search", e) from e

            span.set_attribute("beneficiary.found", True)
            session.enter_found(national_id, beneficiary, packages, credential is not None)
            self._audit(
                f"Beneficiary search by national ID: {national_id}",
                beneficiary.name,
                AuditAction.REVIEW,
                subject_id=beneficiary.id,
                note="Search from the beneficiary search dashboard",
                visibility=AuditVisibility.PUBLIC
            )
            logger.info(
                "Beneficiary found",
                extra={"session_id": session.id, "beneficiary_id": beneficiary.id, "packages": len(packages)}
            )

        return session

    @rejects_while_loading
    def new_search(self, session: PortalSession) -> PortalSession:
        """Discard everything and return to an empty search."""
        session.reset()
        self.sessions.save(session)
        return session

    @rejects_while_loading
    @maps_transition_errors
    def select_tab(self, session: PortalSession, tab: ProfileTab) -> PortalSession:
        session.select_tab(tab)
        self.sessions.save(session)
        return session

    @rejects_while_loading
    def dismiss_error(self, session: PortalSession) -> PortalSession:
        session.dismiss_error()
        if session.registration is not None:
            session.registration.operation_error = None
        self.sessions.save(session)
        return session

    # Profile edits

    @rejects_while_loading
    @maps_transition_errors
    def start_edit(self, session: PortalSession) -> PortalSession:
        session.start_edit()
        session.dismiss_error()
        self.sessions.save(session)
        return session

    @rejects_while_loading
    @maps_transition_errors
    def update_edit(self, session: PortalSession, changes: Dict[str, Any]) -> PortalSession:
        """Change pending contact fields; the displayed record is untouched."""
        session.update_edit(changes)
        for name in changes:
            session.field_errors.pop(name, None)
        self.sessions.save(session)
        return session

    @rejects_while_loading
    @maps_transition_errors
    def cancel_edit(self, session: PortalSession) -> PortalSession:
        session.cancel_edit()
        self.sessions.save(session)
        return session

    @rejects_while_loading
    @maps_transition_errors
    def request_save(self, session: PortalSession) -> PortalSession:
        """
        Save pending contact changes.

        With an existing credential the changes are persisted right away.
        Without one, the PIN prompt is opened and nothing is written.
        """
        changes = session.edit_changes()
        session.dismiss_error()

        result = validate_contact_changes(changes)
        if not result.is_valid:
            raise self._reject(session, result)

        if not session.auth_exists:
            session.open_pin_prompt()
            self.sessions.save(session)
            return session

        beneficiary = session.beneficiary
        snapshot = session.model_copy(deep=True)
        with self._in_flight(session, "request_save"):
            try:
                self.backend.update_beneficiary_contact(beneficiary.id, changes)
            except Exception as e:
                raise self._operation_failed(session, snapshot, SAVE_FAILED, "request_save", e) from e

            session.apply_saved_edit()
            session.show_success(SAVED_MESSAGE, self.clock(), self.notice_seconds)
            self._audit(
                "Beneficiary contact details updated",
                beneficiary.name,
                AuditAction.UPDATE,
                subject_id=beneficiary.id
            )

        return session

    @rejects_while_loading
    @maps_transition_errors
    def create_pin_and_save(self, session: PortalSession, pin: str, confirm_pin: str) -> PortalSession:
        """
        Create the beneficiary's PIN and persist the pending changes.

        The credential is created first. If the profile update then fails the
        credential is deleted again, so either both writes take effect or
        neither does. The PIN prompt stays open on any failure.
        """
        if not session.pin_prompt_open:
            raise SessionTransitionError("PIN prompt is not open")
        changes = session.edit_changes()
        session.dismiss_error()

        result = validate_pin_pair(pin, confirm_pin)
        if not result.is_valid:
            raise self._reject(session, result)

        beneficiary = session.beneficiary
        snapshot = session.model_copy(deep=True)
        with self._in_flight(session, "create_pin_and_save") as span:
            try:
                pin_hash = self.backend.hash_pin(pin)
                self.backend.create_credential(beneficiary.id, session.national_id, pin_hash)
            except Exception as e:
                message = _failure_message(SAVE_FAILED, e)
                raise self._operation_failed(session, snapshot, message, "create_pin_and_save", e) from e

            try:
                self.backend.update_beneficiary_contact(beneficiary.id, changes)
            except Exception as e:
                span.add_event("credential.rollback")
                try:
                    self.backend.delete_credential(beneficiary.id)
                except Exception as rollback_error:
                    logger.error(
                        "Credential rollback failed",
                        extra={"beneficiary_id": beneficiary.id, "error": str(rollback_error)},
                        exc_info=True
                    )
                raise self._operation_failed(session, snapshot, SAVE_FAILED, "create_pin_and_save", e) from e

            session.auth_exists = True
            session.apply_saved_edit()
            session.show_success(PIN_SAVED_MESSAGE, self.clock(), self.notice_seconds)
            self._audit(
                "Credential created and profile updated",
                beneficiary.name,
                AuditAction.CREATE,
                subject_id=beneficiary.id
            )

        return session

    @rejects_while_loading
    def close_pin_prompt(self, session: PortalSession) -> PortalSession:
        """Close the PIN prompt; the edit buffer is kept."""
        session.close_pin_prompt()
        self.sessions.save(session)
        return session

    # Registration wizard

    @rejects_while_loading
    @maps_transition_errors
    def start_registration(self, session: PortalSession) -> PortalSession:
        session.start_registration()
        self.sessions.save(session)
        return session

    @rejects_while_loading
    @maps_transition_errors
    def update_registration(self, session: PortalSession, changes: Dict[str, Any]) -> PortalSession:
        wizard = session.require_registration()
        result = wizard.update_draft(changes)
        if not result.is_valid:
            wizard.field_errors = {**wizard.field_errors, **result.errors}
            self.sessions.save(session)
            raise FieldValidationError(result.first_error, result.errors)
        self.sessions.save(session)
        return session

    @rejects_while_loading
    @maps_transition_errors
    def next_registration_step(self, session: PortalSession) -> PortalSession:
        """Validate the current wizard step and advance when it passes."""
        wizard = session.require_registration()
        result = wizard.next_step()
        self.sessions.save(session)
        if not result.is_valid:
            raise FieldValidationError(result.first_error, result.errors)
        return session

    @rejects_while_loading
    @maps_transition_errors
    def previous_registration_step(self, session: PortalSession) -> PortalSession:
        """Go back one wizard step; backing out of the first step returns to search."""
        wizard = session.require_registration()
        if wizard.previous_step():
            logger.info("Registration cancelled", extra={"session_id": session.id})
            session.reset()
        self.sessions.save(session)
        return session

    @rejects_while_loading
    @maps_transition_errors
    def submit_registration(self, session: PortalSession, pin: str, confirm_pin: str) -> PortalSession:
        """
        Submit the wizard from its password step.

        On success the caller is returned to an empty search with a notice. On
        failure the wizard stays on the password step with its data intact.
        """
        wizard = session.require_registration()
        wizard.operation_error = None
        session.dismiss_error()

        result = wizard.prepare_submission(pin, confirm_pin)
        if not result.is_valid:
            self.sessions.save(session)
            raise FieldValidationError(result.first_error, result.errors)

        wizard.clear_secrets()
        snapshot = session.model_copy(deep=True)
        with self._in_flight(session, "submit_registration"):
            try:
                pin_hash = self.backend.hash_pin(pin)
                beneficiary = self.backend.create_beneficiary(wizard.draft, pin_hash)
            except Exception as e:
                message = _failure_message(REGISTRATION_FAILED, e)
                error = self._operation_failed(session, snapshot, message, "submit_registration", e)
                session.registration.operation_error = message
                raise error from e

            self._audit(
                f"New beneficiary registration with national ID: {beneficiary.national_id}",
                beneficiary.name,
                AuditAction.CREATE,
                subject_id=beneficiary.id,
                note="New registration from the public portal",
                visibility=AuditVisibility.PUBLIC
            )
            session.complete_registration(REGISTERED_MESSAGE, self.clock(), self.notice_seconds)
            logger.info(
                "Beneficiary registered",
                extra={"session_id": session.id, "beneficiary_id": beneficiary.id}
            )

        return session
