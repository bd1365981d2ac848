# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Renders portal sessions with the affordance links valid in their current state.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin

from ..domain.badges import account_badge, credential_badge, package_badge, verification_badge
from ..domain.session import PortalSession
from ..models.entities import AidPackage
from ..models.enums import PortalStep, RegistrationStep
from ..models.responses import HalLink

PROBLEM_BASE_URL = "https://portal.example.org/problems/"


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated
        )

    def build_action_link(
        self,
        resource_path: str,
        action: str,
        method: str = "POST",
        title: Optional[str] = None
    ) -> HalLink:
        """Build action link for a resource."""
        return self.build_link(
            f"{resource_path}/{action}",
            method=method,
            content_type="application/json",
            title=title or action.replace('/', ' ').title()
        )


class SessionAffordanceBuilder:
    """Builds the links a client may follow from a session's current state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_session_affordances(self, session: PortalSession) -> Dict[str, HalLink]:
        path = f"/api/portal/sessions/{session.id}"
        action = self.link_builder.build_action_link
        links = {
            'self': self.link_builder.build_link(path, title="Self"),
            'discard': self.link_builder.build_link(path, method="DELETE", title="Discard session"),
        }

        # Only read and discard are allowed while an operation is in flight
        if session.is_loading:
            return links

        if session.error:
            links['dismiss_error'] = action(path, "error", method="DELETE", title="Dismiss error")

        step = PortalStep(session.step)
        if step == PortalStep.SEARCH:
            links['search'] = action(path, "search", title="Search by national ID")

        elif step == PortalStep.NOT_FOUND:
            links['register'] = action(path, "registration", title="Register as new beneficiary")
            links['new_search'] = action(path, "reset", title="Search again")

        elif step == PortalStep.FOUND:
            links['new_search'] = action(path, "reset", title="New search")
            links['select_tab'] = action(path, "tab", title="Select tab")
            if session.pin_prompt_open:
                links['create_pin'] = action(path, "pin", title="Create PIN and save")
                links['close_pin_prompt'] = action(path, "pin", method="DELETE", title="Close PIN prompt")
            elif session.is_editing:
                links['update_edit'] = action(path, "edit", method="PATCH", title="Change pending edits")
                links['save_edit'] = action(path, "edit/save", title="Save changes")
                links['cancel_edit'] = action(path, "edit", method="DELETE", title="Cancel editing")
            else:
                links['start_edit'] = action(path, "edit", title="Edit contact details")

        elif step == PortalStep.REGISTER and session.registration is not None:
            links['update_registration'] = action(path, "registration", method="PATCH", title="Change registration data")
            links['back'] = action(path, "registration/back", title="Previous step")
            if RegistrationStep(session.registration.step) == RegistrationStep.PASSWORD:
                links['submit'] = action(path, "registration/submit", title="Submit registration")
            else:
                links['next'] = action(path, "registration/next", title="Next step")

        return links


class HalResponseBuilder:
    """HAL response builder for portal resources and problems."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.affordance_builder = SessionAffordanceBuilder(base_url)

    def build_resource_response(self, data: Dict[str, Any], links: Dict[str, HalLink]) -> Dict[str, Any]:
        response = dict(data)
        response['_links'] = {rel: link.model_dump() for rel, link in links.items()}
        return response

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_BASE_URL}{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        error_response['_links'] = {rel: link.model_dump() for rel, link in links.items()}
        return error_response


def _format_package(package: AidPackage) -> Dict[str, Any]:
    data = package.model_dump(mode='json')
    data['badge'] = package_badge(package.status).model_dump()
    return data


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    def format_session(self, session: PortalSession) -> Dict[str, Any]:
        """Render a portal session as the client-facing view."""
        data: Dict[str, Any] = {
            'id': session.id,
            'step': session.step,
            'national_id': session.national_id,
            'is_loading': session.is_loading,
            'error': session.error,
            'field_errors': dict(session.field_errors),
            'success': session.success,
            'notices': [notice.model_dump() for notice in session.notices()],
        }

        if PortalStep(session.step) == PortalStep.FOUND and session.beneficiary is not None:
            beneficiary = session.beneficiary
            partition = session.package_partition()
            data['profile'] = {
                'beneficiary': beneficiary.model_dump(mode='json'),
                'active_tab': session.active_tab,
                'is_editing': session.is_editing,
                'edit_buffer': session.edit_buffer.model_dump() if session.edit_buffer else None,
                'pin_prompt_open': session.pin_prompt_open,
                'auth_exists': session.auth_exists,
                'status': {
                    'identity': verification_badge(beneficiary.identity_status).model_dump(),
                    'eligibility': verification_badge(beneficiary.eligibility_status).model_dump(),
                    'account': account_badge(beneficiary.account_status).model_dump(),
                    'credential': credential_badge(session.auth_exists).model_dump(),
                },
                'packages_received': [_format_package(p) for p in partition.received],
                'packages_upcoming': [_format_package(p) for p in partition.upcoming],
                'organization_id': beneficiary.organization_id,
            }

        if PortalStep(session.step) == PortalStep.REGISTER and session.registration is not None:
            wizard = session.registration
            data['registration'] = {
                'step': wizard.step,
                'draft': wizard.draft.model_dump(),
                'field_errors': dict(wizard.field_errors),
                'national_id_locked': wizard.locked_national_id is not None,
                'operation_error': wizard.operation_error,
            }

        links = self.builder.affordance_builder.build_session_affordances(session)
        return self.builder.build_resource_response(data, links)

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: List[Dict[str, Any]],
        status: int = 400
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.builder.build_error_response(
            "validation-error",
            "Validation Error",
            status,
            detail,
            instance,
            validation_errors
        )

    def format_not_found_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a not found error response."""
        return self.builder.build_error_response(
            "resource-not-found",
            "Resource Not Found",
            404,
            detail,
            instance
        )

    def format_conflict_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a conflict error response."""
        return self.builder.build_error_response(
            "resource-conflict",
            "Resource Conflict",
            409,
            detail,
            instance
        )

    def format_operation_error(self, detail: str, instance: str, status: int = 502) -> Dict[str, Any]:
        """Format a failed backend operation."""
        return self.builder.build_error_response(
            "operation-failed",
            "Operation Failed",
            status,
            detail,
            instance
        )

    def format_server_error(self, detail: str, instance: str, status: int = 500) -> Dict[str, Any]:
        """Format a server error response."""
        return self.builder.build_error_response(
            "internal-server-error",
            "Internal Server Error",
            status,
            detail,
            instance
        )


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
