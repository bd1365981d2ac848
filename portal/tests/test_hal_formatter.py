# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for HAL formatting of portal sessions and problems.
"""

import pytest

from portal.domain.session import PortalSession
from portal.services.hal import create_hal_formatter


@pytest.fixture
def formatter():
    return create_hal_formatter("http://portal.test")


class TestSessionFormatting:

    def test_search_step_links(self, formatter):
        session = PortalSession()

        data = formatter.format_session(session)

        assert data["step"] == "search"
        assert data["_links"]["self"]["href"] == f"http://portal.test/api/portal/sessions/{session.id}"
        assert data["_links"]["search"]["method"] == "POST"
        assert "register" not in data["_links"]
        assert "profile" not in data

    def test_not_found_offers_registration(self, formatter):
        session = PortalSession()
        session.enter_not_found("987654321")

        links = formatter.format_session(session)["_links"]

        assert links["register"]["href"].endswith("/registration")
        assert links["new_search"]["href"].endswith("/reset")
        assert "search" not in links

    def test_found_profile_view(self, formatter, sample_beneficiary, sample_packages):
        session = PortalSession()
        session.enter_found("123456789", sample_beneficiary, sample_packages, auth_exists=False)

        data = formatter.format_session(session)
        profile = data["profile"]

        assert profile["beneficiary"]["national_id"] == "123456789"
        assert profile["status"]["identity"]["tone"] == "green"
        assert profile["status"]["eligibility"]["tone"] == "yellow"
        assert profile["status"]["credential"]["label"] == "Not protected"
        assert [p["id"] for p in profile["packages_received"]] == ["pkg-delivered"]
        assert len(profile["packages_upcoming"]) == 3
        assert profile["packages_received"][0]["badge"]["tone"] == "green"
        assert data["notices"][0]["kind"] == "no_password"
        assert "start_edit" in data["_links"]

    def test_editing_links(self, formatter, sample_beneficiary):
        session = PortalSession()
        session.enter_found("123456789", sample_beneficiary, [], auth_exists=False)
        session.start_edit()

        links = formatter.format_session(session)["_links"]
        assert {"update_edit", "save_edit", "cancel_edit"} <= set(links)

        session.open_pin_prompt()
        links = formatter.format_session(session)["_links"]
        assert {"create_pin", "close_pin_prompt"} <= set(links)
        assert "save_edit" not in links

    def test_loading_session_offers_no_actions(self, formatter, sample_beneficiary):
        session = PortalSession(error="Something went wrong")
        session.enter_found("123456789", sample_beneficiary, [], auth_exists=True)
        session.start_edit()
        session.is_loading = True

        links = formatter.format_session(session)["_links"]

        assert set(links) == {"self", "discard"}

    def test_registration_view_never_contains_pins(self, formatter):
        session = PortalSession()
        session.enter_not_found("987654321")
        wizard = session.start_registration()
        wizard.draft.pin = "123456"

        data = formatter.format_session(session)

        assert data["registration"]["national_id_locked"] is True
        assert "pin" not in data["registration"]["draft"]
        assert "next" in data["_links"]

    def test_error_adds_dismiss_link(self, formatter):
        session = PortalSession(error="Something went wrong")

        assert "dismiss_error" in formatter.format_session(session)["_links"]


class TestProblemFormatting:

    def test_validation_problem(self, formatter):
        body = formatter.format_validation_error(
            "PIN mismatch", "/api/portal/sessions/s1/pin",
            [{"field": "confirm_pin", "message": "PIN mismatch"}], 422
        )

        assert body["status"] == 422
        assert body["type"].endswith("/validation-error")
        assert body["errors"][0]["field"] == "confirm_pin"
        assert "help" in body["_links"]

    def test_operation_problem(self, formatter):
        body = formatter.format_operation_error("Backend timed out", "/x")

        assert body["status"] == 502
        assert body["title"] == "Operation Failed"
