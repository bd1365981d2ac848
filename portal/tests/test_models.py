# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for Pydantic models.
"""

import pytest
from datetime import datetime, timezone
from pydantic import ValidationError

from portal.models.entities import AidPackage, AuditEntry, AuthCredential, Beneficiary
from portal.models.requests import ContactEditRequest, PinSetupRequest, SearchRequest


class TestBeneficiary:

    def test_national_id_must_be_nine_digits(self):
        with pytest.raises(ValidationError):
            Beneficiary(national_id="12345", name="Mona")

    def test_name_is_stripped(self):
        assert Beneficiary(national_id="123456789", name="  Mona ").name == "Mona"

    def test_members_count_at_least_one(self):
        with pytest.raises(ValidationError):
            Beneficiary(national_id="123456789", name="Mona", members_count=0)

    def test_dump_by_alias_uses_document_layout(self, sample_beneficiary):
        document = sample_beneficiary.model_dump(by_alias=True)

        assert document["nationalId"] == "123456789"
        assert document["detailedAddress"]["governorate"] == "Gaza"
        assert "additionalInfo" in document["detailedAddress"]

    def test_loads_from_stored_document(self, sample_beneficiary):
        document = sample_beneficiary.model_dump(by_alias=True)

        assert Beneficiary.model_validate(document).model_dump() == sample_beneficiary.model_dump()

    def test_contact_fields(self, sample_beneficiary):
        assert set(sample_beneficiary.contact_fields()) == {"phone", "address", "detailed_address"}


class TestAidPackage:

    def test_delivered_requires_timestamp(self):
        with pytest.raises(ValidationError):
            AidPackage(beneficiary_id="b1", name="Food", status="delivered")

    def test_timestamp_only_when_delivered(self):
        with pytest.raises(ValidationError):
            AidPackage(
                beneficiary_id="b1",
                name="Food",
                status="pending",
                delivered_at=datetime.now(timezone.utc),
            )

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            AidPackage(beneficiary_id="b1", name="Food", status="lost")


class TestCredentialAndAudit:

    def test_credential_national_id(self):
        with pytest.raises(ValidationError):
            AuthCredential(beneficiary_id="b1", national_id="abc", pin_hash="x")

    def test_audit_entry_defaults_to_private(self):
        entry = AuditEntry(
            description="Search",
            subject_name="Mona",
            subject_kind="beneficiary",
            action="review",
        )

        assert entry.visibility == "private"
        assert entry.trace_id is None

    def test_audit_entry_rejects_unknown_action(self):
        with pytest.raises(ValidationError):
            AuditEntry(description="x", subject_name="y", subject_kind="z", action="delete")


class TestRequests:

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValidationError):
            SearchRequest(national_id="123456789", pin="123456")

    def test_contact_edit_cannot_touch_name(self):
        with pytest.raises(ValidationError):
            ContactEditRequest(name="Someone else")

    def test_pin_request_requires_both_fields(self):
        with pytest.raises(ValidationError):
            PinSetupRequest(pin="123456")
