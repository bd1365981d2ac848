# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the credential service and audit service.
"""

import pytest
from unittest.mock import MagicMock

from portal.models.entities import AuditEntry, DetailedAddress, RegistrationDraft
from portal.models.enums import AuditAction, AuditVisibility
from portal.services.audit import AuditService
from portal.services.credentials import CredentialService, DuplicateRecordError
from portal.services.mongodb import AUDIT_LOGS, BENEFICIARIES, CREDENTIALS, MongoDBService, PACKAGES


@pytest.fixture
def mongo():
    mock = MagicMock(spec=MongoDBService)
    mock.find_one.return_value = None
    return mock


@pytest.fixture
def audit():
    return MagicMock(spec=AuditService)


@pytest.fixture
def credential_service(mongo, audit):
    # Lowest bcrypt cost keeps the suite fast
    return CredentialService(mongo, audit, pin_hash_rounds=4)


@pytest.fixture
def registration_draft():
    return RegistrationDraft(
        name="Ahmad",
        full_name="Ahmad Saleh Nasser",
        national_id="987654321",
        date_of_birth="1985-06-15",
        phone="0599876543",
        detailed_address=DetailedAddress(governorate="Gaza", city="Gaza City", district="Rimal"),
        profession="Engineer",
        members_count=3,
    )


class TestLookups:

    def test_lookup_miss(self, credential_service, mongo):
        mongo.find_one.return_value = None

        assert credential_service.lookup_beneficiary_by_national_id("123456789") is None
        mongo.find_one.assert_called_once_with(BENEFICIARIES, {"nationalId": "123456789"})

    def test_lookup_hit(self, credential_service, mongo, sample_beneficiary):
        mongo.find_one.return_value = sample_beneficiary.model_dump(by_alias=True)

        beneficiary = credential_service.lookup_beneficiary_by_national_id("123456789")

        assert beneficiary.id == sample_beneficiary.id
        assert beneficiary.detailed_address.city == "Gaza City"

    def test_credential_lookup(self, credential_service, mongo, sample_credential):
        mongo.find_one.return_value = {"id": "c1", **sample_credential.model_dump(by_alias=True)}

        credential = credential_service.get_credential_by_national_id("123456789")

        assert credential.beneficiary_id == sample_credential.beneficiary_id
        mongo.find_one.assert_called_once_with(CREDENTIALS, {"nationalId": "123456789"})

    def test_list_packages(self, credential_service, mongo, sample_packages):
        mongo.find.return_value = [p.model_dump(by_alias=True) for p in sample_packages]

        packages = credential_service.list_packages_for_beneficiary("b1")

        assert [p.id for p in packages] == [p.id for p in sample_packages]
        assert mongo.find.call_args.args[:2] == (PACKAGES, {"beneficiaryId": "b1"})

    def test_backend_errors_propagate(self, credential_service, mongo):
        mongo.find_one.side_effect = TimeoutError("server selection timed out")

        with pytest.raises(TimeoutError):
            credential_service.lookup_beneficiary_by_national_id("123456789")


class TestPinHashing:

    def test_hash_is_one_way_and_verifiable(self, credential_service):
        pin_hash = credential_service.hash_pin("123456")

        assert pin_hash != "123456"
        assert pin_hash.startswith("$2b$04$")
        assert credential_service.verify_pin("123456", pin_hash) is True
        assert credential_service.verify_pin("654321", pin_hash) is False

    def test_hashes_are_salted(self, credential_service):
        assert credential_service.hash_pin("123456") != credential_service.hash_pin("123456")

    def test_malformed_hash_does_not_verify(self, credential_service):
        assert credential_service.verify_pin("123456", "not-a-hash") is False


class TestWrites:

    def test_create_credential(self, credential_service, mongo):
        credential = credential_service.create_credential("b1", "123456789", "$2b$04$hash")

        collection, document = mongo.create.call_args.args
        assert collection == CREDENTIALS
        assert document["beneficiaryId"] == "b1"
        assert document["pinHash"] == "$2b$04$hash"
        assert credential.national_id == "123456789"

    def test_duplicate_credential_is_rejected(self, credential_service, mongo):
        mongo.create.side_effect = ValueError("Document with this identifier already exists")

        with pytest.raises(DuplicateRecordError):
            credential_service.create_credential("b1", "123456789", "$2b$04$hash")

    def test_second_credential_for_beneficiary_is_rejected(self, credential_service, mongo, sample_credential):
        mongo.find_one.return_value = {"id": "c1", **sample_credential.model_dump(by_alias=True)}

        with pytest.raises(DuplicateRecordError, match="already exists"):
            credential_service.create_credential("b1", "123456789", "$2b$04$other")

        mongo.find_one.assert_called_once_with(CREDENTIALS, {"beneficiaryId": "b1"})
        mongo.create.assert_not_called()

    def test_registered_national_id_is_rejected(self, credential_service, mongo, registration_draft,
                                                sample_beneficiary):
        mongo.find_one.return_value = sample_beneficiary.model_dump(by_alias=True)

        with pytest.raises(DuplicateRecordError, match="National ID 987654321 is already registered"):
            credential_service.create_beneficiary(registration_draft, "$2b$04$hash")

        mongo.create.assert_not_called()

    def test_update_contact_writes_only_editable_fields(self, credential_service, mongo):
        mongo.update_fields.return_value = True

        credential_service.update_beneficiary_contact("b1", {
            "phone": "0590000000",
            "detailed_address": {"governorate": "Gaza", "additional_info": "Near the school"},
            "name": "Someone else",
        })

        collection, filters, updates = mongo.update_fields.call_args.args
        assert collection == BENEFICIARIES
        assert filters == {"_id": "b1"}
        assert set(updates) == {"phone", "detailedAddress"}
        assert updates["detailedAddress"]["additionalInfo"] == "Near the school"

    def test_update_contact_of_missing_beneficiary(self, credential_service, mongo):
        mongo.update_fields.return_value = False

        with pytest.raises(LookupError):
            credential_service.update_beneficiary_contact("b1", {"phone": "0590000000"})

    def test_delete_credential(self, credential_service, mongo):
        mongo.delete_one.return_value = True

        assert credential_service.delete_credential("b1") is True
        mongo.delete_one.assert_called_once_with(CREDENTIALS, {"beneficiaryId": "b1"})

    def test_create_beneficiary(self, credential_service, mongo, registration_draft):
        beneficiary = credential_service.create_beneficiary(registration_draft, "$2b$04$hash")

        (first_collection, document), (second_collection, credential) = [
            call.args for call in mongo.create.call_args_list
        ]
        assert first_collection == BENEFICIARIES
        assert document["nationalId"] == "987654321"
        assert document["address"] == "Gaza - Gaza City - Rimal"
        assert document["dateOfBirth"] == "1985-06-15"
        assert "pin" not in document
        assert second_collection == CREDENTIALS
        assert credential["beneficiaryId"] == beneficiary.id

    def test_create_beneficiary_removes_record_when_credential_fails(self, credential_service, mongo,
                                                                    registration_draft):
        mongo.create.side_effect = [None, ValueError("duplicate")]

        with pytest.raises(ValueError):
            credential_service.create_beneficiary(registration_draft, "$2b$04$hash")

        collection, filters = mongo.delete_one.call_args.args
        assert collection == BENEFICIARIES
        assert "_id" in filters


class TestAuditEntries:

    def test_record_audit_entry(self, credential_service, audit):
        credential_service.record_audit_entry(
            "Search", "Mona", "beneficiary", AuditAction.REVIEW,
            subject_id="b1", note="From dashboard", visibility=AuditVisibility.PUBLIC
        )

        entry = audit.record_entry.call_args.args[0]
        assert isinstance(entry, AuditEntry)
        assert entry.action == "review"
        assert entry.visibility == "public"
        assert entry.note == "From dashboard"

    def test_audit_failures_never_propagate(self, credential_service, audit):
        audit.record_entry.side_effect = RuntimeError("mongo down")

        credential_service.record_audit_entry("Search", "Mona", "beneficiary", AuditAction.REVIEW)

        audit.record_entry.assert_called_once()


class TestAuditService:

    def test_record_entry_stores_document(self, mongo):
        mongo.create.return_value = "a1"
        service = AuditService(mongo)
        entry = AuditEntry(description="Search", subject_name="Mona", subject_kind="beneficiary", action="review")

        assert service.record_entry(entry) == "a1"

        collection, document = mongo.create.call_args.args
        assert collection == AUDIT_LOGS
        assert document["subjectName"] == "Mona"
        assert document["visibility"] == "private"

    def test_record_entry_raises_on_failure(self, mongo):
        mongo.create.side_effect = RuntimeError("mongo down")
        service = AuditService(mongo)
        entry = AuditEntry(description="Search", subject_name="Mona", subject_kind="beneficiary", action="review")

        with pytest.raises(RuntimeError):
            service.record_entry(entry)

    def test_entries_for_subject(self, mongo):
        entry = AuditEntry(description="Search", subject_name="Mona", subject_kind="beneficiary",
                           action="review", subject_id="b1")
        mongo.find.return_value = [entry.model_dump(by_alias=True)]

        entries = AuditService(mongo).entries_for_subject("b1")

        assert [e.subject_id for e in entries] == ["b1"]
