# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Credential service: beneficiary lookup, PIN credentials, packages and audit.

This is the only collaborator the portal flows talk to for persistent data.
Every method except record_audit_entry propagates backend failures to the
caller; audit writes are fire-and-forget.
"""

import os
import logging
from typing import Dict, List, Optional, Any
import bcrypt
from opentelemetry import trace
from pydantic.alias_generators import to_camel

from .audit import AuditService
from .mongodb import MongoDBService, BENEFICIARIES, CREDENTIALS, PACKAGES
from ..domain.registration import beneficiary_from_draft
from ..models.entities import (
    AidPackage,
    AuditEntry,
    AuthCredential,
    Beneficiary,
    DetailedAddress,
    EDITABLE_PROFILE_FIELDS,
    RegistrationDraft
)
from ..models.enums import AuditAction, AuditVisibility

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DuplicateRecordError(ValueError):
    """A beneficiary or credential that must be unique already exists."""
    pass


def _beneficiary_document(beneficiary: Beneficiary) -> Dict[str, Any]:
    document = beneficiary.model_dump(by_alias=True)
    # BSON has no date-only type
    if beneficiary.date_of_birth is not None:
        document["dateOfBirth"] = beneficiary.date_of_birth.isoformat()
    return document


class CredentialService:
    """MongoDB-backed beneficiary, credential and package access."""

    def __init__(
        self,
        mongo_service: MongoDBService,
        audit_service: Optional[AuditService] = None,
        pin_hash_rounds: Optional[int] = None
    ):
        self.mongo_service = mongo_service
        self.audit_service = audit_service or AuditService(mongo_service)
        self.pin_hash_rounds = pin_hash_rounds or int(os.getenv('PIN_HASH_ROUNDS', '12'))

    # Lookups

    def lookup_beneficiary_by_national_id(self, national_id: str) -> Optional[Beneficiary]:
        """Beneficiary with this national ID, or None when there is none."""
        with tracer.start_as_current_span("credentials.lookup_beneficiary") as span:
            document = self.mongo_service.find_one(BENEFICIARIES, {"nationalId": national_id})
            span.set_attribute("beneficiary.found", document is not None)
            if document is None:
                return None
            return Beneficiary.model_validate(document)

    def get_credential_by_national_id(self, national_id: str) -> Optional[AuthCredential]:
        with tracer.start_as_current_span("credentials.get_credential") as span:
            document = self.mongo_service.find_one(CREDENTIALS, {"nationalId": national_id})
            span.set_attribute("credential.exists", document is not None)
            if document is None:
                return None
            return AuthCredential.model_validate(document)

    def list_packages_for_beneficiary(self, beneficiary_id: str) -> List[AidPackage]:
        with tracer.start_as_current_span("credentials.list_packages") as span:
            documents = self.mongo_service.find(
                PACKAGES,
                {"beneficiaryId": beneficiary_id},
                sort_by="createdAt"
            )
            span.set_attribute("packages.count", len(documents))
            return [AidPackage.model_validate(doc) for doc in documents]

    # PIN hashing

    def hash_pin(self, pin: str) -> str:
        """
        Hash a PIN using bcrypt with salt.

        Args:
            pin: 6-digit PIN as entered

        Returns:
            Hashed PIN string
        """
        with tracer.start_as_current_span("credentials.hash_pin") as span:
            span.set_attribute("credentials.operation", "hash_pin")

            salt = bcrypt.gensalt(rounds=self.pin_hash_rounds)
            hashed = bcrypt.hashpw(pin.encode('utf-8'), salt)

            logger.debug("PIN hashed successfully")
            return hashed.decode('utf-8')

    def verify_pin(self, pin: str, pin_hash: str) -> bool:
        """True if the PIN matches the stored hash."""
        with tracer.start_as_current_span("credentials.verify_pin") as span:
            try:
                result = bcrypt.checkpw(pin.encode('utf-8'), pin_hash.encode('utf-8'))
            except ValueError as e:
                # Malformed stored hash
                span.set_attribute("credentials.verification_result", "error")
                logger.error(f"PIN verification error: {str(e)}")
                return False

            span.set_attribute("credentials.verification_result", "success" if result else "failed")
            return result

    # Writes

    def create_credential(self, beneficiary_id: str, national_id: str, pin_hash: str) -> AuthCredential:
        """
        Store a PIN credential.

        Raises:
            DuplicateRecordError: If the beneficiary already has a credential
        """
        with tracer.start_as_current_span("credentials.create_credential") as span:
            span.set_attribute("beneficiary.id", beneficiary_id)

            # The unique index on beneficiaryId closes the race this check leaves open
            if self.mongo_service.find_one(CREDENTIALS, {"beneficiaryId": beneficiary_id}) is not None:
                span.set_attribute("credential.exists", True)
                raise DuplicateRecordError("A PIN already exists for this beneficiary")

            credential = AuthCredential(
                beneficiary_id=beneficiary_id,
                national_id=national_id,
                pin_hash=pin_hash
            )
            try:
                self.mongo_service.create(CREDENTIALS, credential.model_dump(by_alias=True))
            except ValueError as e:
                raise DuplicateRecordError("A PIN already exists for this beneficiary") from e

            logger.info("Credential created", extra={"beneficiary_id": beneficiary_id})
            return credential

    def delete_credential(self, beneficiary_id: str) -> bool:
        """Remove the credential of a beneficiary."""
        with tracer.start_as_current_span("credentials.delete_credential") as span:
            span.set_attribute("beneficiary.id", beneficiary_id)
            deleted = self.mongo_service.delete_one(CREDENTIALS, {"beneficiaryId": beneficiary_id})
            logger.warning(
                "Credential removed",
                extra={"beneficiary_id": beneficiary_id, "deleted": deleted}
            )
            return deleted

    def update_beneficiary_contact(self, beneficiary_id: str, changes: Dict[str, Any]) -> None:
        """
        Persist self-service contact changes.

        Only phone, address and detailed address are written; any other key
        in changes is ignored.

        Raises:
            LookupError: If the beneficiary no longer exists
        """
        with tracer.start_as_current_span("credentials.update_contact") as span:
            span.set_attribute("beneficiary.id", beneficiary_id)

            updates = {}
            for name in EDITABLE_PROFILE_FIELDS:
                if name not in changes:
                    continue
                value = changes[name]
                if name == "detailed_address":
                    value = DetailedAddress.model_validate(value).model_dump(by_alias=True)
                updates[to_camel(name)] = value

            matched = self.mongo_service.update_fields(BENEFICIARIES, {"_id": beneficiary_id}, updates)
            if not matched:
                raise LookupError(f"Beneficiary {beneficiary_id} not found")

            logger.info(
                "Beneficiary contact updated",
                extra={"beneficiary_id": beneficiary_id, "fields": sorted(changes)}
            )

    def create_beneficiary(self, draft: RegistrationDraft, pin_hash: str) -> Beneficiary:
        """
        Register a beneficiary together with its PIN credential.

        The beneficiary is removed again if the credential cannot be stored,
        so a failed registration leaves nothing behind.
        """
        with tracer.start_as_current_span("credentials.create_beneficiary") as span:
            beneficiary = beneficiary_from_draft(draft)
            span.set_attribute("beneficiary.id", beneficiary.id)

            if self.mongo_service.find_one(BENEFICIARIES, {"nationalId": beneficiary.national_id}) is not None:
                raise DuplicateRecordError(
                    f"National ID {beneficiary.national_id} is already registered"
                )

            try:
                self.mongo_service.create(BENEFICIARIES, _beneficiary_document(beneficiary))
            except ValueError as e:
                raise DuplicateRecordError(
                    f"National ID {beneficiary.national_id} is already registered"
                ) from e

            try:
                self.create_credential(beneficiary.id, beneficiary.national_id, pin_hash)
            except Exception as e:
                span.record_exception(e)
                logger.error(
                    "Credential insert failed, removing new beneficiary",
                    extra={"beneficiary_id": beneficiary.id, "error": str(e)}
                )
                self.mongo_service.delete_one(BENEFICIARIES, {"_id": beneficiary.id})
                raise

            logger.info("Beneficiary registered", extra={"beneficiary_id": beneficiary.id})
            return beneficiary

    def record_audit_entry(
        self,
        description: str,
        subject_name: str,
        subject_kind: str,
        action: AuditAction,
        subject_id: Optional[str] = None,
        note: Optional[str] = None,
        visibility: AuditVisibility = AuditVisibility.PRIVATE
    ) -> None:
        """Record an audit entry. Failures are logged and never raised."""
        try:
            entry = AuditEntry(
                description=description,
                subject_name=subject_name,
                subject_kind=subject_kind,
                action=action,
                subject_id=subject_id,
                note=note,
                visibility=visibility
            )
            self.audit_service.record_entry(entry)
        except Exception as e:
            logger.warning(
                "Audit entry dropped",
                extra={"description": description, "subject_id": subject_id, "error": str(e)}
            )
