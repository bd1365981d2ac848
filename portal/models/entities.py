# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the beneficiary portal.
"""

import re
from datetime import date, datetime
from typing import Optional
from pydantic import Field, field_validator, model_validator

from .base import BaseEntity, PortalModel, generate_object_id, utc_now
from .enums import (
    Gender,
    VerificationStatus,
    AccountStatus,
    PackageStatus,
    MaritalStatus,
    EconomicLevel,
    AuditAction,
    AuditVisibility
)

NATIONAL_ID_PATTERN = re.compile(r'^[0-9]{9}$')

# Fields a beneficiary may change through self-service edits
EDITABLE_PROFILE_FIELDS = ("phone", "address", "detailed_address")


class DetailedAddress(PortalModel):
    """Structured address."""

    governorate: str = Field(default="", description="Governorate")
    city: str = Field(default="", description="City")
    district: str = Field(default="", description="District or neighbourhood")
    street: str = Field(default="", description="Street")
    additional_info: str = Field(default="", description="Free-form address details")


class Beneficiary(BaseEntity):
    """Identity and case record of an aid beneficiary."""

    national_id: str = Field(..., description="9-digit national identity number")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    full_name: str = Field(default="", max_length=300, description="Full legal name")
    phone: str = Field(default="", description="Contact phone")
    address: str = Field(default="", description="Free-text address")
    detailed_address: DetailedAddress = Field(default_factory=DetailedAddress, description="Structured address")
    gender: Gender = Field(default=Gender.MALE, description="Gender")
    date_of_birth: Optional[date] = Field(None, description="Date of birth")
    identity_status: VerificationStatus = Field(default=VerificationStatus.PENDING, description="Identity verification")
    eligibility_status: VerificationStatus = Field(default=VerificationStatus.PENDING, description="Eligibility verification")
    account_status: AccountStatus = Field(default=AccountStatus.ACTIVE, description="Account status")
    organization_id: Optional[str] = Field(None, description="Sponsoring organization")
    profession: str = Field(default="", description="Profession")
    marital_status: MaritalStatus = Field(default=MaritalStatus.SINGLE, description="Marital status")
    economic_level: EconomicLevel = Field(default=EconomicLevel.POOR, description="Economic level")
    members_count: int = Field(default=1, ge=1, description="Household members")
    notes: str = Field(default="", max_length=2000, description="Notes")

    @field_validator('national_id')
    @classmethod
    def validate_national_id(cls, v):
        """Validate national ID format."""
        if not NATIONAL_ID_PATTERN.match(v):
            raise ValueError('National ID must be exactly 9 digits')
        return v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate beneficiary name."""
        if not v.strip():
            raise ValueError('Beneficiary name cannot be empty')
        return v.strip()

    def contact_fields(self) -> dict:
        """Snapshot of the self-service editable fields."""
        return {
            "phone": self.phone,
            "address": self.address,
            "detailed_address": self.detailed_address.model_dump()
        }


class AuthCredential(PortalModel):
    """Hashed PIN protecting a beneficiary's self-service edits."""

    beneficiary_id: str = Field(..., description="Owning beneficiary")
    national_id: str = Field(..., description="Lookup key, matches the beneficiary")
    pin_hash: str = Field(..., description="One-way hash of the 6-digit PIN")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")

    @field_validator('national_id')
    @classmethod
    def validate_national_id(cls, v):
        """Validate national ID format."""
        if not NATIONAL_ID_PATTERN.match(v):
            raise ValueError('National ID must be exactly 9 digits')
        return v


class AidPackage(PortalModel):
    """Benefit unit linked to a beneficiary."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    beneficiary_id: str = Field(..., description="Owning beneficiary")
    name: str = Field(..., min_length=1, description="Package name")
    description: str = Field(default="", description="Package description")
    status: PackageStatus = Field(default=PackageStatus.PENDING, description="Fulfillment status")
    value: float = Field(default=0, ge=0, description="Monetary value")
    funder: str = Field(default="", description="Funding organization")
    delivered_at: Optional[datetime] = Field(None, description="Delivery timestamp")

    @model_validator(mode='after')
    def validate_delivery_timestamp(self):
        """delivered_at is present exactly when the package was delivered."""
        if self.status == PackageStatus.DELIVERED and self.delivered_at is None:
            raise ValueError('delivered_at is required when status is delivered')

        if self.status != PackageStatus.DELIVERED and self.delivered_at is not None:
            raise ValueError('delivered_at is only allowed when status is delivered')

        return self


class RegistrationDraft(PortalModel):
    """Transient registration form data held by the wizard."""

    name: str = ""
    full_name: str = ""
    national_id: str = ""
    date_of_birth: str = ""
    gender: Gender = Gender.MALE
    phone: str = ""
    detailed_address: DetailedAddress = Field(default_factory=DetailedAddress)
    profession: str = ""
    marital_status: MaritalStatus = MaritalStatus.SINGLE
    economic_level: EconomicLevel = EconomicLevel.POOR
    members_count: int = 1
    notes: str = ""
    # Plaintext PIN entry never leaves the request that carried it
    pin: str = Field(default="", exclude=True)
    confirm_pin: str = Field(default="", exclude=True)


class AuditEntry(PortalModel):
    """Audit log entry for sensitive portal actions."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    timestamp: datetime = Field(default_factory=utc_now, description="Action timestamp")
    description: str = Field(..., min_length=1, description="Human-readable description")
    subject_name: str = Field(..., description="Name of the affected subject")
    subject_kind: str = Field(..., description="Kind of subject, e.g. beneficiary")
    action: AuditAction = Field(..., description="Action performed")
    subject_id: Optional[str] = Field(None, description="Subject identifier")
    note: Optional[str] = Field(None, description="Additional context")
    visibility: AuditVisibility = Field(default=AuditVisibility.PRIVATE, description="Entry visibility")
    trace_id: Optional[str] = Field(None, description="OpenTelemetry trace ID")
    span_id: Optional[str] = Field(None, description="OpenTelemetry span ID")
    schema_version: int = Field(default=1, description="Schema version")
