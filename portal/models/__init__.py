# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the beneficiary portal.
"""

# Base models
from .base import PortalModel, BaseEntity

# Enumerations
from .enums import (
    Gender,
    VerificationStatus,
    AccountStatus,
    PackageStatus,
    MaritalStatus,
    EconomicLevel,
    PortalStep,
    ProfileTab,
    RegistrationStep,
    AuditAction,
    AuditVisibility,
    BadgeTone
)

# Core entities
from .entities import (
    DetailedAddress,
    Beneficiary,
    AuthCredential,
    AidPackage,
    RegistrationDraft,
    AuditEntry
)

# Request models
from .requests import (
    SessionPath,
    SearchRequest,
    SelectTabRequest,
    ContactEditRequest,
    PinSetupRequest,
    RegistrationUpdateRequest,
    RegistrationSubmitRequest
)

# Response models
from .responses import HalLink, StatusBadge, Notice

__all__ = [
    "PortalModel",
    "BaseEntity",

    "Gender",
    "VerificationStatus",
    "AccountStatus",
    "PackageStatus",
    "MaritalStatus",
    "EconomicLevel",
    "PortalStep",
    "ProfileTab",
    "RegistrationStep",
    "AuditAction",
    "AuditVisibility",
    "BadgeTone",

    "DetailedAddress",
    "Beneficiary",
    "AuthCredential",
    "AidPackage",
    "RegistrationDraft",
    "AuditEntry",

    "SessionPath",
    "SearchRequest",
    "SelectTabRequest",
    "ContactEditRequest",
    "PinSetupRequest",
    "RegistrationUpdateRequest",
    "RegistrationSubmitRequest",

    "HalLink",
    "StatusBadge",
    "Notice"
]
