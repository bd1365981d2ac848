# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the beneficiary portal.
"""

from enum import Enum


class Gender(str, Enum):
    """Beneficiary gender."""
    MALE = "male"
    FEMALE = "female"


class VerificationStatus(str, Enum):
    """Identity and eligibility verification status."""
    VERIFIED = "verified"
    PENDING = "pending"
    REJECTED = "rejected"


class AccountStatus(str, Enum):
    """Beneficiary account status."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class PackageStatus(str, Enum):
    """Aid package fulfillment status, in delivery order."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_DELIVERY = "in_delivery"
    DELIVERED = "delivered"


class MaritalStatus(str, Enum):
    """Marital status collected at registration."""
    SINGLE = "single"
    MARRIED = "married"
    DIVORCED = "divorced"
    WIDOWED = "widowed"


class EconomicLevel(str, Enum):
    """Self-declared household economic level."""
    VERY_POOR = "very_poor"
    POOR = "poor"
    MODERATE = "moderate"
    GOOD = "good"


class PortalStep(str, Enum):
    """Top-level steps of the search/profile flow."""
    SEARCH = "search"
    FOUND = "found"
    NOT_FOUND = "not_found"
    REGISTER = "register"


class ProfileTab(str, Enum):
    """Tabs shown for a found beneficiary."""
    INFO = "info"
    STATUS = "status"
    PACKAGES_RECEIVED = "packages_received"
    PACKAGES_UPCOMING = "packages_upcoming"
    ORGANIZATION = "organization"


class RegistrationStep(str, Enum):
    """Registration wizard steps, in order."""
    PERSONAL = "personal"
    ADDRESS = "address"
    SOCIAL = "social"
    PASSWORD = "password"


class AuditAction(str, Enum):
    """Actions recorded in the audit trail."""
    REVIEW = "review"
    CREATE = "create"
    UPDATE = "update"


class AuditVisibility(str, Enum):
    """Who may see an audit entry."""
    PUBLIC = "public"
    PRIVATE = "private"


class BadgeTone(str, Enum):
    """Colour tone used when rendering a status badge."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    ORANGE = "orange"
    BLUE = "blue"
    GRAY = "gray"
