# SPDX-License-Identifier: Apache-2.0

"""
Validation rules for portal input.

This module contains pure predicates over raw user input and the step
validators that gate every state transition. Identical input always yields
an identical verdict.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional

from ..models.entities import RegistrationDraft

NATIONAL_ID_RE = re.compile(r'[0-9]{9}')
PIN_RE = re.compile(r'[0-9]{6}')
PHONE_RE = re.compile(r'05[0-9]{8}')
DATE_RE = re.compile(r'[0-9]{4}-[0-9]{2}-[0-9]{2}')

NATIONAL_ID_MESSAGE = "National ID must be exactly 9 digits"
PIN_MESSAGE = "PIN must be exactly 6 digits"
PIN_MISMATCH_MESSAGE = "PIN mismatch"
PHONE_MESSAGE = "Phone number must start with 05 and contain 10 digits"


@dataclass
class ValidationResult:
    """Result of a validation check with field-scoped errors."""
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(self, field_name: str, message: str) -> None:
        self.errors.setdefault(field_name, message)

    @property
    def first_error(self) -> Optional[str]:
        """First error message in insertion order."""
        return next(iter(self.errors.values()), None)


def _fullmatch(pattern: re.Pattern, value) -> bool:
    return isinstance(value, str) and pattern.fullmatch(value) is not None


def is_valid_national_id(value: str) -> bool:
    """True iff value is exactly 9 decimal digits."""
    return _fullmatch(NATIONAL_ID_RE, value)


def is_valid_pin(value: str) -> bool:
    """True iff value is exactly 6 decimal digits."""
    return _fullmatch(PIN_RE, value)


def is_valid_phone(value: str) -> bool:
    """True iff value is a 10-digit number beginning with 05."""
    return _fullmatch(PHONE_RE, value)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _is_iso_date(value: str) -> bool:
    """True iff value is a calendar date written as YYYY-MM-DD."""
    value = value.strip()
    # fromisoformat also takes compact and week dates on newer interpreters
    if not _fullmatch(DATE_RE, value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def validate_national_id(value: str) -> ValidationResult:
    """Validate a national ID typed into the search box."""
    result = ValidationResult()
    if not is_valid_national_id(value):
        result.add("national_id", NATIONAL_ID_MESSAGE)
    return result


def validate_personal_step(draft: RegistrationDraft) -> ValidationResult:
    """Validate the personal information step of registration."""
    result = ValidationResult()

    if _is_blank(draft.name):
        result.add("name", "Name is required")
    if _is_blank(draft.full_name):
        result.add("full_name", "Full name is required")

    if _is_blank(draft.national_id):
        result.add("national_id", "National ID is required")
    elif not is_valid_national_id(draft.national_id):
        result.add("national_id", NATIONAL_ID_MESSAGE)

    if _is_blank(draft.date_of_birth):
        result.add("date_of_birth", "Date of birth is required")
    elif not _is_iso_date(draft.date_of_birth):
        result.add("date_of_birth", "Date of birth must be a valid date (YYYY-MM-DD)")

    if _is_blank(draft.phone):
        result.add("phone", "Phone number is required")
    elif not is_valid_phone(draft.phone):
        result.add("phone", PHONE_MESSAGE)

    return result


def validate_address_step(draft: RegistrationDraft) -> ValidationResult:
    """Validate the address step of registration."""
    result = ValidationResult()
    address = draft.detailed_address

    if _is_blank(address.governorate):
        result.add("governorate", "Governorate is required")
    if _is_blank(address.city):
        result.add("city", "City is required")
    if _is_blank(address.district):
        result.add("district", "District is required")

    return result


def validate_social_step(draft: RegistrationDraft) -> ValidationResult:
    """Validate the social information step of registration."""
    result = ValidationResult()

    if _is_blank(draft.profession):
        result.add("profession", "Profession is required")
    if draft.members_count < 1:
        result.add("members_count", "Household must have at least 1 member")

    return result


def validate_pin_pair(pin: str, confirm_pin: str) -> ValidationResult:
    """
    Validate a PIN and its confirmation.

    The shape check runs before the comparison; a malformed PIN is reported
    on the pin field whatever the confirmation holds.
    """
    result = ValidationResult()

    if not is_valid_pin(pin):
        result.add("pin", PIN_MESSAGE)
    elif pin != confirm_pin:
        result.add("confirm_pin", PIN_MISMATCH_MESSAGE)

    return result


def validate_password_step(draft: RegistrationDraft) -> ValidationResult:
    """Validate the password step of registration."""
    return validate_pin_pair(draft.pin, draft.confirm_pin)


def validate_contact_changes(changes: Dict[str, object]) -> ValidationResult:
    """Validate a self-service contact edit before it is saved."""
    result = ValidationResult()
    phone = changes.get("phone")

    if not _is_blank(phone) and not is_valid_phone(phone):
        result.add("phone", PHONE_MESSAGE)

    return result
