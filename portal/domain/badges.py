# SPDX-License-Identifier: Apache-2.0

"""
Status badge tables.

Each table is keyed by a closed enumeration and checked for completeness at
import time.
"""

from enum import Enum
from typing import Dict, Type

from ..models.enums import VerificationStatus, PackageStatus, AccountStatus, BadgeTone
from ..models.responses import StatusBadge


VERIFICATION_BADGES: Dict[VerificationStatus, StatusBadge] = {
    VerificationStatus.VERIFIED: StatusBadge(label="Verified", tone=BadgeTone.GREEN.value, icon="check-circle"),
    VerificationStatus.PENDING: StatusBadge(label="Under review", tone=BadgeTone.YELLOW.value, icon="clock"),
    VerificationStatus.REJECTED: StatusBadge(label="Rejected", tone=BadgeTone.RED.value, icon="alert-circle"),
}

PACKAGE_BADGES: Dict[PackageStatus, StatusBadge] = {
    PackageStatus.DELIVERED: StatusBadge(label="Delivered", tone=BadgeTone.GREEN.value, icon="check-circle"),
    PackageStatus.IN_DELIVERY: StatusBadge(label="Out for delivery", tone=BadgeTone.ORANGE.value, icon="clock"),
    PackageStatus.ASSIGNED: StatusBadge(label="Being prepared", tone=BadgeTone.BLUE.value, icon="package"),
    PackageStatus.PENDING: StatusBadge(label="Waiting", tone=BadgeTone.GRAY.value, icon="clock"),
}

ACCOUNT_BADGES: Dict[AccountStatus, StatusBadge] = {
    AccountStatus.ACTIVE: StatusBadge(label="Active", tone=BadgeTone.GREEN.value, icon="check-circle"),
    AccountStatus.INACTIVE: StatusBadge(label="Inactive", tone=BadgeTone.GRAY.value, icon="minus-circle"),
}

CREDENTIAL_BADGES: Dict[bool, StatusBadge] = {
    True: StatusBadge(label="PIN protected", tone=BadgeTone.GREEN.value, icon="shield"),
    False: StatusBadge(label="Not protected", tone=BadgeTone.YELLOW.value, icon="shield-off"),
}


def _check_exhaustive(table: Dict, enum_type: Type[Enum]) -> None:
    missing = set(enum_type) - set(table)
    if missing:
        names = ", ".join(sorted(member.value for member in missing))
        raise RuntimeError(f"{enum_type.__name__} has no badge for: {names}")


_check_exhaustive(VERIFICATION_BADGES, VerificationStatus)
_check_exhaustive(PACKAGE_BADGES, PackageStatus)
_check_exhaustive(ACCOUNT_BADGES, AccountStatus)


def verification_badge(status) -> StatusBadge:
    """Badge for an identity or eligibility status."""
    return VERIFICATION_BADGES[VerificationStatus(status)]


def package_badge(status) -> StatusBadge:
    """Badge for an aid package status."""
    return PACKAGE_BADGES[PackageStatus(status)]


def account_badge(status) -> StatusBadge:
    """Badge for an account status."""
    return ACCOUNT_BADGES[AccountStatus(status)]


def credential_badge(auth_exists: bool) -> StatusBadge:
    """Badge describing whether edits are PIN protected."""
    return CREDENTIAL_BADGES[bool(auth_exists)]
