# SPDX-License-Identifier: Apache-2.0

"""
Aid package partitioning for the profile tabs.
"""

from dataclasses import dataclass
from typing import List

from ..models.entities import AidPackage
from ..models.enums import PackageStatus

UPCOMING_STATUSES = frozenset({
    PackageStatus.PENDING,
    PackageStatus.ASSIGNED,
    PackageStatus.IN_DELIVERY,
})


@dataclass
class PackagePartition:
    """Packages split by fulfillment progress."""
    received: List[AidPackage]
    upcoming: List[AidPackage]


def is_received(package: AidPackage) -> bool:
    return PackageStatus(package.status) == PackageStatus.DELIVERED


def is_upcoming(package: AidPackage) -> bool:
    return PackageStatus(package.status) in UPCOMING_STATUSES


def partition_packages(packages: List[AidPackage]) -> PackagePartition:
    """
    Split packages into received and upcoming, preserving input order.

    Args:
        packages: Packages already fetched for a beneficiary

    Returns:
        PackagePartition with received (delivered) and upcoming packages
    """
    return PackagePartition(
        received=[p for p in packages if is_received(p)],
        upcoming=[p for p in packages if is_upcoming(p)],
    )
