# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for status badges and package partitioning.
"""

import pytest

from portal.domain import badges
from portal.domain.packages import is_received, is_upcoming, partition_packages
from portal.models.enums import AccountStatus, PackageStatus, VerificationStatus


class TestBadges:

    @pytest.mark.parametrize("status", list(VerificationStatus))
    def test_every_verification_status_has_a_badge(self, status):
        assert badges.verification_badge(status.value).label

    @pytest.mark.parametrize("status", list(PackageStatus))
    def test_every_package_status_has_a_badge(self, status):
        assert badges.package_badge(status).tone

    @pytest.mark.parametrize("status", list(AccountStatus))
    def test_every_account_status_has_a_badge(self, status):
        assert badges.account_badge(status).icon

    def test_tones(self):
        assert badges.verification_badge("verified").tone == "green"
        assert badges.verification_badge("pending").tone == "yellow"
        assert badges.verification_badge("rejected").tone == "red"
        assert badges.package_badge("in_delivery").tone == "orange"

    def test_credential_badge(self):
        assert badges.credential_badge(False).tone == "yellow"
        assert badges.credential_badge(True).tone == "green"

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValueError):
            badges.package_badge("lost")

    def test_missing_badge_fails_exhaustiveness_check(self):
        incomplete = {AccountStatus.ACTIVE: badges.ACCOUNT_BADGES[AccountStatus.ACTIVE]}

        with pytest.raises(RuntimeError, match="inactive"):
            badges._check_exhaustive(incomplete, AccountStatus)


class TestPartition:

    def test_partition_by_status(self, sample_packages):
        partition = partition_packages(sample_packages)

        assert [p.status for p in partition.received] == ["delivered"]
        assert [p.status for p in partition.upcoming] == ["pending", "assigned", "in_delivery"]

    def test_every_package_lands_in_exactly_one_tab(self, sample_packages):
        for package in sample_packages:
            assert is_received(package) != is_upcoming(package)

    def test_empty_list(self):
        partition = partition_packages([])

        assert partition.received == []
        assert partition.upcoming == []
