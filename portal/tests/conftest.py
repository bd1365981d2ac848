# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

# Set test environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['OTEL_ENABLED'] = 'false'

from portal.app import create_app
from portal.domain.session import PortalSession
from portal.models.entities import AidPackage, AuthCredential, Beneficiary, DetailedAddress
from portal.services.credentials import CredentialService
from portal.services.mongodb import MongoDBService
from portal.services.portal import PortalService
from portal.services.sessions import SessionStore
from portal.tests.fakes import FakeRedis, FrozenClock


@pytest.fixture
def sample_beneficiary():
    """Verified beneficiary without a PIN."""
    return Beneficiary(
        id="65f000000000000000000001",
        national_id="123456789",
        name="Mona Haddad",
        full_name="Mona Khalil Haddad",
        phone="0591234567",
        address="Gaza - Gaza City - Rimal",
        detailed_address=DetailedAddress(
            governorate="Gaza",
            city="Gaza City",
            district="Rimal",
            street="Omar Al-Mukhtar",
        ),
        identity_status="verified",
        eligibility_status="pending",
        organization_id="org-1",
    )


@pytest.fixture
def sample_packages(sample_beneficiary):
    """One package for every fulfillment status."""
    return [
        AidPackage(
            id="pkg-delivered",
            beneficiary_id=sample_beneficiary.id,
            name="Food basket",
            status="delivered",
            value=120,
            delivered_at=datetime(2024, 1, 10, tzinfo=timezone.utc),
        ),
        AidPackage(id="pkg-pending", beneficiary_id=sample_beneficiary.id, name="Hygiene kit", status="pending"),
        AidPackage(id="pkg-assigned", beneficiary_id=sample_beneficiary.id, name="Blankets", status="assigned"),
        AidPackage(id="pkg-in-delivery", beneficiary_id=sample_beneficiary.id, name="Water", status="in_delivery"),
    ]


@pytest.fixture
def sample_credential(sample_beneficiary):
    return AuthCredential(
        beneficiary_id=sample_beneficiary.id,
        national_id=sample_beneficiary.national_id,
        pin_hash="$2b$04$existing.hash.value",
    )


@pytest.fixture
def backend():
    """Credential service double that finds nobody by default."""
    mock = MagicMock(spec=CredentialService)
    mock.lookup_beneficiary_by_national_id.return_value = None
    mock.get_credential_by_national_id.return_value = None
    mock.list_packages_for_beneficiary.return_value = []
    mock.hash_pin.return_value = "$2b$04$hashed.pin"
    return mock


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def session_store(fake_redis):
    return SessionStore(ttl_seconds=1800, client=fake_redis)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def portal_service(backend, session_store, clock):
    return PortalService(backend, session_store, notice_seconds=3, clock=clock)


@pytest.fixture
def session(portal_service):
    """Fresh session already stored."""
    return portal_service.open_session()


@pytest.fixture
def mongodb_service():
    mock = MagicMock(spec=MongoDBService)
    mock.health_check.return_value = {"status": "healthy", "ping": True}
    return mock


@pytest.fixture
def app(mongodb_service, backend, session_store):
    """Flask application wired to test doubles."""
    application = create_app(
        config={"TESTING": True, "BASE_URL": "http://portal.test"},
        mongodb_service=mongodb_service,
        backend=backend,
        session_store=session_store,
    )
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def open_found(portal_service, backend, sample_beneficiary):
    """Factory opening a session whose search found the sample beneficiary."""

    def _open(packages=None, credential=None) -> PortalSession:
        backend.lookup_beneficiary_by_national_id.return_value = sample_beneficiary
        backend.list_packages_for_beneficiary.return_value = packages or []
        backend.get_credential_by_national_id.return_value = credential
        session = portal_service.open_session()
        session = portal_service.submit_search(session, sample_beneficiary.national_id)
        backend.record_audit_entry.reset_mock()
        return session

    return _open
