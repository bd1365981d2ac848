# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Fixtures for portal acceptance scenarios.

Scenarios drive the HTTP API end to end. The backend is a MagicMock with the
credential service interface; sessions live in an in-memory Redis stand-in.
"""

import os
import pytest
from unittest.mock import MagicMock

os.environ['ENVIRONMENT'] = 'testing'
os.environ['OTEL_ENABLED'] = 'false'

from portal.app import create_app
from portal.models.entities import Beneficiary, DetailedAddress
from portal.services.credentials import CredentialService
from portal.services.mongodb import MongoDBService
from portal.services.sessions import SessionStore
from portal.tests.fakes import FakeRedis


@pytest.fixture
def beneficiary():
    return Beneficiary(
        id="65f0000000000000000000aa",
        national_id="123456789",
        name="Samir Odeh",
        full_name="Samir Yousef Odeh",
        phone="0591111111",
        address="Gaza - Deir al-Balah",
        detailed_address=DetailedAddress(governorate="Gaza", city="Deir al-Balah"),
        identity_status="verified",
        eligibility_status="verified",
    )


@pytest.fixture
def backend():
    mock = MagicMock(spec=CredentialService)
    mock.lookup_beneficiary_by_national_id.return_value = None
    mock.get_credential_by_national_id.return_value = None
    mock.list_packages_for_beneficiary.return_value = []
    mock.hash_pin.side_effect = lambda pin: f"hashed:{len(pin)}"
    return mock


@pytest.fixture
def test_client(backend):
    mongodb_service = MagicMock(spec=MongoDBService)
    mongodb_service.health_check.return_value = {"status": "healthy"}
    app = create_app(
        config={"TESTING": True},
        mongodb_service=mongodb_service,
        backend=backend,
        session_store=SessionStore(client=FakeRedis()),
    )
    return app.test_client()


@pytest.fixture
def portal_session(test_client):
    """URL of a freshly opened portal session."""
    response = test_client.post('/api/portal/sessions')
    return f"/api/portal/sessions/{response.get_json()['id']}"
