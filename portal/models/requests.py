# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for portal endpoints.

Shape checks on national IDs, phones and PINs happen in the domain validators,
which report them as field errors on the session.
"""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from .entities import DetailedAddress
from .enums import Gender, MaritalStatus, EconomicLevel, ProfileTab


class PortalRequest(BaseModel):
    """Base model for request bodies."""

    model_config = ConfigDict(
        use_enum_values=True,
        extra='forbid'
    )


class SessionPath(BaseModel):
    """Path parameters addressing a portal session."""

    session_id: str = Field(..., min_length=1, description="Portal session identifier")


class SearchRequest(PortalRequest):
    """Request model for a national ID lookup."""

    national_id: str = Field(..., description="National ID as typed by the user")


class SelectTabRequest(PortalRequest):
    """Request model for switching the profile tab."""

    tab: ProfileTab = Field(..., description="Tab to display")


class ContactEditRequest(PortalRequest):
    """Partial update of the edit buffer."""

    phone: Optional[str] = Field(None, description="Contact phone")
    address: Optional[str] = Field(None, max_length=500, description="Free-text address")
    detailed_address: Optional[DetailedAddress] = Field(None, description="Structured address")


class PinSetupRequest(PortalRequest):
    """Request model for creating a PIN before the first save."""

    pin: str = Field(..., description="6-digit PIN")
    confirm_pin: str = Field(..., description="PIN confirmation")


class RegistrationUpdateRequest(PortalRequest):
    """Partial update of the registration draft."""

    name: Optional[str] = None
    full_name: Optional[str] = None
    national_id: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[Gender] = None
    phone: Optional[str] = None
    detailed_address: Optional[DetailedAddress] = None
    profession: Optional[str] = None
    marital_status: Optional[MaritalStatus] = None
    economic_level: Optional[EconomicLevel] = None
    members_count: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)


class RegistrationSubmitRequest(PinSetupRequest):
    """Final registration step carrying the PIN pair."""
