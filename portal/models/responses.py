# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for HAL-formatted portal responses.
"""

from typing import Optional
from pydantic import BaseModel, Field


class HalLink(BaseModel):
    """HAL link object."""

    href: str = Field(..., description="Link URL")
    method: Optional[str] = Field("GET", description="HTTP method")
    type: Optional[str] = Field(None, description="Content type")
    title: Optional[str] = Field(None, description="Link title")
    templated: Optional[bool] = Field(False, description="Whether URL is templated")


class StatusBadge(BaseModel):
    """Label and tone describing a status value."""

    label: str = Field(..., description="Human-readable label")
    tone: str = Field(..., description="Colour tone")
    icon: str = Field(..., description="Icon identifier")


class Notice(BaseModel):
    """Banner shown alongside the session view."""

    kind: str = Field(..., description="Notice identifier")
    tone: str = Field(..., description="Colour tone")
    message: str = Field(..., description="Notice text")
