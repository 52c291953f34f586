# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for API endpoints with HAL support.

Used to document the HTTP surface in the generated OpenAPI schema.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime


class HalLink(BaseModel):
    """HAL link representation."""

    href: str = Field(..., description="Link URL")
    method: Optional[str] = Field(None, description="HTTP method")
    title: Optional[str] = Field(None, description="Link title")
    templated: Optional[bool] = Field(None, description="Whether URL is templated")


class MatchedContactResponse(BaseModel):
    contactId: str = Field(..., description="Contact identifier")
    name: str = Field(..., description="Contact display name")
    type: str = Field(..., description="Contact category")
    distance: float = Field(..., description="Distance in kilometers")
    phone: Optional[str] = Field(None, description="Primary phone")
    emergencyHotline: Optional[str] = Field(None, description="Emergency hotline")
    notified: bool = Field(..., description="Delivered to this contact")


class TriggerSOSResponse(BaseModel):
    """Response returned once the SOS event is durably recorded."""

    eventId: str = Field(..., description="Created event ID")
    status: str = Field(..., description="Event status")
    nearestContacts: List[MatchedContactResponse] = Field(default_factory=list)
    familyNotified: int = Field(..., description="Family members queued for notification")
    timeline: List[Dict[str, Any]] = Field(default_factory=list, description="Timeline entries")


class EventCollectionResponse(BaseModel):
    count: int = Field(..., description="Number of events")
    items: List[Dict[str, Any]] = Field(default_factory=list, description="Events")


class ReaperSweepResponse(BaseModel):
    cancelled: int = Field(..., description="Incidents auto-cancelled")
    hoursThreshold: float = Field(..., description="Age threshold used")


class HealthCheckResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Overall health status")
    environment: str = Field(..., description="Environment name")
    timestamp: datetime = Field(..., description="Check timestamp")
    dependencies: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Dependency health")


class ErrorResponse(BaseModel):
    """Error response model following RFC 7807."""

    type: str = Field(..., description="Error type URI")
    title: str = Field(..., description="Error title")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Error detail")
    instance: str = Field(..., description="Request instance")
    errors: Optional[List[Dict[str, Any]]] = Field(None, description="Validation errors")


class ValidationErrorResponse(ErrorResponse):
    """Validation error response with field details."""

    errors: List[Dict[str, Any]] = Field(..., description="Field validation errors")
