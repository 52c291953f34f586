# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from typing import List, Optional
from pydantic import AliasChoices, BaseModel, Field, field_validator
from .base import DocumentModel
from .entities import GeoPoint, LocationDetails, DeviceInfo
from .enums import ContactCategory, EmergencyType, EventSeverity, NotificationMethod


class FamilyContactRequest(DocumentModel):
    """Family member supplied by the caller at SOS time."""

    family_member_id: str = Field(..., min_length=1, description="Recipient identity")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    relationship: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = None
    email: Optional[str] = None
    notification_method: NotificationMethod = Field(default=NotificationMethod.BOTH)


class TriggerSOSRequest(DocumentModel):
    """Request model for triggering an emergency SOS."""

    location: GeoPoint = Field(..., description="Current position")
    emergency_type: EmergencyType = Field(default=EmergencyType.OTHER, description="Incident type")
    description: Optional[str] = Field(None, max_length=1000, description="Free-text description")
    severity: EventSeverity = Field(default=EventSeverity.HIGH, description="Incident severity")
    location_details: Optional[LocationDetails] = Field(None, description="Locality details")
    location_accuracy: Optional[float] = Field(None, ge=0, description="Accuracy in meters")
    device_info: Optional[DeviceInfo] = Field(None, description="Reporting device")
    family_contacts: List[FamilyContactRequest] = Field(
        default_factory=list,
        description="Family members to alert"
    )

    @field_validator('family_contacts')
    @classmethod
    def validate_unique_family(cls, v):
        """Reject duplicate family member identities."""
        ids = [member.family_member_id for member in v]
        if len(ids) != len(set(ids)):
            raise ValueError('Duplicate family member identifiers')
        return v


class UpdateStatusRequest(DocumentModel):
    """Request model for a lifecycle status change.

    ``status`` stays a plain string so unknown values surface as a field-level
    validation error from the lifecycle rules.
    """

    status: str = Field(..., min_length=1, description="Target status")
    notes: Optional[str] = Field(None, max_length=2000, description="Resolution notes")


class UpdateLocationRequest(DocumentModel):
    """Request model for a location update."""

    location: GeoPoint = Field(..., description="New position")
    location_details: Optional[LocationDetails] = Field(None, description="Locality details")


class SupportNoteRequest(DocumentModel):
    """Request model for an administrator support note."""

    note: str = Field(..., min_length=1, max_length=2000, description="Note text")

    @field_validator('note')
    @classmethod
    def validate_note(cls, v):
        if not v.strip():
            raise ValueError('Note cannot be empty')
        return v.strip()


class NearestContactsQuery(BaseModel):
    """Query parameters for the nearest contacts lookup."""

    lon: float = Field(..., validation_alias=AliasChoices("lon", "longitude"), description="Longitude")
    lat: float = Field(..., validation_alias=AliasChoices("lat", "latitude"), description="Latitude")
    max_distance: float = Field(default=100000, gt=0, alias="maxDistance", description="Radius in meters")
    type: Optional[ContactCategory] = Field(None, description="Category filter")
    limit: int = Field(default=10, ge=1, le=50, description="Maximum results")

    model_config = {"populate_by_name": True, "use_enum_values": True}


class CountryContactsQuery(BaseModel):
    """Query parameters for the per-country contact listing."""

    type: Optional[ContactCategory] = Field(None, description="Category filter")

    model_config = {"use_enum_values": True}


class HistoryQuery(BaseModel):
    """Query parameters for the subject's incident history."""

    limit: int = Field(default=10, ge=1, le=100, description="Maximum results")


class ReaperSweepQuery(BaseModel):
    """Query parameters for a manual reaper sweep."""

    hours: Optional[float] = Field(None, gt=0, description="Age threshold in hours")


class NotificationListQuery(BaseModel):
    """Query parameters for the notification inbox."""

    unread_only: bool = Field(default=False, alias="unreadOnly", description="Only unread notifications")
    limit: int = Field(default=20, ge=1, le=100, description="Maximum results")

    model_config = {"populate_by_name": True}


class EventPath(BaseModel):
    event_id: str = Field(..., description="SOS event ID")


class SeverityPath(BaseModel):
    severity: EventSeverity = Field(..., description="Severity level")

    model_config = {"use_enum_values": True}


class CountryPath(BaseModel):
    country: str = Field(..., min_length=1, description="Country name")


class NotificationPath(BaseModel):
    notification_id: str = Field(..., description="Notification ID")


class ContactPath(BaseModel):
    contact_id: str = Field(..., description="Emergency contact ID")
