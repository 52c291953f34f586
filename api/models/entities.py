# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the emergency SOS platform.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import BaseEntity, DocumentModel, utcnow
from .enums import (
    ADMIN_ROLES,
    ContactCategory,
    EmergencyType,
    EventSeverity,
    EventStatus,
    NotificationMethod,
    NotificationSeverity,
    NotificationType,
    TimelineAction,
    UserRole,
)


class GeoPoint(DocumentModel):
    """GeoJSON point; coordinates are ``[longitude, latitude]``."""

    type: Literal["Point"] = Field(default="Point", description="GeoJSON geometry type")
    coordinates: List[float] = Field(..., description="[longitude, latitude]")

    @field_validator('coordinates')
    @classmethod
    def validate_coordinates(cls, v):
        """Validate coordinate count and ranges."""
        if len(v) != 2:
            raise ValueError('Coordinates must be [longitude, latitude]')
        longitude, latitude = v
        if not -180 <= longitude <= 180:
            raise ValueError('Longitude must be between -180 and 180')
        if not -90 <= latitude <= 90:
            raise ValueError('Latitude must be between -90 and 90')
        return v

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class OperatingHours(DocumentModel):
    weekdays: str = Field(default="9:00 AM - 5:00 PM")
    weekends: str = Field(default="Closed")
    emergency24x7: bool = Field(default=False, alias="emergency24x7", description="Reachable around the clock")


class ContactEntry(BaseEntity):
    """A point of help: embassy, consulate, NGO, labor office, shelter or legal aid."""

    name: Dict[str, str] = Field(..., description="Localized names keyed by language code")
    type: ContactCategory = Field(..., description="Contact category")
    country: str = Field(..., min_length=1, description="Country")
    city: str = Field(..., min_length=1, description="City")
    location: GeoPoint = Field(..., description="Point location")
    address: Dict[str, str] = Field(default_factory=dict, description="Localized address")
    phone: List[str] = Field(..., min_length=1, description="Phone numbers")
    emergency_hotline: str = Field(..., min_length=1, description="Single emergency hotline")
    email: Optional[str] = None
    website: Optional[str] = None
    operating_hours: OperatingHours = Field(default_factory=OperatingHours)
    services: Dict[str, List[str]] = Field(default_factory=dict)
    languages_supported: List[str] = Field(default_factory=list)
    can_provide_emergency_shelter: bool = False
    can_provide_legal_aid: bool = False
    can_provide_medical_assistance: bool = False
    can_provide_repatriation: bool = False
    is_active: bool = Field(default=True, description="Inactive entries never match")
    verified_date: Optional[datetime] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Require at least one non-empty localized name."""
        cleaned = {lang: text.strip() for lang, text in v.items() if text and text.strip()}
        if not cleaned:
            raise ValueError('Contact name requires at least one language')
        return cleaned

    @property
    def always_available(self) -> bool:
        return self.operating_hours.emergency24x7

    def display_name(self, language: str = "en") -> str:
        """Name in the requested language, falling back to English or any language."""
        if language in self.name:
            return self.name[language]
        if "en" in self.name:
            return self.name["en"]
        return next(iter(self.name.values()))


class LocationDetails(DocumentModel):
    country: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    landmark: Optional[str] = None


class DeviceInfo(DocumentModel):
    user_agent: Optional[str] = None
    platform: Optional[str] = None
    ip_address: Optional[str] = None


class MatchedContact(DocumentModel):
    """Contact reference captured on an event at match time."""

    contact_id: str = Field(..., description="ContactEntry identifier")
    name: str = Field(..., description="Display name at match time")
    type: ContactCategory = Field(..., description="Contact category")
    distance: float = Field(..., ge=0, description="Distance in kilometers at match time")
    phone: Optional[str] = None
    emergency_hotline: Optional[str] = None
    always_available: bool = False
    notified: bool = False
    notified_at: Optional[datetime] = None


class FamilyNotification(DocumentModel):
    """Family member to alert for an event."""

    family_member_id: str = Field(..., description="Recipient identity")
    name: str = Field(..., min_length=1)
    relationship: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notification_method: NotificationMethod = Field(default=NotificationMethod.BOTH)
    notified: bool = False
    notified_at: Optional[datetime] = None
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None


class TimelineEntry(DocumentModel):
    timestamp: datetime = Field(default_factory=utcnow)
    action: TimelineAction
    description: str = ""
    performed_by: Optional[str] = None


class SupportNote(DocumentModel):
    note: str = Field(..., min_length=1, max_length=2000)
    added_by: str
    added_at: datetime = Field(default_factory=utcnow)


class SOSEvent(BaseEntity):
    """One emergency incident and everything it owns."""

    user_id: str = Field(..., min_length=1, description="Worker who triggered the SOS")
    worker_name: str = Field(..., min_length=1, description="Display name captured at trigger time")
    worker_phone: Optional[str] = None
    emergency_type: EmergencyType = Field(default=EmergencyType.OTHER)
    description: Optional[str] = Field(None, max_length=1000)
    severity: EventSeverity = Field(default=EventSeverity.HIGH)
    location: GeoPoint
    location_details: LocationDetails = Field(default_factory=LocationDetails)
    location_accuracy: Optional[float] = Field(None, ge=0, description="Accuracy in meters")
    status: EventStatus = Field(default=EventStatus.ACTIVE)
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None
    nearest_contacts: List[MatchedContact] = Field(default_factory=list)
    family_notifications: List[FamilyNotification] = Field(default_factory=list)
    timeline: List[TimelineEntry] = Field(default_factory=list)
    device_info: Optional[DeviceInfo] = None
    support_notes: List[SupportNote] = Field(default_factory=list)
    auto_cancelled_at: Optional[datetime] = None
    auto_cancellation_reason: Optional[str] = None

    @model_validator(mode='after')
    def validate_resolution_fields(self):
        """Resolution metadata exists exactly when the event is resolved."""
        if self.status == EventStatus.RESOLVED:
            if self.resolved_at is None or not self.resolved_by:
                raise ValueError('resolved_at and resolved_by are required when status is resolved')
        elif self.resolved_at is not None or self.resolved_by is not None:
            raise ValueError('Resolution fields are only allowed when status is resolved')
        return self

    def find_contact(self, contact_id: str) -> Optional[MatchedContact]:
        return next((c for c in self.nearest_contacts if c.contact_id == contact_id), None)

    def find_family(self, family_member_id: str) -> Optional[FamilyNotification]:
        return next(
            (f for f in self.family_notifications if f.family_member_id == family_member_id),
            None
        )


class Notification(BaseEntity):
    """Per-recipient in-app notification record."""

    user_id: str = Field(..., description="Recipient identifier")
    type: NotificationType = Field(..., description="Notification type")
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1000)
    severity: NotificationSeverity = Field(default=NotificationSeverity.INFO)
    related_id: Optional[str] = Field(None, description="Originating entity id")
    related_model: Optional[str] = Field(None, description="Originating entity type tag")
    read: bool = False
    read_at: Optional[datetime] = None
    action_url: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('title', 'message')
    @classmethod
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError('Notification text cannot be empty')
        return v.strip()


class WorkerIdentity(BaseModel):
    """Subject details resolved from the identity provider."""

    user_id: str
    display_name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class AdminAccount(BaseModel):
    """Administrator snapshot used for fan-out."""

    user_id: str
    role: str
    email: Optional[str] = None
    name: Optional[str] = None


class UserContext(BaseModel):
    """User context for request processing with authentication data."""

    user_id: str = Field(..., description="Authenticated user ID")
    role: str = Field(default=UserRole.WORKER.value, description="Account role")
    email: Optional[str] = Field(None, description="User email")
    name: Optional[str] = Field(None, description="User display name")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def is_admin(self) -> bool:
        """Check whether the user holds an administrative role."""
        return self.role in ADMIN_ROLES
