# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the emergency SOS engine.
"""

# Base models
from .base import BaseEntity, DocumentModel, generate_object_id, utcnow

# Enumerations
from .enums import (
    ContactCategory,
    EmergencyType,
    EventSeverity,
    EventStatus,
    TimelineAction,
    NotificationType,
    NotificationSeverity,
    NotificationMethod,
    UserRole,
    UserStatus,
    ADMIN_ROLES
)

# Core entities
from .entities import (
    GeoPoint,
    OperatingHours,
    ContactEntry,
    LocationDetails,
    DeviceInfo,
    MatchedContact,
    FamilyNotification,
    TimelineEntry,
    SupportNote,
    SOSEvent,
    Notification,
    WorkerIdentity,
    AdminAccount,
    UserContext
)

# Request models
from .requests import (
    FamilyContactRequest,
    TriggerSOSRequest,
    UpdateStatusRequest,
    UpdateLocationRequest,
    SupportNoteRequest,
    NearestContactsQuery,
    CountryContactsQuery,
    HistoryQuery,
    ReaperSweepQuery,
    NotificationListQuery,
    EventPath,
    SeverityPath,
    CountryPath,
    NotificationPath,
    ContactPath
)

# Response models
from .responses import (
    HalLink,
    MatchedContactResponse,
    TriggerSOSResponse,
    EventCollectionResponse,
    ReaperSweepResponse,
    HealthCheckResponse,
    ErrorResponse,
    ValidationErrorResponse
)

__all__ = [
    # Base models
    "BaseEntity",
    "DocumentModel",
    "generate_object_id",
    "utcnow",

    # Enumerations
    "ContactCategory",
    "EmergencyType",
    "EventSeverity",
    "EventStatus",
    "TimelineAction",
    "NotificationType",
    "NotificationSeverity",
    "NotificationMethod",
    "UserRole",
    "UserStatus",
    "ADMIN_ROLES",

    # Core entities
    "GeoPoint",
    "OperatingHours",
    "ContactEntry",
    "LocationDetails",
    "DeviceInfo",
    "MatchedContact",
    "FamilyNotification",
    "TimelineEntry",
    "SupportNote",
    "SOSEvent",
    "Notification",
    "WorkerIdentity",
    "AdminAccount",
    "UserContext",

    # Request models
    "FamilyContactRequest",
    "TriggerSOSRequest",
    "UpdateStatusRequest",
    "UpdateLocationRequest",
    "SupportNoteRequest",
    "NearestContactsQuery",
    "CountryContactsQuery",
    "HistoryQuery",
    "ReaperSweepQuery",
    "NotificationListQuery",
    "EventPath",
    "SeverityPath",
    "CountryPath",
    "NotificationPath",
    "ContactPath",

    # Response models
    "HalLink",
    "MatchedContactResponse",
    "TriggerSOSResponse",
    "EventCollectionResponse",
    "ReaperSweepResponse",
    "HealthCheckResponse",
    "ErrorResponse",
    "ValidationErrorResponse"
]
