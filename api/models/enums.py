# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the emergency SOS platform.
"""

from enum import Enum


class ContactCategory(str, Enum):
    """Kinds of help sources held in the contact directory."""
    EMBASSY = "embassy"
    CONSULATE = "consulate"
    NGO = "ngo"
    LABOR_OFFICE = "labor_office"
    SHELTER = "shelter"
    LEGAL_AID = "legal_aid"


class EmergencyType(str, Enum):
    """Incident types a worker can report."""
    MEDICAL = "medical"
    ACCIDENT = "accident"
    ABUSE = "abuse"
    DETENTION = "detention"
    LOST_DOCUMENTS = "lost_documents"
    THREAT = "threat"
    HARASSMENT = "harassment"
    UNPAID_WAGES = "unpaid_wages"
    UNSAFE_CONDITIONS = "unsafe_conditions"
    OTHER = "other"


class EventSeverity(str, Enum):
    """SOS event severity levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EventStatus(str, Enum):
    """SOS event lifecycle status."""
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class TimelineAction(str, Enum):
    """Action tags recorded on the event timeline."""
    SOS_TRIGGERED = "sos_triggered"
    LOCATION_UPDATED = "location_updated"
    CONTACTS_NOTIFIED = "contacts_notified"
    FAMILY_NOTIFIED = "family_notified"
    HELP_DISPATCHED = "help_dispatched"
    WORKER_CONTACTED = "worker_contacted"
    STATUS_UPDATED = "status_updated"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class NotificationType(str, Enum):
    """In-app notification type tags."""
    EMERGENCY_SOS = "emergency_sos"
    COMPLAINT = "complaint"
    REVIEW = "review"
    SYSTEM = "system"
    MESSAGE = "message"
    OTHER = "other"


class NotificationSeverity(str, Enum):
    """Notification severity, a superset of event severity."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class NotificationMethod(str, Enum):
    """Channel used to reach a family member."""
    EMAIL = "email"
    APP = "app"
    BOTH = "both"


class UserRole(str, Enum):
    """Account roles known to the emergency core."""
    WORKER = "worker"
    PLATFORM_ADMIN = "platform_admin"
    ADMIN = "admin"
    RECRUITMENT_ADMIN = "recruitment_admin"


class UserStatus(str, Enum):
    """User account status enumeration."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


ADMIN_ROLES = frozenset({
    UserRole.PLATFORM_ADMIN.value,
    UserRole.ADMIN.value,
    UserRole.RECRUITMENT_ADMIN.value,
})
