# SPDX-License-Identifier: Apache-2.0

"""
Fan-out domain logic.

Pure builders for the per-recipient records produced when an SOS event is
dispatched: in-app notifications for administrators and delivery payloads for
matched contacts and family members.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from models.entities import (
    AdminAccount, FamilyNotification, MatchedContact, Notification, SOSEvent
)
from models.enums import NotificationType

RELATED_MODEL = "EmergencyEvent"
ADMIN_ACTION_URL = "/admin/emergencies"
UNKNOWN_LOCATION = "Unknown location"


@dataclass(frozen=True)
class Recipient:
    """Addressee handed to a notification sink."""
    kind: str
    recipient_id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    method: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def humanize_type(emergency_type: str) -> str:
    return emergency_type.replace("_", " ")


def event_locality(event: SOSEvent) -> str:
    return event.location_details.city or UNKNOWN_LOCATION


def build_admin_notification(event: SOSEvent, admin: AdminAccount) -> Notification:
    """
    Build the in-app notification for one administrator.

    Args:
        event: Persisted SOS event
        admin: Administrator snapshot

    Returns:
        Notification mirroring the event severity and linking back to it
    """
    return Notification(
        user_id=admin.user_id,
        type=NotificationType.EMERGENCY_SOS,
        title=f"{event.severity.upper()} Emergency SOS",
        message=(
            f"{event.worker_name} triggered an emergency SOS alert "
            f"({humanize_type(event.emergency_type)})"
        ),
        severity=event.severity,
        related_id=event.id,
        related_model=RELATED_MODEL,
        action_url=ADMIN_ACTION_URL,
        metadata={
            "workerName": event.worker_name,
            "emergencyType": event.emergency_type,
            "location": event_locality(event),
        },
    )


def _event_payload(event: SOSEvent) -> Dict[str, Any]:
    return {
        "eventId": event.id,
        "workerName": event.worker_name,
        "workerPhone": event.worker_phone,
        "emergencyType": event.emergency_type,
        "severity": event.severity,
        "description": event.description,
        "location": {
            "type": "Point",
            "coordinates": list(event.location.coordinates),
        },
        "locality": event_locality(event),
    }


def contact_recipient(contact: MatchedContact) -> Recipient:
    return Recipient(
        kind="contact",
        recipient_id=contact.contact_id,
        name=contact.name,
        phone=contact.emergency_hotline or contact.phone,
    )


def contact_payload(event: SOSEvent, contact: MatchedContact) -> Dict[str, Any]:
    payload = _event_payload(event)
    payload.update({
        "contactType": contact.type,
        "distanceKm": contact.distance,
    })
    return payload


def family_recipient(member: FamilyNotification) -> Recipient:
    return Recipient(
        kind="family",
        recipient_id=member.family_member_id,
        name=member.name,
        phone=member.phone,
        email=member.email,
        method=member.notification_method,
    )


def family_payload(event: SOSEvent, member: FamilyNotification) -> Dict[str, Any]:
    payload = _event_payload(event)
    payload["relationship"] = member.relationship
    return payload
