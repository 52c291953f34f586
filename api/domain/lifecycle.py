# SPDX-License-Identifier: Apache-2.0

"""
Incident lifecycle domain logic.

This module contains pure functions for the SOS event state machine, timeline
entry construction and the derived read-only values computed over a loaded
event (duration, active flag, notification summary, staleness).
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from models.base import utcnow
from models.entities import SOSEvent, TimelineEntry
from models.enums import EventSeverity, EventStatus, TimelineAction
from domain.errors import TransitionException, ValidationException

TERMINAL_STATUSES = frozenset({EventStatus.RESOLVED.value, EventStatus.CANCELLED.value})
ACTIVE_STATUSES = frozenset({EventStatus.ACTIVE.value, EventStatus.IN_PROGRESS.value})

VALID_TRANSITIONS = {
    EventStatus.ACTIVE.value: {
        EventStatus.IN_PROGRESS.value,
        EventStatus.RESOLVED.value,
        EventStatus.CANCELLED.value,
    },
    EventStatus.IN_PROGRESS.value: {
        EventStatus.RESOLVED.value,
        EventStatus.CANCELLED.value,
    },
    EventStatus.RESOLVED.value: set(),  # Terminal state
    EventStatus.CANCELLED.value: set(),  # Terminal state
}

# Higher rank sorts first in admin views
SEVERITY_RANK = {
    EventSeverity.CRITICAL.value: 4,
    EventSeverity.HIGH.value: 3,
    EventSeverity.MEDIUM.value: 2,
    EventSeverity.LOW.value: 1,
}

STALE_HOURS = 24


@dataclass
class StatusChange:
    """Field updates and audit entry for one accepted status write."""
    previous_status: str
    new_status: str
    fields: Dict[str, Any]
    entry: TimelineEntry


@dataclass
class NotificationSummary:
    family_notified: int
    total_family: int
    contacts_notified: int
    total_contacts: int

    @property
    def all_notified(self) -> bool:
        return (
            self.family_notified == self.total_family
            and self.contacts_notified == self.total_contacts
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "familyNotified": self.family_notified,
            "totalFamily": self.total_family,
            "contactsNotified": self.contacts_notified,
            "totalContacts": self.total_contacts,
            "allNotified": self.all_notified,
        }


def validate_status_value(value: Any) -> str:
    """
    Validate a requested status value.

    Args:
        value: Raw status from the caller

    Returns:
        The status string

    Raises:
        ValidationException: If the value is not a known status
    """
    valid = [status.value for status in EventStatus]
    if value not in valid:
        raise ValidationException(
            f"Status must be one of: {', '.join(valid)}",
            validation_errors=[{"field": "status", "message": f"Unknown status '{value}'"}]
        )
    return value


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def validate_transition(current_status: str, new_status: str) -> None:
    """
    Check a move along the state machine.

    Repeating a non-terminal status is accepted as a refresh. Nothing leaves a
    terminal state, including a repeat of the same terminal status.

    Raises:
        TransitionException: If the move is not permitted
    """
    if is_terminal(current_status):
        raise TransitionException(
            f"Event is {current_status}; no further status changes are permitted",
            current_status=current_status,
            requested=new_status
        )

    if new_status != current_status and new_status not in VALID_TRANSITIONS.get(current_status, set()):
        raise TransitionException(
            f"Invalid status transition from {current_status} to {new_status}",
            current_status=current_status,
            requested=new_status
        )


def build_timeline_entry(
    action: TimelineAction,
    description: str,
    performed_by: Optional[str] = None,
    timestamp: Optional[datetime] = None
) -> TimelineEntry:
    return TimelineEntry(
        timestamp=timestamp or utcnow(),
        action=action,
        description=description,
        performed_by=performed_by,
    )


def build_status_update(
    current_status: str,
    new_status: str,
    actor_id: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None
) -> StatusChange:
    """
    Build the field updates and timeline entry for a status change.

    Args:
        current_status: Status the write is conditioned on
        new_status: Requested status
        actor_id: Who performed the change
        notes: Resolution notes, kept only on resolution
        now: Timestamp override

    Returns:
        StatusChange describing the write

    Raises:
        ValidationException: If ``new_status`` is unknown
        TransitionException: If the move is not permitted
    """
    validate_status_value(new_status)
    validate_transition(current_status, new_status)

    now = now or utcnow()
    fields: Dict[str, Any] = {"status": new_status, "updatedAt": now}
    if new_status == EventStatus.RESOLVED.value:
        fields.update({
            "resolvedAt": now,
            "resolvedBy": actor_id,
            "resolutionNotes": notes,
        })

    if new_status == current_status:
        description = f"Status confirmed as {new_status}"
    else:
        description = f"Status changed from {current_status} to {new_status}"

    return StatusChange(
        previous_status=current_status,
        new_status=new_status,
        fields=fields,
        entry=build_timeline_entry(TimelineAction.STATUS_UPDATED, description, actor_id, now),
    )


def ensure_location_updatable(status: str) -> None:
    """Reject location updates on incidents that are no longer tracked."""
    if is_terminal(status):
        raise TransitionException(
            f"Cannot update location of a {status} incident",
            current_status=status
        )


def describe_location(coordinates) -> str:
    return f"Location updated to {coordinates[0]}, {coordinates[1]}"


def incident_duration_minutes(event: SOSEvent, now: Optional[datetime] = None) -> int:
    """Whole minutes from creation to resolution, or to now while unresolved."""
    end = event.resolved_at or now or utcnow()
    return math.floor((end - event.created_at).total_seconds() / 60)


def is_currently_active(event: SOSEvent) -> bool:
    return event.status in ACTIVE_STATUSES


def notification_summary(event: SOSEvent) -> NotificationSummary:
    return NotificationSummary(
        family_notified=sum(1 for member in event.family_notifications if member.notified),
        total_family=len(event.family_notifications),
        contacts_notified=sum(1 for contact in event.nearest_contacts if contact.notified),
        total_contacts=len(event.nearest_contacts),
    )


def is_stale(event: SOSEvent, hours: float = STALE_HOURS, now: Optional[datetime] = None) -> bool:
    """True when an incident is still open more than ``hours`` after creation."""
    if not is_currently_active(event):
        return False
    now = now or utcnow()
    return (now - event.created_at) > timedelta(hours=hours)


def stale_cutoff(hours: float, now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) - timedelta(hours=hours)


def auto_cancellation_reason(hours: float) -> str:
    if float(hours).is_integer():
        hours = int(hours)
    return f"Auto-cancelled after {hours} hours of no resolution"


def derived_values(event: SOSEvent, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Read-time values rendered alongside an event."""
    return {
        "durationMinutes": incident_duration_minutes(event, now),
        "isActive": is_currently_active(event),
        "isStale": is_stale(event, now=now),
        "notificationSummary": notification_summary(event).to_dict(),
    }
