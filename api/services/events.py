# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Event store for SOS incidents.

Every mutation is a single atomic MongoDB update on the event document. Writes
that depend on the current state are conditioned on it (compare-and-set), so
concurrent request handlers and the reaper never produce a state change without
its matching timeline entry.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from opentelemetry import trace
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from domain import lifecycle
from domain.errors import ConflictException, NotFoundException, TransitionException
from domain.geo import validate_point
from models.base import utcnow
from models.entities import LocationDetails, SOSEvent, SupportNote, TimelineEntry
from models.enums import EventStatus, TimelineAction
from services.mongodb import EVENTS_COLLECTION, MongoDBService, to_object_id

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

STATUS_UPDATE_ATTEMPTS = 3


def _entry_document(entry: TimelineEntry) -> Dict[str, Any]:
    return entry.model_dump(by_alias=True)


class EventStore:
    """Durable record of SOS incidents."""

    def __init__(self, mongodb_service: MongoDBService, status_update_attempts: int = STATUS_UPDATE_ATTEMPTS):
        self.mongodb_service = mongodb_service
        self.status_update_attempts = status_update_attempts

    @property
    def collection(self):
        return self.mongodb_service.get_collection(EVENTS_COLLECTION)

    def _object_id(self, event_id: str):
        object_id = to_object_id(event_id)
        if object_id is None:
            raise NotFoundException("Emergency event not found")
        return object_id

    def _to_event(self, document: Optional[Dict[str, Any]]) -> SOSEvent:
        if document is None:
            raise NotFoundException("Emergency event not found")
        return SOSEvent.from_document(document)

    def create(self, event: SOSEvent, trigger_description: Optional[str] = None) -> SOSEvent:
        """
        Persist a new incident.

        The stored event always starts ``active`` with exactly one
        ``sos_triggered`` entry at the head of its timeline; other caller
        supplied entries are kept after it.

        Args:
            event: Validated event
            trigger_description: Text of the ``sos_triggered`` entry

        Returns:
            The persisted event
        """
        validate_point(event.location.coordinates)

        with tracer.start_as_current_span("events.create") as span:
            now = utcnow()
            trigger = lifecycle.build_timeline_entry(
                TimelineAction.SOS_TRIGGERED,
                trigger_description or "Emergency SOS activated",
                event.user_id,
                now
            )
            timeline = [trigger] + [
                entry for entry in event.timeline
                if entry.action != TimelineAction.SOS_TRIGGERED.value
            ]
            event = event.model_copy(update={
                "status": EventStatus.ACTIVE.value,
                "timeline": timeline,
                "created_at": now,
                "updated_at": now,
                "resolved_at": None,
                "resolved_by": None,
                "resolution_notes": None,
                "auto_cancelled_at": None,
                "auto_cancellation_reason": None,
            })

            self.collection.insert_one(event.to_document())
            span.set_attributes({"event.id": event.id, "event.severity": event.severity})

            logger.info(
                "Emergency event created",
                extra={"event_id": event.id, "user_id": event.user_id, "severity": event.severity}
            )
            return event

    def get(self, event_id: str) -> SOSEvent:
        """Load an event or raise NotFoundException."""
        object_id = self._object_id(event_id)
        return self._to_event(self.collection.find_one({"_id": object_id}))

    def append_timeline_entry(
        self,
        event_id: str,
        action: TimelineAction,
        description: str,
        actor_id: Optional[str] = None
    ) -> SOSEvent:
        """Atomically append one timeline entry."""
        object_id = self._object_id(event_id)
        entry = lifecycle.build_timeline_entry(action, description, actor_id)

        with tracer.start_as_current_span("events.append_timeline", attributes={"event.id": event_id}):
            document = self.collection.find_one_and_update(
                {"_id": object_id},
                {
                    "$push": {"timeline": _entry_document(entry)},
                    "$set": {"updatedAt": entry.timestamp},
                },
                return_document=ReturnDocument.AFTER
            )
            return self._to_event(document)

    def update_location(
        self,
        event_id: str,
        point: Sequence[float],
        locality: Optional[LocationDetails] = None,
        actor_id: Optional[str] = None
    ) -> SOSEvent:
        """
        Move a non-terminal incident and record it on the timeline.

        Supplied locality fields are merged over the stored ones.

        Raises:
            ValidationException: If the point is invalid
            NotFoundException: If the event does not exist
            TransitionException: If the incident is resolved or cancelled
        """
        longitude, latitude = validate_point(point)
        object_id = self._object_id(event_id)

        with tracer.start_as_current_span("events.update_location", attributes={"event.id": event_id}):
            now = utcnow()
            entry = lifecycle.build_timeline_entry(
                TimelineAction.LOCATION_UPDATED,
                lifecycle.describe_location((longitude, latitude)),
                actor_id,
                now
            )

            updates: Dict[str, Any] = {
                "location": {"type": "Point", "coordinates": [longitude, latitude]},
                "updatedAt": now,
            }
            if locality is not None:
                for key, value in locality.model_dump(by_alias=True, exclude_none=True).items():
                    updates[f"locationDetails.{key}"] = value

            document = self.collection.find_one_and_update(
                {"_id": object_id, "status": {"$in": sorted(lifecycle.ACTIVE_STATUSES)}},
                {"$set": updates, "$push": {"timeline": _entry_document(entry)}},
                return_document=ReturnDocument.AFTER
            )

            if document is None:
                current = self.get(event_id)
                lifecycle.ensure_location_updatable(current.status)
                raise ConflictException("Emergency event changed during location update")

            logger.info(
                "Emergency event location updated",
                extra={"event_id": event_id, "location": [longitude, latitude]}
            )
            return self._to_event(document)

    def update_status(
        self,
        event_id: str,
        new_status: str,
        actor_id: str,
        notes: Optional[str] = None
    ) -> SOSEvent:
        """
        Apply a lifecycle transition.

        The write is conditioned on the status the transition was validated
        against; when another writer got there first the transition is
        re-validated against the fresh state.

        Raises:
            ValidationException: If ``new_status`` is unknown
            TransitionException: If the move is not permitted
            NotFoundException: If the event does not exist
            ConflictException: If concurrent writers win every attempt
        """
        lifecycle.validate_status_value(new_status)
        object_id = self._object_id(event_id)

        with tracer.start_as_current_span("events.update_status") as span:
            span.set_attributes({"event.id": event_id, "event.new_status": new_status})

            for attempt in range(1, self.status_update_attempts + 1):
                current = self.get(event_id)
                change = lifecycle.build_status_update(current.status, new_status, actor_id, notes)

                document = self.collection.find_one_and_update(
                    {"_id": object_id, "status": change.previous_status},
                    {"$set": change.fields, "$push": {"timeline": _entry_document(change.entry)}},
                    return_document=ReturnDocument.AFTER
                )
                if document is not None:
                    logger.info(
                        f"Emergency {event_id} status updated to {new_status}",
                        extra={
                            "event_id": event_id,
                            "user_id": actor_id,
                            "previous_status": change.previous_status,
                            "attempt": attempt
                        }
                    )
                    return self._to_event(document)

                logger.debug(
                    "Status changed concurrently, retrying",
                    extra={"event_id": event_id, "attempt": attempt}
                )

            raise ConflictException("Emergency event was modified concurrently; retry the update")

    def _mark_notified(
        self,
        event_id: str,
        list_field: str,
        key_field: str,
        key: str,
        entry: Optional[TimelineEntry]
    ) -> SOSEvent:
        event = self.get(event_id)
        items = event.nearest_contacts if list_field == "nearestContacts" else event.family_notifications
        attribute = "contact_id" if key_field == "contactId" else "family_member_id"

        index = next((i for i, item in enumerate(items) if getattr(item, attribute) == key), None)
        if index is None:
            raise NotFoundException(f"No {key_field} '{key}' on emergency event {event_id}")
        if items[index].notified:
            return event

        now = utcnow()
        prefix = f"{list_field}.{index}"
        update: Dict[str, Any] = {
            "$set": {f"{prefix}.notified": True, f"{prefix}.notifiedAt": now, "updatedAt": now}
        }
        if entry is not None:
            update["$push"] = {"timeline": _entry_document(entry)}

        document = self.collection.find_one_and_update(
            {
                "_id": self._object_id(event_id),
                f"{prefix}.{key_field}": key,
                f"{prefix}.notified": False,
            },
            update,
            return_document=ReturnDocument.AFTER
        )
        if document is None:
            # Marked by a concurrent writer
            return self.get(event_id)
        return self._to_event(document)

    def mark_contact_notified(self, event_id: str, contact_id: str, description: Optional[str] = None) -> SOSEvent:
        """
        Flag a matched contact as notified; a repeat call is a no-op.

        When ``description`` is given, a ``contacts_notified`` timeline entry is
        appended in the same update as the flag.
        """
        entry = lifecycle.build_timeline_entry(TimelineAction.CONTACTS_NOTIFIED, description) if description else None
        with tracer.start_as_current_span("events.mark_contact_notified", attributes={"event.id": event_id}):
            return self._mark_notified(event_id, "nearestContacts", "contactId", contact_id, entry)

    def mark_family_notified(self, event_id: str, family_member_id: str, description: Optional[str] = None) -> SOSEvent:
        """Flag a family member as notified; a repeat call is a no-op."""
        entry = lifecycle.build_timeline_entry(TimelineAction.FAMILY_NOTIFIED, description) if description else None
        with tracer.start_as_current_span("events.mark_family_notified", attributes={"event.id": event_id}):
            return self._mark_notified(event_id, "familyNotifications", "familyMemberId", family_member_id, entry)

    def add_support_note(self, event_id: str, note: str, actor_id: str) -> SOSEvent:
        object_id = self._object_id(event_id)
        support_note = SupportNote(note=note, added_by=actor_id)

        with tracer.start_as_current_span("events.add_support_note", attributes={"event.id": event_id}):
            document = self.collection.find_one_and_update(
                {"_id": object_id},
                {
                    "$push": {"supportNotes": support_note.model_dump(by_alias=True)},
                    "$set": {"updatedAt": support_note.added_at},
                },
                return_document=ReturnDocument.AFTER
            )
            return self._to_event(document)

    def history_for_user(self, user_id: str, limit: int = 10) -> List[SOSEvent]:
        """A worker's incidents, newest first."""
        with tracer.start_as_current_span("events.history", attributes={"user.id": user_id}):
            cursor = self.collection.find({"userId": user_id}).sort("createdAt", DESCENDING).limit(limit)
            return [SOSEvent.from_document(document) for document in cursor]

    def list_active(self) -> List[SOSEvent]:
        """Open incidents, most severe first and newest first within a severity."""
        with tracer.start_as_current_span("events.list_active"):
            cursor = self.collection.find({"status": {"$in": sorted(lifecycle.ACTIVE_STATUSES)}})
            events = [SOSEvent.from_document(document) for document in cursor]
            events.sort(key=lambda e: e.created_at, reverse=True)
            events.sort(key=lambda e: lifecycle.SEVERITY_RANK.get(e.severity, 0), reverse=True)
            return events

    def list_by_severity(self, severity: str) -> List[SOSEvent]:
        with tracer.start_as_current_span("events.list_by_severity", attributes={"event.severity": severity}):
            cursor = self.collection.find({
                "severity": severity,
                "status": {"$in": sorted(lifecycle.ACTIVE_STATUSES)},
            }).sort("createdAt", DESCENDING)
            return [SOSEvent.from_document(document) for document in cursor]

    def find_stale_candidates(self, cutoff: datetime) -> List[Dict[str, Any]]:
        """Open, not yet auto-cancelled incidents created before ``cutoff``."""
        cursor = self.collection.find(
            {
                "status": {"$in": sorted(lifecycle.ACTIVE_STATUSES)},
                "createdAt": {"$lt": cutoff},
                "autoCancelledAt": None,
            },
            {"_id": 1, "status": 1, "createdAt": 1}
        ).sort("createdAt", ASCENDING)
        return list(cursor)

    def auto_cancel(
        self,
        event_id: str,
        expected_status: str,
        reason: str,
        now: Optional[datetime] = None
    ) -> bool:
        """
        Cancel an incident if it still has ``expected_status`` and was never
        auto-cancelled.

        Returns:
            True when this call performed the cancellation
        """
        if lifecycle.is_terminal(expected_status):
            raise TransitionException(
                f"Cannot auto-cancel a {expected_status} incident",
                current_status=expected_status
            )

        now = now or utcnow()
        entry = lifecycle.build_timeline_entry(TimelineAction.CANCELLED, reason, None, now)
        result = self.collection.update_one(
            {"_id": self._object_id(event_id), "status": expected_status, "autoCancelledAt": None},
            {
                "$set": {
                    "status": EventStatus.CANCELLED.value,
                    "autoCancelledAt": now,
                    "autoCancellationReason": reason,
                    "updatedAt": now,
                },
                "$push": {"timeline": _entry_document(entry)},
            }
        )
        return result.modified_count == 1
