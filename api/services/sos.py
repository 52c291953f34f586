# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
SOS lifecycle controller.

Orchestrates the trigger flow (identity lookup, two proximity queries, merge,
persistence, fan-out) and the authorization-gated lifecycle operations on
existing incidents.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from opentelemetry import trace

from domain import authorization
from domain.geo import merge_matches, to_matched_contact, validate_point
from models.entities import (
    DeviceInfo, FamilyNotification, LocationDetails, SOSEvent, UserContext
)
from models.requests import TriggerSOSRequest
from services.contacts import ContactDirectory
from services.directory import IdentityProvider
from services.events import EventStore
from services.fanout import NotificationFanout

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class SOSSettings:
    """Tunables for the trigger flow."""
    nearest_radius_m: float = 100000
    nearest_limit: int = 5
    always_available_radius_m: float = 50000
    always_available_limit: int = 10
    match_cap: int = 5
    proximity_timeout_ms: int = 800
    spatial_prefilter: bool = True
    async_fanout: bool = True
    fanout_workers: int = 3

    @classmethod
    def from_env(cls) -> "SOSSettings":
        return cls(
            nearest_radius_m=float(os.getenv('SOS_NEAREST_RADIUS_M', '100000')),
            nearest_limit=int(os.getenv('SOS_NEAREST_LIMIT', '5')),
            always_available_radius_m=float(os.getenv('SOS_ALWAYS_AVAILABLE_RADIUS_M', '50000')),
            always_available_limit=int(os.getenv('SOS_ALWAYS_AVAILABLE_LIMIT', '10')),
            match_cap=int(os.getenv('SOS_MATCH_CAP', '5')),
            proximity_timeout_ms=int(os.getenv('SOS_PROXIMITY_TIMEOUT_MS', '800')),
            spatial_prefilter=os.getenv('SOS_SPATIAL_PREFILTER', 'true').lower() == 'true',
            async_fanout=os.getenv('SOS_ASYNC_FANOUT', 'true').lower() == 'true',
            fanout_workers=int(os.getenv('SOS_FANOUT_WORKERS', '3'))
        )


class SOSService:
    """Lifecycle controller for SOS incidents."""

    def __init__(
        self,
        identity_provider: IdentityProvider,
        contact_directory: ContactDirectory,
        event_store: EventStore,
        fanout: NotificationFanout,
        settings: Optional[SOSSettings] = None
    ):
        self.identity_provider = identity_provider
        self.contact_directory = contact_directory
        self.event_store = event_store
        self.fanout = fanout
        self.settings = settings or SOSSettings()

    def trigger_sos(
        self,
        user_context: UserContext,
        request: TriggerSOSRequest,
        device_info: Optional[DeviceInfo] = None
    ) -> SOSEvent:
        """
        Record a worker's distress signal and start notifying recipients.

        Fan-out starts only after the event is persisted. In asynchronous mode
        the event is returned as soon as fan-out has been submitted.

        Args:
            user_context: Authenticated worker
            request: Validated trigger request
            device_info: Device details captured from the request when the
                body carries none

        Returns:
            The persisted event

        Raises:
            ValidationException: If the location is invalid
            NotFoundException: If the worker cannot be resolved
        """
        point = validate_point(request.location.coordinates)
        settings = self.settings

        with tracer.start_as_current_span("sos.trigger") as span:
            span.set_attributes({
                "user.id": user_context.user_id,
                "sos.type": request.emergency_type,
                "sos.severity": request.severity
            })

            worker = self.identity_provider.resolve_worker(user_context.user_id)

            nearest = self.contact_directory.find_nearest(
                point, settings.nearest_radius_m, settings.nearest_limit
            )
            always_available = self.contact_directory.find_always_available_near(
                point, settings.always_available_radius_m, settings.always_available_limit
            )
            matches = merge_matches([nearest, always_available], settings.match_cap)

            event = SOSEvent(
                user_id=user_context.user_id,
                worker_name=worker.display_name,
                worker_phone=worker.phone,
                emergency_type=request.emergency_type,
                description=request.description,
                severity=request.severity,
                location=request.location,
                location_details=request.location_details or LocationDetails(),
                location_accuracy=request.location_accuracy,
                nearest_contacts=[to_matched_contact(match) for match in matches],
                family_notifications=[
                    FamilyNotification(**member.model_dump()) for member in request.family_contacts
                ],
                device_info=request.device_info or device_info,
            )
            event = self.event_store.create(event, f"SOS triggered by {worker.display_name}")
            span.set_attributes({"event.id": event.id, "sos.matched_contacts": len(matches)})

            logger.warning(
                "EMERGENCY SOS TRIGGERED",
                extra={
                    "event_id": event.id,
                    "user_id": user_context.user_id,
                    "location": list(point),
                    "severity": event.severity,
                    "nearest_contacts": len(event.nearest_contacts),
                    "family_contacts": len(event.family_notifications)
                }
            )

            if settings.async_fanout:
                self.fanout.submit(event.id)
                return event

            self.fanout.dispatch_safely(event.id)
            return self.event_store.get(event.id)

    def get_event(self, user_context: UserContext, event_id: str) -> SOSEvent:
        event = self.event_store.get(event_id)
        authorization.enforce(authorization.check_event_access(user_context, event))
        return event

    def history(self, user_context: UserContext, limit: int = 10) -> List[SOSEvent]:
        return self.event_store.history_for_user(user_context.user_id, limit)

    def update_status(
        self,
        user_context: UserContext,
        event_id: str,
        status: str,
        notes: Optional[str] = None
    ) -> SOSEvent:
        """
        Move an incident along the state machine on behalf of its subject or an admin.

        Raises:
            NotFoundException: If the event does not exist
            AuthorizationException: If the caller is neither subject nor admin
            ValidationException: If the status value is unknown
            TransitionException: If the move is not permitted
        """
        with tracer.start_as_current_span("sos.update_status", attributes={"event.id": event_id}):
            event = self.event_store.get(event_id)
            authorization.enforce(authorization.check_event_access(user_context, event))
            return self.event_store.update_status(event_id, status, user_context.user_id, notes)

    def update_location(
        self,
        user_context: UserContext,
        event_id: str,
        coordinates,
        locality: Optional[LocationDetails] = None
    ) -> SOSEvent:
        """
        Move an open incident on behalf of its subject.

        Raises:
            ValidationException: If the point is invalid
            NotFoundException: If the event does not exist
            AuthorizationException: If the caller is not the subject
            TransitionException: If the incident is terminal
        """
        validate_point(coordinates)

        with tracer.start_as_current_span("sos.update_location", attributes={"event.id": event_id}):
            event = self.event_store.get(event_id)
            authorization.enforce(authorization.check_location_update(user_context, event))
            return self.event_store.update_location(event_id, coordinates, locality, user_context.user_id)

    def list_active(self, user_context: UserContext) -> List[SOSEvent]:
        authorization.enforce(authorization.check_admin(user_context))
        return self.event_store.list_active()

    def list_by_severity(self, user_context: UserContext, severity: str) -> List[SOSEvent]:
        authorization.enforce(authorization.check_admin(user_context))
        return self.event_store.list_by_severity(severity)

    def add_support_note(self, user_context: UserContext, event_id: str, note: str) -> SOSEvent:
        authorization.enforce(authorization.check_admin(user_context))
        event = self.event_store.add_support_note(event_id, note, user_context.user_id)
        logger.info("Support note added", extra={"event_id": event_id, "user_id": user_context.user_id})
        return event
