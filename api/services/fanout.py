# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Notification fan-out engine.

Dispatches one SOS event to three independent recipient classes:
administrators (in-app notifications), matched contacts and family members
(through the notification sink). Each channel catches and logs its own
failures; dispatch only raises when the event itself cannot be loaded.
"""

import contextvars
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Optional, Union

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from domain import fanout as fanout_domain
from models.entities import SOSEvent
from services.directory import AdminDirectory
from services.events import EventStore
from services.notifications import NotificationStore
from services.sinks import NotificationSink

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class NotificationFanout:
    """Creates per-recipient notifications for an SOS event."""

    def __init__(
        self,
        event_store: EventStore,
        notification_store: NotificationStore,
        admin_directory: AdminDirectory,
        sink: NotificationSink,
        max_workers: int = 3
    ):
        self.event_store = event_store
        self.notification_store = notification_store
        self.admin_directory = admin_directory
        self.sink = sink
        self.max_workers = max(1, max_workers)
        self._background: Optional[ThreadPoolExecutor] = None
        self._background_lock = threading.Lock()

    def dispatch_for_event(self, event: Union[SOSEvent, str]) -> int:
        """
        Notify every recipient class for an event.

        The event is reloaded so the dispatch works from the persisted state.

        Args:
            event: Event or event identifier

        Returns:
            Number of notifications created or delivered across all channels

        Raises:
            NotFoundException: If the event does not exist
        """
        event_id = event.id if isinstance(event, SOSEvent) else event

        with tracer.start_as_current_span("fanout.dispatch", attributes={"event.id": event_id}) as span:
            persisted = self.event_store.get(event_id)

            channels: Dict[str, Callable[[SOSEvent], int]] = {
                "admins": self._notify_admins,
                "contacts": self._notify_contacts,
                "family": self._notify_family,
            }

            if self.max_workers == 1:
                counts = {name: channel(persisted) for name, channel in channels.items()}
            else:
                with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="sos-channel") as pool:
                    futures = {
                        name: pool.submit(contextvars.copy_context().run, channel, persisted)
                        for name, channel in channels.items()
                    }
                    counts = {name: future.result() for name, future in futures.items()}

            total = sum(counts.values())
            span.set_attributes({f"fanout.{name}": count for name, count in counts.items()})

            logger.info(
                "Emergency fan-out completed",
                extra={"event_id": event_id, "notifications": total, **{f"{k}_notified": v for k, v in counts.items()}}
            )
            return total

    def _notify_admins(self, event: SOSEvent) -> int:
        with tracer.start_as_current_span("fanout.admins") as span:
            try:
                admins = self.admin_directory.list_active_admins()
                if not admins:
                    logger.warning(
                        "No admins found to notify; emergency SOS notifications will not reach any admin",
                        extra={"event_id": event.id}
                    )
                    return 0

                notifications = [fanout_domain.build_admin_notification(event, admin) for admin in admins]
                created = self.notification_store.create_many(notifications)
                logger.info(
                    f"Created {created} admin notification(s) for emergency {event.id}",
                    extra={"event_id": event.id}
                )
                return created
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.error(
                    f"Failed to create admin notifications for emergency {event.id}",
                    extra={"event_id": event.id, "error": str(e)},
                    exc_info=True
                )
                return 0

    def _notify_contacts(self, event: SOSEvent) -> int:
        delivered = 0
        with tracer.start_as_current_span("fanout.contacts") as span:
            for contact in event.nearest_contacts:
                if contact.notified:
                    continue
                try:
                    self.sink.deliver(
                        fanout_domain.contact_recipient(contact),
                        fanout_domain.contact_payload(event, contact)
                    )
                    self.event_store.mark_contact_notified(
                        event.id,
                        contact.contact_id,
                        f"Emergency contact {contact.name} notified"
                    )
                    delivered += 1
                except Exception as e:
                    span.record_exception(e)
                    logger.error(
                        f"Failed to notify emergency contact {contact.name}",
                        extra={"event_id": event.id, "contact_id": contact.contact_id, "error": str(e)},
                        exc_info=True
                    )
            span.set_attribute("fanout.delivered", delivered)
        return delivered

    def _notify_family(self, event: SOSEvent) -> int:
        delivered = 0
        with tracer.start_as_current_span("fanout.family") as span:
            for member in event.family_notifications:
                if member.notified:
                    continue
                try:
                    self.sink.deliver(
                        fanout_domain.family_recipient(member),
                        fanout_domain.family_payload(event, member)
                    )
                    self.event_store.mark_family_notified(
                        event.id,
                        member.family_member_id,
                        f"Family member {member.name} notified via {member.notification_method}"
                    )
                    delivered += 1
                except Exception as e:
                    span.record_exception(e)
                    logger.error(
                        f"Failed to notify family member {member.name}",
                        extra={"event_id": event.id, "family_member_id": member.family_member_id, "error": str(e)},
                        exc_info=True
                    )
            span.set_attribute("fanout.delivered", delivered)
        return delivered

    # Background dispatch

    def dispatch_safely(self, event_id: str) -> Optional[int]:
        """Dispatch and log any structural failure instead of raising."""
        try:
            return self.dispatch_for_event(event_id)
        except Exception as e:
            logger.error(
                f"Background fan-out failed for emergency {event_id}",
                extra={"event_id": event_id, "error": str(e)},
                exc_info=True
            )
            return None

    def submit(self, event_id: str) -> Future:
        """Start dispatch on the background pool and return immediately."""
        with self._background_lock:
            if self._background is None:
                self._background = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="sos-fanout")
        return self._background.submit(contextvars.copy_context().run, self.dispatch_safely, event_id)

    def shutdown(self, wait: bool = True) -> None:
        with self._background_lock:
            background, self._background = self._background, None
        if background is not None:
            background.shutdown(wait=wait)
