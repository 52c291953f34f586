# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the SOS lifecycle controller.
"""

import pytest
from bson import ObjectId
from unittest.mock import Mock

from domain.errors import (
    AuthorizationException, NotFoundException, TransitionException, ValidationException
)
from models.entities import DeviceInfo, LocationDetails, UserContext
from models.requests import TriggerSOSRequest
from services.fanout import NotificationFanout
from services.sos import SOSService, SOSSettings

RIYADH = [46.7073, 24.7408]


def trigger_request(**overrides):
    data = {
        "location": {"type": "Point", "coordinates": RIYADH},
        "emergencyType": "abuse",
        "severity": "critical",
        "description": "Employer locked me in",
        "locationDetails": {"country": "Saudi Arabia", "city": "Riyadh"},
    }
    data.update(overrides)
    return TriggerSOSRequest.model_validate(data)


class TestTriggerSOS:
    """Test the trigger flow."""

    def test_trigger_persists_and_notifies(self, sos_service, worker_context, make_contact, admins,
                                           notification_store, mock_sink):
        embassy = make_contact("Embassy", [46.71, 24.74])
        request = trigger_request(familyContacts=[{"familyMemberId": "f1", "name": "Brother", "phone": "+880"}])

        event = sos_service.trigger_sos(worker_context, request)

        assert event.status == "active"
        assert event.worker_name == "Rahim Uddin"
        assert event.worker_phone == "+880-1711-000000"
        assert event.severity == "critical"
        assert event.emergency_type == "abuse"
        assert event.location_details.city == "Riyadh"
        assert [c.contact_id for c in event.nearest_contacts] == [embassy.id]
        assert event.nearest_contacts[0].notified is True
        assert event.family_notifications[0].notified is True
        assert event.timeline[0].action == "sos_triggered"
        assert event.timeline[0].description == "SOS triggered by Rahim Uddin"
        assert mock_sink.deliver.call_count == 2
        assert notification_store.unread_count(admins[0]) == 1

    def test_merges_nearest_and_round_the_clock_lists(self, sos_service, worker_context, make_contact):
        near = make_contact("Embassy", [46.71, 24.74], always_available=True)
        ngo = make_contact("NGO Hotline", [46.75, 24.78], contact_type="ngo", always_available=True)
        labor = make_contact("Labor Office", [46.72, 24.75], contact_type="labor_office")

        event = sos_service.trigger_sos(worker_context, trigger_request())

        ids = [c.contact_id for c in event.nearest_contacts]
        assert ids == [near.id, labor.id, ngo.id]
        assert len(ids) == len(set(ids))
        distances = [c.distance for c in event.nearest_contacts]
        assert distances == sorted(distances)

    def test_round_the_clock_contact_beyond_nearest_k_is_merged(
        self, user_directory, contact_directory, event_store, fanout, worker_context, make_contact
    ):
        """A farther 24/7 shelter is kept even when the plain nearest query is already full."""
        first = make_contact("Labor Office", [46.7073 + 0.02, 24.7408], contact_type="labor_office")
        second = make_contact("Legal Aid", [46.7073 + 0.03, 24.7408], contact_type="legal_aid")
        shelter = make_contact("Shelter", [46.7073 + 0.08, 24.7408], contact_type="shelter", always_available=True)
        settings = SOSSettings(nearest_limit=2, async_fanout=False, fanout_workers=1, spatial_prefilter=False)
        service = SOSService(user_directory, contact_directory, event_store, fanout, settings)

        event = service.trigger_sos(worker_context, trigger_request())

        assert [c.contact_id for c in event.nearest_contacts] == [first.id, second.id, shelter.id]
        assert [round(c.distance) for c in event.nearest_contacts] == [2, 3, 8]

    def test_matches_are_capped(self, sos_service, worker_context, make_contact):
        for i in range(8):
            make_contact(f"Contact {i}", [46.7073 + i * 0.01, 24.7408], always_available=i % 2 == 0)

        event = sos_service.trigger_sos(worker_context, trigger_request())

        assert len(event.nearest_contacts) == 5
        assert [c.name for c in event.nearest_contacts] == [f"Contact {i}" for i in range(5)]

    def test_no_contacts_in_range(self, sos_service, worker_context, make_contact):
        make_contact("Jeddah Consulate", [39.1925, 21.4858], contact_type="consulate", always_available=True)

        event = sos_service.trigger_sos(worker_context, trigger_request())
        assert event.nearest_contacts == []

    def test_unknown_worker(self, sos_service, event_store):
        stranger = UserContext(user_id=str(ObjectId()))

        with pytest.raises(NotFoundException):
            sos_service.trigger_sos(stranger, trigger_request())
        assert event_store.collection.count_documents({}) == 0

    def test_request_device_info_wins(self, sos_service, worker_context):
        request = trigger_request(deviceInfo={"platform": "android"})
        event = sos_service.trigger_sos(worker_context, request, DeviceInfo(platform="web"))
        assert event.device_info.platform == "android"

        event = sos_service.trigger_sos(worker_context, trigger_request(), DeviceInfo(platform="web"))
        assert event.device_info.platform == "web"

    def test_async_mode_submits_fanout(self, user_directory, contact_directory, event_store, worker_context):
        fanout = Mock(spec=NotificationFanout)
        service = SOSService(user_directory, contact_directory, event_store, fanout, SOSSettings(async_fanout=True))

        event = service.trigger_sos(worker_context, trigger_request())

        fanout.submit.assert_called_once_with(event.id)
        fanout.dispatch_safely.assert_not_called()


class TestLifecycleOperations:
    """Test authorization-gated operations."""

    def test_subject_and_admin_can_read(self, sos_service, stored_event, worker_context, admin_context):
        event = stored_event()
        assert sos_service.get_event(worker_context, event.id).id == event.id
        assert sos_service.get_event(admin_context, event.id).id == event.id

    def test_stranger_cannot_read(self, sos_service, stored_event, stranger_context):
        event = stored_event()
        with pytest.raises(AuthorizationException):
            sos_service.get_event(stranger_context, event.id)

    def test_missing_event_before_authorization(self, sos_service, stranger_context):
        with pytest.raises(NotFoundException):
            sos_service.update_status(stranger_context, str(ObjectId()), "resolved")

    def test_subject_can_cancel(self, sos_service, stored_event, worker_context):
        event = stored_event()
        updated = sos_service.update_status(worker_context, event.id, "cancelled")
        assert updated.status == "cancelled"
        assert updated.timeline[-1].performed_by == worker_context.user_id

    def test_stranger_cannot_change_status(self, sos_service, stored_event, stranger_context, event_store):
        event = stored_event()
        with pytest.raises(AuthorizationException):
            sos_service.update_status(stranger_context, event.id, "resolved")
        assert event_store.get(event.id).status == "active"

    def test_admin_resolves(self, sos_service, stored_event, admin_context):
        event = stored_event()
        sos_service.update_status(admin_context, event.id, "in_progress")
        resolved = sos_service.update_status(admin_context, event.id, "resolved", "Worker repatriated")

        assert resolved.resolved_by == admin_context.user_id
        assert resolved.resolution_notes == "Worker repatriated"

    def test_terminal_event_rejects_transitions(self, sos_service, stored_event, admin_context):
        event = stored_event()
        sos_service.update_status(admin_context, event.id, "resolved")

        with pytest.raises(TransitionException):
            sos_service.update_status(admin_context, event.id, "active")

    def test_only_subject_moves_location(self, sos_service, stored_event, worker_context, admin_context):
        event = stored_event()

        with pytest.raises(AuthorizationException):
            sos_service.update_location(admin_context, event.id, [46.8, 24.8])

        moved = sos_service.update_location(
            worker_context, event.id, [46.8, 24.8], LocationDetails(landmark="Mall entrance")
        )
        assert moved.location.coordinates == [46.8, 24.8]

    def test_location_validated_first(self, sos_service, stranger_context):
        with pytest.raises(ValidationException):
            sos_service.update_location(stranger_context, str(ObjectId()), [46.8])

    def test_history_is_scoped_to_caller(self, sos_service, stored_event, worker_context, stranger_context):
        stored_event()
        assert len(sos_service.history(worker_context)) == 1
        assert sos_service.history(stranger_context) == []


class TestAdminOperations:

    def test_admin_views(self, sos_service, stored_event, admin_context):
        high = stored_event(severity="high")
        low = stored_event(severity="low")

        assert [e.id for e in sos_service.list_active(admin_context)] == [high.id, low.id]
        assert [e.id for e in sos_service.list_by_severity(admin_context, "low")] == [low.id]

    def test_workers_cannot_use_admin_views(self, sos_service, worker_context):
        with pytest.raises(AuthorizationException):
            sos_service.list_active(worker_context)
        with pytest.raises(AuthorizationException):
            sos_service.list_by_severity(worker_context, "high")

    def test_support_notes_are_admin_only(self, sos_service, stored_event, admin_context, worker_context):
        event = stored_event()

        with pytest.raises(AuthorizationException):
            sos_service.add_support_note(worker_context, event.id, "note")

        updated = sos_service.add_support_note(admin_context, event.id, "Embassy informed")
        assert updated.support_notes[0].note == "Embassy informed"
