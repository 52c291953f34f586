# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

MongoDB is replaced by an in-process mongomock client; delivery sinks are
mocks so tests can assert on what would have been sent.
"""

import os
import pytest
from datetime import timedelta
from typing import Dict, Any, List, Optional
from unittest.mock import Mock
from bson import ObjectId
import mongomock

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['NOTIFICATION_SINK'] = 'log'
os.environ['MONGODB_DATABASE'] = 'sos_emergency_test'
os.environ.pop('REDIS_URL', None)

from models.base import utcnow
from models.entities import ContactEntry, GeoPoint, OperatingHours, SOSEvent, UserContext
from services.auth import AuthService
from services.contacts import ContactDirectory
from services.directory import UserDirectory
from services.events import EventStore
from services.fanout import NotificationFanout
from services.mongodb import CONTACTS_COLLECTION, USERS_COLLECTION, MongoDBService
from services.notifications import NotificationStore
from services.sinks import NotificationSink
from services.sos import SOSService, SOSSettings

RIYADH = [46.7073, 24.7408]


@pytest.fixture
def mongodb_service():
    """MongoDB service backed by mongomock."""
    return MongoDBService(
        "mongodb://localhost:27017/sos_emergency_test",
        "sos_emergency_test",
        client=mongomock.MongoClient()
    )


@pytest.fixture
def event_store(mongodb_service):
    return EventStore(mongodb_service)


@pytest.fixture
def contact_directory(mongodb_service):
    # mongomock implements no geo query operators
    return ContactDirectory(mongodb_service, spatial_prefilter=False)


@pytest.fixture
def notification_store(mongodb_service):
    return NotificationStore(mongodb_service)


@pytest.fixture
def user_directory(mongodb_service):
    return UserDirectory(mongodb_service)


@pytest.fixture
def mock_sink():
    """Notification sink that accepts every delivery."""
    sink = Mock(spec=NotificationSink)
    sink.health_check.return_value = {"status": "healthy"}
    return sink


@pytest.fixture
def sync_settings():
    """Settings with inline fan-out so tests observe the final state."""
    return SOSSettings(async_fanout=False, fanout_workers=1, spatial_prefilter=False)


@pytest.fixture
def fanout(event_store, notification_store, user_directory, mock_sink):
    return NotificationFanout(event_store, notification_store, user_directory, mock_sink, max_workers=1)


@pytest.fixture
def sos_service(user_directory, contact_directory, event_store, fanout, sync_settings):
    return SOSService(user_directory, contact_directory, event_store, fanout, sync_settings)


@pytest.fixture
def make_contact(mongodb_service):
    """Factory inserting a directory entry and returning it."""
    def _make(
        name: str,
        coordinates: List[float],
        contact_type: str = "embassy",
        always_available: bool = False,
        is_active: bool = True,
        country: str = "Saudi Arabia",
        city: str = "Riyadh",
        contact_id: Optional[str] = None
    ) -> ContactEntry:
        entry = ContactEntry(
            id=contact_id or str(ObjectId()),
            name={"en": name},
            type=contact_type,
            country=country,
            city=city,
            location=GeoPoint(coordinates=coordinates),
            phone=["+966-11-000-0000"],
            emergency_hotline="+966-11-999-9999",
            operating_hours=OperatingHours(emergency24x7=always_available),
            is_active=is_active
        )
        mongodb_service.get_collection(CONTACTS_COLLECTION).insert_one(entry.to_document())
        return entry

    return _make


@pytest.fixture
def worker(mongodb_service) -> Dict[str, Any]:
    """Worker account in the users collection."""
    document = {
        "_id": ObjectId(),
        "role": "worker",
        "status": "active",
        "email": "rahim@example.com",
        "phoneNumber": "+880-1711-000000",
        "fullName": {"firstName": "Rahim", "lastName": "Uddin"}
    }
    mongodb_service.get_collection(USERS_COLLECTION).insert_one(document)
    return {"id": str(document["_id"]), "name": "Rahim Uddin", "phone": "+880-1711-000000"}


@pytest.fixture
def admins(mongodb_service) -> List[str]:
    """Two active administrators plus a suspended one that must be skipped."""
    users = mongodb_service.get_collection(USERS_COLLECTION)
    active = []
    for role, email in (("platform_admin", "ops@example.com"), ("recruitment_admin", "recruit@example.com")):
        result = users.insert_one({"role": role, "status": "active", "email": email, "name": email.split("@")[0]})
        active.append(str(result.inserted_id))
    users.insert_one({"role": "admin", "status": "suspended", "email": "old@example.com"})
    return active


@pytest.fixture
def worker_context(worker) -> UserContext:
    return UserContext(user_id=worker["id"], role="worker", name=worker["name"])


@pytest.fixture
def admin_context() -> UserContext:
    return UserContext(user_id=str(ObjectId()), role="platform_admin", name="Ops Desk")


@pytest.fixture
def stranger_context() -> UserContext:
    return UserContext(user_id=str(ObjectId()), role="worker", name="Someone Else")


@pytest.fixture
def stored_event(event_store, worker):
    """Factory persisting an active event for the worker."""
    def _make(hours_old: float = 0, severity: str = "high", **overrides) -> SOSEvent:
        event = SOSEvent(
            user_id=overrides.pop("user_id", worker["id"]),
            worker_name=worker["name"],
            worker_phone=worker["phone"],
            severity=severity,
            location=GeoPoint(coordinates=overrides.pop("coordinates", RIYADH)),
            **overrides
        )
        event = event_store.create(event)
        if hours_old:
            created = utcnow() - timedelta(hours=hours_old)
            event_store.collection.update_one(
                {"_id": ObjectId(event.id)},
                {"$set": {"createdAt": created}}
            )
            event = event_store.get(event.id)
        return event

    return _make


@pytest.fixture(scope="session")
def auth_service():
    """Auth service with a generated key pair, shared across the session."""
    private_key, public_key = AuthService.generate_key_pair()
    return AuthService(private_key=private_key, public_key=public_key)


@pytest.fixture
def app(mongodb_service, mock_sink, auth_service, sync_settings):
    """Application wired to the mongomock database and the mock sink."""
    from app import create_app

    app = create_app(
        mongodb_service=mongodb_service,
        sink=mock_sink,
        auth_service=auth_service,
        settings=sync_settings,
        enable_reaper=False
    )
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(auth_service):
    """Build bearer headers for a user id and role."""
    def _headers(user_id: str, role: str = "worker") -> Dict[str, str]:
        token = auth_service.issue_access_token(user_id, role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def worker_headers(worker, auth_headers):
    return auth_headers(worker["id"])


@pytest.fixture
def admin_headers(admin_context, auth_headers):
    return auth_headers(admin_context.user_id, admin_context.role)
