# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for MongoDB service layer.
"""

import pytest
from unittest.mock import Mock, patch
from bson import ObjectId
from pymongo import GEOSPHERE
from pymongo.errors import ServerSelectionTimeoutError

from services.mongodb import (
    CONTACTS_COLLECTION, EVENTS_COLLECTION, NOTIFICATIONS_COLLECTION, USERS_COLLECTION,
    MongoDBService, close_mongodb_connection, get_mongodb_service, to_object_id
)


class TestObjectIdConversion:
    """Test identifier parsing."""

    def test_valid_string(self):
        object_id = ObjectId()
        assert to_object_id(str(object_id)) == object_id

    def test_object_id_passes_through(self):
        object_id = ObjectId()
        assert to_object_id(object_id) is object_id

    @pytest.mark.parametrize("value", ["not-an-id", "", None, 42])
    def test_malformed_values(self, value):
        assert to_object_id(value) is None


class TestMongoDBService:
    """Test MongoDB service functionality."""

    def test_connection_and_health_check(self, mongodb_service):
        """Test MongoDB connection and health check."""
        health = mongodb_service.health_check()

        assert health['status'] == 'healthy'
        assert health['database'] == 'sos_emergency_test'

    def test_health_check_failure(self):
        client = Mock()
        client.admin.command.side_effect = ServerSelectionTimeoutError("no servers")
        service = MongoDBService("mongodb://db:27017", "sos", client=client)

        health = service.health_check()

        assert health['status'] == 'unhealthy'
        assert 'no servers' in health['error']

    def test_get_collection(self, mongodb_service):
        events = mongodb_service.get_collection(EVENTS_COLLECTION)
        events.insert_one({"status": "active"})

        assert mongodb_service.database[EVENTS_COLLECTION].count_documents({}) == 1

    def test_create_indexes_covers_every_collection(self, mongodb_service):
        collections = {}

        def collection(name):
            return collections.setdefault(name, Mock())

        with patch.object(mongodb_service, 'get_collection', side_effect=collection):
            mongodb_service.create_indexes()

        assert set(collections) == {EVENTS_COLLECTION, CONTACTS_COLLECTION, NOTIFICATIONS_COLLECTION, USERS_COLLECTION}
        contact_indexes = [call.args[0] for call in collections[CONTACTS_COLLECTION].create_index.call_args_list]
        assert [("location", GEOSPHERE)] in contact_indexes

    def test_create_indexes_propagates_failure(self, mongodb_service):
        failing = Mock()
        failing.create_index.side_effect = RuntimeError("not authorized")

        with patch.object(mongodb_service, 'get_collection', return_value=failing):
            with pytest.raises(RuntimeError):
                mongodb_service.create_indexes()

    def test_drop_indexes(self, mongodb_service):
        collection = Mock()
        with patch.object(mongodb_service, 'get_collection', return_value=collection) as get_collection:
            mongodb_service.drop_indexes(NOTIFICATIONS_COLLECTION)

        get_collection.assert_called_once_with(NOTIFICATIONS_COLLECTION)
        collection.drop_indexes.assert_called_once()

    def test_close_connection(self, mongodb_service):
        client = mongodb_service.client
        with patch.object(client, 'close') as close:
            mongodb_service.close_connection()

        close.assert_called_once()
        assert mongodb_service._client is None


class TestSingleton:

    def test_singleton_is_reused_until_closed(self, monkeypatch):
        monkeypatch.setattr('services.mongodb._mongodb_service', None)

        first = get_mongodb_service()
        assert get_mongodb_service() is first

        close_mongodb_connection()
        assert get_mongodb_service() is not first
        close_mongodb_connection()
