# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling and index management.
"""

import os
import logging
from typing import Dict, Optional, Any
from pymongo import MongoClient, ASCENDING, DESCENDING, GEOSPHERE
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from bson import ObjectId
from bson.errors import InvalidId

logger = logging.getLogger(__name__)

EVENTS_COLLECTION = "emergency_events"
CONTACTS_COLLECTION = "emergency_contacts"
NOTIFICATIONS_COLLECTION = "notifications"
USERS_COLLECTION = "users"


def to_object_id(doc_id: Any) -> Optional[ObjectId]:
    """Convert a string ID to ObjectId, returning None when malformed."""
    if isinstance(doc_id, ObjectId):
        return doc_id
    # ObjectId(None) generates a fresh id instead of failing
    if not isinstance(doc_id, str):
        return None
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


class MongoDBService:
    """MongoDB service with connection pooling."""

    def __init__(
        self,
        connection_string: str = None,
        database_name: str = None,
        client: Optional[MongoClient] = None
    ):
        """Initialize MongoDB service; an existing client may be injected."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/sos_emergency_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'sos_emergency_dev')
        self._client: Optional[MongoClient] = client
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=False
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    # Index Management

    def create_indexes(self) -> None:
        """Create performance indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            # Emergency events indexes
            events = self.get_collection(EVENTS_COLLECTION)
            events.create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
            events.create_index([("status", ASCENDING), ("severity", ASCENDING)])
            events.create_index([("status", ASCENDING), ("createdAt", ASCENDING), ("autoCancelledAt", ASCENDING)])
            events.create_index([("location", GEOSPHERE)])

            # Emergency contacts indexes
            contacts = self.get_collection(CONTACTS_COLLECTION)
            contacts.create_index([("location", GEOSPHERE)])
            contacts.create_index([("isActive", ASCENDING), ("type", ASCENDING)])
            contacts.create_index([("country", ASCENDING), ("type", ASCENDING), ("city", ASCENDING)])
            contacts.create_index([("isActive", ASCENDING), ("operatingHours.emergency24x7", ASCENDING)])

            # Notifications indexes
            notifications = self.get_collection(NOTIFICATIONS_COLLECTION)
            notifications.create_index([("userId", ASCENDING), ("read", ASCENDING), ("createdAt", DESCENDING)])
            notifications.create_index([("relatedId", ASCENDING), ("relatedModel", ASCENDING)])

            # Users indexes
            users = self.get_collection(USERS_COLLECTION)
            users.create_index([("role", ASCENDING), ("status", ASCENDING)])

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise

    def drop_indexes(self, collection: str) -> None:
        """Drop all indexes for a collection (except _id)."""
        try:
            self.get_collection(collection).drop_indexes()
            logger.info(f"Dropped indexes for collection: {collection}")
        except Exception as e:
            logger.error(f"Failed to drop indexes for {collection}: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
