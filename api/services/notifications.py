# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Per-recipient in-app notification records.
"""

import logging
from typing import List

from opentelemetry import trace
from pymongo import DESCENDING, ReturnDocument

from domain.errors import NotFoundException
from models.base import utcnow
from models.entities import Notification
from services.mongodb import NOTIFICATIONS_COLLECTION, MongoDBService, to_object_id

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class NotificationStore:
    """Creates notifications at fan-out time and tracks their read state."""

    def __init__(self, mongodb_service: MongoDBService):
        self.mongodb_service = mongodb_service

    @property
    def collection(self):
        return self.mongodb_service.get_collection(NOTIFICATIONS_COLLECTION)

    def create_many(self, notifications: List[Notification]) -> int:
        """
        Insert notifications in one batch.

        Args:
            notifications: Records to insert

        Returns:
            Number of records inserted
        """
        if not notifications:
            return 0

        with tracer.start_as_current_span("notifications.create_many") as span:
            result = self.collection.insert_many([n.to_document() for n in notifications])
            span.set_attribute("notifications.created", len(result.inserted_ids))
            return len(result.inserted_ids)

    def list_for_user(self, user_id: str, unread_only: bool = False, limit: int = 20) -> List[Notification]:
        query = {"userId": user_id}
        if unread_only:
            query["read"] = False

        cursor = self.collection.find(query).sort("createdAt", DESCENDING).limit(limit)
        return [Notification.from_document(document) for document in cursor]

    def unread_count(self, user_id: str) -> int:
        return self.collection.count_documents({"userId": user_id, "read": False})

    def mark_read(self, notification_id: str, user_id: str) -> Notification:
        """
        Mark one of the recipient's notifications as read.

        Marking an already-read notification returns it unchanged. Another
        recipient's notification is reported as not found.
        """
        object_id = to_object_id(notification_id)
        if object_id is None:
            raise NotFoundException("Notification not found")

        with tracer.start_as_current_span("notifications.mark_read", attributes={"notification.id": notification_id}):
            document = self.collection.find_one_and_update(
                {"_id": object_id, "userId": user_id, "read": False},
                {"$set": {"read": True, "readAt": utcnow(), "updatedAt": utcnow()}},
                return_document=ReturnDocument.AFTER
            )
            if document is None:
                document = self.collection.find_one({"_id": object_id, "userId": user_id})
            if document is None:
                raise NotFoundException("Notification not found")
            return Notification.from_document(document)

    def mark_all_read(self, user_id: str) -> int:
        now = utcnow()
        result = self.collection.update_many(
            {"userId": user_id, "read": False},
            {"$set": {"read": True, "readAt": now, "updatedAt": now}}
        )
        logger.info(
            "Marked notifications as read",
            extra={"user_id": user_id, "count": result.modified_count}
        )
        return result.modified_count
