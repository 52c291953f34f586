# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the notification store.
"""

import pytest
from datetime import timedelta
from bson import ObjectId

from domain.errors import NotFoundException
from models.base import utcnow
from models.entities import Notification


def make_notification(user_id, title="SOS", **kwargs):
    return Notification(user_id=user_id, type="emergency_sos", title=title, message="Worker needs help", **kwargs)


class TestNotificationStore:
    """Test notification persistence and read state."""

    def setup_method(self):
        self.admin_id = str(ObjectId())

    def test_create_many(self, notification_store):
        created = notification_store.create_many([make_notification(self.admin_id), make_notification("other")])

        assert created == 2
        assert notification_store.unread_count(self.admin_id) == 1

    def test_create_many_with_nothing(self, notification_store):
        assert notification_store.create_many([]) == 0

    def test_list_is_newest_first(self, notification_store):
        older = make_notification(self.admin_id, "Older", created_at=utcnow() - timedelta(minutes=5))
        newer = make_notification(self.admin_id, "Newer")
        notification_store.create_many([older, newer])

        titles = [n.title for n in notification_store.list_for_user(self.admin_id)]
        assert titles == ["Newer", "Older"]

    def test_list_unread_only_and_limit(self, notification_store):
        notification_store.create_many([
            make_notification(self.admin_id, "Read", read=True),
            make_notification(self.admin_id, "A"),
            make_notification(self.admin_id, "B"),
        ])

        assert {n.title for n in notification_store.list_for_user(self.admin_id, unread_only=True)} == {"A", "B"}
        assert len(notification_store.list_for_user(self.admin_id, limit=1)) == 1

    def test_mark_read_sets_timestamp(self, notification_store):
        notification = make_notification(self.admin_id)
        notification_store.create_many([notification])

        updated = notification_store.mark_read(notification.id, self.admin_id)

        assert updated.read is True
        assert updated.read_at is not None
        assert notification_store.unread_count(self.admin_id) == 0

    def test_mark_read_is_scoped_to_recipient(self, notification_store):
        notification = make_notification(self.admin_id)
        notification_store.create_many([notification])

        with pytest.raises(NotFoundException):
            notification_store.mark_read(notification.id, str(ObjectId()))

    def test_mark_read_unknown_id(self, notification_store):
        with pytest.raises(NotFoundException):
            notification_store.mark_read(str(ObjectId()), self.admin_id)
        with pytest.raises(NotFoundException):
            notification_store.mark_read("not-an-id", self.admin_id)

    def test_mark_all_read(self, notification_store):
        notification_store.create_many([
            make_notification(self.admin_id),
            make_notification(self.admin_id),
            make_notification("other"),
        ])

        assert notification_store.mark_all_read(self.admin_id) == 2
        assert notification_store.mark_all_read(self.admin_id) == 0
        assert notification_store.unread_count("other") == 1
