# SPDX-License-Identifier: Apache-2.0

"""
In-app notification inbox endpoints.

Administrators receive one notification per SOS event; these endpoints let
each recipient list and acknowledge their own notifications.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from middleware.auth import get_user_context, require_auth
from models.requests import NotificationListQuery, NotificationPath
from utils.request import RequestParser

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

notifications_tag = Tag(name="Notifications", description="Per-recipient notification inbox")
notifications_bp = APIBlueprint(
    'notifications',
    __name__,
    url_prefix='/api/notifications',
    abp_tags=[notifications_tag]
)


@notifications_bp.get('')
@require_auth
def list_notifications():
    """
    List the caller's notifications, newest first.

    The response carries the caller's unread count alongside the items.
    """
    user_context = get_user_context()
    query = RequestParser.parse_query(NotificationListQuery)
    store = current_app.notification_store

    with tracer.start_as_current_span("notifications.list", attributes={"user.id": user_context.user_id}):
        notifications = store.list_for_user(user_context.user_id, query.unread_only, query.limit)
        unread = store.unread_count(user_context.user_id)

    return jsonify(current_app.hal_formatter.format_notification_collection(
        notifications,
        unread,
        {'unreadOnly': str(query.unread_only).lower(), 'limit': query.limit}
    )), 200


@notifications_bp.get('/unread-count')
@require_auth
def get_unread_count():
    user_context = get_user_context()
    return jsonify({'unreadCount': current_app.notification_store.unread_count(user_context.user_id)}), 200


@notifications_bp.patch('/read-all')
@require_auth
def mark_all_read():
    user_context = get_user_context()
    updated = current_app.notification_store.mark_all_read(user_context.user_id)
    return jsonify({'updated': updated}), 200


@notifications_bp.patch('/<string:notification_id>/read')
@require_auth
def mark_read(path: NotificationPath):
    """Mark one notification as read. Repeating the call is harmless."""
    user_context = get_user_context()
    notification = current_app.notification_store.mark_read(path.notification_id, user_context.user_id)
    return jsonify(current_app.hal_formatter.format_notification(notification)), 200
