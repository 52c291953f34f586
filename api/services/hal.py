# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS Level-3 API responses with conditional affordance links.
"""

from datetime import datetime
from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode

from domain import lifecycle
from domain.authorization import generate_event_affordances
from domain.geo import RankedContact
from models.entities import ContactEntry, Notification, SOSEvent, UserContext
from models.responses import HalLink

PROBLEM_BASE_URI = "https://api.sos-emergency.org/problems"


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')

    def build_link(
        self,
        path: str,
        method: str = "GET",
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url + '/', path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            title=title,
            templated=templated or None
        )

    def build_self_link(self, resource_path: str, query_params: Optional[Dict[str, Any]] = None) -> HalLink:
        """Build self link for a resource or filtered collection."""
        params = {k: v for k, v in (query_params or {}).items() if v is not None}
        if params:
            resource_path = f"{resource_path}?{urlencode(params)}"
        return self.build_link(resource_path, title="Self")


class HalResponseBuilder:
    """Low-level builder for HAL resources, collections and problem documents."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)

    @staticmethod
    def render_links(links: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        return {
            rel: link.model_dump(exclude_none=True) if isinstance(link, HalLink) else link
            for rel, link in links.items()
        }

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response."""
        response = {
            'count': len(items),
            **(extra or {}),
            '_links': self.render_links({
                'self': self.link_builder.build_self_link(collection_path, query_params)
            }),
            '_embedded': {
                'items': items
            }
        }
        return response

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_BASE_URI}/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors
        if extra:
            error_response.update(extra)

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }
        if error_type in ("validation-error", "invalid-transition"):
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )

        error_response['_links'] = self.render_links(links)
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.builder = HalResponseBuilder(base_url)

    # Resources

    def format_event(
        self,
        event: SOSEvent,
        user_context: Optional[UserContext],
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Render an event with its derived values and the caller's affordances."""
        data = event.model_dump(by_alias=True, mode="json")
        data.update(lifecycle.derived_values(event, now))
        data['_links'] = generate_event_affordances(event, user_context, self.base_url)
        return data

    def format_event_collection(
        self,
        events: List[SOSEvent],
        user_context: Optional[UserContext],
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        items = [self.format_event(event, user_context) for event in events]
        return self.builder.build_collection_response(items, collection_path, query_params)

    def format_contact(self, contact: ContactEntry, distance_km: Optional[float] = None) -> Dict[str, Any]:
        data = contact.model_dump(by_alias=True, mode="json")
        data['alwaysAvailable'] = contact.always_available
        if distance_km is not None:
            data['distance'] = distance_km
        data['_links'] = self.builder.render_links({
            'self': self.builder.link_builder.build_self_link(f"/api/emergency/contacts/{contact.id}")
        })
        return data

    def format_ranked_contacts(
        self,
        ranked: List[RankedContact],
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format a proximity result; items keep their nearest-first order."""
        items = [self.format_contact(item.entry, item.distance_km) for item in ranked]
        return self.builder.build_collection_response(items, collection_path, query_params)

    def format_contact_collection(
        self,
        contacts: List[ContactEntry],
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        items = [self.format_contact(contact) for contact in contacts]
        return self.builder.build_collection_response(items, collection_path, query_params)

    def format_notification(self, notification: Notification) -> Dict[str, Any]:
        """Format a notification with HAL links."""
        data = notification.model_dump(by_alias=True, mode="json")
        path = f"/api/notifications/{notification.id}"
        links = {'self': self.builder.link_builder.build_self_link(path)}
        if not notification.read:
            links['mark-read'] = self.builder.link_builder.build_link(
                f"{path}/read", method="PATCH", title="Mark as read"
            )
        data['_links'] = self.builder.render_links(links)
        return data

    def format_notification_collection(
        self,
        notifications: List[Notification],
        unread_count: int,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        items = [self.format_notification(notification) for notification in notifications]
        return self.builder.build_collection_response(
            items,
            "/api/notifications",
            query_params,
            extra={'unreadCount': unread_count}
        )

    # Errors

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.builder.build_error_response(
            "validation-error",
            "Validation Error",
            400,
            detail,
            instance,
            validation_errors
        )

    def format_transition_error(
        self,
        detail: str,
        instance: str,
        current_status: Optional[str],
        requested: Optional[str]
    ) -> Dict[str, Any]:
        """Format a rejected status change."""
        extra = {}
        if current_status is not None:
            extra['currentStatus'] = current_status
            extra['allowedTransitions'] = sorted(lifecycle.VALID_TRANSITIONS.get(current_status, set()))
        if requested is not None:
            extra['requestedStatus'] = requested
        return self.builder.build_error_response(
            "invalid-transition",
            "Invalid Status Transition",
            400,
            detail,
            instance,
            extra=extra
        )

    def format_authentication_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format an authentication error response."""
        return self.builder.build_error_response(
            "authentication-required",
            "Authentication Required",
            401,
            detail,
            instance
        )

    def format_authorization_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format an authorization error response."""
        return self.builder.build_error_response(
            "insufficient-permissions",
            "Insufficient Permissions",
            403,
            detail,
            instance
        )

    def format_not_found_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a not found error response."""
        return self.builder.build_error_response(
            "resource-not-found",
            "Resource Not Found",
            404,
            detail,
            instance
        )

    def format_conflict_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a conflict error response."""
        return self.builder.build_error_response(
            "resource-conflict",
            "Resource Conflict",
            409,
            detail,
            instance
        )

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a server error response."""
        return self.builder.build_error_response(
            "internal-server-error",
            "Internal Server Error",
            500,
            detail,
            instance
        )

    def format_generic_error(self, status: int, title: str, detail: str, instance: str) -> Dict[str, Any]:
        error_type = title.lower().replace(' ', '-')
        return self.builder.build_error_response(error_type, title, status, detail, instance)


# Convenience function for creating HAL formatter
def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
