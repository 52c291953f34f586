# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for emergency incidents.

This module contains pure functions deciding who may read and mutate an SOS
event, and which HAL affordances a caller is offered for it.
"""

from typing import Dict, Optional
from dataclasses import dataclass

from models.entities import SOSEvent, UserContext
from domain.errors import AuthorizationException
from domain.lifecycle import is_terminal


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None


def is_subject(user_context: UserContext, event: SOSEvent) -> bool:
    return user_context.user_id == event.user_id


def check_event_access(user_context: UserContext, event: SOSEvent) -> AuthorizationResult:
    """
    Check read or status-change access to an event.

    Args:
        user_context: Authenticated caller
        event: Target event

    Returns:
        AuthorizationResult allowing the subject and administrators
    """
    if is_subject(user_context, event) or user_context.is_admin():
        return AuthorizationResult(allowed=True)
    return AuthorizationResult(allowed=False, reason="Access denied to this emergency event")


def check_location_update(user_context: UserContext, event: SOSEvent) -> AuthorizationResult:
    """Only the worker who triggered the SOS may move it."""
    if is_subject(user_context, event):
        return AuthorizationResult(allowed=True)
    return AuthorizationResult(allowed=False, reason="Only the reporting worker can update the location")


def check_admin(user_context: UserContext) -> AuthorizationResult:
    if user_context.is_admin():
        return AuthorizationResult(allowed=True)
    return AuthorizationResult(allowed=False, reason="Administrator role required")


def enforce(result: AuthorizationResult) -> None:
    """Raise AuthorizationException for a denied result."""
    if not result.allowed:
        raise AuthorizationException(result.reason or "Access denied")


def generate_event_affordances(
    event: SOSEvent,
    user_context: Optional[UserContext],
    base_url: str
) -> Dict[str, Dict[str, str]]:
    """
    Generate HAL affordance links based on caller role and event state.

    Args:
        event: Event being rendered
        user_context: Caller, if authenticated
        base_url: Base URL for link generation

    Returns:
        Dictionary of HAL links for the actions available to the caller
    """
    href = f"{base_url}/api/emergency/{event.id}"
    links = {"self": {"href": href}}

    if user_context is None or is_terminal(event.status):
        return links

    if check_event_access(user_context, event).allowed:
        links["update-status"] = {"href": f"{href}/status", "method": "PATCH"}

    if check_location_update(user_context, event).allowed:
        links["update-location"] = {"href": f"{href}/location", "method": "PATCH"}

    if user_context.is_admin():
        links["add-note"] = {"href": f"{href}/notes", "method": "POST"}

    return links
