# SPDX-License-Identifier: Apache-2.0

"""
Emergency SOS endpoints.

Public contact lookups, the worker-facing trigger and lifecycle operations,
and the administrator views over open incidents.
"""

from flask import current_app, jsonify, request
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain.errors import NotFoundException
from middleware.auth import get_user_context, optional_auth, require_admin, require_auth
from models.entities import DeviceInfo
from models.responses import (
    ErrorResponse, EventCollectionResponse, ReaperSweepResponse, TriggerSOSResponse,
    ValidationErrorResponse
)
from models.requests import (
    ContactPath, CountryContactsQuery, CountryPath, EventPath, HistoryQuery,
    NearestContactsQuery, ReaperSweepQuery, SeverityPath, SupportNoteRequest,
    TriggerSOSRequest, UpdateLocationRequest, UpdateStatusRequest
)
from utils.request import RequestParser

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

emergency_tag = Tag(name="Emergency", description="Emergency SOS incidents and contacts")
emergency_bp = APIBlueprint(
    'emergency',
    __name__,
    url_prefix='/api/emergency',
    abp_tags=[emergency_tag]
)


def _device_from_request() -> DeviceInfo:
    metadata = RequestParser.get_request_metadata()
    return DeviceInfo(
        user_agent=metadata['user_agent'] or None,
        platform=request.headers.get('Sec-CH-UA-Platform', '').strip('"') or None,
        ip_address=metadata['remote_addr']
    )


# Contacts

@emergency_bp.get('/contacts/nearest')
@optional_auth
def get_nearest_contacts():
    """
    Find the nearest active emergency contacts.

    Results are ordered nearest first and carry their distance in kilometers.
    """
    query = RequestParser.parse_query(NearestContactsQuery)
    ranked = current_app.contact_directory.find_nearest(
        [query.lon, query.lat],
        max_distance_m=query.max_distance,
        limit=query.limit,
        category=query.type
    )
    return jsonify(current_app.hal_formatter.format_ranked_contacts(
        ranked,
        '/api/emergency/contacts/nearest',
        {'lon': query.lon, 'lat': query.lat, 'maxDistance': query.max_distance, 'type': query.type, 'limit': query.limit}
    )), 200


@emergency_bp.get('/contacts/country/<string:country>')
@optional_auth
def get_contacts_by_country(path: CountryPath):
    """List a country's embassies and consulates, or one category of contact."""
    query = RequestParser.parse_query(CountryContactsQuery)
    contacts = current_app.contact_directory.find_by_country(path.country, query.type)
    return jsonify(current_app.hal_formatter.format_contact_collection(
        contacts,
        f'/api/emergency/contacts/country/{path.country}',
        {'type': query.type}
    )), 200


@emergency_bp.get('/contacts/<string:contact_id>')
@optional_auth
def get_contact(path: ContactPath):
    contact = current_app.contact_directory.get(path.contact_id)
    if contact is None:
        raise NotFoundException("Emergency contact not found")
    return jsonify(current_app.hal_formatter.format_contact(contact)), 200


# Worker operations

@emergency_bp.post(
    '/sos',
    responses={201: TriggerSOSResponse, 400: ValidationErrorResponse, 401: ErrorResponse, 404: ErrorResponse}
)
@require_auth
def trigger_sos():
    """
    Trigger an emergency SOS.

    The event is persisted before any recipient is notified. Matched contacts
    are returned immediately; delivery state is tracked on the event.
    """
    user_context = get_user_context()
    sos_request = RequestParser.parse_json_body(TriggerSOSRequest)

    event = current_app.sos_service.trigger_sos(user_context, sos_request, _device_from_request())

    formatted = current_app.hal_formatter.format_event(event, user_context)
    response = {
        'message': 'Emergency SOS activated. Help is on the way!',
        'eventId': event.id,
        'status': event.status,
        'nearestContacts': formatted['nearestContacts'],
        'familyNotified': len(event.family_notifications),
        'timeline': formatted['timeline'],
        '_links': formatted['_links']
    }
    return jsonify(response), 201


@emergency_bp.get('/history', responses={200: EventCollectionResponse, 401: ErrorResponse})
@require_auth
def get_history():
    """The caller's own incidents, newest first."""
    user_context = get_user_context()
    query = RequestParser.parse_query(HistoryQuery)
    events = current_app.sos_service.history(user_context, query.limit)
    return jsonify(current_app.hal_formatter.format_event_collection(
        events, user_context, '/api/emergency/history', {'limit': query.limit}
    )), 200


@emergency_bp.get('/<string:event_id>')
@require_auth
def get_event(path: EventPath):
    user_context = get_user_context()
    event = current_app.sos_service.get_event(user_context, path.event_id)
    return jsonify(current_app.hal_formatter.format_event(event, user_context)), 200


@emergency_bp.patch(
    '/<string:event_id>/status',
    responses={400: ValidationErrorResponse, 403: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse}
)
@require_auth
def update_status(path: EventPath):
    """
    Change an incident's status.

    Permitted moves are active to in_progress, resolved or cancelled, and
    in_progress to resolved or cancelled. Resolved and cancelled are final.
    """
    user_context = get_user_context()
    status_request = RequestParser.parse_json_body(UpdateStatusRequest)

    event = current_app.sos_service.update_status(
        user_context, path.event_id, status_request.status, status_request.notes
    )
    logger.info(
        "Emergency status updated",
        extra={"event_id": event.id, "status": event.status, "user_id": user_context.user_id}
    )
    return jsonify(current_app.hal_formatter.format_event(event, user_context)), 200


@emergency_bp.patch('/<string:event_id>/location')
@require_auth
def update_location(path: EventPath):
    user_context = get_user_context()
    location_request = RequestParser.parse_json_body(UpdateLocationRequest)

    event = current_app.sos_service.update_location(
        user_context,
        path.event_id,
        location_request.location.coordinates,
        location_request.location_details
    )
    return jsonify(current_app.hal_formatter.format_event(event, user_context)), 200


# Administrator operations

@emergency_bp.post('/<string:event_id>/notes')
@require_admin
def add_support_note(path: EventPath):
    user_context = get_user_context()
    note_request = RequestParser.parse_json_body(SupportNoteRequest)
    event = current_app.sos_service.add_support_note(user_context, path.event_id, note_request.note)
    return jsonify(current_app.hal_formatter.format_event(event, user_context)), 201


@emergency_bp.get('/admin/active', responses={200: EventCollectionResponse, 403: ErrorResponse})
@require_admin
def list_active_emergencies():
    """Open incidents, most severe first and newest first within a severity."""
    user_context = get_user_context()
    events = current_app.sos_service.list_active(user_context)
    return jsonify(current_app.hal_formatter.format_event_collection(
        events, user_context, '/api/emergency/admin/active'
    )), 200


@emergency_bp.get('/admin/severity/<string:severity>')
@require_admin
def list_emergencies_by_severity(path: SeverityPath):
    user_context = get_user_context()
    events = current_app.sos_service.list_by_severity(user_context, path.severity)
    return jsonify(current_app.hal_formatter.format_event_collection(
        events, user_context, f'/api/emergency/admin/severity/{path.severity}'
    )), 200


@emergency_bp.post('/admin/reaper/sweep', responses={200: ReaperSweepResponse, 403: ErrorResponse})
@require_admin
def run_reaper_sweep():
    """Auto-cancel stale incidents now instead of waiting for the scheduler."""
    user_context = get_user_context()
    query = RequestParser.parse_query(ReaperSweepQuery)
    reaper = current_app.reaper

    hours = query.hours if query.hours is not None else reaper.hours_threshold
    with tracer.start_as_current_span("emergency.reaper.manual_sweep", attributes={"user.id": user_context.user_id}):
        cancelled = reaper.sweep(hours)

    logger.info(
        "Manual reaper sweep completed",
        extra={"user_id": user_context.user_id, "cancelled": cancelled, "hours_threshold": hours}
    )
    return jsonify({'cancelled': cancelled, 'hoursThreshold': hours}), 200
