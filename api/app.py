"""
Emergency SOS Engine - Flask Application Entry Point

This module composes the emergency services (contact directory, event store,
lifecycle controller, notification fan-out, stale-incident reaper) into a
Flask application with OpenAPI 3.0 support.
"""

import atexit
import os
from typing import Optional
from flask import current_app, jsonify
from flask_openapi3 import OpenAPI, Info, Tag
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

from middleware.auth import AuthMiddleware
from middleware.error_handler import ErrorHandlerMiddleware
from models.base import utcnow
from models.responses import HealthCheckResponse
from services.auth import AuthService
from services.contacts import ContactDirectory
from services.directory import AdminDirectory, IdentityProvider, UserDirectory
from services.events import EventStore
from services.fanout import NotificationFanout
from services.hal import create_hal_formatter
from services.health import HealthCheckService
from services.mongodb import MongoDBService
from services.notifications import NotificationStore
from services.reaper import ReaperScheduler, StaleIncidentReaper
from services.redis import RedisService
from services.sinks import NotificationSink, create_notification_sink
from services.sos import SOSService, SOSSettings

info = Info(
    title="Emergency SOS Engine API",
    version="1.0.0",
    description="Emergency SOS incidents, contact matching and notification fan-out with HATEOAS Level-3 responses"
)

tags = [
    Tag(name="Emergency", description="Emergency SOS incidents and contacts"),
    Tag(name="Notifications", description="Per-recipient notification inbox"),
    Tag(name="Health", description="System health and status")
]


def _request_validation_error(error):
    return current_app.error_handler.handle_request_validation_error(error)


def create_app(
    mongodb_service: Optional[MongoDBService] = None,
    sink: Optional[NotificationSink] = None,
    auth_service: Optional[AuthService] = None,
    redis_service: Optional[RedisService] = None,
    identity_provider: Optional[IdentityProvider] = None,
    admin_directory: Optional[AdminDirectory] = None,
    settings: Optional[SOSSettings] = None,
    enable_reaper: Optional[bool] = None
) -> OpenAPI:
    """
    Build the Flask application.

    Every collaborator may be injected; anything omitted is built from the
    environment.
    """
    app = OpenAPI(
        __name__,
        info=info,
        validation_error_status=400,
        validation_error_callback=_request_validation_error
    )
    add_observability_middleware(app)

    # Environment configuration
    app.config['ENVIRONMENT'] = os.getenv('ENVIRONMENT', 'development')
    app.config['ENV'] = app.config['ENVIRONMENT']
    app.config['DEBUG'] = app.config['ENVIRONMENT'] == 'development'
    app.config['BASE_URL'] = os.getenv('BASE_URL', 'http://localhost:5000')
    if enable_reaper is None:
        enable_reaper = os.getenv('REAPER_ENABLED', 'false').lower() == 'true'

    # Storage and collaborators
    mongodb_service = mongodb_service or MongoDBService()
    settings = settings or SOSSettings.from_env()
    sink = sink or create_notification_sink()
    user_directory = UserDirectory(mongodb_service)
    identity_provider = identity_provider or user_directory
    admin_directory = admin_directory or user_directory

    contact_directory = ContactDirectory(
        mongodb_service, settings.proximity_timeout_ms, settings.spatial_prefilter
    )
    event_store = EventStore(mongodb_service)
    notification_store = NotificationStore(mongodb_service)
    fanout = NotificationFanout(
        event_store,
        notification_store,
        admin_directory,
        sink,
        max_workers=settings.fanout_workers
    )
    sos_service = SOSService(identity_provider, contact_directory, event_store, fanout, settings)

    reaper = StaleIncidentReaper(
        event_store,
        hours_threshold=float(os.getenv('REAPER_HOURS_THRESHOLD', '48'))
    )
    reaper_scheduler = None
    if enable_reaper:
        reaper_scheduler = ReaperScheduler(
            reaper,
            interval_seconds=float(os.getenv('REAPER_INTERVAL_SECONDS', '3600'))
        )
        reaper_scheduler.start()
        atexit.register(reaper_scheduler.stop)
    atexit.register(fanout.shutdown, False)

    # Authentication
    redis_service = redis_service or RedisService()
    auth_service = auth_service or AuthService()
    auth_middleware = AuthMiddleware(auth_service, redis_service)

    # Response formatting and errors
    hal_formatter = create_hal_formatter(app.config['BASE_URL'])
    error_handler = ErrorHandlerMiddleware(app, hal_formatter)
    health_service = HealthCheckService(mongodb_service, sink, redis_service, reaper_scheduler)

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.contact_directory = contact_directory
    app.event_store = event_store
    app.notification_store = notification_store
    app.fanout = fanout
    app.sos_service = sos_service
    app.reaper = reaper
    app.reaper_scheduler = reaper_scheduler
    app.auth_service = auth_service
    app.redis_service = redis_service
    app.auth_middleware = auth_middleware
    app.hal_formatter = hal_formatter
    app.error_handler = error_handler
    app.health_service = health_service

    # Register routes
    from routes.emergency import emergency_bp
    from routes.notifications import notifications_bp

    app.register_api(emergency_bp)
    app.register_api(notifications_bp)

    @app.get('/api/healthz', tags=[tags[2]], responses={200: HealthCheckResponse, 503: HealthCheckResponse})
    def health_check():
        """Dependency health; 503 when MongoDB is unreachable."""
        try:
            health_data = health_service.get_comprehensive_health()
        except Exception as e:
            health_data = {
                "status": "unhealthy",
                "environment": app.config['ENVIRONMENT'],
                "timestamp": utcnow().isoformat() + "Z",
                "error": f"Health check service failed: {str(e)}"
            }

        health_data['_links'] = {'self': {'href': f"{app.config['BASE_URL']}/api/healthz"}}
        status_code = 503 if health_data["status"] == "unhealthy" else 200
        return jsonify(health_data), status_code

    return app


if os.getenv('ENVIRONMENT') != 'test':
    setup_observability()
    app = create_app()


if __name__ == '__main__':
    # Development server
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=app.config['DEBUG']
    )
