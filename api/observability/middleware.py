"""
Observability Middleware

Flask instrumentation and per-request logging. Sampled responses carry an
``X-Trace-Id`` header so a worker-reported failure can be matched to its trace.
"""

import time
import logging
from flask import Flask, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)


def add_observability_middleware(app: Flask):
    """Add OpenTelemetry instrumentation and request logging to a Flask app."""
    FlaskInstrumentor().instrument_app(app, excluded_urls="api/healthz")

    @app.before_request
    def start_request_timer():
        g.start_time = time.time()
        g.trace_id = None

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            g.trace_id = format(span_context.trace_id, "032x")

    @app.after_request
    def log_request(response):
        duration_ms = round((time.time() - g.get('start_time', time.time())) * 1000, 2)
        user_context = g.get('user_context')

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("http.duration_ms", duration_ms)
            if user_context is not None:
                span.set_attributes({"user.id": user_context.user_id, "user.role": user_context.role})

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.headers.get('X-Forwarded-For', request.remote_addr),
                "user_id": user_context.user_id if user_context is not None else None,
                "trace_id": g.get('trace_id')
            }
        )

        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id

        return response
