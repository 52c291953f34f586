# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.
Provides centralized error handling and formatting for Flask applications.
"""

from flask import Flask, Response, request, jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, Tuple
from opentelemetry import trace
import json
import logging

from domain.errors import (
    AuthenticationException, AuthorizationException, ConflictException,
    EmergencyException, NotFoundException, TransitionException, ValidationException
)
from services.hal import HalFormatter
from utils.request import field_errors

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with HAL response formatting."""

    def __init__(self, app: Flask, hal_formatter: HalFormatter):
        self.app = app
        self.hal_formatter = hal_formatter
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(EmergencyException)
        def handle_emergency_exception(error: EmergencyException):
            return self.handle_domain_error(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error: HTTPException):
            if error.code is not None and error.code >= 500:
                return self.handle_server_error(error)
            return self.handle_client_error(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)

    def format_domain_error(self, error: EmergencyException) -> Dict[str, Any]:
        """Render a domain exception as a problem document."""
        instance = request.path
        if isinstance(error, TransitionException):
            return self.hal_formatter.format_transition_error(
                error.message, instance, error.current_status, error.requested
            )
        if isinstance(error, ValidationException):
            return self.hal_formatter.format_validation_error(error.message, instance, error.validation_errors)
        if isinstance(error, AuthenticationException):
            return self.hal_formatter.format_authentication_error(error.message, instance)
        if isinstance(error, AuthorizationException):
            return self.hal_formatter.format_authorization_error(error.message, instance)
        if isinstance(error, NotFoundException):
            return self.hal_formatter.format_not_found_error(error.message, instance)
        if isinstance(error, ConflictException):
            return self.hal_formatter.format_conflict_error(error.message, instance)
        return self.hal_formatter.format_server_error(error.message, instance)

    def handle_domain_error(self, error: EmergencyException) -> Tuple[Response, int]:
        with tracer.start_as_current_span("error_handler.domain_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            log = logger.error if error.status_code >= 500 else logger.warning
            log(
                f"Request failed: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "detail": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            return jsonify(self.format_domain_error(error)), error.status_code

    def handle_client_error(self, error: HTTPException) -> Tuple[Response, int]:
        """
        Handle client errors (4xx status codes) raised by Flask itself.

        Args:
            error: HTTP exception

        Returns:
            Tuple of (error response, status code)
        """
        with tracer.start_as_current_span("error_handler.client_error") as span:
            span.set_attributes({
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else error.name
            logger.warning(
                f"Client error: {error.name}",
                extra={
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method,
                    "user_agent": request.headers.get('User-Agent'),
                    "ip_address": request.remote_addr
                }
            )

            if error.code == 404:
                error_response = self.hal_formatter.format_not_found_error(detail, request.path)
            else:
                error_response = self.hal_formatter.format_generic_error(error.code, error.name, detail, request.path)

            return jsonify(error_response), error.code

    def handle_server_error(self, error: HTTPException) -> Tuple[Response, int]:
        with tracer.start_as_current_span("error_handler.server_error") as span:
            span.set_attributes({
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            logger.error(
                f"Server error: {error.name}",
                extra={"status_code": error.code, "path": request.path, "method": request.method},
                exc_info=True
            )

            # Don't expose internal error details in production
            detail = str(error.description) if error.description else error.name
            if self.app.config.get('ENV') == 'production':
                detail = "An internal server error occurred"

            error_response = self.hal_formatter.format_generic_error(error.code, error.name, detail, request.path)
            return jsonify(error_response), error.code

    def handle_unexpected_error(self, error: Exception) -> Tuple[Response, int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception

        Returns:
            Tuple of (error response, status code)
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            # Don't expose internal error details
            detail = "An unexpected error occurred"
            if self.app.config.get('ENV') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"

            error_response = self.hal_formatter.format_server_error(detail, request.path)
            return jsonify(error_response), 500

    def handle_request_validation_error(self, error: ValidationError) -> Response:
        """Callback for path and query models validated by flask-openapi3."""
        error_response = self.hal_formatter.format_validation_error(
            "Request validation failed",
            request.path,
            field_errors(error)
        )
        return Response(
            json.dumps(error_response),
            status=400,
            mimetype="application/problem+json"
        )
