# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Exception taxonomy for the emergency core.

Raised by domain functions and services, translated to RFC 7807 problem
documents by ``middleware.error_handler``.
"""

from typing import Dict, List, Optional


class EmergencyException(Exception):
    """Base class for emergency core exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(EmergencyException):
    """Malformed input, rejected before any persistence or matching."""

    def __init__(self, message: str, validation_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class TransitionException(ValidationException):
    """Invalid lifecycle move, or a mutation on a terminal incident."""

    def __init__(self, message: str, current_status: Optional[str] = None, requested: Optional[str] = None):
        super().__init__(message, [{"field": "status", "message": message}])
        self.error_type = "invalid-transition"
        self.current_status = current_status
        self.requested = requested


class AuthenticationException(EmergencyException):
    """Exception for authentication errors."""

    def __init__(self, message: str):
        super().__init__(message, 401, "authentication-required")


class AuthorizationException(EmergencyException):
    """Actor is neither the subject nor an administrator."""

    def __init__(self, message: str):
        super().__init__(message, 403, "insufficient-permissions")


class NotFoundException(EmergencyException):
    """Exception for resource not found errors."""

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class ConflictException(EmergencyException):
    """Concurrent writers kept winning the conditional update."""

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")
