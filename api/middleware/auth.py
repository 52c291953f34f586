# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and user context extraction.

This module provides Flask middleware for validating JWT tokens, checking
the blocklist, and building the user context every emergency operation
authorizes against.
"""

from functools import wraps
from flask import current_app, g, request
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from domain.errors import AuthenticationException, AuthorizationException
from models.entities import UserContext
from models.enums import UserRole
from services.auth import AuthService, TokenValidationError
from services.redis import RedisService
from utils.request import HeaderUtils, RequestParser

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation, blocklist checking, and user context
    building for protected endpoints.
    """

    def __init__(self, auth_service: AuthService, redis_service: Optional[RedisService] = None):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
            redis_service: Redis service for token blocklist
        """
        self.auth_service = auth_service
        self.redis_service = redis_service

    def is_token_blocked(self, token: str) -> bool:
        if self.redis_service is None:
            return False
        try:
            token_id = self.auth_service.extract_token_id(token)
        except TokenValidationError:
            return True
        return self.redis_service.is_token_blocked(token_id)

    @staticmethod
    def build_user_context(token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> UserContext:
        """
        Build user context from validated token payload and request information.

        Tokens without a ``role`` claim belong to workers.
        """
        return UserContext(
            user_id=str(token_payload["sub"]),
            role=token_payload.get("role") or UserRole.WORKER.value,
            email=token_payload.get("email"),
            name=token_payload.get("name"),
            token_payload=token_payload,
            ip_address=request_info.get("remote_addr"),
            user_agent=request_info.get("user_agent")
        )

    def authenticate(self) -> UserContext:
        """
        Authenticate the current request.

        Raises:
            AuthenticationException: If the token is missing, revoked or invalid
        """
        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            token = HeaderUtils.get_bearer_token()
            if not token:
                span.set_attribute("auth.result", "missing_token")
                logger.warning("Authentication failed: missing token", extra={"path": request.path})
                raise AuthenticationException("Missing authorization token")

            if self.is_token_blocked(token):
                span.set_attribute("auth.result", "token_blocked")
                logger.warning("Authentication failed: token is blocked")
                raise AuthenticationException("Token has been revoked")

            try:
                token_payload = self.auth_service.validate_token(token, "access")
            except TokenValidationError as e:
                span.set_attribute("auth.result", "invalid_token")
                raise AuthenticationException(str(e))

            user_context = self.build_user_context(token_payload, RequestParser.get_request_metadata())
            span.set_attributes({
                "auth.result": "success",
                "user.id": user_context.user_id,
                "user.role": user_context.role
            })
            return user_context


def require_auth(f: Callable) -> Callable:
    """
    Require a valid access token.

    The authenticated ``UserContext`` is stored on ``flask.g.user_context``.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_middleware: AuthMiddleware = current_app.auth_middleware
        g.user_context = auth_middleware.authenticate()
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f: Callable) -> Callable:
    """Require a valid access token carrying an administrative role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_middleware: AuthMiddleware = current_app.auth_middleware
        user_context = auth_middleware.authenticate()
        g.user_context = user_context

        if not user_context.is_admin():
            logger.warning(
                "Authorization failed: admin role required",
                extra={"user_id": user_context.user_id, "role": user_context.role, "path": request.path}
            )
            raise AuthorizationException("Administrator role required")

        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f: Callable) -> Callable:
    """
    Authenticate when a token is present.

    Anonymous callers get ``g.user_context = None``; a present but invalid
    token is still rejected.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.user_context = None
        if HeaderUtils.get_bearer_token():
            g.user_context = current_app.auth_middleware.authenticate()
        return f(*args, **kwargs)

    return decorated_function


def get_user_context() -> Optional[UserContext]:
    """User context of the current request, if authenticated."""
    return g.get('user_context')
