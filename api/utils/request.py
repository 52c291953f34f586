# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting and validating request data.
"""

from flask import request
from typing import Dict, Any, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError
import logging

from domain.errors import ValidationException

logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)


def field_errors(error: ValidationError):
    return [
        {
            "field": ".".join(str(part) for part in item["loc"]) or "body",
            "message": item["msg"],
        }
        for item in error.errors()
    ]


class RequestParser:
    """Utility for parsing request data into pydantic models."""

    @staticmethod
    def parse_json_body(model: Type[M]) -> M:
        """
        Parse and validate the JSON request body.

        Args:
            model: Pydantic model describing the body

        Returns:
            Validated model instance

        Raises:
            ValidationException: If the body is missing, not JSON or invalid
        """
        data = request.get_json(silent=True)
        if data is None:
            raise ValidationException(
                "Missing request body",
                validation_errors=[{"field": "body", "message": "A JSON request body is required"}]
            )

        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "Request body validation failed",
                extra={"path": request.path, "error_count": e.error_count()}
            )
            raise ValidationException("Request validation failed", validation_errors=field_errors(e)) from e

    @staticmethod
    def parse_query(model: Type[M]) -> M:
        """
        Parse and validate query string parameters.

        Args:
            model: Pydantic model describing the query

        Returns:
            Validated model instance
        """
        params = {key: value for key, value in request.args.items() if value != ''}
        try:
            return model.model_validate(params)
        except ValidationError as e:
            raise ValidationException("Invalid query parameters", validation_errors=field_errors(e)) from e

    @staticmethod
    def get_request_metadata() -> Dict[str, Any]:
        """
        Extract request metadata for logging and device capture.

        Returns:
            Dictionary with request metadata
        """
        return {
            'method': request.method,
            'path': request.path,
            'remote_addr': request.headers.get('X-Forwarded-For', request.remote_addr),
            'user_agent': request.headers.get('User-Agent', ''),
            'request_id': request.headers.get('X-Request-ID'),
        }


class HeaderUtils:
    """Utilities for working with HTTP headers."""

    @staticmethod
    def get_bearer_token() -> Optional[str]:
        """
        Extract Bearer token from Authorization header.

        Returns:
            Token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            return auth_header[7:]
        return None
