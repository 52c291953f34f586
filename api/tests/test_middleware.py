# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for middleware functionality.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock
from flask import Flask, g, jsonify
from pydantic import BaseModel, ValidationError
import jwt

from domain.errors import (
    AuthenticationException, AuthorizationException, ConflictException,
    NotFoundException, TransitionException, ValidationException
)
from middleware.auth import AuthMiddleware, get_user_context, optional_auth, require_admin, require_auth
from middleware.error_handler import ErrorHandlerMiddleware
from services.auth import AuthService, TokenValidationError
from services.hal import HalFormatter
from services.redis import RedisService
from utils.request import RequestParser


class TestAuthService:
    """Test token validation."""

    def test_issued_token_validates(self, auth_service):
        token = auth_service.issue_access_token("user-1", "worker", name="Rahim")
        payload = auth_service.validate_token(token)

        assert payload["sub"] == "user-1"
        assert payload["role"] == "worker"
        assert payload["type"] == "access"

    def test_expired_token(self, auth_service):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "user-1", "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)},
            auth_service.private_key,
            algorithm="RS256"
        )
        with pytest.raises(TokenValidationError, match="expired"):
            auth_service.validate_token(token)

    def test_foreign_signature_is_rejected(self, auth_service):
        other = AuthService(*AuthService.generate_key_pair())
        token = other.issue_access_token("user-1", "worker")

        with pytest.raises(TokenValidationError):
            auth_service.validate_token(token)

    def test_wrong_token_type(self, auth_service):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "user-1", "exp": now + timedelta(hours=1), "type": "refresh"},
            auth_service.private_key,
            algorithm="RS256"
        )
        with pytest.raises(TokenValidationError, match="token type"):
            auth_service.validate_token(token)

    def test_verification_only_service_cannot_sign(self, auth_service):
        verifier = AuthService(public_key=auth_service.public_key)
        verifier.private_key = None

        with pytest.raises(TokenValidationError):
            verifier.issue_access_token("user-1", "worker")

    def test_token_id_prefers_jti(self, auth_service):
        token = jwt.encode({"sub": "u", "jti": "abc"}, auth_service.private_key, algorithm="RS256")
        assert auth_service.extract_token_id(token) == "abc"


class TestRedisBlocklist:
    """Test the token blocklist."""

    def test_disabled_without_client(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)
        service = RedisService()

        assert service.is_available() is False
        assert service.is_token_blocked("t") is False
        assert service.health_check()["status"] == "unavailable"

    def test_blocked_token(self):
        client = Mock()
        client.exists.return_value = 1
        service = RedisService(client=client)

        assert service.is_token_blocked("t") is True
        client.exists.assert_called_once_with("jwt:blocked:t")

    def test_lookup_failure_allows_token(self):
        client = Mock()
        client.exists.side_effect = ConnectionError("timeout")

        assert RedisService(client=client).is_token_blocked("t") is False


class TestAuthMiddleware:
    """Test authentication decorators."""

    def setup_method(self):
        self.app = Flask(__name__)
        self.app.config['TESTING'] = True

    @pytest.fixture(autouse=True)
    def wire(self, auth_service):
        self.auth_service = auth_service
        self.redis_service = RedisService(client=Mock(**{"exists.return_value": 0}))
        self.app.auth_middleware = AuthMiddleware(auth_service, self.redis_service)
        ErrorHandlerMiddleware(self.app, HalFormatter("https://api.example.com"))

        @self.app.route('/protected')
        @require_auth
        def protected():
            user = get_user_context()
            return jsonify({"userId": user.user_id, "role": user.role, "ip": user.ip_address})

        @self.app.route('/admin')
        @require_admin
        def admin_only():
            return jsonify({"ok": True})

        @self.app.route('/public')
        @optional_auth
        def public():
            user = get_user_context()
            return jsonify({"userId": user.user_id if user else None})

        self.client = self.app.test_client()

    def headers(self, role="worker", user_id="user-1"):
        token = self.auth_service.issue_access_token(user_id, role)
        return {"Authorization": f"Bearer {token}"}

    def test_missing_token(self):
        response = self.client.get('/protected')

        assert response.status_code == 401
        assert response.get_json()["type"].endswith("/authentication-required")

    def test_valid_token_builds_context(self):
        headers = dict(self.headers(), **{"X-Forwarded-For": "10.0.0.7"})
        response = self.client.get('/protected', headers=headers)

        assert response.status_code == 200
        assert response.get_json() == {"userId": "user-1", "role": "worker", "ip": "10.0.0.7"}

    def test_malformed_token(self):
        response = self.client.get('/protected', headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_revoked_token(self):
        self.redis_service.client.exists.return_value = 1
        response = self.client.get('/protected', headers=self.headers())

        assert response.status_code == 401
        assert response.get_json()["detail"] == "Token has been revoked"

    def test_missing_role_claim_defaults_to_worker(self):
        context = AuthMiddleware.build_user_context({"sub": "u1"}, {"remote_addr": "1.2.3.4"})
        assert context.role == "worker"
        assert context.ip_address == "1.2.3.4"

    def test_admin_route_rejects_worker(self):
        response = self.client.get('/admin', headers=self.headers("worker"))

        assert response.status_code == 403
        assert response.get_json()["detail"] == "Administrator role required"

    @pytest.mark.parametrize("role", ["platform_admin", "admin", "recruitment_admin"])
    def test_admin_route_accepts_admin_roles(self, role):
        assert self.client.get('/admin', headers=self.headers(role)).status_code == 200

    def test_optional_auth(self):
        assert self.client.get('/public').get_json() == {"userId": None}
        assert self.client.get('/public', headers=self.headers()).get_json() == {"userId": "user-1"}
        assert self.client.get('/public', headers={"Authorization": "Bearer bad"}).status_code == 401


class TestErrorHandlerMiddleware:
    """Test translation of exceptions to problem documents."""

    def setup_method(self):
        self.app = Flask(__name__)
        self.app.config['ENV'] = 'test'
        self.error_handler = ErrorHandlerMiddleware(self.app, HalFormatter("https://api.example.com"))
        errors = {
            'validation': ValidationException("Bad input", [{"field": "status", "message": "unknown"}]),
            'transition': TransitionException("Event is cancelled", current_status="cancelled", requested="active"),
            'authorization': AuthorizationException("Access denied to this emergency event"),
            'missing': NotFoundException("Emergency event not found"),
            'conflict': ConflictException("Modified concurrently"),
            'crash': RuntimeError("boom"),
        }

        for name, error in errors.items():
            def view(error=error):
                raise error
            self.app.add_url_rule(f'/{name}', name, view)

        self.client = self.app.test_client()

    def test_validation_error(self):
        body = self.client.get('/validation').get_json()
        assert body["status"] == 400
        assert body["errors"] == [{"field": "status", "message": "unknown"}]

    def test_transition_error(self):
        response = self.client.get('/transition')
        body = response.get_json()

        assert response.status_code == 400
        assert body["type"].endswith("/invalid-transition")
        assert body["currentStatus"] == "cancelled"
        assert body["allowedTransitions"] == []

    @pytest.mark.parametrize("path,status", [("/authorization", 403), ("/missing", 404), ("/conflict", 409)])
    def test_status_codes(self, path, status):
        response = self.client.get(path)
        assert response.status_code == status
        assert response.get_json()["instance"] == path

    def test_unexpected_error(self):
        response = self.client.get('/crash')
        assert response.status_code == 500
        assert response.get_json()["type"].endswith("/internal-server-error")

    def test_unexpected_error_hidden_in_production(self):
        self.app.config['ENV'] = 'production'
        body = self.client.get('/crash').get_json()
        assert "boom" not in body["detail"]

    def test_unknown_route_is_problem_document(self):
        response = self.client.get('/nowhere')
        assert response.status_code == 404
        assert response.get_json()["type"].endswith("/resource-not-found")

    def test_request_validation_error_response(self):
        class Body(BaseModel):
            status: str

        with pytest.raises(ValidationError) as exc_info:
            Body.model_validate({})

        with self.app.test_request_context('/api/emergency/1/status', method='PATCH'):
            response = self.error_handler.handle_request_validation_error(exc_info.value)

        assert response.status_code == 400
        assert response.mimetype == "application/problem+json"


class TestRequestParser:
    """Test request parsing helpers."""

    def setup_method(self):
        self.app = Flask(__name__)

    def test_missing_body(self):
        class Body(BaseModel):
            note: str

        with self.app.test_request_context('/x', method='POST'):
            with pytest.raises(ValidationException) as exc_info:
                RequestParser.parse_json_body(Body)
        assert exc_info.value.validation_errors[0]["field"] == "body"

    def test_field_errors_are_reported(self):
        class Body(BaseModel):
            note: str

        with self.app.test_request_context('/x', method='POST', json={"note": 5}):
            with pytest.raises(ValidationException) as exc_info:
                RequestParser.parse_json_body(Body)
        assert exc_info.value.validation_errors[0]["field"] == "note"

    def test_empty_query_values_are_ignored(self):
        class Query(BaseModel):
            limit: int = 10

        with self.app.test_request_context('/x?limit='):
            assert RequestParser.parse_query(Query).limit == 10
