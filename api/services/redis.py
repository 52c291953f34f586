# SPDX-License-Identifier: Apache-2.0

"""
Redis service for the JWT token blocklist.

Uses the Upstash HTTP client for serverless compatibility. When no Redis is
configured the blocklist is disabled and every token is allowed.
"""

import os
import time
from typing import Optional, Dict, Any
from upstash_redis import Redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

BLOCKLIST_PREFIX = "jwt:blocked:"


class RedisService:
    """Upstash-backed token blocklist."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        redis_token: Optional[str] = None,
        client: Optional[Redis] = None
    ):
        """
        Initialize the Redis service.

        Args:
            redis_url: Upstash Redis HTTP URL
            redis_token: Upstash Redis authentication token
            client: Preconfigured client, mainly for tests
        """
        if client is not None:
            self.client = client
            return

        self.redis_url = redis_url or os.getenv("REDIS_URL")
        self.redis_token = redis_token or os.getenv("REDIS_TOKEN")

        if not self.redis_url:
            logger.warning("No REDIS_URL configured, token blocklist will be disabled")
            self.client = None
            return

        try:
            if self.redis_token:
                self.client = Redis(url=self.redis_url, token=self.redis_token)
            else:
                self.client = Redis.from_env()
            logger.info("Redis service initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def is_available(self) -> bool:
        return self.client is not None

    def is_token_blocked(self, token_id: str) -> bool:
        """
        Check if a JWT token is in the blocklist.

        Args:
            token_id: Unique token identifier

        Returns:
            True if token is blocked, False otherwise
        """
        if not self.is_available():
            return False

        with tracer.start_as_current_span("redis.is_token_blocked") as span:
            span.set_attribute("auth.token_id", token_id)
            try:
                blocked = bool(self.client.exists(f"{BLOCKLIST_PREFIX}{token_id}"))
            except Exception as e:
                # An unreachable blocklist must not lock out a worker in distress
                logger.error(f"Redis EXISTS failed, allowing token: {str(e)}")
                return False

            span.set_attribute("auth.token_blocked", blocked)
            return blocked

    def health_check(self) -> Dict[str, Any]:
        if not self.is_available():
            return {
                "status": "unavailable",
                "message": "Redis client not initialized",
                "timestamp": time.time()
            }

        start_time = time.time()
        try:
            healthy = self.client.ping() == "PONG"
        except Exception as e:
            return {"status": "unhealthy", "message": str(e), "timestamp": time.time()}

        return {
            "status": "healthy" if healthy else "degraded",
            "response_time_ms": round((time.time() - start_time) * 1000, 2),
            "timestamp": time.time()
        }
