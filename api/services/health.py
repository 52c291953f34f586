"""
Health Check Service

Aggregates the health of the engine's dependencies: MongoDB (required),
the notification sink, the Redis token blocklist and the reaper scheduler.
"""

import os
import time
from typing import Dict, Any, Optional
from opentelemetry import trace

from models.base import utcnow
from services.mongodb import MongoDBService
from services.redis import RedisService
from services.reaper import ReaperScheduler
from services.sinks import NotificationSink

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "sos-emergency-engine"
SERVICE_VERSION = "1.0.0"


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(
        self,
        mongodb_service: MongoDBService,
        sink: NotificationSink,
        redis_service: Optional[RedisService] = None,
        reaper_scheduler: Optional[ReaperScheduler] = None
    ):
        self.mongodb_service = mongodb_service
        self.sink = sink
        self.redis_service = redis_service
        self.reaper_scheduler = reaper_scheduler

    def get_comprehensive_health(self) -> Dict[str, Any]:
        """Get health status including all dependencies."""
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            start_time = time.time()

            mongodb_health = self._check_mongodb_health()
            sink_health = self._check_sink_health()
            redis_health = self.redis_service.health_check() if self.redis_service else {"status": "unavailable"}

            overall_status = self._determine_overall_status(
                mongodb_health["status"],
                [sink_health["status"], redis_health["status"]]
            )
            response_time_ms = round((time.time() - start_time) * 1000, 2)

            health_data = {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": utcnow().isoformat() + "Z",
                "response_time_ms": response_time_ms,
                "dependencies": {
                    "mongodb": mongodb_health,
                    "notification_sink": sink_health,
                    "redis": redis_health
                },
                "reaper": self._get_reaper_status()
            }

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.mongodb_status": mongodb_health["status"],
                "health.sink_status": sink_health["status"]
            })
            return health_data

    def _check_mongodb_health(self) -> Dict[str, Any]:
        with tracer.start_as_current_span("health.mongodb_check") as span:
            start_time = time.time()
            health_info = self.mongodb_service.health_check()
            health_info["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
            span.set_attribute("mongodb.status", health_info["status"])
            return health_info

    def _check_sink_health(self) -> Dict[str, Any]:
        try:
            return self.sink.health_check()
        except Exception as e:
            return {"status": "unhealthy", "error": str(e)}

    def _get_reaper_status(self) -> Dict[str, Any]:
        if self.reaper_scheduler is None:
            return {"enabled": False}
        last_run = self.reaper_scheduler.last_run
        return {
            "enabled": True,
            "running": self.reaper_scheduler.is_running,
            "interval_seconds": self.reaper_scheduler.interval_seconds,
            "last_run": last_run.isoformat() + "Z" if last_run else None,
            "last_cancelled": self.reaper_scheduler.last_result
        }

    @staticmethod
    def _determine_overall_status(mongodb_status: str, optional_statuses: list) -> str:
        """MongoDB decides between healthy and unhealthy; other failures only degrade."""
        if mongodb_status != "healthy":
            return "unhealthy"
        if any(status == "unhealthy" for status in optional_statuses):
            return "degraded"
        return "healthy"
