# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Stale-incident reaper.

Auto-cancels incidents left open past an age threshold. Each candidate is
cancelled by one conditional update keyed on its pre-sweep status, so
overlapping sweeps, or a sweep racing a request handler, cancel and
timeline-stamp an incident at most once.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from opentelemetry import trace

from domain import lifecycle
from models.base import utcnow
from services.events import EventStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_HOURS_THRESHOLD = 48
DEFAULT_INTERVAL_SECONDS = 3600


class StaleIncidentReaper:
    """Sweeps open incidents older than a threshold."""

    def __init__(self, event_store: EventStore, hours_threshold: float = DEFAULT_HOURS_THRESHOLD):
        self.event_store = event_store
        self.hours_threshold = hours_threshold

    def sweep(self, hours_threshold: Optional[float] = None, now: Optional[datetime] = None) -> int:
        """
        Auto-cancel stale incidents.

        A failure on one candidate is logged and the sweep moves on.

        Args:
            hours_threshold: Age in hours; defaults to the configured threshold
            now: Reference time, defaults to the current UTC time

        Returns:
            Number of incidents this sweep cancelled
        """
        hours = hours_threshold if hours_threshold is not None else self.hours_threshold
        if hours <= 0:
            raise ValueError("hours_threshold must be positive")

        now = now or utcnow()
        cutoff = lifecycle.stale_cutoff(hours, now)
        reason = lifecycle.auto_cancellation_reason(hours)

        with tracer.start_as_current_span("reaper.sweep") as span:
            span.set_attribute("reaper.hours_threshold", hours)
            candidates = self.event_store.find_stale_candidates(cutoff)

            cancelled = 0
            for candidate in candidates:
                event_id = str(candidate["_id"])
                try:
                    if self.event_store.auto_cancel(event_id, candidate["status"], reason, now):
                        cancelled += 1
                        logger.info(
                            "Stale emergency auto-cancelled",
                            extra={"event_id": event_id, "previous_status": candidate["status"]}
                        )
                except Exception as e:
                    span.record_exception(e)
                    logger.error(
                        f"Failed to auto-cancel emergency {event_id}",
                        extra={"event_id": event_id, "error": str(e)},
                        exc_info=True
                    )

            span.set_attributes({"reaper.candidates": len(candidates), "reaper.cancelled": cancelled})
            logger.info(
                f"Reaper sweep cancelled {cancelled} stale emergencies",
                extra={"candidates": len(candidates), "cancelled": cancelled, "hours_threshold": hours}
            )
            return cancelled


class ReaperScheduler:
    """Runs the reaper on a fixed interval with an APScheduler background scheduler."""

    JOB_ID = "stale-incident-reaper"

    def __init__(self, reaper: StaleIncidentReaper, interval_seconds: float = DEFAULT_INTERVAL_SECONDS):
        self.reaper = reaper
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[BackgroundScheduler] = None
        self._last_run: Optional[datetime] = None
        self._last_result: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def last_run(self) -> Optional[datetime]:
        return self._last_run

    @property
    def last_result(self) -> Optional[int]:
        return self._last_result

    def run_once(self) -> Optional[int]:
        """Run one sweep, logging instead of raising on failure."""
        try:
            result = self.reaper.sweep()
        except Exception:
            logger.error("Scheduled reaper sweep failed", exc_info=True)
            return None
        self._last_run = utcnow()
        self._last_result = result
        return result

    def start(self) -> None:
        if self.is_running:
            return

        # Overrunning sweeps never overlap; missed runs collapse into one
        self._scheduler = BackgroundScheduler(daemon=True)
        self._scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=int(self.interval_seconds) or None
        )
        self._scheduler.start()
        logger.info("Reaper scheduler started", extra={"interval_seconds": self.interval_seconds})

    def stop(self, wait: bool = True) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Reaper scheduler stopped")
