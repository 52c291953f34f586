# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Notification sinks: the delivery boundary for contacts and family members.

Real email/SMS/push delivery happens downstream of the sink. A sink either
accepts a delivery or raises ``DeliveryError``.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from domain.fanout import Recipient
from services.amqp import AMQPService, create_amqp_service

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised when a sink could not accept a delivery."""
    pass


class NotificationSink(ABC):
    """Abstract ``deliver(recipient, payload)`` capability."""

    @abstractmethod
    def deliver(self, recipient: Recipient, payload: Dict[str, Any]) -> None:
        """Hand one delivery to the channel, raising DeliveryError on failure."""

    def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy"}


class LoggingNotificationSink(NotificationSink):
    """Sink that only logs deliveries; used for local development."""

    def deliver(self, recipient: Recipient, payload: Dict[str, Any]) -> None:
        logger.info(
            f"Delivering emergency notification to {recipient.kind} {recipient.name}",
            extra={
                "recipient_id": recipient.recipient_id,
                "recipient_kind": recipient.kind,
                "event_id": payload.get("eventId"),
                "method": recipient.method,
            }
        )


class AMQPNotificationSink(NotificationSink):
    """Sink publishing each delivery to the AMQP topic exchange."""

    def __init__(self, amqp_service: AMQPService):
        self.amqp_service = amqp_service

    @staticmethod
    def routing_key(recipient: Recipient, payload: Dict[str, Any]) -> str:
        return f"emergency.{recipient.kind}.{payload.get('severity', 'high')}"

    def deliver(self, recipient: Recipient, payload: Dict[str, Any]) -> None:
        message = {
            "recipient": recipient.to_dict(),
            "payload": payload,
        }
        result = self.amqp_service.publish(self.routing_key(recipient, payload), message)
        if not result.success:
            raise DeliveryError(
                f"Failed to publish delivery for {recipient.kind} {recipient.recipient_id}: {result.error}"
            )

    def health_check(self) -> Dict[str, Any]:
        healthy = self.amqp_service.health_check()
        return {"status": "healthy" if healthy else "unhealthy", "exchange": self.amqp_service.config.exchange}


def create_notification_sink(kind: Optional[str] = None) -> NotificationSink:
    """Build the sink selected by ``NOTIFICATION_SINK`` (``amqp`` or ``log``)."""
    kind = (kind or os.getenv('NOTIFICATION_SINK', 'amqp')).lower()
    if kind == 'log':
        return LoggingNotificationSink()
    if kind == 'amqp':
        return AMQPNotificationSink(create_amqp_service())
    raise ValueError(f"Unknown notification sink: {kind}")
