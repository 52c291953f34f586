# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Storage, integrations and orchestration with side effects.
"""

from .mongodb import MongoDBService, get_mongodb_service, close_mongodb_connection
from .amqp import AMQPService, AMQPConfig, PublishResult, create_amqp_service
from .contacts import ContactDirectory
from .events import EventStore
from .notifications import NotificationStore
from .fanout import NotificationFanout
from .sos import SOSService, SOSSettings
from .reaper import StaleIncidentReaper, ReaperScheduler

__all__ = [
    "MongoDBService",
    "get_mongodb_service",
    "close_mongodb_connection",
    "AMQPService",
    "AMQPConfig",
    "PublishResult",
    "create_amqp_service",
    "ContactDirectory",
    "EventStore",
    "NotificationStore",
    "NotificationFanout",
    "SOSService",
    "SOSSettings",
    "StaleIncidentReaper",
    "ReaperScheduler"
]
