# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Identity collaborators consumed by the emergency core.

``IdentityProvider`` resolves the SOS subject for denormalization and
``AdminDirectory`` lists the administrators to notify. ``UserDirectory``
implements both over the shared ``users`` collection.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from opentelemetry import trace

from domain.errors import NotFoundException
from models.entities import AdminAccount, WorkerIdentity
from models.enums import ADMIN_ROLES, UserStatus
from services.mongodb import USERS_COLLECTION, MongoDBService, to_object_id

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

INACTIVE_STATUSES = [UserStatus.INACTIVE.value, UserStatus.SUSPENDED.value]


class IdentityProvider(ABC):

    @abstractmethod
    def resolve_worker(self, user_id: str) -> WorkerIdentity:
        """Resolve a subject to display details or raise NotFoundException."""


class AdminDirectory(ABC):

    @abstractmethod
    def list_active_admins(self) -> List[AdminAccount]:
        """Point-in-time snapshot of active administrator accounts."""


def display_name(document: Dict[str, Any]) -> str:
    full_name = document.get("fullName") or {}
    parts = [full_name.get("firstName"), full_name.get("lastName")]
    name = " ".join(part for part in parts if part)
    return name or document.get("name") or document.get("email") or str(document.get("_id"))


class UserDirectory(IdentityProvider, AdminDirectory):
    """Identity and admin lookups over the ``users`` collection."""

    def __init__(self, mongodb_service: MongoDBService):
        self.mongodb_service = mongodb_service

    @property
    def collection(self):
        return self.mongodb_service.get_collection(USERS_COLLECTION)

    def _id_query(self, user_id: str) -> Dict[str, Any]:
        object_id = to_object_id(user_id)
        if object_id is None:
            return {"_id": user_id}
        return {"_id": {"$in": [object_id, user_id]}}

    def resolve_worker(self, user_id: str) -> WorkerIdentity:
        with tracer.start_as_current_span("directory.resolve_worker", attributes={"user.id": user_id}):
            document = self.collection.find_one(self._id_query(user_id))
            if document is None:
                raise NotFoundException("Worker not found")

            return WorkerIdentity(
                user_id=user_id,
                display_name=display_name(document),
                phone=document.get("phoneNumber") or document.get("phone"),
                email=document.get("email"),
            )

    def list_active_admins(self) -> List[AdminAccount]:
        with tracer.start_as_current_span("directory.list_active_admins") as span:
            cursor = self.collection.find(
                {"role": {"$in": sorted(ADMIN_ROLES)}, "status": {"$nin": INACTIVE_STATUSES}},
                {"_id": 1, "role": 1, "email": 1, "fullName": 1, "name": 1}
            )
            admins = [
                AdminAccount(
                    user_id=str(document["_id"]),
                    role=document["role"],
                    email=document.get("email"),
                    name=display_name(document),
                )
                for document in cursor
            ]
            span.set_attribute("admins.count", len(admins))
            logger.debug(f"Found {len(admins)} admin(s) to notify")
            return admins
