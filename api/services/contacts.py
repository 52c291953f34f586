# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Contact directory with proximity search.

Candidates are narrowed in MongoDB with a $geoWithin filter on the 2dsphere
index; exact distance, radius filtering and ordering are computed in
``domain.geo`` so every caller sees identical distances and tie-breaking.
"""

import logging
from typing import Iterable, List, Optional, Sequence

import pymongo
from opentelemetry import trace
from pydantic import ValidationError

from domain.errors import ValidationException
from domain.geo import RankedContact, rank_contacts, validate_point
from models.entities import ContactEntry
from models.enums import ContactCategory
from services.mongodb import CONTACTS_COLLECTION, MongoDBService, to_object_id

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_COUNTRY_CATEGORIES = (ContactCategory.EMBASSY.value, ContactCategory.CONSULATE.value)

# Equatorial radius; the sphere is at least as large as the haversine one,
# so the pre-filter never drops an entry the exact ranking would keep.
MONGO_EARTH_RADIUS_M = 6378100.0


def within_radius(point: Sequence[float], max_distance_m: float) -> dict:
    """``$geoWithin`` filter served by the 2dsphere index on ``location``."""
    return {
        "$geoWithin": {
            "$centerSphere": [[point[0], point[1]], max_distance_m / MONGO_EARTH_RADIUS_M]
        }
    }


def _category_value(category) -> Optional[str]:
    if category is None:
        return None
    try:
        return ContactCategory(category).value
    except ValueError:
        raise ValidationException(
            "Invalid contact type",
            validation_errors=[{
                "field": "type",
                "message": f"Must be one of: {', '.join(c.value for c in ContactCategory)}"
            }]
        )


class ContactDirectory:
    """Read-mostly directory of help sources."""

    def __init__(self, mongodb_service: MongoDBService, query_timeout_ms: int = 800, spatial_prefilter: bool = True):
        self.mongodb_service = mongodb_service
        self.query_timeout_ms = query_timeout_ms
        self.spatial_prefilter = spatial_prefilter

    @property
    def collection(self):
        return self.mongodb_service.get_collection(CONTACTS_COLLECTION)

    def _load(self, query: dict, sort: Optional[list] = None) -> List[ContactEntry]:
        with pymongo.timeout(self.query_timeout_ms / 1000):
            cursor = self.collection.find(query)
            if sort:
                cursor = cursor.sort(sort)
            documents = list(cursor)

        entries = []
        for document in documents:
            try:
                entries.append(ContactEntry.from_document(document))
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed directory entry",
                    extra={"contact_id": str(document.get("_id")), "errors": e.error_count()}
                )
        return entries

    def _proximity_query(self, origin: Sequence[float], max_distance_m: float, **filters) -> dict:
        query = {"isActive": True, **filters}
        if self.spatial_prefilter:
            query["location"] = within_radius(origin, max_distance_m)
        return query

    def find_nearest(
        self,
        point: Sequence[float],
        max_distance_m: float = 100000,
        limit: int = 5,
        category: Optional[str] = None
    ) -> List[RankedContact]:
        """
        Find active entries within ``max_distance_m`` of ``point``.

        Args:
            point: ``[longitude, latitude]``
            max_distance_m: Radius in meters
            limit: Maximum results
            category: Optional contact category filter

        Returns:
            Ranked contacts, nearest first; empty when nothing is in range

        Raises:
            ValidationException: If the point or category is invalid
        """
        origin = validate_point(point)
        category = _category_value(category)

        with tracer.start_as_current_span("contacts.find_nearest") as span:
            span.set_attributes({
                "geo.max_distance_m": max_distance_m,
                "geo.limit": limit,
                "contact.type": category or "any"
            })

            filters = {"type": category} if category else {}
            query = self._proximity_query(origin, max_distance_m, **filters)

            ranked = rank_contacts(self._load(query), origin, max_distance_m, limit)
            span.set_attribute("contacts.found", len(ranked))

            logger.debug(
                f"Found {len(ranked)} nearest emergency contacts",
                extra={"location": list(origin), "type": category}
            )
            return ranked

    def find_always_available_near(
        self,
        point: Sequence[float],
        max_distance_m: float = 50000,
        limit: int = 10
    ) -> List[RankedContact]:
        """Find active 24/7 entries within ``max_distance_m`` of ``point``."""
        origin = validate_point(point)

        with tracer.start_as_current_span("contacts.find_always_available") as span:
            query = self._proximity_query(origin, max_distance_m, **{"operatingHours.emergency24x7": True})
            ranked = rank_contacts(self._load(query), origin, max_distance_m, limit)
            span.set_attribute("contacts.found", len(ranked))
            return ranked

    def find_by_country(self, country: str, category: Optional[str] = None) -> List[ContactEntry]:
        """
        List active entries of a country sorted by city.

        Without a category, embassies and consulates are returned.
        """
        category = _category_value(category)

        with tracer.start_as_current_span("contacts.find_by_country") as span:
            span.set_attribute("contact.country", country)
            query = {"country": country, "isActive": True}
            if category:
                query["type"] = category
            else:
                query["type"] = {"$in": list(DEFAULT_COUNTRY_CATEGORIES)}

            return self._load(query, sort=[("city", pymongo.ASCENDING)])

    def get(self, contact_id: str) -> Optional[ContactEntry]:
        object_id = to_object_id(contact_id)
        if object_id is None:
            return None
        document = self.collection.find_one({"_id": object_id})
        return ContactEntry.from_document(document) if document else None

    def upsert_many(self, entries: Iterable[ContactEntry]) -> int:
        """Insert or replace entries by identifier; used by maintenance scripts."""
        count = 0
        for entry in entries:
            document = entry.to_document()
            self.collection.replace_one({"_id": document["_id"]}, document, upsert=True)
            count += 1
        logger.info(f"Upserted {count} emergency contacts")
        return count
