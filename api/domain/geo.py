# SPDX-License-Identifier: Apache-2.0

"""
Proximity domain logic.

Pure functions for point validation, great-circle distance, ranking of
directory entries and the merge of several ranked result lists into the
matched-contact list persisted on an SOS event.
"""

import math
import numbers
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from models.entities import ContactEntry, MatchedContact
from domain.errors import ValidationException

EARTH_RADIUS_KM = 6371.0
DISTANCE_PRECISION = 3

Point = Tuple[float, float]


@dataclass(frozen=True)
class RankedContact:
    """A directory entry paired with its distance from the query point."""
    entry: ContactEntry
    distance_km: float

    @property
    def sort_key(self) -> Tuple[float, str]:
        return (self.distance_km, self.entry.id)


def validate_point(coordinates: Sequence, field: str = "location.coordinates") -> Point:
    """
    Validate a ``[longitude, latitude]`` pair.

    Args:
        coordinates: Candidate coordinate pair
        field: Field path reported on failure

    Returns:
        Tuple of (longitude, latitude) as floats

    Raises:
        ValidationException: If the pair is malformed or out of range
    """
    if coordinates is None or isinstance(coordinates, (str, bytes)) or len(coordinates) != 2:
        raise ValidationException(
            "Valid location coordinates required [longitude, latitude]",
            validation_errors=[{"field": field, "message": "Exactly two coordinates are required"}]
        )

    errors = []
    for index, (name, low, high) in enumerate((("longitude", -180, 180), ("latitude", -90, 90))):
        value = coordinates[index]
        if isinstance(value, bool) or not isinstance(value, numbers.Real) or math.isnan(value):
            errors.append({"field": f"{field}.{index}", "message": f"{name} must be a number"})
        elif not low <= value <= high:
            errors.append({"field": f"{field}.{index}", "message": f"{name} must be between {low} and {high}"})

    if errors:
        raise ValidationException("Invalid location coordinates", validation_errors=errors)

    return float(coordinates[0]), float(coordinates[1])


def haversine_km(origin: Point, target: Point) -> float:
    """Great-circle distance between two ``(longitude, latitude)`` points in kilometers."""
    lon1, lat1 = origin
    lon2, lat2 = target
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_to(entry: ContactEntry, point: Point) -> float:
    """
    Distance from a directory entry to a point.

    Every distance the core stores, filters on or returns goes through here.

    Args:
        entry: Directory entry
        point: ``(longitude, latitude)``

    Returns:
        Kilometers, rounded to meter precision
    """
    origin = (entry.location.longitude, entry.location.latitude)
    return round(haversine_km(origin, point), DISTANCE_PRECISION)


def rank_contacts(
    entries: Iterable[ContactEntry],
    point: Point,
    max_distance_m: float,
    limit: int
) -> List[RankedContact]:
    """
    Rank candidates by distance from ``point``.

    Inactive entries and entries beyond ``max_distance_m`` are dropped; the
    rest are ordered by ascending distance with ties broken by identifier.

    Args:
        entries: Candidate directory entries
        point: ``(longitude, latitude)``
        max_distance_m: Radius in meters
        limit: Maximum results

    Returns:
        Ranked contacts, nearest first
    """
    if limit <= 0:
        return []

    ranked = []
    for entry in entries:
        if not entry.is_active:
            continue
        distance = distance_to(entry, point)
        if distance * 1000 <= max_distance_m:
            ranked.append(RankedContact(entry=entry, distance_km=distance))

    ranked.sort(key=lambda item: item.sort_key)
    return ranked[:limit]


def merge_matches(result_lists: Iterable[List[RankedContact]], cap: int) -> List[RankedContact]:
    """
    Concatenate ranked lists, keep the first occurrence of each entry and
    return the ``cap`` nearest.
    """
    seen = set()
    merged = []
    for results in result_lists:
        for item in results:
            if item.entry.id in seen:
                continue
            seen.add(item.entry.id)
            merged.append(item)

    merged.sort(key=lambda item: item.sort_key)
    return merged[:max(cap, 0)]


def to_matched_contact(item: RankedContact, language: str = "en") -> MatchedContact:
    """Snapshot a ranked entry as the reference stored on an event."""
    entry = item.entry
    return MatchedContact(
        contact_id=entry.id,
        name=entry.display_name(language),
        type=entry.type,
        distance=item.distance_km,
        phone=entry.phone[0] if entry.phone else None,
        emergency_hotline=entry.emergency_hotline,
        always_available=entry.always_available,
    )
