# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for proximity domain logic.
"""

import pytest
from bson import ObjectId

from domain.errors import ValidationException
from domain.geo import (
    RankedContact, distance_to, haversine_km, merge_matches, rank_contacts,
    to_matched_contact, validate_point
)
from models.entities import ContactEntry, GeoPoint, OperatingHours

RIYADH = (46.7073, 24.7408)


def make_entry(name, coordinates, contact_id=None, is_active=True, always_available=False):
    return ContactEntry(
        id=contact_id or str(ObjectId()),
        name={"en": name, "ar": f"{name} (ar)"},
        type="embassy",
        country="Saudi Arabia",
        city="Riyadh",
        location=GeoPoint(coordinates=list(coordinates)),
        phone=["+966-11-000-0001", "+966-11-000-0002"],
        emergency_hotline="+966-11-999-9999",
        operating_hours=OperatingHours(emergency24x7=always_available),
        is_active=is_active
    )


class TestValidatePoint:
    """Test coordinate validation."""

    def test_valid_point_returns_floats(self):
        assert validate_point([46, 24]) == (46.0, 24.0)

    def test_boundary_values_are_accepted(self):
        assert validate_point([-180, 90]) == (-180.0, 90.0)
        assert validate_point([180, -90]) == (180.0, -90.0)

    @pytest.mark.parametrize("coordinates", [None, [], [46.7], [46.7, 24.7, 10], "46.7,24.7"])
    def test_wrong_shape_is_rejected(self, coordinates):
        with pytest.raises(ValidationException) as exc_info:
            validate_point(coordinates)
        assert exc_info.value.status_code == 400

    def test_out_of_range_longitude_is_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_point([181, 24])
        assert exc_info.value.validation_errors[0]["field"] == "location.coordinates.0"

    def test_out_of_range_latitude_is_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_point([46, -91])
        assert exc_info.value.validation_errors[0]["field"] == "location.coordinates.1"

    def test_non_numeric_values_are_rejected(self):
        with pytest.raises(ValidationException):
            validate_point(["46", 24])
        with pytest.raises(ValidationException):
            validate_point([True, 24])
        with pytest.raises(ValidationException):
            validate_point([float("nan"), 24])


class TestDistance:
    """Test great-circle distance."""

    def test_same_point_is_zero(self):
        assert haversine_km(RIYADH, RIYADH) == 0

    def test_known_distance_riyadh_to_jeddah(self):
        jeddah = (39.1925, 21.4858)
        assert haversine_km(RIYADH, jeddah) == pytest.approx(849, abs=10)

    def test_distance_is_symmetric(self):
        dubai = (55.2708, 25.2048)
        assert haversine_km(RIYADH, dubai) == pytest.approx(haversine_km(dubai, RIYADH))

    def test_distance_to_is_rounded_to_meters(self):
        entry = make_entry("Embassy", (46.71, 24.75))
        distance = distance_to(entry, RIYADH)
        assert distance == round(distance, 3)
        assert 0 < distance < 2


class TestRankContacts:
    """Test ranking of directory entries."""

    def test_orders_nearest_first(self):
        far = make_entry("Far", (46.9, 24.9))
        near = make_entry("Near", (46.71, 24.74))
        ranked = rank_contacts([far, near], RIYADH, 100000, 5)
        assert [item.entry.name["en"] for item in ranked] == ["Near", "Far"]

    def test_drops_entries_beyond_radius(self):
        near = make_entry("Near", (46.71, 24.74))
        jeddah = make_entry("Jeddah", (39.1925, 21.4858))
        ranked = rank_contacts([near, jeddah], RIYADH, 100000, 5)
        assert [item.entry.name["en"] for item in ranked] == ["Near"]

    def test_drops_inactive_entries(self):
        inactive = make_entry("Closed", (46.71, 24.74), is_active=False)
        assert rank_contacts([inactive], RIYADH, 100000, 5) == []

    def test_ties_broken_by_identifier(self):
        b = make_entry("B", (46.71, 24.74), contact_id="0000000000000000000000bb")
        a = make_entry("A", (46.71, 24.74), contact_id="0000000000000000000000aa")
        ranked = rank_contacts([b, a], RIYADH, 100000, 5)
        assert [item.entry.id for item in ranked] == [a.id, b.id]

    def test_limit_applies_after_ordering(self):
        entries = [make_entry(f"E{i}", (46.7073 + i * 0.01, 24.7408)) for i in range(5)]
        ranked = rank_contacts(reversed(entries), RIYADH, 100000, 2)
        assert [item.entry.name["en"] for item in ranked] == ["E0", "E1"]

    def test_non_positive_limit_returns_nothing(self):
        assert rank_contacts([make_entry("Near", (46.71, 24.74))], RIYADH, 100000, 0) == []


class TestMergeMatches:
    """Test merging of ranked result lists."""

    def setup_method(self):
        self.near = make_entry("Near", (46.71, 24.74))
        self.mid = make_entry("Mid", (46.75, 24.78), always_available=True)
        self.far = make_entry("Far", (46.9, 24.9), always_available=True)

    def ranked(self, *entries):
        return [RankedContact(entry=e, distance_km=distance_to(e, RIYADH)) for e in entries]

    def test_duplicates_keep_single_copy(self):
        merged = merge_matches([self.ranked(self.near, self.mid), self.ranked(self.mid, self.far)], 5)
        ids = [item.entry.id for item in merged]
        assert len(ids) == len(set(ids)) == 3

    def test_result_is_sorted_and_capped(self):
        merged = merge_matches([self.ranked(self.far), self.ranked(self.mid, self.near)], 2)
        assert [item.entry.name["en"] for item in merged] == ["Near", "Mid"]

    def test_empty_inputs(self):
        assert merge_matches([[], []], 5) == []


class TestToMatchedContact:
    """Test snapshotting a ranked entry onto an event."""

    def test_snapshot_fields(self):
        entry = make_entry("Embassy of Bangladesh", (46.71, 24.74), always_available=True)
        matched = to_matched_contact(RankedContact(entry=entry, distance_km=1.234))

        assert matched.contact_id == entry.id
        assert matched.name == "Embassy of Bangladesh"
        assert matched.type == "embassy"
        assert matched.distance == 1.234
        assert matched.phone == "+966-11-000-0001"
        assert matched.emergency_hotline == "+966-11-999-9999"
        assert matched.always_available is True
        assert matched.notified is False

    def test_snapshot_uses_requested_language(self):
        entry = make_entry("Embassy", (46.71, 24.74))
        matched = to_matched_contact(RankedContact(entry=entry, distance_km=1.0), language="ar")
        assert matched.name == "Embassy (ar)"
