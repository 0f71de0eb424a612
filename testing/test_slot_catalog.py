# testing/test_slot_catalog.py
"""
Tests for normalizing availability data into ordered Slot sequences.
"""

from datetime import date, datetime

import pytest

from booking_engine.api.errors import UpstreamUnavailable
from booking_engine.api.models import Slot
from booking_engine.api.slot_catalog import normalize_slot, open_slots
from testing.mock_data import (
    FailingAvailabilitySource,
    FakeAvailabilitySource,
    generate_mock_availability,
    local,
)


def test_slots_ordered_by_day_then_start():
    """Slots come back sorted by day, then start time, whatever order upstream used."""
    data = generate_mock_availability([
        (local(2030, 3, 19, 9, 0), "SQ-TM-1"),
        (local(2030, 3, 18, 15, 0), "SQ-TM-2"),
        (local(2030, 3, 18, 9, 30), "SQ-TM-1"),
        (local(2030, 3, 18, 9, 30), "SQ-TM-0"),
    ])
    source = FakeAvailabilitySource(data)

    slots = list(open_slots(source, ["SQ-TM-1", "SQ-TM-2"], date(2030, 3, 18), date(2030, 3, 20), 30))

    assert [(s.start, s.resource_ref) for s in slots] == [
        (local(2030, 3, 18, 9, 30), "SQ-TM-0"),
        (local(2030, 3, 18, 9, 30), "SQ-TM-1"),
        (local(2030, 3, 18, 15, 0), "SQ-TM-2"),
        (local(2030, 3, 19, 9, 0), "SQ-TM-1"),
    ]


def test_end_date_is_exclusive():
    data = generate_mock_availability([
        (local(2030, 3, 18, 9, 0), "b1"),
        (local(2030, 3, 19, 9, 0), "b1"),
    ])
    slots = list(open_slots(FakeAvailabilitySource(data), ["b1"], date(2030, 3, 18), date(2030, 3, 19), 30))

    assert [s.day for s in slots] == [date(2030, 3, 18)]


def test_short_and_duplicate_slots_are_dropped():
    data = generate_mock_availability([
        (local(2030, 3, 18, 9, 0), "b1", 15),
        (local(2030, 3, 18, 10, 0), "b1", 60),
        (local(2030, 3, 18, 10, 0), "b1", 60),
    ])
    slots = list(open_slots(FakeAvailabilitySource(data), ["b1"], date(2030, 3, 18), date(2030, 3, 19), 30))

    assert len(slots) == 1
    assert slots[0].start == local(2030, 3, 18, 10, 0)
    assert slots[0].duration_minutes == 60


def test_flat_list_and_slot_objects_accepted():
    """The source may return plain records or ready Slot objects instead of a by-date mapping."""
    ready = Slot(start=local(2030, 3, 18, 11, 0), duration_minutes=30, resource_ref="b2")
    raw = [
        {"start_at": "2030-03-18T10:00:00+11:00", "team_member_id": "b1", "duration_minutes": 30},
        ready,
    ]
    slots = list(open_slots(FakeAvailabilitySource(raw), ["b1", "b2"], date(2030, 3, 18), date(2030, 3, 19), 30))

    assert [s.resource_ref for s in slots] == ["b1", "b2"]
    assert slots[1] is ready


def test_naive_start_is_shop_time():
    slot = normalize_slot({"start_at": "2030-03-18T10:00:00", "resource_id": "b1"}, 30)

    assert slot.start == local(2030, 3, 18, 10, 0)
    assert slot.duration_minutes == 30  # falls back to the requested duration


def test_records_without_start_or_barber_are_skipped():
    assert normalize_slot({"team_member_id": "b1"}, 30) is None
    assert normalize_slot({"start_at": "2030-03-18T10:00:00+11:00"}, 30) is None


def test_query_passes_range_and_duration_to_source():
    source = FakeAvailabilitySource()
    result = list(open_slots(source, ["b1", "b2"], date(2030, 3, 18), date(2030, 4, 1), 45))

    assert result == []
    assert source.calls == [{
        "resource_ids": ["b1", "b2"],
        "start_date": date(2030, 3, 18),
        "end_date": date(2030, 4, 1),
        "duration_minutes": 45,
    }]


def test_source_errors_surface_at_call_time():
    """A transport failure is raised by open_slots itself, not swallowed into an empty result."""
    with pytest.raises(UpstreamUnavailable):
        open_slots(FailingAvailabilitySource(), ["b1"], date(2030, 3, 18), date(2030, 3, 19), 30)


def test_invalid_arguments():
    with pytest.raises(ValueError):
        open_slots(FakeAvailabilitySource(), [], date(2030, 3, 18), date(2030, 3, 19), 30)
    with pytest.raises(ValueError):
        open_slots(FakeAvailabilitySource(), ["b1"], date(2030, 3, 18), date(2030, 3, 19), 0)


def test_slot_day_uses_shop_timezone():
    """23:30 UTC on the 17th is already the 18th in Melbourne."""
    slot = Slot(start=datetime.fromisoformat("2030-03-17T23:30:00+00:00"), duration_minutes=30, resource_ref="b1")

    assert slot.day == date(2030, 3, 18)


def test_malformed_record_skipped_next_to_good_one():
    """One unreadable record must not sink the rest of the day's availability."""
    good = generate_mock_availability([(local(2030, 3, 18, 9, 0), "b2")])["availabilities_by_date"]["2030-03-18"][0]
    raw = [
        {"start_at": "not-a-date", "team_member_id": "b1"},
        {"start_at": "2030-03-18T10:00:00+11:00", "team_member_id": "b1", "duration_minutes": "half an hour"},
        "garbage",
        None,
        good,
    ]

    slots = list(open_slots(FakeAvailabilitySource(raw), ["b1", "b2"], date(2030, 3, 18), date(2030, 3, 19), 30))

    assert [(s.start, s.resource_ref) for s in slots] == [(local(2030, 3, 18, 9, 0), "b2")]


def test_malformed_records_normalize_to_none():
    assert normalize_slot({"start_at": "not-a-date", "team_member_id": "b1"}, 30) is None
    assert normalize_slot(["2030-03-18T10:00:00+11:00", "b1"], 30) is None
    assert normalize_slot({"start_at": "2030-03-18T10:00:00+11:00", "appointment_segments": "b1"}, 30) is None
