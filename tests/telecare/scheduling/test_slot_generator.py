from datetime import date, datetime, time, timedelta

import pytest

from telecare.scheduling.availability import AvailabilityEntry, WeeklyAvailability
from telecare.scheduling.errors import ValidationError
from telecare.scheduling.slots import (
    Slot,
    generate_slots,
    generate_weekly_slots,
    is_generated_slot,
    iterate_slot_times,
)

THURSDAY = date(2026, 1, 1)
NEXT_MONDAY = date(2026, 1, 5)


def test_iterate_slot_times_excludes_end_time() -> None:
    assert iterate_slot_times(time(9, 0), time(10, 0)) == [
        time(9, 0),
        time(9, 15),
        time(9, 30),
        time(9, 45),
    ]


def test_iterate_slot_times_drops_trailing_partial_interval() -> None:
    assert iterate_slot_times(time(9, 10), time(9, 50)) == [time(9, 10), time(9, 25)]


@pytest.mark.parametrize(('start', 'end'), [(time(10, 0), time(10, 0)), (time(11, 0), time(10, 0))])
def test_generate_slots_returns_nothing_for_empty_window(start: time, end: time) -> None:
    entry = AvailabilityEntry.parse('Monday', start, end)

    assert generate_slots(entry, horizon_days=14, today=THURSDAY) == []


def test_generate_slots_covers_each_matching_date_in_horizon() -> None:
    entry = AvailabilityEntry.parse('Monday', '09:00', '09:30')

    slots = generate_slots(entry, horizon_days=14, today=THURSDAY)

    assert slots == [
        Slot(date(2026, 1, 5), time(9, 0)),
        Slot(date(2026, 1, 5), time(9, 15)),
        Slot(date(2026, 1, 12), time(9, 0)),
        Slot(date(2026, 1, 12), time(9, 15)),
    ]


def test_generate_slots_includes_today_when_weekday_matches() -> None:
    entry = AvailabilityEntry.parse('Thursday', '09:00', '09:15')

    slots = generate_slots(entry, horizon_days=0, today=THURSDAY)

    assert slots == [Slot(THURSDAY, time(9, 0))]


def test_generate_slots_includes_last_day_of_horizon() -> None:
    entry = AvailabilityEntry.parse('Monday', '09:00', '09:15')

    slots = generate_slots(entry, horizon_days=4, today=THURSDAY)

    assert slots == [Slot(NEXT_MONDAY, time(9, 0))]


def test_generate_slots_rejects_negative_horizon() -> None:
    entry = AvailabilityEntry.parse('Monday', '09:00', '10:00')

    with pytest.raises(ValidationError):
        generate_slots(entry, horizon_days=-1, today=THURSDAY)


@pytest.mark.parametrize(
    ('day', 'start', 'end'),
    [
        ('Monday', '09:00', '17:00'),
        ('Tuesday', '08:10', '08:55'),
        ('Saturday', '22:30', '23:59'),
        ('Sunday', '00:00', '00:14'),
    ],
)
def test_generated_slots_stay_within_bounds(day: str, start: str, end: str) -> None:
    entry = AvailabilityEntry.parse(day, start, end)

    for slot in generate_slots(entry, horizon_days=21, today=THURSDAY):
        assert slot.date >= THURSDAY
        assert slot.date.weekday() == entry.day.number
        assert slot.time >= entry.window.start
        assert slot.start + timedelta(minutes=15) <= datetime.combine(slot.date, entry.window.end)


def test_generate_slots_is_deterministic() -> None:
    entry = AvailabilityEntry.parse('Friday', '10:00', '12:00')

    assert generate_slots(entry, 28, THURSDAY) == generate_slots(entry, 28, THURSDAY)


def test_generate_weekly_slots_orders_by_date_then_time() -> None:
    availability = WeeklyAvailability.from_timings({
        'Monday': {'startTime': '09:00', 'endTime': '09:30'},
        'Friday': {'startTime': '16:00', 'endTime': '16:15'},
    })

    slots = generate_weekly_slots(availability, horizon_days=7, today=THURSDAY)

    assert slots == [
        Slot(date(2026, 1, 2), time(16, 0)),
        Slot(date(2026, 1, 5), time(9, 0)),
        Slot(date(2026, 1, 5), time(9, 15)),
    ]


def test_is_generated_slot_checks_day_time_and_horizon() -> None:
    availability = WeeklyAvailability.from_timings({'Monday': {'startTime': '09:00', 'endTime': '10:00'}})

    assert is_generated_slot(availability, NEXT_MONDAY, time(9, 45), 14, THURSDAY)
    assert not is_generated_slot(availability, NEXT_MONDAY, time(10, 0), 14, THURSDAY)
    assert not is_generated_slot(availability, NEXT_MONDAY, time(9, 10), 14, THURSDAY)
    assert not is_generated_slot(availability, date(2026, 1, 6), time(9, 0), 14, THURSDAY)
    assert not is_generated_slot(availability, date(2025, 12, 29), time(9, 0), 14, THURSDAY)
    assert not is_generated_slot(availability, date(2026, 1, 19), time(9, 0), 14, THURSDAY)
