from datetime import date, datetime, time, timedelta
from typing import NamedTuple

from telecare.scheduling.availability import AvailabilityEntry, Weekday, WeeklyAvailability
from telecare.scheduling.errors import ValidationError

SLOT_INCREMENT_MINUTES = 15


class Slot(NamedTuple):
    date: date
    time: time

    @property
    def start(self) -> datetime:
        return datetime.combine(self.date, self.time)

    @property
    def day(self) -> Weekday:
        return Weekday.of(self.date)


def iterate_slot_times(start_time: time, end_time: time) -> list[time]:
    """15-minute start points from ``start_time`` whose slot ends by ``end_time``."""
    if start_time >= end_time:
        return []

    anchor = date.min
    current = datetime.combine(anchor, start_time)
    day_end = datetime.combine(anchor, end_time)
    increment = timedelta(minutes=SLOT_INCREMENT_MINUTES)

    times: list[time] = []
    while current + increment <= day_end:
        times.append(current.time())
        current += increment

    return times


def iterate_matching_dates(day: Weekday, horizon_days: int, today: date) -> list[date]:
    if horizon_days < 0:
        raise ValidationError('Horizon must be zero or more days.')

    offset = (day.number - today.weekday()) % 7
    current = today + timedelta(days=offset)
    last_day = today + timedelta(days=horizon_days)

    dates: list[date] = []
    while current <= last_day:
        dates.append(current)
        current += timedelta(days=7)

    return dates


def generate_slots(availability: AvailabilityEntry, horizon_days: int, today: date | None = None) -> list[Slot]:
    today = today or date.today()
    slot_times = iterate_slot_times(availability.window.start, availability.window.end)
    if not slot_times:
        return []

    return [
        Slot(slot_date, slot_time)
        for slot_date in iterate_matching_dates(availability.day, horizon_days, today)
        for slot_time in slot_times
    ]


def generate_weekly_slots(
    availability: WeeklyAvailability,
    horizon_days: int,
    today: date | None = None,
) -> list[Slot]:
    today = today or date.today()
    slots: list[Slot] = []
    for entry in availability:
        slots.extend(generate_slots(entry, horizon_days, today))
    return sorted(slots)


def is_generated_slot(
    availability: WeeklyAvailability,
    slot_date: date,
    slot_time: time,
    horizon_days: int,
    today: date | None = None,
) -> bool:
    today = today or date.today()
    if slot_date < today or slot_date > today + timedelta(days=horizon_days):
        return False

    entry = availability.get(Weekday.of(slot_date))
    if entry is None:
        return False

    return slot_time in iterate_slot_times(entry.window.start, entry.window.end)
