"""Weekly availability of a doctor.

A doctor declares at most one working window per weekday. The windows are
stored on the doctor record as a day-keyed ``timings`` object, and every
change is written back as a single merge-patch of that object.
"""

import enum
from dataclasses import dataclass
from datetime import date, datetime, time

from telecare.scheduling.errors import ValidationError


CLOCK_FORMAT = '%H:%M'


class Weekday(str, enum.Enum):
    monday = 'Monday'
    tuesday = 'Tuesday'
    wednesday = 'Wednesday'
    thursday = 'Thursday'
    friday = 'Friday'
    saturday = 'Saturday'
    sunday = 'Sunday'

    @property
    def number(self) -> int:
        """Python weekday number (Monday == 0)."""
        return WEEKDAYS.index(self)

    @classmethod
    def of(cls, value: date) -> 'Weekday':
        return WEEKDAYS[value.weekday()]


WEEKDAYS = list(Weekday)


def parse_weekday(name: str) -> Weekday:
    normalized = (name or '').strip().lower()
    for weekday in WEEKDAYS:
        if weekday.value.lower() == normalized:
            return weekday
    raise ValidationError(f'Unknown day "{name}". Use a weekday name such as Monday.')


def parse_clock_time(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    try:
        return datetime.strptime((value or '').strip(), CLOCK_FORMAT).time()
    except ValueError as exc:
        raise ValidationError(f'Invalid time "{value}". Use 24-hour HH:MM.') from exc


def format_clock_time(value: time) -> str:
    return value.strftime(CLOCK_FORMAT)


@dataclass(frozen=True)
class TimeWindow:
    start: time
    end: time

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    def validate(self) -> 'TimeWindow':
        if self.is_empty:
            raise ValidationError('End time must be after start time.')
        return self


@dataclass(frozen=True)
class AvailabilityEntry:
    day: Weekday
    window: TimeWindow

    @classmethod
    def parse(cls, day: str, start_time: str | time, end_time: str | time) -> 'AvailabilityEntry':
        return cls(
            day=parse_weekday(day),
            window=TimeWindow(parse_clock_time(start_time), parse_clock_time(end_time)),
        )

    def to_timing(self) -> dict:
        return {
            'day': self.day.value,
            'startTime': format_clock_time(self.window.start),
            'endTime': format_clock_time(self.window.end),
        }


class WeeklyAvailability:
    """Value object mapping each weekday to at most one working window."""

    def __init__(self, entries: dict[Weekday, AvailabilityEntry] | None = None):
        self._entries: dict[Weekday, AvailabilityEntry] = dict(entries or {})

    @classmethod
    def from_timings(cls, timings: dict | None) -> 'WeeklyAvailability':
        entries: dict[Weekday, AvailabilityEntry] = {}
        for day, timing in (timings or {}).items():
            if not isinstance(timing, dict):
                raise ValidationError(f'Malformed availability for "{day}".')
            entry = AvailabilityEntry.parse(day, timing.get('startTime'), timing.get('endTime'))
            entries[entry.day] = entry
        return cls(entries)

    def to_timings(self) -> dict:
        return {entry.day.value: entry.to_timing() for entry in self}

    def __iter__(self):
        return iter(sorted(self._entries.values(), key=lambda entry: entry.day.number))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, day: Weekday) -> bool:
        return day in self._entries

    def get(self, day: Weekday) -> AvailabilityEntry | None:
        return self._entries.get(day)

    def add(self, entry: AvailabilityEntry) -> 'WeeklyAvailability':
        entry.window.validate()
        if entry.day in self._entries:
            raise ValidationError(
                f'{entry.day.value} already has working hours. Edit the existing window instead.'
            )
        return WeeklyAvailability({**self._entries, entry.day: entry})

    def edit(self, entry: AvailabilityEntry) -> 'WeeklyAvailability':
        entry.window.validate()
        if entry.day not in self._entries:
            raise ValidationError(f'{entry.day.value} has no working hours to edit.')
        return WeeklyAvailability({**self._entries, entry.day: entry})

    def remove(self, day: Weekday) -> 'WeeklyAvailability':
        if day not in self._entries:
            raise ValidationError(f'{day.value} has no working hours to remove.')
        entries = dict(self._entries)
        del entries[day]
        return WeeklyAvailability(entries)
