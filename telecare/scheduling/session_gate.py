"""Decides whether a confirmed appointment's video session may start now.

The gate opens ``JOIN_WINDOW_MINUTES`` before the appointment and closes at
the appointment instant. It holds no state and must be asked again on every
join attempt.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from telecare.core import config
from telecare.models.appointment import AppointmentStatus
from telecare.scheduling.errors import SessionNotJoinable


@dataclass(frozen=True)
class SessionHandoff:
    room_id: str
    display_name: str
    user_id: str


def appointment_instant(appointment) -> datetime:
    return datetime.combine(appointment.selected_date, appointment.selected_time)


def join_window_opens_at(appointment) -> datetime:
    return appointment_instant(appointment) - timedelta(minutes=config.JOIN_WINDOW_MINUTES)


def can_join(appointment, now: datetime | None = None) -> bool:
    now = now or datetime.now()
    if appointment.status != AppointmentStatus.confirmed.value or not appointment.room_id:
        return False

    instant = appointment_instant(appointment)
    if now.date() != instant.date():
        return False

    return join_window_opens_at(appointment) <= now <= instant


def time_until_joinable(appointment, now: datetime | None = None) -> timedelta | None:
    now = now or datetime.now()
    remaining = join_window_opens_at(appointment) - now
    if remaining <= timedelta(0):
        return None
    return remaining


def describe_time_until(remaining: timedelta) -> str:
    total_minutes = int(remaining.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f'Available in {hours}h {minutes}m'
    return f'Available in {minutes}m'


def session_handoff(
    appointment,
    display_name: str,
    user_id: str | None = None,
    now: datetime | None = None,
) -> SessionHandoff:
    now = now or datetime.now()
    if not can_join(appointment, now):
        remaining = time_until_joinable(appointment, now)
        if appointment.status == AppointmentStatus.confirmed.value and remaining is not None:
            raise SessionNotJoinable(f'{describe_time_until(remaining)}.')
        raise SessionNotJoinable('This session is not available.')

    return SessionHandoff(
        room_id=appointment.room_id,
        display_name=display_name.strip(),
        user_id=user_id or f'user_{int(now.timestamp() * 1000)}',
    )
