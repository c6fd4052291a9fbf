"""Appointment status state machine.

``pending`` is the only state with outgoing transitions. Every write is a
conditional update keyed on the status the caller observed, so two actors
racing on the same appointment cannot both succeed.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telecare.core import config
from telecare.models.appointment import Appointment, AppointmentStatus
from telecare.models.doctor import Doctor
from telecare.scheduling.booking import normalize_email
from telecare.scheduling.errors import (
    InvalidTransition,
    NotFound,
    NotPermitted,
    RemoteUnavailable,
    RoomAllocationFailed,
    StaleState,
)

logger = logging.getLogger(__name__)

ROOM_ID_ALPHABET = string.ascii_uppercase + string.digits
MAX_ROOM_ID_ATTEMPTS = 5

TRANSITIONS: dict[AppointmentStatus, set[AppointmentStatus]] = {
    AppointmentStatus.pending: {
        AppointmentStatus.confirmed,
        AppointmentStatus.rejected,
        AppointmentStatus.cancelled,
    },
    AppointmentStatus.confirmed: set(),
    AppointmentStatus.rejected: set(),
    AppointmentStatus.cancelled: set(),
}


class InviteDispatcher(Protocol):
    def send_session_invite(self, patient_email: str, doctor_email: str, room_id: str) -> bool:
        ...


@dataclass
class ApprovalResult:
    appointment: Appointment
    invite_sent: bool
    warning: str | None = None

    @property
    def message(self) -> str:
        message = f'Appointment approved, room {self.appointment.room_id} created.'
        if self.invite_sent:
            return f'{message} Meeting invite sent to patient email.'
        return f'{message} Could not send meeting invite email.'


def can_transition(current: str, target: AppointmentStatus) -> bool:
    try:
        source = AppointmentStatus(current)
    except ValueError:
        return False
    return target in TRANSITIONS[source]


def ensure_transition(appointment: Appointment, target: AppointmentStatus) -> None:
    if not can_transition(appointment.status, target):
        logger.warning(
            'Rejected transition of %s from %s to %s',
            appointment.id,
            appointment.status,
            target.value,
        )
        raise InvalidTransition(
            f'This appointment is already {appointment.status} and can no longer be {_past_tense(target)}.'
        )


def _past_tense(target: AppointmentStatus) -> str:
    return {
        AppointmentStatus.confirmed: 'approved',
        AppointmentStatus.rejected: 'rejected',
        AppointmentStatus.cancelled: 'cancelled',
    }.get(target, target.value)


def get_appointment(db: Session, appointment_id: str) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise NotFound('Appointment not found.')
    return appointment


def generate_room_id(length: int | None = None) -> str:
    length = length or config.ROOM_ID_LENGTH
    return ''.join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(length))


def allocate_room_id(db: Session) -> str:
    for _ in range(MAX_ROOM_ID_ATTEMPTS):
        candidate = generate_room_id()
        in_use = db.query(Appointment.id).filter(
            Appointment.room_id == candidate,
            Appointment.status == AppointmentStatus.confirmed.value,
        ).first()
        if in_use is None:
            return candidate
        logger.info('Room id %s already open, drawing another', candidate)
    raise RoomAllocationFailed()


def _conditional_update(
    db: Session,
    appointment: Appointment,
    expected: AppointmentStatus,
    values: dict,
) -> Appointment:
    try:
        updated_rows = db.query(Appointment).filter(
            Appointment.id == appointment.id,
            Appointment.status == expected.value,
        ).update(values, synchronize_session=False)

        if updated_rows == 0:
            db.rollback()
            raise StaleState()

        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise RemoteUnavailable() from exc

    db.refresh(appointment)
    return appointment


def _transition(
    db: Session,
    appointment: Appointment,
    target: AppointmentStatus,
    actor: str,
    now: datetime,
    extra: dict | None = None,
    expected: AppointmentStatus | None = None,
) -> Appointment:
    if expected is None:
        ensure_transition(appointment, target)
        expected = AppointmentStatus(appointment.status)
    values = {
        Appointment.status: target.value,
        Appointment.updated_at: now,
        Appointment.updated_by: actor,
        **(extra or {}),
    }
    appointment = _conditional_update(db, appointment, expected, values)
    logger.info('Appointment %s is now %s (by %s)', appointment.id, target.value, actor)
    return appointment


def _ensure_doctor_owns(appointment: Appointment, doctor_id: str) -> None:
    if appointment.doctor_id != doctor_id:
        raise NotPermitted('Only the doctor this appointment was booked with can change it.')


def approve_appointment(
    db: Session,
    appointment_id: str,
    doctor_id: str,
    dispatcher: InviteDispatcher,
    now: datetime | None = None,
) -> ApprovalResult:
    """Confirm a pending appointment, open a room for it and invite the patient.

    The confirmation stands once the status write commits; an invite that
    cannot be delivered only produces a warning on the result.
    """
    now = now or datetime.now()
    appointment = get_appointment(db, appointment_id)
    _ensure_doctor_owns(appointment, doctor_id)
    ensure_transition(appointment, AppointmentStatus.confirmed)
    observed = AppointmentStatus(appointment.status)

    room_id = allocate_room_id(db)
    appointment = _transition(
        db,
        appointment,
        AppointmentStatus.confirmed,
        actor=doctor_id,
        now=now,
        extra={Appointment.room_id: room_id, Appointment.meeting_invite_sent: False},
        expected=observed,
    )

    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    doctor_email = doctor.email if doctor else None
    if appointment.patient_email and doctor_email:
        invite_sent = dispatcher.send_session_invite(appointment.patient_email, doctor_email, room_id)
    else:
        logger.warning('Missing email addresses for invite of %s', appointment.id)
        invite_sent = False

    warning = None if invite_sent else 'Could not send meeting invite email.'
    if invite_sent:
        try:
            appointment.meeting_invite_sent = True
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception('Could not record invite delivery for %s', appointment.id)
            warning = 'Meeting invite sent, but its delivery could not be recorded.'

    return ApprovalResult(appointment=appointment, invite_sent=invite_sent, warning=warning)


def reject_appointment(
    db: Session,
    appointment_id: str,
    doctor_id: str,
    now: datetime | None = None,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _ensure_doctor_owns(appointment, doctor_id)
    return _transition(db, appointment, AppointmentStatus.rejected, actor=doctor_id, now=now or datetime.now())


def cancel_appointment(
    db: Session,
    appointment_id: str,
    patient_email: str,
    now: datetime | None = None,
) -> Appointment:
    patient_email = normalize_email(patient_email)
    appointment = get_appointment(db, appointment_id)
    if appointment.patient_email != patient_email:
        raise NotPermitted('Only the patient who booked this appointment can cancel it.')
    return _transition(
        db,
        appointment,
        AppointmentStatus.cancelled,
        actor=patient_email,
        now=now or datetime.now(),
    )
