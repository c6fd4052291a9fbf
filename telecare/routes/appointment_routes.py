from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telecare.jobs.scheduler import RetentionSweeper, get_retention_sweeper
from telecare.routes.dependencies import database_unavailable, ensure_database_ready, get_db, to_http_exception
from telecare.scheduling import errors
from telecare.scheduling.booking import book_slot, list_appointments
from telecare.scheduling.lifecycle import (
    approve_appointment,
    cancel_appointment,
    get_appointment,
    reject_appointment,
)
from telecare.scheduling.session_gate import (
    can_join,
    describe_time_until,
    join_window_opens_at,
    session_handoff,
    time_until_joinable,
)
from telecare.services.notifications import NotificationDispatcher, get_notification_dispatcher

router = APIRouter(tags=['appointments'])

MAX_DISPLAY_NAME_LENGTH = 80


class CreateAppointmentRequest(BaseModel):
    doctor_id: str
    patient_email: str
    selected_date: date
    selected_time: time

    @field_validator('patient_email')
    @classmethod
    def validate_patient_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Patient email is required.')
        return normalized

    @field_validator('selected_time')
    @classmethod
    def validate_selected_time(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)


class AppointmentResponse(BaseModel):
    id: str
    doctor_id: str
    patient_email: str
    selected_date: date
    selected_time: time
    selected_day: str | None = None
    status: str
    room_id: str | None = None
    meeting_invite_sent: bool | None = None
    booked_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class AppointmentActionResponse(BaseModel):
    appointment: AppointmentResponse
    message: str
    warning: str | None = None


class JoinStatusResponse(BaseModel):
    appointment_id: str
    can_join: bool
    opens_at: datetime
    available_in: str | None = None


class SessionRequest(BaseModel):
    display_name: str
    user_id: str | None = None

    @field_validator('display_name')
    @classmethod
    def validate_display_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Please enter your name.')
        if len(normalized) > MAX_DISPLAY_NAME_LENGTH:
            raise ValueError(f'Name must be {MAX_DISPLAY_NAME_LENGTH} characters or fewer.')
        return normalized


class SessionHandoffResponse(BaseModel):
    room_id: str
    display_name: str
    user_id: str


class SweepResponse(BaseModel):
    deleted: int
    failed: int
    message: str


def action_response(appointment, message: str, warning: str | None = None) -> AppointmentActionResponse:
    return AppointmentActionResponse(
        appointment=AppointmentResponse.model_validate(appointment),
        message=message,
        warning=warning,
    )


@router.post('', response_model=AppointmentActionResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = book_slot(db, data.doctor_id, data.patient_email, data.selected_date, data.selected_time)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return action_response(
        appointment,
        message=(
            f'Appointment booked for {appointment.selected_day} {appointment.selected_date.isoformat()} '
            f'at {appointment.selected_time.strftime("%H:%M")}. Awaiting doctor approval.'
        ),
    )


@router.get('', response_model=list[AppointmentResponse])
def list_scoped_appointments(
    doctor_id: str | None = Query(default=None),
    patient_email: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    if not doctor_id and not (patient_email or '').strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Provide a doctor_id or a patient_email.',
        )

    ensure_database_ready()

    try:
        return list_appointments(db, doctor_id=doctor_id, patient_email=patient_email)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/sweep', response_model=SweepResponse)
def run_retention_sweep(
    db: Session = Depends(get_db),
    sweeper: RetentionSweeper = Depends(get_retention_sweeper),
):
    ensure_database_ready()

    try:
        result = sweeper.purge(db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return SweepResponse(
        deleted=len(result.deleted),
        failed=len(result.failed),
        message=f'Cleaned up {len(result.deleted)} expired appointments.',
    )


@router.post('/{appointment_id}/approve', response_model=AppointmentActionResponse)
def approve(
    appointment_id: str,
    doctor_id: str = Query(...),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    ensure_database_ready()

    try:
        result = approve_appointment(db, appointment_id, doctor_id, dispatcher)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return action_response(result.appointment, message=result.message, warning=result.warning)


@router.post('/{appointment_id}/reject', response_model=AppointmentActionResponse)
def reject(
    appointment_id: str,
    doctor_id: str = Query(...),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = reject_appointment(db, appointment_id, doctor_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return action_response(appointment, message='Appointment rejected successfully.')


@router.post('/{appointment_id}/cancel', response_model=AppointmentActionResponse)
def cancel(
    appointment_id: str,
    patient_email: str = Query(...),
    db: Session = Depends(get_db),
):
    if not patient_email.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Patient email is required.',
        )

    ensure_database_ready()

    try:
        appointment = cancel_appointment(db, appointment_id, patient_email)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return action_response(appointment, message='Appointment cancelled successfully.')


@router.get('/{appointment_id}/join-status', response_model=JoinStatusResponse)
def get_join_status(appointment_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment(db, appointment_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    now = datetime.now()
    remaining = time_until_joinable(appointment, now)
    return JoinStatusResponse(
        appointment_id=appointment.id,
        can_join=can_join(appointment, now),
        opens_at=join_window_opens_at(appointment),
        available_in=describe_time_until(remaining) if remaining is not None else None,
    )


@router.post('/{appointment_id}/session', response_model=SessionHandoffResponse)
def start_session(appointment_id: str, data: SessionRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment(db, appointment_id)
        handoff = session_handoff(appointment, data.display_name, user_id=data.user_id)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return SessionHandoffResponse(
        room_id=handoff.room_id,
        display_name=handoff.display_name,
        user_id=handoff.user_id,
    )
