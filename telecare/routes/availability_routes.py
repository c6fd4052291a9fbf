from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telecare.core import config
from telecare.models.doctor import Doctor
from telecare.routes.dependencies import database_unavailable, ensure_database_ready, get_db, to_http_exception
from telecare.scheduling import errors
from telecare.scheduling.availability import (
    AvailabilityEntry,
    WeeklyAvailability,
    format_clock_time,
    parse_clock_time,
    parse_weekday,
)
from telecare.scheduling.booking import get_booked_slot_starts, get_doctor
from telecare.scheduling.slots import SLOT_INCREMENT_MINUTES, generate_weekly_slots

router = APIRouter(tags=['availability'])


class AvailabilityWindowRequest(BaseModel):
    start_time: str
    end_time: str

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_clock_time(cls, value: str) -> str:
        try:
            return format_clock_time(parse_clock_time(value))
        except errors.ValidationError as exc:
            raise ValueError(exc.detail) from exc


class AddAvailabilityRequest(AvailabilityWindowRequest):
    day: str

    @field_validator('day')
    @classmethod
    def validate_day(cls, value: str) -> str:
        try:
            return parse_weekday(value).value
        except errors.ValidationError as exc:
            raise ValueError(exc.detail) from exc


class AvailabilityEntryResponse(BaseModel):
    day: str
    start_time: str
    end_time: str


class AvailabilityResponse(BaseModel):
    doctor_id: str
    entries: list[AvailabilityEntryResponse]
    message: str | None = None


class SlotResponse(BaseModel):
    date: date
    time: time
    day: str
    duration_minutes: int
    start_time: datetime
    end_time: datetime
    status: str
    is_available: bool
    is_booked: bool


def build_availability_response(doctor: Doctor, message: str | None = None) -> AvailabilityResponse:
    availability = WeeklyAvailability.from_timings(doctor.timings)
    return AvailabilityResponse(
        doctor_id=doctor.id,
        entries=[
            AvailabilityEntryResponse(
                day=entry.day.value,
                start_time=format_clock_time(entry.window.start),
                end_time=format_clock_time(entry.window.end),
            )
            for entry in availability
        ],
        message=message,
    )


def save_availability(db: Session, doctor: Doctor, availability: WeeklyAvailability) -> Doctor:
    try:
        doctor.timings = availability.to_timings()
        doctor.updated_at = datetime.now()
        db.commit()
        db.refresh(doctor)
        return doctor
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{doctor_id}/availability', response_model=AvailabilityResponse)
def get_availability(doctor_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return build_availability_response(get_doctor(db, doctor_id))
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/{doctor_id}/availability', response_model=AvailabilityResponse, status_code=status.HTTP_201_CREATED)
def add_availability(doctor_id: str, data: AddAvailabilityRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        doctor = get_doctor(db, doctor_id)
        entry = AvailabilityEntry.parse(data.day, data.start_time, data.end_time)
        availability = WeeklyAvailability.from_timings(doctor.timings).add(entry)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    doctor = save_availability(db, doctor, availability)
    return build_availability_response(doctor, message=f'Schedule for {entry.day.value} has been saved successfully.')


@router.put('/{doctor_id}/availability/{day}', response_model=AvailabilityResponse)
def edit_availability(doctor_id: str, day: str, data: AvailabilityWindowRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        doctor = get_doctor(db, doctor_id)
        entry = AvailabilityEntry.parse(day, data.start_time, data.end_time)
        availability = WeeklyAvailability.from_timings(doctor.timings).edit(entry)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    doctor = save_availability(db, doctor, availability)
    return build_availability_response(doctor, message=f'Schedule for {entry.day.value} has been updated successfully.')


@router.delete('/{doctor_id}/availability/{day}', response_model=AvailabilityResponse)
def remove_availability(doctor_id: str, day: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        doctor = get_doctor(db, doctor_id)
        weekday = parse_weekday(day)
        availability = WeeklyAvailability.from_timings(doctor.timings).remove(weekday)
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    doctor = save_availability(db, doctor, availability)
    return build_availability_response(doctor, message=f'Schedule for {weekday.value} has been deleted successfully.')


@router.get('/{doctor_id}/slots', response_model=list[SlotResponse])
def list_doctor_slots(
    doctor_id: str,
    days: int = Query(default=config.BOOKING_HORIZON_DAYS, ge=0, le=config.BOOKING_HORIZON_DAYS),
    include_booked: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        doctor = get_doctor(db, doctor_id)
        today = date.today()
        availability = WeeklyAvailability.from_timings(doctor.timings)
        slots = generate_weekly_slots(availability, days, today)
        booked_starts = get_booked_slot_starts(db, doctor_id, today, today + timedelta(days=days))
    except errors.SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    slot_responses: list[SlotResponse] = []
    for slot in slots:
        is_booked = slot.start in booked_starts
        if is_booked and not include_booked:
            continue
        slot_responses.append(
            SlotResponse(
                date=slot.date,
                time=slot.time,
                day=slot.day.value,
                duration_minutes=SLOT_INCREMENT_MINUTES,
                start_time=slot.start,
                end_time=slot.start + timedelta(minutes=SLOT_INCREMENT_MINUTES),
                status='booked' if is_booked else 'available',
                is_available=not is_booked,
                is_booked=is_booked,
            )
        )

    return slot_responses
