import logging
from datetime import date, datetime, time
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from telecare.core import config
from telecare.models.appointment import Appointment, AppointmentStatus, LIVE_STATUSES
from telecare.models.doctor import Doctor, VERIFICATION_APPROVED
from telecare.scheduling.availability import Weekday, WeeklyAvailability
from telecare.scheduling.errors import NotFound, RemoteUnavailable, SlotAlreadyTaken, ValidationError
from telecare.scheduling.slots import is_generated_slot

logger = logging.getLogger(__name__)


def normalize_email(value: str | None) -> str:
    normalized = (value or '').strip().lower()
    if not normalized or '@' not in normalized:
        raise ValidationError('A valid patient email is required.')
    return normalized


def new_appointment_id() -> str:
    return f'appointment_{uuid4().hex}'


def get_doctor(db: Session, doctor_id: str) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if doctor is None:
        raise NotFound('Doctor not found.')
    return doctor


def find_live_appointment(db: Session, doctor_id: str, slot_date: date, slot_time: time) -> Appointment | None:
    return db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.selected_date == slot_date,
        Appointment.selected_time == slot_time,
        Appointment.status.in_(LIVE_STATUSES),
    ).first()


def get_booked_slot_starts(db: Session, doctor_id: str, start_date: date, end_date: date) -> set[datetime]:
    rows = db.query(Appointment.selected_date, Appointment.selected_time).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.selected_date >= start_date,
        Appointment.selected_date <= end_date,
        Appointment.status.in_(LIVE_STATUSES),
    ).all()
    return {datetime.combine(slot_date, slot_time) for slot_date, slot_time in rows}


def book_slot(
    db: Session,
    doctor_id: str,
    patient_email: str,
    slot_date: date,
    slot_time: time,
    now: datetime | None = None,
) -> Appointment:
    """Create a pending appointment for one generated slot of a doctor.

    Raises ValidationError when the slot is not one the doctor currently
    offers, and SlotAlreadyTaken when a pending or confirmed appointment
    already holds it.
    """
    now = now or datetime.now()
    patient_email = normalize_email(patient_email)
    slot_time = slot_time.replace(second=0, microsecond=0)

    doctor = get_doctor(db, doctor_id)
    if doctor.verification_status != VERIFICATION_APPROVED:
        raise ValidationError('This doctor is not accepting appointments yet.')

    availability = WeeklyAvailability.from_timings(doctor.timings)
    if not is_generated_slot(availability, slot_date, slot_time, config.BOOKING_HORIZON_DAYS, now.date()):
        raise ValidationError('This time is not offered by the doctor. Refresh the available slots.')

    if find_live_appointment(db, doctor_id, slot_date, slot_time):
        raise SlotAlreadyTaken()

    appointment = Appointment(
        id=new_appointment_id(),
        doctor_id=doctor_id,
        patient_email=patient_email,
        selected_date=slot_date,
        selected_time=slot_time,
        selected_day=Weekday.of(slot_date).value,
        status=AppointmentStatus.pending.value,
        booked_at=now,
        updated_at=now,
    )

    try:
        db.add(appointment)
        db.commit()
    except IntegrityError as exc:
        # Another booking for the same slot committed after our pre-check.
        db.rollback()
        raise SlotAlreadyTaken() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise RemoteUnavailable() from exc

    db.refresh(appointment)
    logger.info('Booked %s for doctor %s at %s %s', appointment.id, doctor_id, slot_date, slot_time)
    return appointment


def list_appointments(
    db: Session,
    doctor_id: str | None = None,
    patient_email: str | None = None,
) -> list[Appointment]:
    query = db.query(Appointment)
    if doctor_id:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if patient_email:
        query = query.filter(Appointment.patient_email == normalize_email(patient_email))
    return query.order_by(Appointment.booked_at.desc()).all()
