import logging
import threading
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telecare.models.appointment import Appointment
from telecare.scheduling.booking import normalize_email

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    stopped: bool = False


def find_expired_appointment_ids(
    db: Session,
    today: date,
    doctor_id: str | None = None,
    patient_email: str | None = None,
) -> list[str]:
    query = db.query(Appointment.id).filter(Appointment.selected_date < today)
    if doctor_id:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if patient_email:
        query = query.filter(Appointment.patient_email == normalize_email(patient_email))
    return [appointment_id for (appointment_id,) in query.order_by(Appointment.selected_date.asc()).all()]


def sweep_expired_appointments(
    db: Session,
    today: date | None = None,
    doctor_id: str | None = None,
    patient_email: str | None = None,
    stop_event: threading.Event | None = None,
) -> SweepResult:
    """Hard-delete every appointment dated before ``today``, whatever its status.

    Each delete commits on its own so one failure does not stop the rest.
    """
    today = today or date.today()
    result = SweepResult()

    for appointment_id in find_expired_appointment_ids(db, today, doctor_id, patient_email):
        if stop_event is not None and stop_event.is_set():
            result.stopped = True
            logger.info('Retention sweep stopped before %s', appointment_id)
            break

        try:
            db.query(Appointment).filter(Appointment.id == appointment_id).delete(synchronize_session=False)
            db.commit()
            result.deleted.append(appointment_id)
        except SQLAlchemyError:
            db.rollback()
            result.failed.append(appointment_id)
            logger.exception('Could not delete expired appointment %s', appointment_id)

    if result.deleted:
        logger.info('Cleaned up %d expired appointments', len(result.deleted))

    return result
