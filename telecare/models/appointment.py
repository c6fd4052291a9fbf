"""Appointment model definitions."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, String, Time, text
from telecare.database import Base


class AppointmentStatus(str, enum.Enum):
    pending = 'pending'
    confirmed = 'confirmed'
    rejected = 'rejected'
    cancelled = 'cancelled'


LIVE_STATUSES = (AppointmentStatus.pending.value, AppointmentStatus.confirmed.value)
_LIVE_STATUS_CLAUSE = "status IN ('pending', 'confirmed')"


class Appointment(Base):
    """Represents a booking of one doctor slot by one patient."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            'uq_appointments_live_slot',
            'doctor_id',
            'selected_date',
            'selected_time',
            unique=True,
            postgresql_where=text(_LIVE_STATUS_CLAUSE),
            sqlite_where=text(_LIVE_STATUS_CLAUSE),
        ),
    )

    id = Column(String, primary_key=True)
    doctor_id = Column(String, ForeignKey("doctors.id"), index=True, nullable=False)
    patient_email = Column(String, index=True, nullable=False)
    selected_date = Column(Date, nullable=False)
    selected_time = Column(Time, nullable=False)
    selected_day = Column(String)
    status = Column(String, default=AppointmentStatus.pending.value, nullable=False)
    room_id = Column(String)
    meeting_invite_sent = Column(Boolean)
    updated_by = Column(String)
    booked_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime)
