"""Doctor model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, JSON, String
from telecare.database import Base


VERIFICATION_PENDING = 'pending'
VERIFICATION_APPROVED = 'approved'
VERIFICATION_REJECTED = 'rejected'
VERIFICATION_STATUSES = (VERIFICATION_PENDING, VERIFICATION_APPROVED, VERIFICATION_REJECTED)


class Doctor(Base):
    """Represents a doctor profile and its weekly availability."""
    __tablename__ = "doctors"

    id = Column(String, primary_key=True)
    name = Column(String)
    email = Column(String, index=True)
    specialty = Column(String)
    verification_status = Column(String, default=VERIFICATION_PENDING, nullable=False)
    # Day-keyed map: {"Monday": {"day": "Monday", "startTime": "09:00", "endTime": "17:00"}}
    timings = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
