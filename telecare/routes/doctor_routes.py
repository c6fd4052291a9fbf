from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telecare.models.doctor import Doctor, VERIFICATION_APPROVED, VERIFICATION_PENDING, VERIFICATION_STATUSES
from telecare.routes.dependencies import database_unavailable, ensure_database_ready, get_db

router = APIRouter(tags=['doctors'])


class UpsertDoctorRequest(BaseModel):
    name: str
    email: str
    specialty: str | None = None
    verification_status: str = VERIFICATION_PENDING

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Doctor name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid doctor email is required.')
        return normalized

    @field_validator('verification_status')
    @classmethod
    def validate_verification_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in VERIFICATION_STATUSES:
            raise ValueError('Invalid verification status.')
        return normalized


class DoctorResponse(BaseModel):
    id: str
    name: str | None = None
    email: str | None = None
    specialty: str | None = None
    verification_status: str
    timings: dict | None = None

    class Config:
        from_attributes = True


@router.put('/{doctor_id}', response_model=DoctorResponse)
def upsert_doctor(doctor_id: str, data: UpsertDoctorRequest, db: Session = Depends(get_db)):
    """Store a doctor record provisioned by the external verification flow."""
    ensure_database_ready()

    try:
        doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if doctor is None:
            doctor = Doctor(id=doctor_id, timings={})
            db.add(doctor)

        doctor.name = data.name
        doctor.email = data.email
        doctor.specialty = data.specialty
        doctor.verification_status = data.verification_status
        doctor.updated_at = datetime.now()

        db.commit()
        db.refresh(doctor)
        return doctor
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('', response_model=list[DoctorResponse])
def list_doctors(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Doctor).filter(
            Doctor.verification_status == VERIFICATION_APPROVED,
        ).order_by(Doctor.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{doctor_id}', response_model=DoctorResponse)
def get_doctor_profile(doctor_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if doctor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Doctor not found.',
        )

    return doctor
