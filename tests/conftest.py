import os
from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('RETENTION_SWEEPER_ENABLED', 'false')
os.environ.setdefault('NOTIFICATION_SERVICE_URL', '')

from telecare.database import Base  # noqa: E402
from telecare.models.appointment import Appointment  # noqa: E402
from telecare.models.doctor import Doctor  # noqa: E402


class FakeDispatcher:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.calls: list[tuple[str, str, str]] = []

    def send_session_invite(self, patient_email: str, doctor_email: str, room_id: str) -> bool:
        self.calls.append((patient_email, doctor_email, room_id))
        return self.succeed


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=[Doctor.__table__, Appointment.__table__])

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, Doctor.__table__])


@pytest.fixture
def doctor(db):
    record = Doctor(
        id='doc-1',
        name='Dr. Amara Perera',
        email='amara@clinic.example',
        specialty='General Medicine',
        verification_status='approved',
        timings={'Monday': {'day': 'Monday', 'startTime': '09:00', 'endTime': '10:00'}},
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def failing_dispatcher():
    return FakeDispatcher(succeed=False)


@pytest.fixture
def make_appointment(db):
    def _make_appointment(appointment_id: str, slot_date: date, slot_time: time = time(9, 0), **overrides):
        values = {
            'id': appointment_id,
            'doctor_id': 'doc-1',
            'patient_email': 'patient@example.com',
            'selected_date': slot_date,
            'selected_time': slot_time,
            'selected_day': slot_date.strftime('%A'),
            'status': 'pending',
        }
        values.update(overrides)
        appointment = Appointment(**values)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment
