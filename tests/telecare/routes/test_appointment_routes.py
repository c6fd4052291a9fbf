from datetime import date, datetime, time, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from telecare.jobs.scheduler import RetentionSweeper
from telecare.routes.appointment_routes import (
    CreateAppointmentRequest,
    SessionRequest,
    approve,
    cancel,
    create_appointment,
    get_join_status,
    list_scoped_appointments,
    reject,
    run_retention_sweep,
    start_session,
)


@pytest.fixture(autouse=True)
def skip_schema_check(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('telecare.routes.appointment_routes.ensure_database_ready', lambda: None)


def upcoming_monday() -> date:
    today = date.today()
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


def test_create_appointment_request_normalizes_fields() -> None:
    request = CreateAppointmentRequest(
        doctor_id='doc-1',
        patient_email=' PATIENT@EXAMPLE.COM ',
        selected_date=date(2026, 1, 5),
        selected_time=time(9, 15, 30),
    )

    assert request.patient_email == 'patient@example.com'
    assert request.selected_time == time(9, 15)


def test_create_appointment_request_rejects_blank_email() -> None:
    with pytest.raises(ValidationError):
        CreateAppointmentRequest(
            doctor_id='doc-1',
            patient_email='   ',
            selected_date=date(2026, 1, 5),
            selected_time=time(9, 0),
        )


def test_session_request_requires_display_name() -> None:
    with pytest.raises(ValidationError):
        SessionRequest(display_name='  ')


def test_create_appointment_returns_pending_booking(db, doctor) -> None:
    monday = upcoming_monday()
    request = CreateAppointmentRequest(
        doctor_id='doc-1',
        patient_email='patient@example.com',
        selected_date=monday,
        selected_time=time(9, 15),
    )

    response = create_appointment(request, db=db)

    assert response.appointment.status == 'pending'
    assert response.appointment.room_id is None
    assert 'Awaiting doctor approval.' in response.message
    assert '09:15' in response.message


def test_create_appointment_conflict_is_409(db, doctor) -> None:
    monday = upcoming_monday()
    request = CreateAppointmentRequest(
        doctor_id='doc-1',
        patient_email='patient@example.com',
        selected_date=monday,
        selected_time=time(9, 0),
    )
    create_appointment(request, db=db)

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(request.model_copy(update={'patient_email': 'other@example.com'}), db=db)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'This time is already booked. Please choose another time.'


def test_create_appointment_outside_availability_is_400(db, doctor) -> None:
    request = CreateAppointmentRequest(
        doctor_id='doc-1',
        patient_email='patient@example.com',
        selected_date=upcoming_monday(),
        selected_time=time(10, 0),
    )

    with pytest.raises(HTTPException) as exception_info:
        create_appointment(request, db=db)

    assert exception_info.value.status_code == 400


def test_list_appointments_requires_a_scope(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_scoped_appointments(doctor_id=None, patient_email='  ', db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Provide a doctor_id or a patient_email.'


def test_list_appointments_for_patient(db, doctor, make_appointment) -> None:
    make_appointment('a1', upcoming_monday())
    make_appointment('a2', upcoming_monday(), time(9, 15), patient_email='someone@example.com')

    appointments = list_scoped_appointments(doctor_id=None, patient_email='patient@example.com', db=db)

    assert [appointment.id for appointment in appointments] == ['a1']


def test_approve_reports_room_and_invite_warning(db, doctor, make_appointment, failing_dispatcher) -> None:
    make_appointment('a1', upcoming_monday())

    response = approve('a1', doctor_id='doc-1', db=db, dispatcher=failing_dispatcher)

    room_id = response.appointment.room_id
    assert response.appointment.status == 'confirmed'
    assert response.message.startswith(f'Appointment approved, room {room_id} created.')
    assert response.warning == 'Could not send meeting invite email.'


def test_approve_twice_is_409(db, doctor, make_appointment, dispatcher) -> None:
    make_appointment('a1', upcoming_monday())
    approve('a1', doctor_id='doc-1', db=db, dispatcher=dispatcher)

    with pytest.raises(HTTPException) as exception_info:
        approve('a1', doctor_id='doc-1', db=db, dispatcher=dispatcher)

    assert exception_info.value.status_code == 409


def test_approve_by_other_doctor_is_403(db, doctor, make_appointment, dispatcher) -> None:
    make_appointment('a1', upcoming_monday())

    with pytest.raises(HTTPException) as exception_info:
        approve('a1', doctor_id='doc-9', db=db, dispatcher=dispatcher)

    assert exception_info.value.status_code == 403


def test_reject_missing_appointment_is_404(db, doctor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        reject('missing', doctor_id='doc-1', db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found.'


def test_reject_returns_confirmation_message(db, doctor, make_appointment) -> None:
    make_appointment('a1', upcoming_monday())

    response = reject('a1', doctor_id='doc-1', db=db)

    assert response.appointment.status == 'rejected'
    assert response.message == 'Appointment rejected successfully.'


def test_cancel_rejects_blank_patient_email(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        cancel('a1', patient_email='   ', db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Patient email is required.'


def test_cancel_rejects_non_owner(db, doctor, make_appointment) -> None:
    make_appointment('a1', upcoming_monday())

    with pytest.raises(HTTPException) as exception_info:
        cancel('a1', patient_email='other@example.com', db=db)

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Only the patient who booked this appointment can cancel it.'


def test_cancel_by_owner(db, doctor, make_appointment) -> None:
    make_appointment('a1', upcoming_monday())

    response = cancel('a1', patient_email='patient@example.com', db=db)

    assert response.appointment.status == 'cancelled'
    assert response.message == 'Appointment cancelled successfully.'


def test_join_status_for_future_appointment(db, doctor, make_appointment) -> None:
    make_appointment('a1', upcoming_monday(), status='confirmed', room_id='ABC123')

    response = get_join_status('a1', db=db)

    assert response.can_join is False
    assert response.available_in.startswith('Available in ')
    assert response.opens_at == datetime.combine(upcoming_monday(), time(8, 50))


def test_start_session_refused_outside_window(db, doctor, make_appointment) -> None:
    make_appointment('a1', upcoming_monday(), status='confirmed', room_id='ABC123')

    with pytest.raises(HTTPException) as exception_info:
        start_session('a1', SessionRequest(display_name='Pat'), db=db)

    assert exception_info.value.status_code == 403


def test_start_session_hands_off_room_inside_window(db, doctor, make_appointment) -> None:
    soon = datetime.now() + timedelta(minutes=5)
    start = soon.replace(second=0, microsecond=0)
    if start.date() != datetime.now().date():
        pytest.skip('join window straddles midnight')
    make_appointment('a1', start.date(), start.time(), status='confirmed', room_id='ABC123')

    response = start_session('a1', SessionRequest(display_name='Pat', user_id='user_1'), db=db)

    assert response.room_id == 'ABC123'
    assert response.display_name == 'Pat'
    assert response.user_id == 'user_1'


def test_run_retention_sweep_reports_count_and_notifies_listeners(db, doctor, make_appointment) -> None:
    make_appointment('old', date.today() - timedelta(days=1))
    make_appointment('new', date.today())
    notified: list[list[str]] = []
    sweeper = RetentionSweeper(session_factory=lambda: db)
    sweeper.add_listener(notified.append)

    response = run_retention_sweep(db=db, sweeper=sweeper)

    assert response.deleted == 1
    assert response.failed == 0
    assert response.message == 'Cleaned up 1 expired appointments.'
    assert notified == [['old']]
