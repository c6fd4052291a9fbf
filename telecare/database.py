from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from telecare.core import config


DATABASE_URL = config.DATABASE_URL

if DATABASE_URL.startswith("sqlite"):
    # The retention sweeper runs on a scheduler thread.
    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
else:
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_doctor_schema_checked = False
_appointment_schema_checked = False


def ensure_doctor_schema() -> None:
    global _doctor_schema_checked

    if _doctor_schema_checked:
        return

    with _schema_lock:
        if _doctor_schema_checked:
            return

        inspector = inspect(engine)

        if 'doctors' not in inspector.get_table_names():
            _doctor_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('doctors')}
        migration_steps = [
            ('specialty', 'ALTER TABLE doctors ADD COLUMN specialty VARCHAR'),
            ('verification_status', "ALTER TABLE doctors ADD COLUMN verification_status VARCHAR DEFAULT 'pending'"),
            ('timings', 'ALTER TABLE doctors ADD COLUMN timings JSON'),
            ('updated_at', 'ALTER TABLE doctors ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_doctors_verification ON doctors(verification_status)')
            )

        _doctor_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('room_id', 'ALTER TABLE appointments ADD COLUMN room_id VARCHAR'),
            ('meeting_invite_sent', 'ALTER TABLE appointments ADD COLUMN meeting_invite_sent BOOLEAN'),
            ('updated_by', 'ALTER TABLE appointments ADD COLUMN updated_by VARCHAR'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_selected_date ON appointments(selected_date)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_room_status ON appointments(room_id, status)')
            )

        _appointment_schema_checked = True
