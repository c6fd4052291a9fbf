import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from telecare.core import config
from telecare.database import Base, engine, ensure_appointment_schema, ensure_doctor_schema
from telecare.jobs.scheduler import get_retention_sweeper
from telecare.models import appointment, doctor  # noqa: F401
from telecare.routes import appointment_routes, availability_routes, doctor_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

app = FastAPI(title='TeleCare Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_doctor_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.on_event('startup')
def start_retention_sweeper() -> None:
    if not config.RETENTION_SWEEPER_ENABLED:
        logger.info('RetentionSweeper is disabled, skipping start')
        return
    get_retention_sweeper().start()


@app.on_event('shutdown')
def stop_retention_sweeper() -> None:
    get_retention_sweeper().shutdown()


@app.get('/')
def root():
    return {'status': 'TeleCare Scheduling API Running'}


app.include_router(doctor_routes.router, prefix='/doctors')
app.include_router(availability_routes.router, prefix='/doctors')
app.include_router(appointment_routes.router, prefix='/appointments')
