"""Background retention sweeper.

Runs the expired-appointment sweep once a day at a fixed local time, plus
once shortly after startup.
"""

import logging
import threading
from datetime import date, datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from telecare.core import config
from telecare.database import SessionLocal
from telecare.scheduling.retention import SweepResult, sweep_expired_appointments

logger = logging.getLogger(__name__)

DAILY_SWEEP_JOB_ID = 'daily_retention_sweep'
STARTUP_SWEEP_JOB_ID = 'startup_retention_sweep'

PurgeListener = Callable[[list[str]], None]


class RetentionSweeper:
    def __init__(
        self,
        session_factory=SessionLocal,
        hour: int | None = None,
        minute: int | None = None,
        startup_delay_seconds: int | None = None,
        timezone: str | None = None,
    ):
        self.session_factory = session_factory
        self.hour = config.RETENTION_SWEEP_HOUR if hour is None else hour
        self.minute = config.RETENTION_SWEEP_MINUTE if minute is None else minute
        self.startup_delay_seconds = (
            config.RETENTION_STARTUP_DELAY_SECONDS if startup_delay_seconds is None else startup_delay_seconds
        )
        self.timezone = timezone or config.SCHEDULER_TIMEZONE

        self._listeners: list[PurgeListener] = []
        self._stop_event = threading.Event()
        self._scheduler: BackgroundScheduler | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def add_listener(self, listener: PurgeListener) -> None:
        """Called with the purged appointment ids after a sweep deletes anything."""
        self._listeners.append(listener)

    def now(self) -> datetime:
        """Current time in the scheduler's timezone, or naive local time when none is set."""
        if self.timezone:
            return datetime.now(ZoneInfo(self.timezone))
        return datetime.now()

    def today(self) -> date:
        return self.now().date()

    def run_once(self, today: date | None = None) -> SweepResult:
        db = self.session_factory()
        try:
            return self.purge(db, today=today)
        except SQLAlchemyError:
            logger.exception('Retention sweep could not read appointments')
            return SweepResult()
        finally:
            db.close()

    def purge(self, db: Session, today: date | None = None) -> SweepResult:
        """Sweep with the caller's session and notify listeners of anything deleted."""
        result = sweep_expired_appointments(db, today=today or self.today(), stop_event=self._stop_event)

        if result.failed:
            logger.warning('Retention sweep left %d appointments undeleted', len(result.failed))

        if result.deleted:
            for listener in self._listeners:
                try:
                    listener(list(result.deleted))
                except Exception:
                    logger.exception('Retention purge listener failed')

        return result

    def build_scheduler(self) -> BackgroundScheduler:
        scheduler = BackgroundScheduler(timezone=self.timezone) if self.timezone else BackgroundScheduler()
        scheduler.add_job(
            self.run_once,
            CronTrigger(hour=self.hour, minute=self.minute, timezone=self.timezone),
            id=DAILY_SWEEP_JOB_ID,
            replace_existing=True,
            name='Daily expired appointment cleanup',
        )
        scheduler.add_job(
            self.run_once,
            DateTrigger(
                run_date=self.now() + timedelta(seconds=self.startup_delay_seconds),
                timezone=self.timezone,
            ),
            id=STARTUP_SWEEP_JOB_ID,
            replace_existing=True,
            name='Startup expired appointment cleanup',
        )
        return scheduler

    def start(self) -> None:
        if self.is_running:
            logger.warning('RetentionSweeper already running')
            return

        self._stop_event.clear()
        self._scheduler = self.build_scheduler()
        self._scheduler.start()
        logger.info('RetentionSweeper started (daily at %02d:%02d)', self.hour, self.minute)

    def shutdown(self) -> None:
        self._stop_event.set()
        if self.is_running:
            self._scheduler.shutdown(wait=False)
            logger.info('RetentionSweeper stopped')
        self._scheduler = None


_default_sweeper: RetentionSweeper | None = None


def get_retention_sweeper() -> RetentionSweeper:
    global _default_sweeper
    if _default_sweeper is None:
        _default_sweeper = RetentionSweeper()
    return _default_sweeper
