"""
APScheduler integration: recurring FCC imports and in-process invocations
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Union
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.exc import SQLAlchemyError
from core.config import settings
from core.database import async_session_maker
from ingestion.dispatch import build_dispatcher
from ingestion.progress import PostgresProgressStore
from ingestion.runner import build_runner
from ingestion.settings_repository import load_schedule_settings
from models.base import DataType, JobStatus, JobSource
from schemas.fcc import ScheduleSettings

logger = logging.getLogger(__name__)

SCHEDULED_JOB_ID = "fcc_scheduled_import"

# Stored days use 0=Sunday; APScheduler's numeric days start on Monday
CRON_DAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


def epoch_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def cron_days(days: Iterable[int]) -> str:
    return ",".join(CRON_DAY_NAMES[d] for d in days)


def compute_next_run(
    days_of_week: Union[str, Iterable[int]],
    time_utc: str,
    now: Optional[datetime] = None
) -> Optional[datetime]:
    """
    Next run strictly after ``now`` on one of the given days (0=Sunday) at HH:MM UTC.

    Looks at most 7 days ahead, so today's slot that has already passed
    rolls over to the same weekday next week.
    """
    if not days_of_week or not time_utc:
        return None

    if isinstance(days_of_week, str):
        days = {int(d) for d in days_of_week.split(",") if d.strip()}
    else:
        days = set(days_of_week)
    hours, minutes = (int(part) for part in time_utc.split(":"))

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    for offset in range(8):
        candidate = (now + timedelta(days=offset)).replace(
            hour=hours, minute=minutes, second=0, microsecond=0
        )
        sunday_based = (candidate.weekday() + 1) % 7
        if sunday_based in days and candidate > now:
            return candidate

    return None


class FCCImportScheduler:
    """
    Owns the AsyncIOScheduler used by the API process.

    - the recurring import (cron job fcc_scheduled_import)
    - one-shot invocations: API triggers and in-process continuations
    """

    def __init__(self, session_factory=None, config=settings, runner=None):
        self.config = config
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.session_factory = session_factory or async_session_maker
        self.progress = PostgresProgressStore(self.session_factory)
        self.runner = runner or build_runner(
            build_dispatcher(config, scheduler=self),
            session_factory=self.session_factory,
            config=config,
        )

    # ------------------------------------------------------------------
    # Invocations
    # ------------------------------------------------------------------

    def enqueue_invocation(self, event: Dict[str, Any]) -> str:
        """Run the runner for this event as soon as the event loop is free"""
        job_key = f"fcc_invoke_{event.get('jobId')}_{uuid.uuid4().hex[:8]}"
        self.scheduler.add_job(
            self.run_invocation,
            trigger=DateTrigger(run_date=datetime.now(timezone.utc)),
            args=[event],
            id=job_key,
            misfire_grace_time=None,
        )
        return job_key

    async def run_invocation(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Job to run one runner invocation"""
        job_id = event.get("jobId")
        logger.info(f"Scheduler: running invocation for {job_id}")
        result = await self.runner.handle(event)
        logger.info(f"Scheduler: invocation for {job_id} finished with {result['status']}")
        return result

    async def run_scheduled_import(self, data_type: str = "ALL") -> Dict[str, Any]:
        """Job fired by the recurring schedule"""
        data_type = DataType(data_type.upper())
        job_id = f"fcc_scheduled_{data_type.value}_{epoch_ms()}"
        logger.info(f"Scheduler: starting scheduled FCC import {job_id}")

        await self.progress.put(
            job_id,
            status=JobStatus.QUEUED,
            message="Scheduled FCC import queued",
            data_type=data_type,
            source=JobSource.SCHEDULED,
        )
        return await self.run_invocation({
            "jobId": job_id,
            "dataType": data_type.value,
            "source": JobSource.SCHEDULED.value,
        })

    # ------------------------------------------------------------------
    # Recurring schedule
    # ------------------------------------------------------------------

    def apply_schedule(self, schedule: ScheduleSettings) -> None:
        """Install, replace or remove the recurring import job"""
        if not schedule.enabled or not schedule.days:
            if self.scheduler.get_job(SCHEDULED_JOB_ID):
                self.scheduler.remove_job(SCHEDULED_JOB_ID)
            logger.info("FCC schedule disabled")
            return

        hour, minute = schedule.hour_minute
        self.scheduler.add_job(
            self.run_scheduled_import,
            trigger=CronTrigger(
                day_of_week=cron_days(schedule.days),
                hour=hour,
                minute=minute,
                timezone="UTC",
            ),
            args=[schedule.data_type.value],
            id=SCHEDULED_JOB_ID,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        logger.info(
            f"FCC schedule set: days={schedule.days_of_week} at {schedule.time_utc} UTC "
            f"({schedule.data_type.value})"
        )

    def schedule_installed(self) -> bool:
        return self.scheduler.get_job(SCHEDULED_JOB_ID) is not None

    def next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(SCHEDULED_JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    async def load_schedule(self) -> None:
        """Apply the schedule stored in the settings table"""
        try:
            async with self.session_factory() as session:
                schedule = await load_schedule_settings(session)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to load FCC schedule settings: {str(e)}")
            return
        self.apply_schedule(schedule)

    def start(self):
        """Start the scheduler"""
        self.scheduler.start()
        logger.info("FCC Import Scheduler started")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("FCC Import Scheduler stopped")
