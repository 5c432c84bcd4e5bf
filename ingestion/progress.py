"""
Progress store for import jobs.

Progress is observational: pollers and the concurrency guard read it, but
resumption always trusts the checkpoint carried in the continuation event.
Every call opens and closes its own short-lived session.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from models.base import JobStatus, JobSource, ACTIVE_STATUSES, TERMINAL_STATUSES
from models.import_job import ImportJob
from schemas.fcc import JobCheckpoint, JobProgress
from core.exceptions import DatabaseError
import logging

logger = logging.getLogger(__name__)

PROGRESS_FIELDS = (
    "status",
    "progress",
    "message",
    "processed_records",
    "total_records",
    "checkpoint",
    "data_type",
    "source",
    "error_message",
    "started_at",
    "completed_at",
)

DEFAULTS: Dict[str, Any] = {
    "status": JobStatus.QUEUED,
    "progress": 0,
    "message": None,
    "processed_records": 0,
    "total_records": 0,
    "checkpoint": None,
    "data_type": "ALL",
    "source": JobSource.API,
    "error_message": None,
    "started_at": None,
    "completed_at": None,
}


class ProgressStore(ABC):
    """Per-job status record keyed by job id"""

    @abstractmethod
    async def put(self, job_id: str, **fields) -> None:
        """Create or fully overwrite; unspecified fields reset to defaults"""

    @abstractmethod
    async def update(self, job_id: str, **fields) -> None:
        """Merge fields into the record, creating it if missing"""

    @abstractmethod
    async def get(self, job_id: str) -> Optional[JobProgress]:
        pass

    @abstractmethod
    async def latest(self) -> Optional[JobProgress]:
        """Most recently updated job, if any"""

    @abstractmethod
    async def find_active(self, exclude_job_id: str, within: timedelta) -> Optional[JobProgress]:
        """Most recent in-flight job other than exclude_job_id updated inside the window"""


def normalize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce caller-friendly values (str statuses, checkpoint models) to column values"""
    unknown = set(fields) - set(PROGRESS_FIELDS)
    if unknown:
        raise ValueError(f"Unknown progress fields: {', '.join(sorted(unknown))}")

    values = dict(fields)
    if "status" in values and values["status"] is not None:
        values["status"] = JobStatus(values["status"])
    if "source" in values and values["source"] is not None:
        values["source"] = JobSource(values["source"])
    if isinstance(values.get("checkpoint"), JobCheckpoint):
        values["checkpoint"] = values["checkpoint"].to_wire()
    if "data_type" in values and values["data_type"] is not None:
        values["data_type"] = getattr(values["data_type"], "value", values["data_type"])
    if "progress" in values and values["progress"] is not None:
        values["progress"] = max(0, min(100, int(values["progress"])))

    status = values.get("status")
    if status == JobStatus.STARTING and "started_at" not in values:
        values["started_at"] = datetime.utcnow()
    if status in TERMINAL_STATUSES and "completed_at" not in values:
        values["completed_at"] = datetime.utcnow()
    return values


class PostgresProgressStore(ProgressStore):
    """Progress store backed by the fcc_import_jobs table"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def put(self, job_id: str, **fields) -> None:
        values = {**DEFAULTS, **normalize_fields(fields)}
        await self._save(job_id, values, operation="put")

    async def update(self, job_id: str, **fields) -> None:
        await self._save(job_id, normalize_fields(fields), operation="update")

    async def get(self, job_id: str) -> Optional[JobProgress]:
        async with self.session_factory() as session:
            job = await self._load(session, job_id)
            return JobProgress.from_job(job) if job else None

    async def latest(self) -> Optional[JobProgress]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ImportJob).order_by(ImportJob.updated_at.desc()).limit(1)
            )
            job = result.scalar_one_or_none()
            return JobProgress.from_job(job) if job else None

    async def find_active(self, exclude_job_id: str, within: timedelta) -> Optional[JobProgress]:
        cutoff = datetime.utcnow() - within

        async with self.session_factory() as session:
            result = await session.execute(
                select(ImportJob)
                .where(
                    ImportJob.status.in_(ACTIVE_STATUSES),
                    ImportJob.job_id != exclude_job_id,
                    ImportJob.updated_at >= cutoff,
                )
                .order_by(ImportJob.updated_at.desc())
                .limit(1)
            )
            job = result.scalar_one_or_none()
            return JobProgress.from_job(job) if job else None

    async def _save(self, job_id: str, values: Dict[str, Any], operation: str) -> None:
        async with self.session_factory() as session:
            try:
                job = await self._load(session, job_id)
                if job is None:
                    job = ImportJob(job_id=job_id, **{**DEFAULTS, **values})
                    session.add(job)
                else:
                    for field, value in values.items():
                        setattr(job, field, value)
                    job.updated_at = datetime.utcnow()
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(
                    f"Failed to {operation} progress for job {job_id}",
                    context={
                        "operation": operation,
                        "table_name": ImportJob.__tablename__,
                        "job_id": job_id,
                    },
                    original_exception=e
                )

    @staticmethod
    async def _load(session, job_id: str) -> Optional[ImportJob]:
        result = await session.execute(
            select(ImportJob).where(ImportJob.job_id == job_id)
        )
        return result.scalar_one_or_none()
