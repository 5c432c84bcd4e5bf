"""
SQLAlchemy ORM models for database tables.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class and shared enums (JobStatus, ImportPhase, DataType, JobSource)
    fcc_records: Destination tables for ULS amateur (AM) and entity (EN) rows
    import_job: Per-job progress and checkpoint record
    setting: Key/value settings (last-updated timestamp, import schedule)

Database Schema:
    All models inherit from the Base declarative class. Destination tables
    are keyed by their natural key (call sign, or call sign + licensee id +
    entity type) and are only ever written through ON CONFLICT upserts.

Usage:
    from models import AmateurRecord, EntityRecord, ImportJob, Setting
    from models.base import JobStatus, ImportPhase, DataType

Example:
    # Look up a call sign
    result = await session.execute(
        select(AmateurRecord).where(AmateurRecord.call_sign == "W1AW")
    )
    record = result.scalar_one_or_none()
"""

from models.base import Base, JobStatus, ImportPhase, DataType, JobSource
from models.fcc_records import AmateurRecord, EntityRecord
from models.import_job import ImportJob
from models.setting import Setting

__all__ = [
    "Base",
    "JobStatus",
    "ImportPhase",
    "DataType",
    "JobSource",
    "AmateurRecord",
    "EntityRecord",
    "ImportJob",
    "Setting",
]
