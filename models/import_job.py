from sqlalchemy import Column, BigInteger, String, Enum, DateTime, Integer, Text, Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
from models.base import Base, JobStatus, JobSource, enum_values


class ImportJob(Base):
    """
    Progress record for one FCC import job (spans many invocations).

    Purpose:
    - Polling target for operators and the UI
    - Advisory concurrency guard (recent in-flight jobs)
    - Human-readable copy of the latest checkpoint

    Design:
    - One row per job_id, overwritten by put() and merged by update()
    - checkpoint is observational only; the continuation event carries
      the authoritative copy
    """
    __tablename__ = "fcc_import_jobs"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    job_id = Column(String(100), unique=True, nullable=False, index=True)

    data_type = Column(String(10), nullable=False, default="ALL")
    source = Column(
        Enum(JobSource, name="fcc_job_source", values_callable=enum_values),
        nullable=False,
        default=JobSource.API,
    )

    # Status
    status = Column(
        Enum(JobStatus, name="fcc_job_status", values_callable=enum_values),
        nullable=False,
        default=JobStatus.QUEUED,
    )
    progress = Column(Integer, nullable=False, default=0)
    message = Column(Text, nullable=True)

    # Counters
    processed_records = Column(Integer, nullable=False, default=0)
    total_records = Column(Integer, nullable=False, default=0)

    # Latest resume point ({recordCount, processedCount, skipLines, phase, jobId})
    checkpoint = Column(JSONB, nullable=True)

    error_message = Column(Text, nullable=True)

    # Timestamps
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_fcc_import_jobs_status_updated", "status", "updated_at"),
    )
