"""
Pydantic schemas for FCC ULS records, job events and job progress
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
import re
from models.base import DataType, ImportPhase, JobSource

JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


# ============================================================================
# Parsed Records
# ============================================================================

class LicenseRecord(BaseModel):
    """
    One parsed ``AM`` line.

    call_sign is always present and upper-cased; every other field is the
    trimmed column text or None when the column was empty.
    """
    call_sign: str = Field(..., min_length=1, max_length=20)
    operator_class: Optional[str] = None
    group_code: Optional[str] = None
    region_code: Optional[str] = None
    trustee_call_sign: Optional[str] = None
    trustee_indicator: Optional[str] = None
    physician_certification: Optional[str] = None
    ve_signature: Optional[str] = None
    systematic_call_sign_change: Optional[str] = None
    vanity_call_sign_change: Optional[str] = None
    vanity_relationship: Optional[str] = None
    previous_call_sign: Optional[str] = None
    previous_operator_class: Optional[str] = None
    trustee_name: Optional[str] = None

    class Config:
        from_attributes = True


class EntityRecordData(BaseModel):
    """One parsed ``EN`` line."""
    call_sign: str = Field(..., min_length=1, max_length=20)
    entity_type: Optional[str] = None
    licensee_id: Optional[str] = None
    entity_name: Optional[str] = None
    first_name: Optional[str] = None
    mi: Optional[str] = None
    last_name: Optional[str] = None
    suffix: Optional[str] = None
    phone: Optional[str] = None
    fax: Optional[str] = None
    email: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    po_box: Optional[str] = None
    attention_line: Optional[str] = None
    sgin: Optional[str] = None
    frn: Optional[str] = None
    applicant_type_code: Optional[str] = None
    applicant_type_other: Optional[str] = None
    status_code: Optional[str] = None
    status_date: Optional[date] = None

    class Config:
        from_attributes = True


# ============================================================================
# Checkpoint & Job Events
# ============================================================================

class JobCheckpoint(BaseModel):
    """
    Minimal state needed to resume a paused phase.

    skipLines is the ordinal of the last source line whose records are
    durably persisted; a resumed pass discards lines 1..skipLines.
    """
    record_count: int = Field(0, ge=0, alias="recordCount")
    processed_count: int = Field(0, ge=0, alias="processedCount")
    skip_lines: int = Field(0, ge=0, alias="skipLines")
    phase: ImportPhase
    job_id: Optional[str] = Field(None, alias="jobId")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    class Config:
        populate_by_name = True


class ImportJobEvent(BaseModel):
    """
    Job trigger event.

    The same shape is accepted from callers and emitted by the runner to
    continue itself, with ``continuation=True`` and the checkpoint in
    ``resumeData``.
    """
    job_id: str = Field(..., alias="jobId", max_length=100)
    data_type: DataType = Field(DataType.ALL, alias="dataType")
    continuation: bool = False
    resume_data: Optional[JobCheckpoint] = Field(None, alias="resumeData")
    source: Optional[JobSource] = None

    @field_validator("job_id", mode="before")
    @classmethod
    def clean_job_id(cls, v):
        if v is None:
            raise ValueError("jobId is required")
        v = str(v).strip()
        if not v:
            raise ValueError("jobId cannot be blank")
        if not JOB_ID_PATTERN.match(v):
            raise ValueError("jobId may only contain letters, digits, '_', '-' and '.'")
        return v

    @field_validator("data_type", mode="before")
    @classmethod
    def normalize_data_type(cls, v):
        """Accept am/en/all in any case"""
        if v is None or v == "":
            return DataType.ALL
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("source", mode="before")
    @classmethod
    def clean_source(cls, v):
        """Unknown sources (e.g. 'manual_test') are kept out of the enum"""
        if v is None:
            return None
        values = [s.value for s in JobSource]
        v = str(v).strip().lower()
        if v in values:
            return v
        return JobSource.MANUAL if v.startswith("manual") else None

    @model_validator(mode="after")
    def check_resume_data(self):
        if self.continuation:
            if self.resume_data is None:
                raise ValueError("resumeData is required for a continuation")
            if self.resume_data.phase not in self.data_type.phases:
                raise ValueError(
                    f"resumeData phase '{self.resume_data.phase.value}' is not part of dataType "
                    f"'{self.data_type.value}'"
                )
            if self.resume_data.job_id is not None and self.resume_data.job_id != self.job_id:
                raise ValueError(
                    f"resumeData jobId '{self.resume_data.job_id}' does not match jobId '{self.job_id}'"
                )
        return self

    def phases(self) -> List[ImportPhase]:
        """Phases this invocation still has to run, in order"""
        phases = self.data_type.phases
        if self.continuation and self.resume_data is not None:
            return phases[phases.index(self.resume_data.phase):]
        return phases

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    class Config:
        populate_by_name = True


class DownloadRequest(BaseModel):
    """Body of POST /fcc/download"""
    data_type: DataType = Field(DataType.ALL, alias="dataType")

    @field_validator("data_type", mode="before")
    @classmethod
    def normalize_data_type(cls, v):
        if v is None or v == "":
            return DataType.ALL
        return v.strip().upper() if isinstance(v, str) else v

    class Config:
        populate_by_name = True


# ============================================================================
# Progress
# ============================================================================

class JobProgress(BaseModel):
    """Polling view of one import job"""
    job_id: Optional[str] = Field(None, alias="jobId")
    status: str
    progress: int = 0
    message: str = ""
    processed_records: int = Field(0, alias="processedRecords")
    total_records: int = Field(0, alias="totalRecords")
    checkpoint: Optional[Dict[str, Any]] = None
    data_type: Optional[str] = Field(None, alias="dataType")
    start_time: Optional[datetime] = Field(None, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    error_message: Optional[str] = Field(None, alias="errorMessage")

    @classmethod
    def idle(cls) -> "JobProgress":
        """Default returned when no job has ever run"""
        return cls(status="idle")

    @classmethod
    def from_job(cls, job) -> "JobProgress":
        status = job.status.value if hasattr(job.status, "value") else job.status
        return cls(
            job_id=job.job_id,
            status=status,
            progress=job.progress or 0,
            message=job.message or "",
            processed_records=job.processed_records or 0,
            total_records=job.total_records or 0,
            checkpoint=job.checkpoint,
            data_type=job.data_type,
            start_time=job.started_at,
            end_time=job.completed_at,
            updated_at=job.updated_at,
            error_message=job.error_message,
        )

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "jobId": "fcc_ALL_1705312200000",
                "status": "processing",
                "progress": 55,
                "message": "Processing entity records: 410000 saved",
                "processedRecords": 410000,
                "totalRecords": 0,
                "checkpoint": {
                    "recordCount": 412000,
                    "processedCount": 410000,
                    "skipLines": 412350,
                    "phase": "entity",
                },
                "dataType": "ALL",
                "startTime": "2024-01-15T10:30:00Z",
                "endTime": None,
            }
        }


# ============================================================================
# Schedule
# ============================================================================

TIME_UTC_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class ScheduleSettings(BaseModel):
    """
    Recurring import schedule stored under the fcc_schedule_* settings keys.

    days_of_week is a comma separated list with 0=Sunday .. 6=Saturday.
    """
    enabled: bool = False
    days_of_week: str = "0"
    time_utc: str = "06:00"
    data_type: DataType = DataType.ALL
    timezone: str = "UTC"

    @field_validator("days_of_week", mode="before")
    @classmethod
    def validate_days(cls, v):
        if v is None or v == "":
            return "0"
        if isinstance(v, (list, tuple)):
            v = ",".join(str(d) for d in v)
        days = [d.strip() for d in str(v).split(",") if d.strip()]
        for day in days:
            if not day.isdigit() or int(day) > 6:
                raise ValueError(f"Invalid day of week: {day} (expected 0-6, 0=Sunday)")
        return ",".join(days)

    @field_validator("time_utc", mode="before")
    @classmethod
    def validate_time(cls, v):
        if v is None or v == "":
            return "06:00"
        v = str(v).strip()
        if not TIME_UTC_PATTERN.match(v):
            raise ValueError("time_utc must be HH:MM (24h, UTC)")
        return v

    @field_validator("data_type", mode="before")
    @classmethod
    def normalize_data_type(cls, v):
        if v is None or v == "":
            return DataType.ALL
        return v.strip().upper() if isinstance(v, str) else v

    @property
    def days(self) -> List[int]:
        return [int(d) for d in self.days_of_week.split(",") if d]

    @property
    def hour_minute(self):
        hours, minutes = self.time_utc.split(":")
        return int(hours), int(minutes)


class ScheduleTestRequest(BaseModel):
    """Body of POST /fcc/schedule/test"""
    data_type: DataType = DataType.AM

    @field_validator("data_type", mode="before")
    @classmethod
    def normalize_data_type(cls, v):
        if v is None or v == "":
            return DataType.AM
        return v.strip().upper() if isinstance(v, str) else v
