"""
Pydantic schemas for data validation and serialization.

This package defines Pydantic models for request/response validation
and data serialization throughout the import pipeline:

Schemas:
    fcc: Parsed ULS records, checkpoint, job trigger event, job progress, schedule
    api: API endpoint request/response schemas

Features:
    - Automatic data validation
    - camelCase wire names (jobId, resumeData, skipLines) via aliases
    - JSON serialization/deserialization
    - OpenAPI schema generation for FastAPI

Usage:
    from schemas import ImportJobEvent, JobCheckpoint, JobProgress
    from schemas.api import HealthCheckResponse, FCCStatsResponse

Example:
    # Validate an inbound trigger
    event = ImportJobEvent.model_validate({"jobId": "fcc_ALL_1705312200000", "dataType": "all"})
    assert event.data_type == DataType.ALL
    assert event.phases() == [ImportPhase.AMATEUR, ImportPhase.ENTITY]

Validation:
    - jobId must be present and non-blank
    - dataType must be AM, EN or ALL (case-insensitive)
    - a continuation must carry resumeData for one of its phases
"""

from schemas.fcc import (
    LicenseRecord,
    EntityRecordData,
    JobCheckpoint,
    ImportJobEvent,
    JobProgress,
    ScheduleSettings,
)

__all__ = [
    "LicenseRecord",
    "EntityRecordData",
    "JobCheckpoint",
    "ImportJobEvent",
    "JobProgress",
    "ScheduleSettings",
]
