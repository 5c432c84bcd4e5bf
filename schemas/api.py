"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from schemas.fcc import LicenseRecord, EntityRecordData, ScheduleSettings


# ============================================================================
# Health Check Schemas
# ============================================================================

class ImportJobInfo(BaseModel):
    """Most recent import job, for the health check"""
    job_id: str
    status: str
    progress: int = 0
    updated_at: Optional[datetime] = None
    error_message: Optional[str] = None


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    last_import: Optional[ImportJobInfo] = None
    last_updated: Optional[str] = None

    @model_validator(mode="after")
    def determine_status(self):
        """Determine overall health status"""
        if not self.database_connected:
            self.status = "unhealthy"
        elif self.last_import is not None and self.last_import.status == "error":
            self.status = "degraded"
        else:
            self.status = "healthy"
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "last_import": {
                    "job_id": "fcc_scheduled_ALL_1705300000000",
                    "status": "completed",
                    "progress": 100,
                    "updated_at": "2024-01-15T10:20:00Z",
                },
                "last_updated": "2024-01-15T10:20:00",
            }
        }


# ============================================================================
# Job Trigger Schemas
# ============================================================================

class DownloadResponse(BaseModel):
    success: bool = True
    job_id: str = Field(..., alias="jobId")
    data_type: str = Field(..., alias="dataType")
    message: str = "FCC download started"

    class Config:
        populate_by_name = True


class InvokeResponse(BaseModel):
    accepted: bool = True
    job_id: str = Field(..., alias="jobId")
    continuation: bool = False

    class Config:
        populate_by_name = True


# ============================================================================
# Statistics & Search Schemas
# ============================================================================

class FCCStatsResponse(BaseModel):
    """Row counts of the destination tables"""
    amateur_records: int
    entity_records: int
    total_records: int = Field(..., alias="totalRecords")
    last_updated: Optional[str] = None

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "amateur_records": 1480000,
                "entity_records": 1520000,
                "totalRecords": 3000000,
                "last_updated": "2024-01-15T10:20:00",
            }
        }


class CallsignSearchResponse(BaseModel):
    """Local lookup of one call sign"""
    call_sign: str
    found: bool
    amateur: Optional[LicenseRecord] = None
    entities: List[EntityRecordData] = Field(default_factory=list)


# ============================================================================
# Schedule Schemas
# ============================================================================

class ScheduleSettingsResponse(BaseModel):
    settings: ScheduleSettings
    job_installed: bool = Field(False, alias="jobInstalled")
    default_settings: ScheduleSettings = Field(default_factory=ScheduleSettings, alias="defaultSettings")

    class Config:
        populate_by_name = True


class ScheduleStatusResponse(BaseModel):
    enabled: bool
    last_updated: Optional[str] = Field(None, alias="lastUpdated")
    next_run_time: Optional[datetime] = Field(None, alias="nextRunTime")
    days_of_week: Optional[str] = Field(None, alias="daysOfWeek")
    time_utc: Optional[str] = Field(None, alias="timeUtc")

    class Config:
        populate_by_name = True

