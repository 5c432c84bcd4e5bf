"""
FCC import endpoints: job triggers, progress polling, stats, lookup, schedule
"""

from datetime import timedelta
from typing import Any, Dict, Optional
from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query, Request
from pydantic import ValidationError
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db, get_scheduler, get_progress_store, get_runner
from core.config import settings
from ingestion.scheduler import compute_next_run, epoch_ms
from ingestion.settings_repository import (
    get_setting,
    load_schedule_settings,
    save_schedule_settings,
    LAST_UPDATED_KEY,
)
from models.base import JobStatus, JobSource
from models.fcc_records import AmateurRecord, EntityRecord
from schemas.api import (
    DownloadResponse,
    InvokeResponse,
    FCCStatsResponse,
    CallsignSearchResponse,
    ScheduleSettingsResponse,
    ScheduleStatusResponse,
)
from schemas.fcc import (
    DownloadRequest,
    ImportJobEvent,
    JobProgress,
    LicenseRecord,
    EntityRecordData,
    ScheduleSettings,
    ScheduleTestRequest,
)
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/fcc", tags=["FCC"])


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")


# ============================================================================
# Job triggers
# ============================================================================

@router.post("/download", response_model=DownloadResponse)
async def start_download(
    request: Request,
    body: Optional[DownloadRequest] = Body(None),
    progress=Depends(get_progress_store),
    scheduler=Depends(get_scheduler),
):
    """
    Start a fresh FCC import job.

    Refuses with 409 while another job is in flight; the runner repeats
    this check when the job actually starts.
    """
    request_id = _request_id(request)
    data_type = (body or DownloadRequest()).data_type

    window = timedelta(minutes=settings.CONCURRENCY_WINDOW_MINUTES)
    active = await progress.find_active(exclude_job_id="", within=window)
    if active is not None:
        logger.warning(f"[{request_id}] POST /fcc/download refused: {active.job_id} is {active.status}")
        raise HTTPException(
            status_code=409,
            detail=f"Another FCC import job is already running: {active.job_id}",
        )

    job_id = f"fcc_{data_type.value}_{epoch_ms()}"
    await progress.put(
        job_id,
        status=JobStatus.QUEUED,
        message="FCC download queued",
        data_type=data_type,
        source=JobSource.API,
    )
    scheduler.enqueue_invocation({
        "jobId": job_id,
        "dataType": data_type.value,
        "source": JobSource.API.value,
    })

    logger.info(f"[{request_id}] POST /fcc/download queued {job_id}")
    return DownloadResponse(job_id=job_id, data_type=data_type.value)


@router.post("/jobs/invoke", status_code=202, response_model=InvokeResponse)
async def invoke_job(
    request: Request,
    background_tasks: BackgroundTasks,
    event: Dict[str, Any] = Body(...),
    runner=Depends(get_runner),
):
    """
    Inbound job trigger event (also the target of HTTP continuations).

    The event is validated synchronously; the invocation itself runs after
    the 202 response is sent.
    """
    request_id = _request_id(request)

    try:
        job = ImportJobEvent.model_validate(event)
    except ValidationError as e:
        errors = [err["msg"] for err in e.errors()]
        logger.warning(f"[{request_id}] POST /fcc/jobs/invoke rejected: {errors}")
        raise HTTPException(status_code=400, detail="; ".join(errors))

    background_tasks.add_task(runner.handle, event)
    logger.info(
        f"[{request_id}] POST /fcc/jobs/invoke accepted {job.job_id} "
        f"(continuation={job.continuation})"
    )
    return InvokeResponse(job_id=job.job_id, continuation=job.continuation)


# ============================================================================
# Progress
# ============================================================================

@router.get("/download/progress", response_model=JobProgress)
async def get_progress(
    job_id: Optional[str] = Query(None, alias="jobId", description="Job to report; latest job if omitted"),
    progress=Depends(get_progress_store),
):
    """Progress of one job, or of the most recently updated job"""
    if job_id:
        job = await progress.get(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return job

    latest = await progress.latest()
    return latest or JobProgress.idle()


# ============================================================================
# Stats & lookup
# ============================================================================

@router.get("/stats", response_model=FCCStatsResponse)
async def get_stats(request: Request, db: AsyncSession = Depends(get_db)):
    """Row counts of the FCC tables and the last update time"""
    request_id = _request_id(request)
    logger.info(f"[{request_id}] GET /fcc/stats")

    try:
        amateur_records = await db.scalar(select(func.count()).select_from(AmateurRecord)) or 0
        entity_records = await db.scalar(select(func.count()).select_from(EntityRecord)) or 0
        last_updated = await get_setting(db, LAST_UPDATED_KEY)
    except SQLAlchemyError as e:
        logger.error(f"[{request_id}] Failed to fetch FCC stats: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch FCC statistics")

    return FCCStatsResponse(
        amateur_records=amateur_records,
        entity_records=entity_records,
        total_records=amateur_records + entity_records,
        last_updated=last_updated,
    )


@router.get("/search/{callsign}", response_model=CallsignSearchResponse)
async def search_callsign(callsign: str, db: AsyncSession = Depends(get_db)):
    """Local lookup of a call sign in the imported FCC data"""
    call_sign = callsign.strip().upper()
    if not call_sign or len(call_sign) > 20:
        raise HTTPException(status_code=400, detail="Invalid call sign")

    amateur_result = await db.execute(
        select(AmateurRecord).where(AmateurRecord.call_sign == call_sign)
    )
    amateur = amateur_result.scalar_one_or_none()

    entity_result = await db.execute(
        select(EntityRecord).where(EntityRecord.call_sign == call_sign)
    )
    entities = entity_result.scalars().all()

    return CallsignSearchResponse(
        call_sign=call_sign,
        found=amateur is not None or bool(entities),
        amateur=LicenseRecord.model_validate(amateur) if amateur else None,
        entities=[EntityRecordData.model_validate(entity) for entity in entities],
    )


# ============================================================================
# Schedule
# ============================================================================

@router.get("/schedule/settings", response_model=ScheduleSettingsResponse)
async def get_schedule_settings(
    db: AsyncSession = Depends(get_db),
    scheduler=Depends(get_scheduler),
):
    schedule = await load_schedule_settings(db)
    return ScheduleSettingsResponse(
        settings=schedule,
        job_installed=scheduler.schedule_installed(),
    )


@router.post("/schedule/settings")
async def update_schedule_settings(
    request: Request,
    schedule: ScheduleSettings,
    db: AsyncSession = Depends(get_db),
    scheduler=Depends(get_scheduler),
):
    """Store the recurring import schedule and apply it to the scheduler"""
    request_id = _request_id(request)

    await save_schedule_settings(db, schedule)
    scheduler.apply_schedule(schedule)

    logger.info(f"[{request_id}] FCC schedule updated (enabled={schedule.enabled})")
    return {
        "success": True,
        "message": "FCC schedule settings updated successfully",
        "enabled": schedule.enabled,
    }


@router.get("/schedule/status", response_model=ScheduleStatusResponse)
async def get_schedule_status(db: AsyncSession = Depends(get_db)):
    schedule = await load_schedule_settings(db)
    last_updated = await get_setting(db, LAST_UPDATED_KEY)

    next_run = None
    if schedule.enabled:
        next_run = compute_next_run(schedule.days_of_week, schedule.time_utc)

    return ScheduleStatusResponse(
        enabled=schedule.enabled,
        last_updated=last_updated,
        next_run_time=next_run,
        days_of_week=schedule.days_of_week,
        time_utc=schedule.time_utc,
    )


@router.post("/schedule/test")
async def test_schedule(
    request: Request,
    body: Optional[ScheduleTestRequest] = Body(None),
    progress=Depends(get_progress_store),
    scheduler=Depends(get_scheduler),
):
    """Trigger an immediate import the way the schedule would"""
    request_id = _request_id(request)
    data_type = (body or ScheduleTestRequest()).data_type
    job_id = f"fcc_test_{data_type.value}_{epoch_ms()}"

    await progress.put(
        job_id,
        status=JobStatus.QUEUED,
        message="Test FCC download queued",
        data_type=data_type,
        source=JobSource.MANUAL,
    )
    scheduler.enqueue_invocation({
        "jobId": job_id,
        "dataType": data_type.value,
        "source": JobSource.MANUAL.value,
    })

    logger.info(f"[{request_id}] POST /fcc/schedule/test queued {job_id}")
    return {
        "success": True,
        "jobId": job_id,
        "message": "Test FCC download initiated",
        "dataType": data_type.value,
    }
