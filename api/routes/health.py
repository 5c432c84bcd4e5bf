"""
Health check endpoint with database and import job status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, ImportJobInfo
from models.import_job import ImportJob
from ingestion.settings_repository import get_setting, LAST_UPDATED_KEY
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Most recent import job and its status
    - Last successful FCC data update
    """

    # Check database connectivity
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {str(e)}")

    last_import = None
    last_updated = None

    if db_connected:
        try:
            result = await db.execute(
                select(ImportJob).order_by(ImportJob.updated_at.desc()).limit(1)
            )
            job = result.scalar_one_or_none()
            if job is not None:
                last_import = ImportJobInfo(
                    job_id=job.job_id,
                    status=job.status.value,
                    progress=job.progress or 0,
                    updated_at=job.updated_at,
                    error_message=job.error_message,
                )
            last_updated = await get_setting(db, LAST_UPDATED_KEY)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch import status: {str(e)}")

    # Status calculation is handled by the validator in HealthCheckResponse
    return HealthCheckResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        last_import=last_import,
        last_updated=last_updated,
    )
