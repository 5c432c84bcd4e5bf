# ============================================================================
# File: ingestion/runner.py
# Description: FCC ULS import orchestrator (one invocation of a long job)
# ============================================================================
"""
FCC Import Runner - Orchestrates one invocation of an FCC ULS import job.

A job spans many invocations. The first downloads, extracts and stages the
ULS files, clears the destination tables and starts streaming; when the
time budget runs out the runner dispatches a continuation event carrying
the checkpoint and returns. Later invocations fetch the staged file back
and resume exactly where the previous one stopped.

This module provides:
- Validation of the job trigger event (rejected before any state exists)
- Advisory concurrency guard against two jobs clearing the tables
- Progress milestones in the progress store
- Reliable self re-invocation (continuation)
- Top-level error capture: every failure ends as job status "error"
"""

import shutil
import tempfile
import time
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Tuple
from pydantic import ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.config import settings
from core.exceptions import (
    ImportException,
    JobValidationError,
    JobConflictError,
    DatabaseError,
)
from ingestion.dispatch import ContinuationDispatcher
from ingestion.extractors.uls_archive import ULSArchiveFetcher
from ingestion.loaders.postgres_loader import UpsertWriter
from ingestion.parsers.uls_parser import spec_for_phase
from ingestion.processor import Deadline, StreamProcessor, PhaseResult
from ingestion.progress import ProgressStore
from ingestion.settings_repository import mark_last_updated
from ingestion.staging import StagingStore
from models.base import Base, DataType, ImportPhase, JobStatus
from models.fcc_records import AmateurRecord, EntityRecord
from schemas.fcc import ImportJobEvent

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "l_amat.zip"

# Progress milestones (percent)
PROGRESS_STARTING = 0
PROGRESS_DOWNLOADING = 10
PROGRESS_EXTRACTING = 30
PROGRESS_UPLOADING = 35
PROGRESS_PROCESSING = 40
PROGRESS_PROCESSING_END = 95
PROGRESS_COMPLETED = 100


def progress_band(data_type: DataType, phase: ImportPhase) -> Tuple[int, int]:
    """Percent range a phase reports within"""
    if data_type is DataType.ALL:
        if phase is ImportPhase.AMATEUR:
            return PROGRESS_PROCESSING, 70
        return 70, PROGRESS_PROCESSING_END
    return PROGRESS_PROCESSING, PROGRESS_PROCESSING_END


class FCCImportRunner:
    """
    FCC ULS Import Orchestrator

    Responsibilities:
    - Validate trigger events
    - Guard against concurrent fresh jobs
    - Download, extract and stage the source files (fresh jobs)
    - Drive the stream processor phase by phase (amateur before entity)
    - Persist the checkpoint and dispatch the continuation on timeout
    - Finalize: last-updated stamp, completed status, staged file cleanup
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        progress_store: ProgressStore,
        staging: StagingStore,
        dispatcher: ContinuationDispatcher,
        fetcher: ULSArchiveFetcher,
        config=settings,
        writer_factory=UpsertWriter,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_factory = session_factory
        self.progress = progress_store
        self.staging = staging
        self.dispatcher = dispatcher
        self.fetcher = fetcher
        self.config = config
        self.writer_factory = writer_factory
        self.clock = clock

    async def handle(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run one invocation for a job trigger event.

        Args:
            event: {jobId, dataType?, continuation?, resumeData?, source?}

        Returns:
            Dictionary with invocation outcome:
            - status: "rejected", "conflict", "continued", "completed" or "error"
            - status_code: 400, 409, 202, 200 or 500
            - job_id and outcome details
        """
        # --------------------------------------------------
        # PHASE 0: VALIDATION (no job state on failure)
        # --------------------------------------------------
        try:
            job = ImportJobEvent.model_validate(event or {})
        except ValidationError as e:
            error = JobValidationError(
                "Invalid job trigger event",
                context={
                    "field_name": ".".join(str(p) for p in e.errors()[0]["loc"]) if e.errors() else None,
                    "errors": [err["msg"] for err in e.errors()],
                }
            )
            logger.warning(f"Rejected job trigger: {error.context['errors']}")
            return {
                "status": "rejected",
                "status_code": 400,
                "job_id": (event or {}).get("jobId"),
                "error": "; ".join(error.context["errors"]),
            }

        job_id = job.job_id
        deadline = Deadline(self.config.MAX_PROCESSING_SECONDS, self.clock)
        scratch = None
        session = self.session_factory()

        logger.info(
            f"[{job_id}] Invocation started: dataType={job.data_type.value} "
            f"continuation={job.continuation}"
        )

        try:
            scratch = self._make_scratch(job_id)
            local_files: Dict[str, Path] = {}

            if not job.continuation:
                # --------------------------------------------------
                # PHASE 1: CONCURRENCY GUARD
                # --------------------------------------------------
                try:
                    await self._check_concurrency(job)
                except JobConflictError as e:
                    logger.warning(
                        f"[{job_id}] {e.message}",
                        extra={"error_context": e.to_dict()}
                    )
                    await self._report(
                        job_id,
                        status=JobStatus.ERROR,
                        message=e.message,
                        error_message=e.message,
                        data_type=job.data_type,
                    )
                    return {
                        "status": "conflict",
                        "status_code": 409,
                        "job_id": job_id,
                        "conflicting_job_id": e.conflicting_job_id,
                        "error": e.message,
                    }

                # --------------------------------------------------
                # PHASE 2: FRESH START (clear, download, extract, stage)
                # --------------------------------------------------
                local_files = await self._prepare_fresh(session, job, scratch)

            # --------------------------------------------------
            # PHASE 3: STREAM PROCESSING
            # --------------------------------------------------
            for phase in job.phases():
                result = await self._run_phase(session, job, phase, local_files, scratch, deadline)

                if result.continued:
                    return await self._continue(job, phase, result)

                _, high = progress_band(job.data_type, phase)
                await self._report(
                    job_id,
                    status=JobStatus.PROCESSING,
                    progress=high,
                    message=f"Completed {phase.value} records: {result.processed_count} saved",
                    processed_records=result.processed_count,
                    total_records=result.record_count,
                )

            # --------------------------------------------------
            # PHASE 4: FINALIZE
            # --------------------------------------------------
            return await self._finalize(session, job)

        except ImportException as e:
            logger.error(
                f"[{job_id}] Import failed: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            await self._fail(job_id, e.message)
            return {"status": "error", "status_code": 500, "job_id": job_id, "error": e.message}

        except Exception as e:
            logger.exception(f"[{job_id}] Unexpected error in FCC import")
            await self._fail(job_id, str(e) or type(e).__name__)
            return {"status": "error", "status_code": 500, "job_id": job_id, "error": str(e)}

        finally:
            await session.close()
            if scratch is not None:
                shutil.rmtree(scratch, ignore_errors=True)

    def _make_scratch(self, job_id: str) -> Path:
        """
        Private scratch directory for this invocation.

        A continuation can start in the same process before this invocation
        has removed its scratch space, so directories are never shared
        between invocations of one job.
        """
        root = Path(self.config.SCRATCH_DIR)
        root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f"{job_id}_", dir=root))

    # ------------------------------------------------------------------
    # Fresh start
    # ------------------------------------------------------------------

    async def _check_concurrency(self, job: ImportJobEvent) -> None:
        window = timedelta(minutes=self.config.CONCURRENCY_WINDOW_MINUTES)
        active = await self.progress.find_active(exclude_job_id=job.job_id, within=window)

        if active is not None:
            raise JobConflictError(
                f"Another FCC import job is already running: {active.job_id}",
                conflicting_job_id=active.job_id,
                context={"job_id": job.job_id, "active_status": active.status}
            )

    async def _prepare_fresh(
        self,
        session: AsyncSession,
        job: ImportJobEvent,
        scratch: Path
    ) -> Dict[str, Path]:
        job_id = job.job_id
        members = [spec_for_phase(phase).file_name for phase in job.phases()]

        await self.progress.put(
            job_id,
            status=JobStatus.STARTING,
            progress=PROGRESS_STARTING,
            message="Starting FCC data download",
            data_type=job.data_type,
            source=job.source or "api",
        )

        await self._clear_tables(session)

        await self._report(
            job_id,
            status=JobStatus.DOWNLOADING,
            progress=PROGRESS_DOWNLOADING,
            message="Downloading FCC database",
        )
        zip_path = await self.fetcher.download(scratch / ARCHIVE_NAME)

        await self._report(
            job_id,
            status=JobStatus.EXTRACTING,
            progress=PROGRESS_EXTRACTING,
            message="Extracting FCC data files",
        )
        local_files = await self.fetcher.extract(zip_path, scratch, members)
        zip_path.unlink(missing_ok=True)

        await self._report(
            job_id,
            status=JobStatus.UPLOADING,
            progress=PROGRESS_UPLOADING,
            message="Staging extracted files",
        )
        for name, path in local_files.items():
            await self.staging.put(job_id, name, path)

        await self._report(
            job_id,
            status=JobStatus.PROCESSING,
            progress=PROGRESS_PROCESSING,
            message="Processing FCC records",
        )
        return local_files

    async def _clear_tables(self, session: AsyncSession) -> None:
        """Create-if-missing and empty both destination tables in one transaction"""
        tables = [AmateurRecord.__table__, EntityRecord.__table__]
        try:
            await session.run_sync(
                lambda sync_session: Base.metadata.create_all(
                    sync_session.connection(), tables=tables, checkfirst=True
                )
            )
            await session.execute(delete(EntityRecord))
            await session.execute(delete(AmateurRecord))
            await session.commit()
            logger.info("Cleared FCC destination tables")
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError(
                "Failed to clear FCC destination tables",
                context={
                    "operation": "DELETE",
                    "table_name": ", ".join(t.name for t in tables),
                },
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _run_phase(
        self,
        session: AsyncSession,
        job: ImportJobEvent,
        phase: ImportPhase,
        local_files: Dict[str, Path],
        scratch: Path,
        deadline: Deadline
    ) -> PhaseResult:
        job_id = job.job_id
        spec = spec_for_phase(phase)
        low, high = progress_band(job.data_type, phase)

        path = local_files.get(spec.file_name)
        if path is None:
            path = await self.staging.fetch(job_id, spec.file_name, scratch / spec.file_name)

        checkpoint = None
        if job.continuation and job.resume_data.phase is phase:
            checkpoint = job.resume_data

        async def on_progress(phase_name: str, processed: int, record_count: int, fraction: float):
            await self._report(
                job_id,
                status=JobStatus.PROCESSING,
                progress=int(low + (high - low) * fraction),
                message=f"Processing {phase_name} records: {processed} saved",
                processed_records=processed,
                total_records=record_count,
            )

        processor = StreamProcessor(
            writer=self.writer_factory(session, spec),
            spec=spec,
            batch_size=self.config.IMPORT_BATCH_SIZE,
            deadline=deadline,
            progress_interval=self.config.PROGRESS_UPDATE_INTERVAL,
            on_progress=on_progress,
            encoding=self.config.FILE_ENCODING,
        )
        return await processor.process(path, job_id, checkpoint)

    async def _continue(
        self,
        job: ImportJobEvent,
        phase: ImportPhase,
        result: PhaseResult
    ) -> Dict[str, Any]:
        """Persist the checkpoint for pollers, then re-invoke with it"""
        job_id = job.job_id
        low, high = progress_band(job.data_type, phase)

        await self._report(
            job_id,
            status=JobStatus.PROCESSING,
            progress=int(low + (high - low) * result.fraction),
            message=(
                f"Processing {phase.value} records: {result.processed_count} saved, "
                f"continuing after line {result.checkpoint.skip_lines}"
            ),
            processed_records=result.processed_count,
            total_records=result.record_count,
            checkpoint=result.checkpoint,
        )

        continuation = ImportJobEvent(
            job_id=job_id,
            data_type=job.data_type,
            continuation=True,
            resume_data=result.checkpoint,
            source=job.source,
        )
        await self.dispatcher.dispatch(continuation.to_wire())

        logger.info(
            f"[{job_id}] Continuation dispatched at {phase.value} line {result.checkpoint.skip_lines}"
        )
        return {
            "status": "continued",
            "status_code": 202,
            "job_id": job_id,
            "phase": phase.value,
            "checkpoint": result.checkpoint.to_wire(),
        }

    # ------------------------------------------------------------------
    # Completion / failure
    # ------------------------------------------------------------------

    async def _finalize(self, session: AsyncSession, job: ImportJobEvent) -> Dict[str, Any]:
        job_id = job.job_id

        try:
            last_updated = await mark_last_updated(session)
            amateur_records = await session.scalar(select(func.count()).select_from(AmateurRecord))
            entity_records = await session.scalar(select(func.count()).select_from(EntityRecord))
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to finalize FCC import",
                context={"operation": "FINALIZE", "job_id": job_id},
                original_exception=e
            )

        amateur_records = amateur_records or 0
        entity_records = entity_records or 0
        total = amateur_records + entity_records

        await self._report(
            job_id,
            status=JobStatus.COMPLETED,
            progress=PROGRESS_COMPLETED,
            message=f"FCC data import completed: {total} records",
            processed_records=total,
            total_records=total,
            checkpoint=None,
        )

        staged = [spec_for_phase(phase).file_name for phase in job.data_type.phases]
        try:
            await self.staging.delete(job_id, staged)
        except ImportException as e:
            logger.warning(
                f"[{job_id}] Failed to delete staged files: {e.message}",
                extra={"error_context": e.to_dict()}
            )

        logger.info(
            f"[{job_id}] FCC import completed: amateur={amateur_records}, entity={entity_records}"
        )
        return {
            "status": "completed",
            "status_code": 200,
            "job_id": job_id,
            "amateur_records": amateur_records,
            "entity_records": entity_records,
            "total_records": total,
            "last_updated": last_updated,
        }

    async def _fail(self, job_id: str, message: str) -> None:
        await self._report(
            job_id,
            status=JobStatus.ERROR,
            message=f"Error: {message}",
            error_message=message,
        )

    async def _report(self, job_id: str, **fields) -> None:
        """Progress writes are observational; failures are logged, never fatal"""
        try:
            await self.progress.update(job_id, **fields)
        except ImportException as e:
            logger.warning(
                f"[{job_id}] Progress update failed: {e.message}",
                extra={"error_context": e.to_dict()}
            )


def build_runner(dispatcher: ContinuationDispatcher, session_factory=None, config=settings) -> FCCImportRunner:
    """Wire a runner from settings"""
    from core.database import async_session_maker
    from ingestion.progress import PostgresProgressStore
    from ingestion.staging import build_staging_store

    session_factory = session_factory or async_session_maker
    return FCCImportRunner(
        session_factory=session_factory,
        progress_store=PostgresProgressStore(session_factory),
        staging=build_staging_store(config),
        dispatcher=dispatcher,
        fetcher=ULSArchiveFetcher(
            url=config.FCC_DOWNLOAD_URL,
            timeout=config.DOWNLOAD_TIMEOUT,
            max_retries=config.MAX_RETRIES,
            retry_delay=config.RETRY_DELAY,
        ),
        config=config,
    )
