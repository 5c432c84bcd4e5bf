"""
Checkpointed stream processor.

Reads one ULS flat file line by line, batches matching records, writes
each batch through the UpsertWriter and stops cleanly when the invocation's
time budget runs out, returning a checkpoint to resume from.

States per pass:
    Skipping       ordinal <= checkpoint.skipLines, line discarded
    Accumulating   parsed records appended to the batch
    Flushing       batch full (or end of stream) -> dedup + upsert
    TimeoutPending budget exceeded -> flush, build checkpoint, stop
    Done           end of stream, remainder flushed

The next line is only pulled once the previous flush has been awaited, so
at most one write is ever in flight and lookahead is a single line.
"""

import os
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional
from pydantic import BaseModel
from ingestion.parsers.uls_parser import RecordSpec, parse_line, iter_source_lines
from ingestion.loaders.postgres_loader import UpsertWriter
from schemas.fcc import JobCheckpoint
from core.exceptions import CheckpointError
import logging

logger = logging.getLogger(__name__)

COMPLETED = "completed"
CONTINUED = "continued"

ProgressCallback = Callable[[str, int, int, float], Awaitable[None]]


class Deadline:
    """Wall-clock budget for one invocation, measured from construction"""

    def __init__(self, budget_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.budget_seconds = budget_seconds
        self.clock = clock
        self.started_at = clock()

    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def expired(self) -> bool:
        return self.elapsed() >= self.budget_seconds


@dataclass
class PhaseResult:
    status: str
    phase: str
    record_count: int
    processed_count: int
    checkpoint: Optional[JobCheckpoint] = None
    lines_read: int = 0
    fraction: float = 0.0

    @property
    def continued(self) -> bool:
        return self.status == CONTINUED


class StreamProcessor:
    """
    One generic pass over a ULS file, parameterized by a RecordSpec.

    The processor never persists its checkpoint; the caller decides where
    it goes (progress store, continuation event).
    """

    def __init__(
        self,
        writer: UpsertWriter,
        spec: RecordSpec,
        batch_size: int,
        deadline: Deadline,
        progress_interval: int,
        on_progress: Optional[ProgressCallback] = None,
        encoding: str = "latin-1",
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.writer = writer
        self.spec = spec
        self.batch_size = batch_size
        self.deadline = deadline
        self.progress_interval = progress_interval
        self.on_progress = on_progress
        self.encoding = encoding

    async def process(
        self,
        path,
        job_id: str,
        checkpoint: Optional[JobCheckpoint] = None,
    ) -> PhaseResult:
        """
        Run the pass until end of stream or until the deadline expires.

        Returns:
            PhaseResult with status "completed", or "continued" plus the
            checkpoint to resume from
        """
        phase = self.spec.phase.value

        if checkpoint is not None and checkpoint.phase != self.spec.phase:
            raise CheckpointError(
                "Checkpoint belongs to a different phase",
                context={
                    "job_id": job_id,
                    "phase": checkpoint.phase.value,
                    "expected_phase": phase,
                }
            )

        skip_lines = checkpoint.skip_lines if checkpoint else 0
        record_count = checkpoint.record_count if checkpoint else 0
        processed = checkpoint.processed_count if checkpoint else 0
        last_reported = processed

        total_bytes = os.path.getsize(path)
        fraction = 0.0
        lines_read = 0
        batch: List[BaseModel] = []

        if skip_lines:
            logger.info(f"[{job_id}] Resuming {phase} phase after line {skip_lines}")
        else:
            logger.info(f"[{job_id}] Starting {phase} phase from {self.spec.file_name}")

        for ordinal, text, consumed in iter_source_lines(path, self.encoding):
            fraction = consumed / total_bytes if total_bytes else 1.0

            # Skipping
            if ordinal <= skip_lines:
                continue

            # TimeoutPending: only once this invocation has moved forward
            if lines_read > 0 and self.deadline.expired():
                processed += await self._flush(batch)
                resume = JobCheckpoint(
                    record_count=record_count,
                    processed_count=processed,
                    skip_lines=ordinal - 1,
                    phase=self.spec.phase,
                    job_id=job_id,
                )
                logger.info(
                    f"[{job_id}] Time budget reached after {self.deadline.elapsed():.0f}s; "
                    f"{phase} checkpoint at line {resume.skip_lines} "
                    f"({processed} saved / {record_count} parsed)"
                )
                return PhaseResult(
                    status=CONTINUED,
                    phase=phase,
                    record_count=record_count,
                    processed_count=processed,
                    checkpoint=resume,
                    lines_read=lines_read,
                    fraction=fraction,
                )

            lines_read += 1

            # Accumulating
            record = parse_line(text, self.spec)
            if record is None:
                continue
            batch.append(record)
            record_count += 1

            # Flushing
            if len(batch) >= self.batch_size:
                processed += await self._flush(batch)
                batch = []

                if self.on_progress and processed - last_reported >= self.progress_interval:
                    await self.on_progress(phase, processed, record_count, fraction)
                    last_reported = processed

        # Done
        processed += await self._flush(batch)
        logger.info(
            f"[{job_id}] {phase} phase complete: {processed} saved / {record_count} parsed"
        )

        return PhaseResult(
            status=COMPLETED,
            phase=phase,
            record_count=record_count,
            processed_count=processed,
            lines_read=lines_read,
            fraction=1.0,
        )

    async def _flush(self, batch: List[BaseModel]) -> int:
        if not batch:
            return 0
        return await self.writer.write(batch)
