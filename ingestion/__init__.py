"""
FCC ULS import pipeline components.

This package contains all components for importing the FCC Universal
Licensing System amateur license files into PostgreSQL:

Modules:
    runner: Job orchestrator that coordinates one invocation of an import job
    processor: Checkpointed stream processor (batch, flush, time budget)
    progress: Progress store for job status, polling and the concurrency guard
    staging: Durable staging of extracted files between invocations
    dispatch: Continuation delivery (in-process scheduler or HTTP)
    scheduler: APScheduler integration for recurring imports
    settings_repository: Access to the shared settings table

Subpackages:
    parsers: ULS flat-file record parsing (AM.dat, EN.dat)
    extractors: Archive download and extraction
    transformers: Per-batch natural-key deduplication
    loaders: Database writer with idempotent upsert operations

Architecture:
    A job runs as a chain of time-boxed invocations:

    1. Fresh invocation - guard, clear tables, download, extract, stage
    2. Stream - parse, dedup and upsert in batches, amateur before entity
    3. Timeout - flush, checkpoint, dispatch a continuation, return
    4. Continuation - fetch the staged file, skip persisted lines, resume
    5. Finalize - last-updated stamp, completed status, staged file cleanup

    Resumption is effectively exactly-once: the checkpoint only ever names
    lines that are already committed, and every write is an upsert.

Usage:
    from ingestion.runner import FCCImportRunner, build_runner
    from ingestion.dispatch import HTTPContinuationDispatcher

Example:
    runner = build_runner(HTTPContinuationDispatcher(settings.CONTINUATION_URL))
    result = await runner.handle({"jobId": "fcc_ALL_1705312200000", "dataType": "ALL"})

    print(f"{result['status']} ({result['status_code']})")

Error Handling:
    All components raise exceptions from core.exceptions. The runner
    catches everything at the top of an invocation and records the job
    as "error" in the progress store.
"""

__all__ = [
    "FCCImportRunner",
    "StreamProcessor",
    "ProgressStore",
    "PostgresProgressStore",
    "StagingStore",
    "ContinuationDispatcher",
    "FCCImportScheduler",
    "UpsertWriter",
    "ULSArchiveFetcher",
]
