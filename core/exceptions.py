"""
Custom exceptions for the FCC import pipeline with structured error context.

Every exception carries a context dictionary so the orchestrator can log
it and record a readable message on the job's progress entry.

Exception Hierarchy:
    ImportException (base)
    ├── JobValidationError
    ├── JobConflictError
    ├── ExtractionError
    │   ├── DownloadError
    │   └── ArchiveError
    ├── StagingError
    ├── LoadError
    │   ├── DatabaseError
    │   └── UpsertError
    ├── CheckpointError
    ├── ContinuationError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class ImportException(Exception):
    """
    Base exception for all import-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (job id, phase, file, ...)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ImportException):
    """
    Mixin for errors that may succeed when the same request is repeated.

    Only request-level retries (archive download, continuation POST) use
    this; jobs themselves are never retried automatically.
    """
    pass


class NonRetryableError(ImportException):
    """Mixin for permanent errors (bad input, missing archive member, 4xx)."""
    pass


# ============================================================================
# Job-level Errors
# ============================================================================

class JobValidationError(NonRetryableError):
    """
    Raised when a job trigger event is rejected before any job state exists.

    Context should include:
        - field_name: The offending event field
        - field_value: The value received (if any)
    """
    pass


class JobConflictError(NonRetryableError):
    """
    Raised when another job is already processing inside the recency window.
    """

    def __init__(
        self,
        message: str,
        conflicting_job_id: str,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, context)
        self.conflicting_job_id = conflicting_job_id
        self.context["conflicting_job_id"] = conflicting_job_id


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ImportException):
    """Base exception for acquiring the source files."""
    pass


class DownloadError(ExtractionError):
    """
    Exception raised when the ULS archive cannot be downloaded.

    Context should include:
        - url: The archive URL
        - status_code: HTTP status code (if applicable)
        - retry_count: Number of attempts made
    """
    pass


class NetworkError(RetryableError, DownloadError):
    """Transport or 5xx errors that are worth repeating the request for."""
    pass


class ArchiveError(NonRetryableError, ExtractionError):
    """
    Exception raised when the archive is corrupt or lacks a required member.

    Context should include:
        - zip_path: Path to the archive
        - member: The member that was expected
    """
    pass


class StagingError(ImportException):
    """
    Exception raised when the intermediate durable store fails.

    Context should include:
        - job_id: Job owning the staged file
        - name: Staged file name
        - operation: put, fetch or delete
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ImportException):
    """Base exception for data loading failures."""
    pass


class DatabaseError(LoadError):
    """
    Exception raised when database operations fail.

    Context should include:
        - operation: Type of database operation (INSERT, DELETE, UPSERT)
        - table_name: Name of the table
    """
    pass


class UpsertError(LoadError):
    """
    Exception raised when an upsert cannot be recovered row by row.

    Context should include:
        - table_name: Destination table
        - batch_size: Rows in the failed batch
        - record_key: Natural key of the row being written (if known)
    """
    pass


# ============================================================================
# Checkpoint / Continuation Errors
# ============================================================================

class CheckpointError(ImportException):
    """
    Exception raised when resume data cannot be applied.

    Context should include:
        - job_id: The job being resumed
        - phase: Phase named by the checkpoint
        - expected_phase: Phase the processor was built for
    """
    pass


class ContinuationError(RetryableError):
    """
    Exception raised when the follow-up invocation could not be delivered.
    """
    pass
