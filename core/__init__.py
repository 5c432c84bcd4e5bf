"""
Core utilities and configuration for the FCC ULS import service.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import DownloadError, UpsertError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "build_engine",
    "build_session_factory",
    "dispose_engine",
    "setup_logging",
    # Exceptions
    "ImportException",
    "JobValidationError",
    "JobConflictError",
    "ExtractionError",
    "DownloadError",
    "NetworkError",
    "ArchiveError",
    "StagingError",
    "LoadError",
    "DatabaseError",
    "UpsertError",
    "CheckpointError",
    "ContinuationError",
    "RetryableError",
    "NonRetryableError",
]
