"""
Core utilities and configuration for the auction ETL system.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session factory for the source/metadata database
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import ExtractionError, LoadError
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
    "setup_logging",
    # Exceptions
    "ETLException",
    "ConfigurationError",
    "ExtractionError",
    "TransformationError",
    "StagingError",
    "LoadError",
    "CheckpointError",
]
