"""
Custom exceptions for the incremental ETL pipeline with structured error context.

Each exception carries a context dictionary for debugging and monitoring
and optionally chains the exception that caused it.

Exception Hierarchy:
    ETLException (base)
    ├── ConfigurationError   fatal at construction, never retried
    ├── ExtractionError      source query / connection failure mid-run
    ├── TransformationError  a source row could not be mapped
    ├── StagingError         object storage upload failure
    ├── LoadError            warehouse load job failed or wait interrupted
    └── CheckpointError      watermark write failed after a successful load

None of these are retried in-process. A failed run is retried as a whole
by whoever triggers the next run.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all ETL-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (job, run id, uris, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
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
# Configuration Errors
# ============================================================================

class ConfigurationError(ETLException):
    """
    Raised when pipeline components are constructed with malformed input.

    Context should include:
        - parameter: Name of the offending parameter
        - value: The rejected value (if printable)
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """
    Raised when a page query against the source fails.

    Context should include:
        - page: 1-based page number being fetched
        - cursor: Keyset cursor bound to the page (None for the first page)
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """
    Raised when a source row cannot be mapped to a record.

    Context should include:
        - auction_id: Identifier of the offending row (if readable)
        - field_errors: Validation details
    """
    pass


# ============================================================================
# Staging Errors
# ============================================================================

class StagingError(ETLException):
    """
    Raised when a chunk cannot be serialized or uploaded to object storage.

    Context should include:
        - bucket: Target bucket
        - object_name: Object that failed to upload
        - chunk_size: Number of records in the chunk
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """
    Raised when the warehouse load job reports an error or the wait fails.

    Context should include:
        - job_id: Warehouse load job id (if one was created)
        - table: Destination table
        - staged_objects: Number of staged objects left in place
    """
    pass


# ============================================================================
# Checkpoint Errors
# ============================================================================

class CheckpointError(ETLException):
    """
    Raised when the watermark cannot be recorded.

    Context should include:
        - job_name: Job whose watermark failed to update
        - checkpoint_value: The watermark that was not written
        - operation: Operation that failed (write, register)
    """
    pass
