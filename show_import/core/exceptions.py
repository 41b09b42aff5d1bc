"""Errors raised by the import service.

Each class carries a stable ``code`` that the API returns in error details.
"""

from typing import Optional


class AppError(Exception):
    """Root of every error the service raises on purpose."""

    code = "APP_ERROR"

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class APIClientError(AppError):
    """An upstream HTTP service rejected or failed the call."""

    code = "API_CLIENT_ERROR"


class APITimeoutError(APIClientError):
    """An upstream HTTP service did not answer in time."""

    code = "API_TIMEOUT"


class ValidationError(AppError):
    """A submission or request failed validation."""

    code = "VALIDATION_ERROR"


class ConfigurationError(AppError):
    """Settings are missing or name something unsupported."""

    code = "CONFIGURATION_ERROR"


class ImportJobNotFoundError(AppError):
    """Raised when an import job does not exist for the requesting organization."""

    code = "JOB_NOT_FOUND"


class JobStateError(AppError):
    """Raised when a job transition is not allowed from its current status."""

    code = "INVALID_JOB_STATE"


class ConcurrentJobUpdateError(JobStateError):
    """Raised when a job record changed underneath a versioned write."""

    code = "CONCURRENT_UPDATE"


class WorkerUnavailableError(AppError):
    """Raised when background work cannot be queued because no worker is alive."""

    code = "WORKER_UNAVAILABLE"


class PipelineError(AppError):
    """Base exception for import pipeline errors."""

    code = "PIPELINE_ERROR"


class ExtractionError(PipelineError):
    """Fact extraction failed."""

    code = "EXTRACTION_ERROR"


class DuplicateMatchError(PipelineError):
    """Duplicate lookup against organization records failed."""

    code = "DUPLICATE_MATCH_ERROR"
