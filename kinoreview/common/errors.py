"""Domain errors and failure typing."""

from __future__ import annotations


class ImportPipelineError(Exception):
    """Base class for import pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(ImportPipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class RemoteError(ImportPipelineError):
    """Raised when a remote catalog call cannot produce a usable answer."""

    error_code = "REMOTE_ERROR"


class TransportError(RemoteError):
    """Network failure or non-success status that survived the retry budget."""

    error_code = "TRANSPORT_ERROR"


class NotFoundError(RemoteError):
    error_code = "NOT_FOUND"


class ResolutionError(ImportPipelineError):
    """Raised when a source rating cannot be mapped to canonical media."""

    error_code = "RESOLUTION_ERROR"

    def __init__(self, message: str, *, source_id: int | None = None, title: str | None = None) -> None:
        super().__init__(message)
        self.source_id = source_id
        self.title = title


class NoCrossReferenceError(ResolutionError):
    error_code = "NO_CROSS_REFERENCE"


class NoMatchError(ResolutionError):
    error_code = "NO_MATCH"


class ReviewServiceError(ImportPipelineError):
    """Raised when the review service refuses or fails to store a review."""

    error_code = "REVIEW_ERROR"


class ReviewUnauthorizedError(ReviewServiceError):
    error_code = "REVIEW_UNAUTHORIZED"


class ReviewRejectedError(ReviewServiceError):
    error_code = "REVIEW_REJECTED"


class BatchConversionError(ImportPipelineError):
    """Raised when a non-empty batch produced zero reviews."""

    error_code = "BATCH_CONVERSION_FAILED"

    def __init__(self, message: str, result=None) -> None:
        super().__init__(message)
        self.result = result
