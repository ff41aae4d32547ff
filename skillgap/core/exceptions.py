"""
Custom exceptions for the application.

API-facing errors inherit from APIException for consistent error responses.
Provider errors are raised by the text-generation client and never reach an
HTTP response directly: the worker turns them into retry diagnostics.
"""
from typing import Optional, Any


class APIException(Exception):
    """
    Base exception for all API errors.
    Provides consistent error response format.
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[Any] = None,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        super().__init__(self.message)


class BadRequestException(APIException):
    """400 Bad Request"""

    def __init__(self, message: str = "Bad request", code: str = "BAD_REQUEST"):
        super().__init__(400, code, message)


class NotFoundException(APIException):
    """404 Not Found"""

    def __init__(self, message: str = "Resource not found", code: str = "NOT_FOUND"):
        super().__init__(404, code, message)


class ValidationException(APIException):
    """422 Validation Error"""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = "VALIDATION_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(422, code, message, details)


class TooManyRequestsException(APIException):
    """429 Too Many Requests"""

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please slow down.",
        code: str = "RATE_LIMITED",
    ):
        super().__init__(429, code, message)


class InternalServerException(APIException):
    """500 Internal Server Error"""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        code: str = "INTERNAL_ERROR",
    ):
        super().__init__(500, code, message)


class ServiceUnavailableException(APIException):
    """503 Service Unavailable"""

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        code: str = "SERVICE_UNAVAILABLE",
    ):
        super().__init__(503, code, message)


# Analysis specific exceptions
class AnalysisNotFoundException(NotFoundException):
    """Analysis not found"""

    def __init__(self):
        super().__init__(message="Analysis not found", code="ANALYSIS_NOT_FOUND")


class InvalidAnalysisIdException(BadRequestException):
    """Malformed analysis id in the path"""

    def __init__(self):
        super().__init__(message="Invalid analysis ID format", code="INVALID_ANALYSIS_ID")


class QueueUnavailableException(ServiceUnavailableException):
    """The job queue refused the analysis job"""

    def __init__(self):
        super().__init__(
            message="Analysis could not be scheduled. Please try again shortly.",
            code="QUEUE_UNAVAILABLE",
        )


class PDFExtractionException(BadRequestException):
    """Uploaded PDF is invalid or has no extractable text"""

    def __init__(self, message: str = "Could not extract text from PDF"):
        super().__init__(message=message, code="PDF_EXTRACTION_FAILED")


# Provider errors (not HTTP-facing)
class ProviderError(Exception):
    """
    The generative-text provider failed (transport, quota, configuration).

    The message is safe to persist and show to users; raw provider payloads
    and tracebacks stay in the logs.
    """


class ProviderTimeoutError(ProviderError):
    """A single provider call exceeded its time budget."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"AI provider timed out after {timeout_seconds:g}s")


class JobQueueError(Exception):
    """The job could not be published to the queue (broker or marker store down)."""
