"""Core module exports."""
from skillgap.core.config import settings, get_settings
from skillgap.core.database import Base, create_engine, create_session_maker, init_db, close_db
from skillgap.core.exceptions import (
    APIException,
    BadRequestException,
    NotFoundException,
    ValidationException,
    TooManyRequestsException,
    InternalServerException,
    ServiceUnavailableException,
    AnalysisNotFoundException,
    InvalidAnalysisIdException,
    QueueUnavailableException,
    PDFExtractionException,
    ProviderError,
    ProviderTimeoutError,
    JobQueueError,
)

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "create_engine",
    "create_session_maker",
    "init_db",
    "close_db",
    # Exceptions
    "APIException",
    "BadRequestException",
    "NotFoundException",
    "ValidationException",
    "TooManyRequestsException",
    "InternalServerException",
    "ServiceUnavailableException",
    "AnalysisNotFoundException",
    "InvalidAnalysisIdException",
    "QueueUnavailableException",
    "PDFExtractionException",
    "ProviderError",
    "ProviderTimeoutError",
    "JobQueueError",
]
