"""
Pydantic schemas for API validation and serialization.
"""
from skillgap.schemas.base import (
    BaseSchema,
    CamelSchema,
    ErrorResponse,
)
from skillgap.schemas.analysis import (
    LearningStep,
    GapAnalysisResult,
    SubmitAnalysisRequest,
    SubmitAnalysisResponse,
    AnalysisResponse,
    AnalysisHistoryResponse,
    JobStatusResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "CamelSchema",
    "ErrorResponse",
    # Analysis
    "LearningStep",
    "GapAnalysisResult",
    "SubmitAnalysisRequest",
    "SubmitAnalysisResponse",
    "AnalysisResponse",
    "AnalysisHistoryResponse",
    "JobStatusResponse",
]
