"""
Service layer - business logic and orchestration.

Services contain the application's business logic, coordinate between
the repositories, the cache tier and the job queue.

RULE: Routes call services. Services call repositories. Never the reverse.
"""
from skillgap.services.analysis_service import AnalysisService
from skillgap.services.response_coercer import (
    CoercionFailure,
    CoercionResult,
    CoercionSuccess,
    coerce_response,
)

__all__ = [
    "AnalysisService",
    "CoercionFailure",
    "CoercionResult",
    "CoercionSuccess",
    "coerce_response",
]
