"""
Analysis-related Pydantic schemas.

Result payload:
  LearningStep        : one step of the learning path
  GapAnalysisResult   : validated provider output (exactly 3 steps, 3 questions)

Inquiry API:
  SubmitAnalysisRequest / SubmitAnalysisResponse: submission
  AnalysisResponse                              : poll by id
  AnalysisHistoryResponse                       : per-session history
  JobStatusResponse                             : queue-level job introspection

Wire format is camelCase to match what clients already consume.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional
from uuid import UUID

from pydantic import Field, StringConstraints, field_validator

from skillgap.core.config import settings
from skillgap.models.analysis import AnalysisStatus
from skillgap.schemas.base import BaseSchema, CamelSchema

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

LEARNING_PATH_STEPS = 3
INTERVIEW_QUESTIONS = 3


# ── Result payload ───────────────────────────────────────────────────────────

class LearningStep(CamelSchema):
    """A concrete learning action, optionally with a URL or resource name."""

    description: NonEmptyStr
    resource: Optional[str] = None


class GapAnalysisResult(CamelSchema):
    """
    Structured gap analysis.

    Cardinalities are enforced here as well as in ResponseCoercer so that no
    code path can build a result with the wrong shape.
    """

    missing_skills: List[NonEmptyStr] = Field(..., min_length=1)
    learning_path: List[LearningStep] = Field(
        ..., min_length=LEARNING_PATH_STEPS, max_length=LEARNING_PATH_STEPS
    )
    interview_questions: List[NonEmptyStr] = Field(
        ..., min_length=INTERVIEW_QUESTIONS, max_length=INTERVIEW_QUESTIONS
    )
    status: Literal["COMPLETED", "FAILED"]

    def to_document(self) -> dict:
        """JSON-ready camelCase dict, as stored in the cache and the result column."""
        return self.model_dump(mode="json", by_alias=True)


# ── Submission ───────────────────────────────────────────────────────────────

class SubmitAnalysisRequest(CamelSchema):
    """Sent by the client with both texts already extracted."""

    resume_text: str
    job_description: str
    resume_filename: Optional[str] = Field(None, max_length=255)

    @field_validator("resume_text")
    @classmethod
    def resume_length(cls, v: str) -> str:
        if len(v) < settings.resume_min_chars:
            raise ValueError(f"Resume must be at least {settings.resume_min_chars} characters")
        if len(v) > settings.resume_max_chars:
            raise ValueError(f"Resume must not exceed {settings.resume_max_chars} characters")
        return v

    @field_validator("job_description")
    @classmethod
    def job_description_length(cls, v: str) -> str:
        if len(v) < settings.job_description_min_chars:
            raise ValueError(
                f"Job description must be at least {settings.job_description_min_chars} characters"
            )
        if len(v) > settings.job_description_max_chars:
            raise ValueError(
                f"Job description must not exceed {settings.job_description_max_chars} characters"
            )
        return v


class SubmitAnalysisResponse(CamelSchema):
    """200 with result when served from cache, 202 when queued."""

    id: UUID
    status: AnalysisStatus
    cached: bool
    result: Optional[GapAnalysisResult] = None


# ── Polling ──────────────────────────────────────────────────────────────────

class AnalysisResponse(CamelSchema):
    """
    Poll-by-id response.

    ai_processing_time_ms is the worker's measured processing time, not the
    request handling time.
    """

    id: UUID
    status: AnalysisStatus
    result: Optional[GapAnalysisResult] = None
    error_message: Optional[str] = None
    ai_processing_time_ms: Optional[int] = None
    created_at: datetime


class AnalysisHistoryResponse(CamelSchema):
    count: int
    analyses: List[AnalysisResponse]


class JobStatusResponse(BaseSchema):
    """Queue-level view of a job (transport state, not the analysis status)."""

    id: str
    state: str              # PENDING | STARTED | PROGRESS | RETRY | SUCCESS | FAILURE
    ready: bool
    progress: Optional[int] = None
    failed_reason: Optional[str] = None
