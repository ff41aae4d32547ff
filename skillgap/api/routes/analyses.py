"""
Analysis routes.

Routes are thin: parse the request, call AnalysisService, shape the status
code. Submission answers 200 when served from cache and 202 when queued;
clients then poll GET /analyses/{id} until the status is terminal.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from skillgap.api.deps import get_analysis_id, get_analysis_service, get_db, get_session_id
from skillgap.core.config import settings
from skillgap.core.exceptions import BadRequestException, ValidationException
from skillgap.core.rate_limit import RATE_POLL, RATE_SUBMIT, limiter
from skillgap.schemas.analysis import (
    AnalysisHistoryResponse,
    AnalysisResponse,
    JobStatusResponse,
    SubmitAnalysisRequest,
    SubmitAnalysisResponse,
)
from skillgap.schemas.base import ErrorResponse
from skillgap.services.analysis_service import AnalysisService
from skillgap.services.pdf_service import extract_text_async

router = APIRouter(
    prefix="/analyses",
    tags=["analyses"],
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)


def _submit_status(result: SubmitAnalysisResponse) -> int:
    return status.HTTP_200_OK if result.cached else status.HTTP_202_ACCEPTED


@router.post(
    "",
    response_model=SubmitAnalysisResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
@limiter.limit(RATE_SUBMIT)
async def submit_analysis(
    request: Request,
    response: Response,
    body: SubmitAnalysisRequest,
    db: AsyncSession = Depends(get_db),
    service: AnalysisService = Depends(get_analysis_service),
):
    """
    Submit a resume and job description for gap analysis.

    Returns the cached result straight away when the same pair was analysed
    before; otherwise the analysis is queued.
    """
    result = await service.submit(
        db,
        resume_text=body.resume_text,
        job_description=body.job_description,
        session_id=get_session_id(request),
        resume_filename=body.resume_filename,
    )
    response.status_code = _submit_status(result)
    return result


@router.post(
    "/upload",
    response_model=SubmitAnalysisResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
@limiter.limit(RATE_SUBMIT)
async def upload_analysis(
    request: Request,
    response: Response,
    resume: UploadFile = File(..., description="Resume PDF"),
    job_description: Optional[str] = Form(None, description="Job description text"),
    job_description_file: Optional[UploadFile] = File(None, description="Job description PDF"),
    db: AsyncSession = Depends(get_db),
    service: AnalysisService = Depends(get_analysis_service),
):
    """
    Submit PDFs instead of text. The job description may be a PDF or plain
    text; exactly one of the two is required.
    """
    resume_name = resume.filename or "resume.pdf"
    resume_text = await extract_text_async(await _read_limited(resume), resume_name)

    if job_description_file is not None:
        jd_name = job_description_file.filename or "job_description.pdf"
        jd_text = await extract_text_async(await _read_limited(job_description_file), jd_name)
    elif job_description and job_description.strip():
        jd_text = job_description.strip()
    else:
        raise BadRequestException(
            "Provide the job description as text or as a PDF", code="JOB_DESCRIPTION_REQUIRED"
        )

    try:
        body = SubmitAnalysisRequest(
            resume_text=resume_text,
            job_description=jd_text,
            resume_filename=resume_name[:255],
        )
    except ValidationError as exc:
        raise ValidationException(
            message="Extracted text failed validation",
            details=[
                {"field": str(err["loc"][-1]) if err["loc"] else None, "message": err["msg"]}
                for err in exc.errors()
            ],
        )

    result = await service.submit(
        db,
        resume_text=body.resume_text,
        job_description=body.job_description,
        session_id=get_session_id(request),
        resume_filename=body.resume_filename,
    )
    response.status_code = _submit_status(result)
    return result


@router.get("/history", response_model=AnalysisHistoryResponse)
@limiter.limit(RATE_POLL)
async def get_history(
    request: Request,
    limit: int = Query(10, description="Max analyses to return (capped at 50)"),
    db: AsyncSession = Depends(get_db),
    service: AnalysisService = Depends(get_analysis_service),
):
    """Analyses submitted from the caller's session, newest first."""
    return await service.get_history(db, get_session_id(request), limit=limit)


@router.get("/{analysis_id}", response_model=AnalysisResponse)
@limiter.limit(RATE_POLL)
async def get_analysis(
    request: Request,
    analysis_id: UUID = Depends(get_analysis_id),
    db: AsyncSession = Depends(get_db),
    service: AnalysisService = Depends(get_analysis_service),
):
    """Poll an analysis until its status is COMPLETED or FAILED."""
    return await service.get_analysis(db, analysis_id)


@router.get("/{analysis_id}/job", response_model=JobStatusResponse)
@limiter.limit(RATE_POLL)
async def get_job_status(
    request: Request,
    analysis_id: UUID = Depends(get_analysis_id),
    db: AsyncSession = Depends(get_db),
    service: AnalysisService = Depends(get_analysis_service),
):
    """Queue-level job state (PENDING, STARTED, PROGRESS, RETRY, SUCCESS, FAILURE)."""
    return await service.get_job_status(db, analysis_id)


async def _read_limited(upload: UploadFile) -> bytes:
    """Read at most one byte past the size cap; extract_text rejects oversize."""
    return await upload.read(settings.max_pdf_size_bytes + 1)
