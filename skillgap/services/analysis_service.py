"""
Analysis service - submission coordinator and inquiry operations.

Submission protocol:
  1. fingerprint the (resume, job description) pair
  2. cache hit → confirm a COMPLETED row backs it, return cached
  3. store hit → hydrate the cache, return cached
  4. otherwise → PENDING row (committed) → enqueue job keyed by the row id

The caller never waits on the provider; step 4 returns as soon as the row is
durable and the job is published.
"""
import re
from typing import List, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from skillgap.cache.result_cache import ResultCache
from skillgap.core.exceptions import (
    AnalysisNotFoundException,
    JobQueueError,
    QueueUnavailableException,
    ServiceUnavailableException,
)
from skillgap.core.hashing import content_hash
from skillgap.core.logging import get_logger
from skillgap.models.analysis import Analysis, AnalysisStatus
from skillgap.repositories.analysis_repository import AnalysisRepository
from skillgap.repositories.anonymous_user_repository import AnonymousUserRepository
from skillgap.schemas.analysis import (
    AnalysisHistoryResponse,
    AnalysisResponse,
    GapAnalysisResult,
    JobStatusResponse,
    SubmitAnalysisResponse,
)
from skillgap.workers.queue import JobQueue

logger = get_logger(__name__)

HISTORY_MAX_LIMIT = 50
ERROR_MESSAGE_MAX_CHARS = 500
ENQUEUE_FAILED_MESSAGE = "Analysis could not be scheduled"

_TAG_RE = re.compile(r"<[^>]*>")


def public_error_message(message: Optional[str]) -> Optional[str]:
    """Error text safe to show a client: no markup, bounded length."""
    if message is None:
        return None
    cleaned = _TAG_RE.sub("", message).strip()
    if len(cleaned) > ERROR_MESSAGE_MAX_CHARS:
        cleaned = cleaned[: ERROR_MESSAGE_MAX_CHARS - 3].rstrip() + "..."
    return cleaned or "Analysis failed"


class AnalysisService:
    """Coordinates the cache tier, the durable store and the job queue."""

    def __init__(
        self,
        cache: ResultCache,
        queue: JobQueue,
        analysis_repo: Optional[AnalysisRepository] = None,
        user_repo: Optional[AnonymousUserRepository] = None,
    ):
        self.cache = cache
        self.queue = queue
        self.analysis_repo = analysis_repo or AnalysisRepository()
        self.user_repo = user_repo or AnonymousUserRepository()

    async def submit(
        self,
        db: AsyncSession,
        resume_text: str,
        job_description: str,
        session_id: Optional[str] = None,
        resume_filename: Optional[str] = None,
    ) -> SubmitAnalysisResponse:
        """
        Serve from cache/store when the same pair was analysed before,
        otherwise persist a PENDING analysis and enqueue it.

        Raises:
            QueueUnavailableException: the job could not be published; the
                row has been moved to FAILED.
        """
        fingerprint = content_hash(resume_text, job_description)

        cached_result = await self.cache.get(fingerprint)
        if cached_result is not None:
            record = await self.analysis_repo.find_latest_completed_by_hash(db, fingerprint)
            if record is not None:
                logger.info("analysis_cache_hit", analysis_id=str(record.id))
                return SubmitAnalysisResponse(
                    id=record.id,
                    status=AnalysisStatus.COMPLETED,
                    cached=True,
                    result=cached_result,
                )
            # Cache entry outlived its backing row
            logger.warning("analysis_cache_entry_unconfirmed", fingerprint=fingerprint)
            await self.cache.invalidate(fingerprint)
        else:
            record = await self.analysis_repo.find_latest_completed_by_hash(db, fingerprint)

        if record is not None:
            stored_result = self._stored_result(record)
            if stored_result is not None:
                await self.cache.put(fingerprint, stored_result)
                logger.info("analysis_store_hit_hydrated", analysis_id=str(record.id))
                return SubmitAnalysisResponse(
                    id=record.id,
                    status=AnalysisStatus.COMPLETED,
                    cached=True,
                    result=stored_result,
                )

        owner_id: Optional[UUID] = None
        if session_id:
            owner = await self.user_repo.touch_or_create(db, session_id)
            owner_id = owner.id

        analysis = await self.analysis_repo.create_pending(
            db,
            content_hash=fingerprint,
            resume_text=resume_text,
            job_description=job_description,
            anonymous_user_id=owner_id,
            resume_filename=resume_filename,
        )
        await db.commit()

        try:
            await self.queue.enqueue(analysis.id)
        except JobQueueError:
            # Don't leave a row in PENDING that no worker will ever pick up
            await self.analysis_repo.set_failed(db, analysis.id, ENQUEUE_FAILED_MESSAGE, 0)
            await db.commit()
            raise QueueUnavailableException()

        logger.info("analysis_submitted", analysis_id=str(analysis.id))
        return SubmitAnalysisResponse(
            id=analysis.id,
            status=AnalysisStatus.PENDING,
            cached=False,
        )

    async def get_analysis(
        self,
        db: AsyncSession,
        analysis_id: UUID,
    ) -> AnalysisResponse:
        """
        Poll one analysis.

        Raises:
            AnalysisNotFoundException: If the analysis doesn't exist.
        """
        analysis = await self.analysis_repo.get_by_id(db, analysis_id)
        if not analysis:
            raise AnalysisNotFoundException()

        result = None
        if analysis.status == AnalysisStatus.COMPLETED.value:
            result = await self.cache.get(analysis.content_hash)
            if result is None:
                result = self._stored_result(analysis)

        return self._to_response(analysis, result)

    async def get_history(
        self,
        db: AsyncSession,
        session_id: Optional[str],
        limit: int = 10,
    ) -> AnalysisHistoryResponse:
        """Analyses submitted from this session, newest first."""
        if not session_id:
            return AnalysisHistoryResponse(count=0, analyses=[])

        owner = await self.user_repo.get_by_session_id(db, session_id)
        if owner is None:
            return AnalysisHistoryResponse(count=0, analyses=[])

        limit = max(1, min(limit, HISTORY_MAX_LIMIT))
        rows = await self.analysis_repo.list_by_owner(db, owner.id, limit=limit)

        analyses: List[AnalysisResponse] = [
            self._to_response(row, self._stored_result(row)) for row in rows
        ]
        return AnalysisHistoryResponse(count=len(analyses), analyses=analyses)

    async def get_job_status(
        self,
        db: AsyncSession,
        analysis_id: UUID,
    ) -> JobStatusResponse:
        """
        Queue-level state of the analysis job.

        Raises:
            AnalysisNotFoundException: If the analysis doesn't exist.
            ServiceUnavailableException: If the result backend is unreachable.
        """
        analysis = await self.analysis_repo.get_by_id(db, analysis_id)
        if not analysis:
            raise AnalysisNotFoundException()

        status = await self.queue.get_status(str(analysis_id))
        if status is None:
            raise ServiceUnavailableException("Job status is temporarily unavailable")
        return status

    # ── Internal helpers ──────────────────────────────────────────────────

    @staticmethod
    def _stored_result(analysis: Analysis) -> Optional[GapAnalysisResult]:
        if analysis.status != AnalysisStatus.COMPLETED.value or not analysis.result:
            return None
        try:
            return GapAnalysisResult.model_validate(analysis.result)
        except ValidationError:
            logger.error("analysis_stored_result_invalid", analysis_id=str(analysis.id))
            return None

    @staticmethod
    def _to_response(
        analysis: Analysis,
        result: Optional[GapAnalysisResult],
    ) -> AnalysisResponse:
        error_message = None
        if analysis.status == AnalysisStatus.FAILED.value:
            error_message = public_error_message(analysis.error_message)

        return AnalysisResponse(
            id=analysis.id,
            status=AnalysisStatus(analysis.status),
            result=result,
            error_message=error_message,
            ai_processing_time_ms=analysis.processing_time_ms,
            created_at=analysis.created_at,
        )
