"""
Analysis worker: drives the provider through a bounded attempt loop.

Per job:
  1. Load the row. Missing or terminal → no-op (redelivery is safe).
  2. PENDING/PROCESSING → PROCESSING.
  3. Up to max_attempts provider calls. Attempt 1 sends the primary prompt,
     later attempts send a correction prompt quoting the last diagnostic.
     A provider fault or timeout consumes an attempt exactly like a
     coercion failure; each failed attempt bumps retry_count durably.
  4. Success → COMPLETED + cache write keyed by the fingerprint recomputed
     from the stored inputs. Budget spent → FAILED with the last diagnostic.

Store errors are not caught here: they propagate to the Celery task, whose
transport-level retry redelivers the job. That retry is separate from this
loop, and the attempt budget already spent (retry_count) carries over.
"""
import asyncio
import time
from typing import Callable, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillgap.cache.result_cache import ResultCache
from skillgap.core.ai import TextGenerator
from skillgap.core.config import settings
from skillgap.core.exceptions import ProviderError, ProviderTimeoutError
from skillgap.core.hashing import content_hash
from skillgap.core.logging import get_logger
from skillgap.core.rate_limit import ProviderRateLimiter
from skillgap.models.analysis import AnalysisStatus
from skillgap.repositories.analysis_repository import AnalysisRepository
from skillgap.schemas.analysis import GapAnalysisResult
from skillgap.services.prompts import build_analysis_prompt, build_correction_prompt
from skillgap.services.response_coercer import CoercionSuccess, coerce_response

logger = get_logger(__name__)

BUDGET_EXHAUSTED_MESSAGE = "Analysis retry budget exhausted"


class AnalysisWorker:

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        provider: TextGenerator,
        cache: ResultCache,
        rate_limiter: Optional[ProviderRateLimiter] = None,
        repository: Optional[AnalysisRepository] = None,
        max_attempts: int = settings.max_analysis_attempts,
        provider_timeout_seconds: float = settings.provider_timeout_seconds,
        on_progress: Optional[Callable[[int], None]] = None,
    ):
        self._session_maker = session_maker
        self._provider = provider
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._repo = repository or AnalysisRepository(max_attempts=max_attempts)
        self._max_attempts = max_attempts
        self._timeout = provider_timeout_seconds
        self._on_progress = on_progress

    async def process(self, analysis_id: UUID) -> dict:
        """Run one job. Returns a JSON-serializable summary for the task result."""
        started = time.monotonic()
        job = {"analysis_id": str(analysis_id)}

        async with self._session_maker() as db:
            analysis = await self._repo.get_by_id(db, analysis_id)
            if analysis is None:
                logger.warning("analysis_job_orphaned", **job)
                return {**job, "success": False, "skipped": True, "error": "Analysis not found"}

            if analysis.is_terminal:
                logger.info("analysis_job_already_terminal", status=analysis.status, **job)
                return {
                    **job,
                    "success": analysis.status == AnalysisStatus.COMPLETED.value,
                    "skipped": True,
                }

            resume_text = analysis.resume_text
            job_description = analysis.job_description
            attempts_used = analysis.retry_count

            moved = await self._repo.mark_processing(db, analysis_id)
            await db.commit()

        if not moved:
            # Became terminal between the read and the update
            logger.info("analysis_job_lost_race", **job)
            return {**job, "success": False, "skipped": True}

        logger.info("analysis_processing", attempts_used=attempts_used, **job)

        result, last_error, retry_count = await self._run_attempts(
            analysis_id, resume_text, job_description, attempts_used
        )
        processing_time_ms = int((time.monotonic() - started) * 1000)

        if result is not None:
            async with self._session_maker() as db:
                stored = await self._repo.set_completed(
                    db, analysis_id, result.to_document(), processing_time_ms
                )
                await db.commit()

            if stored:
                # Never trust a fingerprint from the message; derive it from the inputs
                await self._cache.put(content_hash(resume_text, job_description), result)

            self._report_progress(100)
            logger.info(
                "analysis_completed",
                processing_time_ms=processing_time_ms,
                retries=retry_count,
                **job,
            )
            return {**job, "success": True, "processing_time_ms": processing_time_ms}

        async with self._session_maker() as db:
            await self._repo.set_failed(db, analysis_id, last_error, retry_count)
            await db.commit()

        logger.error(
            "analysis_failed_after_retries",
            attempts=retry_count,
            error=last_error,
            **job,
        )
        return {
            **job,
            "success": False,
            "processing_time_ms": processing_time_ms,
            "error": last_error,
        }

    async def _run_attempts(
        self,
        analysis_id: UUID,
        resume_text: str,
        job_description: str,
        attempts_used: int,
    ) -> Tuple[Optional[GapAnalysisResult], str, int]:
        """Attempt loop. Returns (result or None, last diagnostic, retry count)."""
        if attempts_used >= self._max_attempts:
            return None, BUDGET_EXHAUSTED_MESSAGE, attempts_used

        last_error = ""
        retry_count = attempts_used

        for attempt in range(attempts_used + 1, self._max_attempts + 1):
            self._report_progress(int((attempt - 1) * 100 / self._max_attempts))

            if last_error:
                prompt = build_correction_prompt(resume_text, job_description, last_error)
            else:
                prompt = build_analysis_prompt(resume_text, job_description)

            try:
                outcome = coerce_response(await self._call_provider(prompt))
            except ProviderError as exc:
                diagnostic = str(exc)
            except Exception:
                logger.error("analysis_attempt_unexpected_error", attempt=attempt, exc_info=True)
                diagnostic = "Unexpected AI provider error"
            else:
                if isinstance(outcome, CoercionSuccess):
                    logger.info("analysis_attempt_succeeded", attempt=attempt)
                    return outcome.result, last_error, retry_count
                diagnostic = outcome.diagnostic

            last_error = diagnostic
            logger.warning("analysis_attempt_failed", attempt=attempt, error=diagnostic)

            async with self._session_maker() as db:
                retry_count = await self._repo.increment_retry(db, analysis_id)
                await db.commit()

        return None, last_error, retry_count

    async def _call_provider(self, prompt: str) -> str:
        """One rate-limited, time-boxed provider call."""
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire()
        try:
            return await asyncio.wait_for(self._provider.generate(prompt), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(self._timeout) from exc

    def _report_progress(self, percent: int) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(percent)
        except Exception as exc:
            # Progress is informational; the job outcome does not depend on it
            logger.warning("progress_report_failed", error=str(exc))
