"""
Celery tasks for background processing.

Tasks are thin entry points. Each invocation:
  1. Builds its own resources (engine, Redis client, provider), since a
     Celery worker process runs every task on a fresh event loop
  2. Hands the job to AnalysisWorker
  3. Disposes of the resources and returns the job summary

Store and Redis faults escape the worker and are retried here with
exponential backoff. That is transport-level redelivery; the provider
attempt loop lives in AnalysisWorker and its budget survives a retry.
"""
import asyncio
from uuid import UUID

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from skillgap.core.config import settings
from skillgap.core.logging import bind_job_context, get_logger
from skillgap.workers.celery_app import celery_app

logger = get_logger(__name__)

_RETRYABLE_FAULTS = (SQLAlchemyError, RedisError, ConnectionError)


def run_async(coro):
    """
    Helper to run async code in sync Celery tasks.

    Celery workers are synchronous. The worker pipeline is async (SQLAlchemy
    async, redis.asyncio, AsyncOpenAI), so each task gets its own event loop.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(
    bind=True,
    name="skillgap.workers.tasks.run_gap_analysis",
    autoretry_for=_RETRYABLE_FAULTS,
    retry_backoff=settings.queue_backoff_seconds,
    retry_backoff_max=300,
    retry_jitter=True,
    max_retries=settings.queue_max_retries,
)
def run_gap_analysis(self, analysis_id: str):
    """
    Run the gap analysis for one stored analysis.

    The message carries only the analysis id; the texts are read from the row.
    """
    bind_job_context(analysis_id=analysis_id, job_id=self.request.id or analysis_id)

    try:
        parsed_id = UUID(analysis_id)
    except (TypeError, ValueError):
        logger.error("analysis_job_invalid_id")
        return {"success": False, "analysis_id": analysis_id, "error": "Invalid analysis id"}

    def report_progress(percent: int) -> None:
        self.update_state(state="PROGRESS", meta={"progress": percent})

    if self.request.retries:
        logger.warning("analysis_job_redelivered", retries=self.request.retries)

    return run_async(_run_gap_analysis(parsed_id, report_progress))


async def _run_gap_analysis(analysis_id: UUID, on_progress):
    """Composition root for one job."""
    from skillgap.cache.result_cache import ResultCache
    from skillgap.core.ai import OpenAITextGenerator
    from skillgap.core.database import create_engine, create_session_maker
    from skillgap.core.rate_limit import ProviderRateLimiter
    from skillgap.core.redis import create_redis
    from skillgap.workers.analysis_worker import AnalysisWorker

    # NullPool: connections must not outlive this task's event loop
    engine = create_engine(poolclass=NullPool)
    redis_client = create_redis()
    provider = OpenAITextGenerator()

    try:
        worker = AnalysisWorker(
            session_maker=create_session_maker(engine),
            provider=provider,
            cache=ResultCache(redis_client),
            rate_limiter=ProviderRateLimiter(redis_client),
            on_progress=on_progress,
        )
        return await worker.process(analysis_id)
    finally:
        await provider.close()
        await redis_client.aclose()
        await engine.dispose()
