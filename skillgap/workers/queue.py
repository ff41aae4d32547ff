"""
Job queue facade over Celery.

enqueue() publishes run_gap_analysis with task_id == analysis id, after
claiming a dedup marker in Redis (SET NX). A second enqueue of the same
analysis inside the marker TTL is reported as a duplicate and not published,
which is what makes the job id a real dedup key: Celery itself accepts any
number of messages with the same task id.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from kombu.exceptions import OperationalError as KombuOperationalError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from skillgap.core.config import settings
from skillgap.core.exceptions import JobQueueError
from skillgap.core.logging import get_logger
from skillgap.schemas.analysis import JobStatusResponse

logger = get_logger(__name__)

_PUBLISH_FAULTS = (RedisError, OSError, KombuOperationalError)


@dataclass(frozen=True)
class EnqueueResult:
    job_id: str
    published: bool


def _default_task():
    # Deferred import avoids a cycle: tasks → worker → services → queue
    from skillgap.workers.tasks import run_gap_analysis

    return run_gap_analysis


def _default_celery():
    from skillgap.workers.celery_app import celery_app

    return celery_app


class JobQueue:

    DEDUP_PREFIX = "queue:job:"

    def __init__(
        self,
        redis_client: Redis,
        task: Any = None,
        celery: Any = None,
        queue_name: str = settings.queue_name,
        dedup_ttl_seconds: int = settings.job_dedup_ttl_seconds,
    ):
        self._redis = redis_client
        self._task = task
        self._celery = celery
        self._queue_name = queue_name
        self._dedup_ttl = dedup_ttl_seconds

    async def enqueue(self, analysis_id: UUID) -> EnqueueResult:
        """
        Publish the analysis job once per analysis id.

        Raises:
            JobQueueError: marker store or broker unreachable
        """
        job_id = str(analysis_id)
        marker = f"{self.DEDUP_PREFIX}{job_id}"

        try:
            claimed = await self._redis.set(marker, "1", nx=True, ex=self._dedup_ttl)
        except _PUBLISH_FAULTS as exc:
            logger.error("job_dedup_marker_failed", job_id=job_id, error=str(exc))
            raise JobQueueError("Job dedup store unavailable") from exc

        if not claimed:
            logger.info("analysis_enqueue_duplicate", job_id=job_id)
            return EnqueueResult(job_id=job_id, published=False)

        task = self._task or _default_task()
        try:
            # apply_async does blocking broker I/O
            await asyncio.to_thread(
                task.apply_async,
                args=[job_id],
                task_id=job_id,
                queue=self._queue_name,
            )
        except _PUBLISH_FAULTS as exc:
            logger.error("analysis_enqueue_failed", job_id=job_id, error=str(exc))
            await self._release(marker)
            raise JobQueueError("Job broker unavailable") from exc

        logger.info("analysis_enqueued", job_id=job_id, queue=self._queue_name)
        return EnqueueResult(job_id=job_id, published=True)

    async def get_status(self, job_id: str) -> Optional[JobStatusResponse]:
        """Transport-level job state from the result backend."""
        celery = self._celery or _default_celery()
        result = celery.AsyncResult(job_id)

        try:
            state = await asyncio.to_thread(lambda: result.state)
            info = await asyncio.to_thread(lambda: result.info)
        except _PUBLISH_FAULTS as exc:
            logger.error("job_status_failed", job_id=job_id, error=str(exc))
            return None

        progress: Optional[int] = None
        failed_reason: Optional[str] = None
        if state == "PROGRESS" and isinstance(info, dict):
            progress = info.get("progress")
        elif state == "SUCCESS":
            progress = 100
        elif state == "FAILURE":
            # Never expose the raw exception text or traceback
            failed_reason = "Job failed at the queue level"

        return JobStatusResponse(
            id=job_id,
            state=state,
            ready=state in ("SUCCESS", "FAILURE"),
            progress=progress,
            failed_reason=failed_reason,
        )

    async def _release(self, marker: str) -> None:
        try:
            await self._redis.delete(marker)
        except _PUBLISH_FAULTS as exc:
            logger.warning("job_dedup_release_failed", marker=marker, error=str(exc))
