"""
Celery application configuration.

Redis is both broker and result backend. Delivery is at-least-once
(acks_late + reject_on_worker_lost): a job may run twice, and the analysis
worker treats a redelivered, already-terminal job as a no-op.
"""
from celery import Celery
from celery.signals import worker_process_init

from skillgap.core.config import settings
from skillgap.core.logging import setup_logging

# Hard ceiling for one job: every attempt may hit the provider timeout
_JOB_SOFT_LIMIT = int(settings.max_analysis_attempts * settings.provider_timeout_seconds) + 60

celery_app = Celery(
    "skillgap",
    broker=settings.redis_url,
    backend=settings.celery_result_backend_url or settings.redis_url,
    include=["skillgap.workers.tasks"],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task settings
    task_track_started=True,
    task_soft_time_limit=_JOB_SOFT_LIMIT,
    task_time_limit=_JOB_SOFT_LIMIT + 60,
    task_routes={
        "skillgap.workers.tasks.run_gap_analysis": {"queue": settings.queue_name},
    },

    # Reliability: ack after completion, requeue if the worker process dies
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # Pool size; the provider call rate is limited separately, pool-wide
    worker_concurrency=settings.worker_concurrency,

    # Result settings
    result_expires=86400,

    # Transport-level retry defaults (independent of the worker's attempt loop)
    task_default_retry_delay=settings.queue_backoff_seconds,
    task_max_retries=settings.queue_max_retries,
)


@worker_process_init.connect
def _configure_worker_logging(**_kwargs) -> None:
    setup_logging()
