"""
Workers package - Celery app, job queue facade and the analysis task.
"""
from skillgap.workers.celery_app import celery_app
from skillgap.workers.queue import EnqueueResult, JobQueue
from skillgap.workers.tasks import run_gap_analysis

__all__ = [
    "celery_app",
    "EnqueueResult",
    "JobQueue",
    "run_gap_analysis",
]
