"""
Analysis repository - durable record store for analysis requests.

Every mutation is a single conditional UPDATE on one row. The WHERE clause
carries the state-machine guard (only PENDING/PROCESSING rows move), so a
terminal row is never modified no matter how many times a job is redelivered.
Mutators report whether a row actually changed.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillgap.core.config import settings
from skillgap.models.analysis import (
    ACTIVE_STATUSES,
    Analysis,
    AnalysisStatus,
)
from skillgap.models.base import utcnow
from skillgap.repositories.base import BaseRepository


class AnalysisRepository(BaseRepository[Analysis]):
    def __init__(self, max_attempts: int = settings.max_analysis_attempts):
        super().__init__(Analysis)
        self.max_attempts = max_attempts

    async def find_latest_completed_by_hash(
        self,
        db: AsyncSession,
        content_hash: str,
    ) -> Optional[Analysis]:
        """Most recently completed row for a fingerprint (last COMPLETED write wins)."""
        result = await db.execute(
            select(Analysis)
            .where(
                Analysis.content_hash == content_hash,
                Analysis.status == AnalysisStatus.COMPLETED.value,
            )
            .order_by(
                Analysis.completed_at.desc().nulls_last(),
                Analysis.created_at.desc(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_pending(
        self,
        db: AsyncSession,
        *,
        content_hash: str,
        resume_text: str,
        job_description: str,
        anonymous_user_id: Optional[UUID] = None,
        resume_filename: Optional[str] = None,
    ) -> Analysis:
        """Insert a new request in PENDING."""
        return await self.create(
            db,
            anonymous_user_id=anonymous_user_id,
            content_hash=content_hash,
            resume_text=resume_text,
            job_description=job_description,
            resume_filename=resume_filename,
            status=AnalysisStatus.PENDING.value,
            retry_count=0,
        )

    async def mark_processing(
        self,
        db: AsyncSession,
        analysis_id: UUID,
    ) -> bool:
        """
        PENDING → PROCESSING. A row already in PROCESSING (redelivered job
        whose first run died) is accepted as well.
        """
        result = await db.execute(
            update(Analysis)
            .where(
                Analysis.id == analysis_id,
                Analysis.status.in_(ACTIVE_STATUSES),
            )
            .values(status=AnalysisStatus.PROCESSING.value)
        )
        return result.rowcount > 0

    async def set_completed(
        self,
        db: AsyncSession,
        analysis_id: UUID,
        result_document: dict,
        processing_time_ms: int,
    ) -> bool:
        """Terminal transition to COMPLETED with the validated result."""
        result = await db.execute(
            update(Analysis)
            .where(
                Analysis.id == analysis_id,
                Analysis.status.in_(ACTIVE_STATUSES),
            )
            .values(
                status=AnalysisStatus.COMPLETED.value,
                result=result_document,
                error_message=None,
                completed_at=utcnow(),
                processing_time_ms=processing_time_ms,
            )
        )
        return result.rowcount > 0

    async def set_failed(
        self,
        db: AsyncSession,
        analysis_id: UUID,
        error_message: str,
        retry_count: int,
    ) -> bool:
        """Terminal transition to FAILED once the attempt budget is spent."""
        result = await db.execute(
            update(Analysis)
            .where(
                Analysis.id == analysis_id,
                Analysis.status.in_(ACTIVE_STATUSES),
            )
            .values(
                status=AnalysisStatus.FAILED.value,
                result=None,
                error_message=error_message,
                retry_count=min(retry_count, self.max_attempts),
                completed_at=utcnow(),
            )
        )
        return result.rowcount > 0

    async def increment_retry(
        self,
        db: AsyncSession,
        analysis_id: UUID,
    ) -> int:
        """Record one failed attempt; the counter never passes max_attempts."""
        await db.execute(
            update(Analysis)
            .where(
                Analysis.id == analysis_id,
                Analysis.status.in_(ACTIVE_STATUSES),
                Analysis.retry_count < self.max_attempts,
            )
            .values(retry_count=Analysis.retry_count + 1)
        )
        result = await db.execute(
            select(Analysis.retry_count).where(Analysis.id == analysis_id)
        )
        return result.scalar_one_or_none() or 0

    async def list_by_owner(
        self,
        db: AsyncSession,
        anonymous_user_id: UUID,
        limit: int = 10,
    ) -> List[Analysis]:
        """Owner's analyses, newest first."""
        result = await db.execute(
            select(Analysis)
            .where(Analysis.anonymous_user_id == anonymous_user_id)
            .order_by(Analysis.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
