"""
API dependencies for dependency injection.

Everything is resolved from app.state, populated by the application lifespan
(or by the test fixtures); nothing here holds module-level state.
"""
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from skillgap.core.exceptions import InvalidAnalysisIdException
from skillgap.services.analysis_service import AnalysisService


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session for the request."""
    async with request.app.state.session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_analysis_service(request: Request) -> AnalysisService:
    """Analysis service wired to the process-wide cache and job queue."""
    return AnalysisService(
        cache=request.app.state.result_cache,
        queue=request.app.state.job_queue,
    )


def get_session_id(request: Request) -> Optional[str]:
    """Anonymous session token set by AnonymousSessionMiddleware."""
    return getattr(request.state, "session_id", None)


def get_analysis_id(analysis_id: str) -> UUID:
    """
    Parse the path id.

    Raises:
        InvalidAnalysisIdException: If the id is not a UUID.
    """
    try:
        return UUID(analysis_id)
    except ValueError:
        raise InvalidAnalysisIdException()

