"""
Skill Gap API - FastAPI Application Entry Point.

Resume vs. job description gap analysis: submissions are answered from the
result cache when possible, otherwise queued for the Celery analysis worker
and polled until they reach a terminal status.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from skillgap.api.routes import api_router
from skillgap.cache.result_cache import ResultCache
from skillgap.core.config import settings
from skillgap.core.database import close_db, create_engine, create_session_maker, init_db
from skillgap.core.exceptions import (
    APIException,
    InternalServerException,
    TooManyRequestsException,
)
from skillgap.core.logging import RequestIDMiddleware, get_logger, setup_logging
from skillgap.core.rate_limit import limiter
from skillgap.core.redis import create_redis
from skillgap.core.session import AnonymousSessionMiddleware
from skillgap.workers.queue import JobQueue

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler: builds and tears down process resources."""
    setup_logging()
    logger.info("starting_app", app_name=settings.app_name, env=settings.environment)

    engine = create_engine()
    redis_client = create_redis()

    app.state.engine = engine
    app.state.session_maker = create_session_maker(engine)
    app.state.redis = redis_client
    app.state.result_cache = ResultCache(redis_client)
    app.state.job_queue = JobQueue(redis_client)

    await init_db(engine)
    logger.info("database_initialized")

    yield

    logger.info("shutting_down")
    await redis_client.aclose()
    await close_db(engine)


async def api_exception_handler(request: Request, exc: APIException):
    """Handle custom API exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "details": exc.details,
        },
    )


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """slowapi limit hit; same error format as every other API error."""
    logger.warning("rate_limit_exceeded", path=request.url.path, limit=str(exc.detail))
    return await api_exception_handler(
        request, TooManyRequestsException(f"Rate limit exceeded: {exc.detail}")
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body/query validation errors in the common error format."""
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": details,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions: log full detail, return sanitized message."""
    logger.error(
        "unhandled_exception",
        exc_type=type(exc).__name__,
        exc_message=str(exc),
        path=request.url.path,
        exc_info=True,
    )

    if settings.debug:
        return await api_exception_handler(request, InternalServerException(str(exc)))

    return await api_exception_handler(request, InternalServerException())


def create_app() -> FastAPI:
    """Build the ASGI app. Tests populate app.state themselves."""
    app = FastAPI(
        title=settings.app_name,
        description="Resume and job description skill gap analysis",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Anonymous session cookie (read by the rate-limit key function)
    app.add_middleware(AnonymousSessionMiddleware)

    # Request ID correlation
    app.add_middleware(RequestIDMiddleware)

    # CORS middleware: explicit methods and headers, not wildcards
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        """Root endpoint - API info."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs" if settings.debug else None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "skillgap.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
