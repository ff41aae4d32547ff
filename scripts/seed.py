"""
Seed script - creates the tables and one sample analysis for local development.

Usage:
    python -m scripts.seed

The sample analysis is stored as COMPLETED under a fixed dev session id and
written through to the result cache, so submitting the same two texts from
the API (or from /docs) answers with cached=true straight away.

This script is IDEMPOTENT - running it twice won't create duplicates.
It checks for an existing COMPLETED row for the sample fingerprint first.
"""
import asyncio

from skillgap.cache.result_cache import ResultCache
from skillgap.core.database import close_db, create_engine, create_session_maker, init_db
from skillgap.core.hashing import content_hash
from skillgap.core.redis import create_redis
from skillgap.repositories.analysis_repository import AnalysisRepository
from skillgap.repositories.anonymous_user_repository import AnonymousUserRepository
from skillgap.schemas.analysis import GapAnalysisResult

DEV_SESSION_ID = "dev-session-0000000000000000"

SAMPLE_RESUME = (
    "Backend engineer with four years of Python experience. Built REST APIs with "
    "FastAPI and Django, PostgreSQL schema design, Celery background jobs, and "
    "CI pipelines on GitHub Actions."
)

SAMPLE_JOB_DESCRIPTION = (
    "We are hiring a platform engineer to run containerised Python services on "
    "Kubernetes. Experience with Docker, Terraform and observability tooling "
    "(Prometheus, Grafana) is required."
)

SAMPLE_RESULT = {
    "missingSkills": ["Docker", "Kubernetes", "Terraform", "Prometheus"],
    "learningPath": [
        {
            "description": "Containerise an existing FastAPI service with a multi-stage Dockerfile",
            "resource": "https://docs.docker.com/get-started/",
        },
        {
            "description": "Deploy the container to a local Kubernetes cluster with kind",
            "resource": "https://kubernetes.io/docs/tutorials/",
        },
        {
            "description": "Provision the cluster infrastructure with Terraform modules",
            "resource": "https://developer.hashicorp.com/terraform/tutorials",
        },
    ],
    "interviewQuestions": [
        "How would you size resource requests and limits for a Python API pod?",
        "Walk through how you would roll back a failed Kubernetes deployment.",
        "How do you keep Terraform state safe when several engineers apply changes?",
    ],
    "status": "COMPLETED",
}


async def seed():
    """Create tables and insert the sample analysis."""
    print("Seeding database...")

    engine = create_engine()
    redis_client = create_redis()
    analysis_repo = AnalysisRepository()
    user_repo = AnonymousUserRepository()
    cache = ResultCache(redis_client)

    try:
        await init_db(engine, create_tables=True)
        print("  Tables created")

        fingerprint = content_hash(SAMPLE_RESUME, SAMPLE_JOB_DESCRIPTION)
        result = GapAnalysisResult.model_validate(SAMPLE_RESULT)

        async with create_session_maker(engine)() as db:
            existing = await analysis_repo.find_latest_completed_by_hash(db, fingerprint)
            if existing:
                print(f"  Sample analysis already exists ({existing.id}), skipping...")
            else:
                owner = await user_repo.touch_or_create(db, DEV_SESSION_ID)
                analysis = await analysis_repo.create_pending(
                    db,
                    content_hash=fingerprint,
                    resume_text=SAMPLE_RESUME,
                    job_description=SAMPLE_JOB_DESCRIPTION,
                    anonymous_user_id=owner.id,
                    resume_filename="sample_resume.pdf",
                )
                await analysis_repo.set_completed(
                    db, analysis.id, result.to_document(), processing_time_ms=0
                )
                await db.commit()
                print(f"  Created sample analysis {analysis.id}")

            total = await analysis_repo.count(db)

        await cache.put(fingerprint, result)
        print("  Result cache warmed")
    finally:
        await redis_client.aclose()
        await close_db(engine)

    print()
    print("Seed complete!")
    print(f"  Analyses in store: {total}")
    print(f"  Session cookie: gap_session={DEV_SESSION_ID}")


if __name__ == "__main__":
    asyncio.run(seed())
