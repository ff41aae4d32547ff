"""
Tests for the submission coordinator and inquiry operations.

These tests verify:
1. Cache hit confirmed by the store → cached answer, no new row, no job
2. Cache miss + store hit → cached answer and cache hydration
3. Neither → exactly one PENDING row and exactly one job keyed by its id
4. Enqueue failure → row FAILED, QueueUnavailableException
5. Polling, history and job status shaping
"""
import pytest
from sqlalchemy import func, select

from skillgap.core.exceptions import (
    AnalysisNotFoundException,
    QueueUnavailableException,
    ServiceUnavailableException,
)
from skillgap.core.hashing import content_hash
from skillgap.models.analysis import Analysis, AnalysisStatus
from skillgap.repositories.analysis_repository import AnalysisRepository
from skillgap.schemas.analysis import GapAnalysisResult
from skillgap.services.analysis_service import (
    ENQUEUE_FAILED_MESSAGE,
    AnalysisService,
    public_error_message,
)
from skillgap.workers.queue import JobQueue
from tests.conftest import JOB_DESCRIPTION, RESUME_TEXT, VALID_DOCUMENT, RecordingTask

FINGERPRINT = content_hash(RESUME_TEXT, JOB_DESCRIPTION)


@pytest.fixture
def service(cache, queue):
    return AnalysisService(cache=cache, queue=queue)


@pytest.fixture
def result():
    return GapAnalysisResult.model_validate(VALID_DOCUMENT)


async def _count_rows(session_maker) -> int:
    async with session_maker() as db:
        return (await db.execute(select(func.count()).select_from(Analysis))).scalar()


async def _completed_row(session_maker, document=VALID_DOCUMENT, fingerprint=FINGERPRINT):
    repo = AnalysisRepository()
    async with session_maker() as db:
        analysis = await repo.create_pending(
            db,
            content_hash=fingerprint,
            resume_text=RESUME_TEXT,
            job_description=JOB_DESCRIPTION,
        )
        await repo.set_completed(db, analysis.id, document, 321)
        await db.commit()
        return analysis.id


class TestSubmit:
    """Submission protocol."""

    async def test_new_submission_creates_one_row_and_one_job(
        self, service, session_maker, task, load_analysis
    ):
        async with session_maker() as db:
            response = await service.submit(db, RESUME_TEXT, JOB_DESCRIPTION)

        assert response.cached is False
        assert response.status == AnalysisStatus.PENDING
        assert response.result is None
        assert await _count_rows(session_maker) == 1

        assert len(task.calls) == 1
        assert task.calls[0]["task_id"] == str(response.id)
        assert task.calls[0]["args"] == [str(response.id)]
        assert task.calls[0]["queue"] == "analysis"

        row = await load_analysis(response.id)
        assert row.status == AnalysisStatus.PENDING.value
        assert row.content_hash == FINGERPRINT

    async def test_store_hit_hydrates_cache(self, service, session_maker, cache, task, result):
        """Cache miss falls through to the store and repairs the cache."""
        analysis_id = await _completed_row(session_maker)
        assert await cache.get(FINGERPRINT) is None

        async with session_maker() as db:
            response = await service.submit(db, RESUME_TEXT, JOB_DESCRIPTION)

        assert response.cached is True
        assert response.id == analysis_id
        assert response.status == AnalysisStatus.COMPLETED
        assert response.result == result
        assert await cache.get(FINGERPRINT) == result
        assert task.calls == []
        assert await _count_rows(session_maker) == 1

    async def test_confirmed_cache_hit(self, service, session_maker, cache, task, result):
        analysis_id = await _completed_row(session_maker)
        await cache.put(FINGERPRINT, result)

        async with session_maker() as db:
            response = await service.submit(db, RESUME_TEXT, JOB_DESCRIPTION)

        assert response.cached is True
        assert response.id == analysis_id
        assert response.result == result
        assert task.calls == []

    async def test_unconfirmed_cache_hit_is_dropped(
        self, service, session_maker, cache, fake_redis, task, result
    ):
        """A cache entry with no COMPLETED row behind it is invalidated."""
        await cache.put(FINGERPRINT, result)

        async with session_maker() as db:
            response = await service.submit(db, RESUME_TEXT, JOB_DESCRIPTION)

        assert response.cached is False
        assert response.status == AnalysisStatus.PENDING
        assert f"analysis:{FINGERPRINT}" not in fake_redis.store
        assert len(task.calls) == 1

    async def test_owner_is_recorded(self, service, session_maker, load_analysis):
        async with session_maker() as db:
            response = await service.submit(
                db,
                RESUME_TEXT,
                JOB_DESCRIPTION,
                session_id="session-token-0000000001",
                resume_filename="cv.pdf",
            )

        row = await load_analysis(response.id)
        assert row.anonymous_user_id is not None
        assert row.resume_filename == "cv.pdf"

    async def test_enqueue_failure_fails_the_row(
        self, cache, fake_redis, fake_celery, session_maker
    ):
        """No row is left in PENDING when the broker refuses the job."""
        queue = JobQueue(fake_redis, task=RecordingTask(fail=True), celery=fake_celery)
        service = AnalysisService(cache=cache, queue=queue)

        async with session_maker() as db:
            with pytest.raises(QueueUnavailableException):
                await service.submit(db, RESUME_TEXT, JOB_DESCRIPTION)

        async with session_maker() as db:
            row = (await db.execute(select(Analysis))).scalar_one()
        assert row.status == AnalysisStatus.FAILED.value
        assert row.error_message == ENQUEUE_FAILED_MESSAGE
        assert row.result is None

    async def test_cache_outage_still_submits(self, cache, session_maker, fake_celery, task):
        """Redis being down for the cache does not block the store path."""
        from skillgap.cache.result_cache import ResultCache
        from tests.conftest import BrokenRedis, FakeRedis

        broken = AnalysisService(
            cache=ResultCache(BrokenRedis()),
            queue=JobQueue(FakeRedis(), task=task, celery=fake_celery),
        )
        await _completed_row(session_maker)

        async with session_maker() as db:
            response = await broken.submit(db, RESUME_TEXT, JOB_DESCRIPTION)

        assert response.cached is True
        assert task.calls == []


class TestGetAnalysis:
    """Polling."""

    async def test_not_found(self, service, session_maker):
        import uuid

        async with session_maker() as db:
            with pytest.raises(AnalysisNotFoundException):
                await service.get_analysis(db, uuid.uuid4())

    async def test_pending(self, service, session_maker):
        async with session_maker() as db:
            submitted = await service.submit(db, RESUME_TEXT, JOB_DESCRIPTION)
            polled = await service.get_analysis(db, submitted.id)

        assert polled.status == AnalysisStatus.PENDING
        assert polled.result is None
        assert polled.error_message is None
        assert polled.created_at is not None

    async def test_completed_from_store(self, service, session_maker, result):
        analysis_id = await _completed_row(session_maker)

        async with session_maker() as db:
            polled = await service.get_analysis(db, analysis_id)

        assert polled.status == AnalysisStatus.COMPLETED
        assert polled.result == result
        assert polled.ai_processing_time_ms == 321

    async def test_completed_prefers_cache(self, service, session_maker, cache):
        analysis_id = await _completed_row(session_maker)
        cached_doc = dict(VALID_DOCUMENT, missingSkills=["Kubernetes"])
        await cache.put(FINGERPRINT, GapAnalysisResult.model_validate(cached_doc))

        async with session_maker() as db:
            polled = await service.get_analysis(db, analysis_id)

        assert polled.result.missing_skills == ["Kubernetes"]

    async def test_failed_error_is_sanitized(self, service, session_maker):
        repo = AnalysisRepository()
        async with session_maker() as db:
            analysis = await repo.create_pending(
                db, content_hash=FINGERPRINT, resume_text="r", job_description="j"
            )
            await repo.set_failed(db, analysis.id, "<b>Schema</b> " + "x" * 900, 3)
            await db.commit()

        async with session_maker() as db:
            polled = await service.get_analysis(db, analysis.id)

        assert polled.status == AnalysisStatus.FAILED
        assert polled.result is None
        assert "<b>" not in polled.error_message
        assert len(polled.error_message) <= 500


class TestPublicErrorMessage:

    def test_none_passes_through(self):
        assert public_error_message(None) is None

    def test_markup_only_falls_back(self):
        assert public_error_message("<br/>") == "Analysis failed"

    def test_short_message_unchanged(self):
        assert public_error_message("JSON parse error: Invalid JSON syntax") == (
            "JSON parse error: Invalid JSON syntax"
        )


class TestHistory:

    async def test_history_is_per_session(self, service, session_maker):
        async with session_maker() as db:
            mine = await service.submit(
                db, RESUME_TEXT, JOB_DESCRIPTION, session_id="session-token-0000000001"
            )
            await service.submit(
                db, "C" * 60, JOB_DESCRIPTION, session_id="session-token-0000000002"
            )
            history = await service.get_history(db, "session-token-0000000001")

        assert history.count == 1
        assert history.analyses[0].id == mine.id

    async def test_unknown_or_missing_session(self, service, session_maker):
        async with session_maker() as db:
            assert (await service.get_history(db, None)).count == 0
            assert (await service.get_history(db, "never-seen-session-00")).count == 0

    async def test_limit_is_clamped(self, service, session_maker):
        async with session_maker() as db:
            for index in range(3):
                await service.submit(
                    db,
                    f"{index}" * 60,
                    JOB_DESCRIPTION,
                    session_id="session-token-0000000001",
                )
            zero = await service.get_history(db, "session-token-0000000001", limit=0)
            huge = await service.get_history(db, "session-token-0000000001", limit=1000)

        assert zero.count == 1
        assert huge.count == 3


class TestJobStatus:

    async def test_maps_progress(self, service, session_maker, fake_celery):
        async with session_maker() as db:
            submitted = await service.submit(db, RESUME_TEXT, JOB_DESCRIPTION)
            fake_celery.states[str(submitted.id)] = ("PROGRESS", {"progress": 33})
            status = await service.get_job_status(db, submitted.id)

        assert status.id == str(submitted.id)
        assert status.state == "PROGRESS"
        assert status.progress == 33
        assert status.ready is False

    async def test_unknown_analysis(self, service, session_maker):
        import uuid

        async with session_maker() as db:
            with pytest.raises(AnalysisNotFoundException):
                await service.get_job_status(db, uuid.uuid4())

    async def test_backend_unreachable(self, service, session_maker, queue):
        async with session_maker() as db:
            submitted = await service.submit(db, RESUME_TEXT, JOB_DESCRIPTION)

        async def _unavailable(job_id):
            return None

        queue.get_status = _unavailable
        async with session_maker() as db:
            with pytest.raises(ServiceUnavailableException):
                await service.get_job_status(db, submitted.id)
