"""
Tests for the analysis worker's bounded retry loop.

These tests verify:
1. First-attempt success → COMPLETED, cache written under the recomputed fingerprint
2. Correction prompts carry the previous diagnostic
3. Always-unparseable provider → FAILED after exactly MAX_ATTEMPTS calls
4. Provider faults and timeouts consume attempts like coercion failures
5. Redelivery of a terminal job is a no-op
6. The attempt budget survives redelivery
"""
import asyncio
import uuid

import pytest

from skillgap.core.exceptions import ProviderError
from skillgap.core.hashing import content_hash
from skillgap.core.rate_limit import ProviderRateLimiter
from skillgap.models.analysis import AnalysisStatus
from skillgap.repositories.analysis_repository import AnalysisRepository
from skillgap.schemas.analysis import GapAnalysisResult
from skillgap.services.response_coercer import coerce_response
from skillgap.workers.analysis_worker import BUDGET_EXHAUSTED_MESSAGE, AnalysisWorker
from tests.conftest import (
    JOB_DESCRIPTION,
    RESUME_TEXT,
    VALID_DOCUMENT,
    ScriptedProvider,
    fenced,
)

MAX_ATTEMPTS = 3


async def _pending(session_maker, retry_count=0):
    repo = AnalysisRepository(max_attempts=MAX_ATTEMPTS)
    async with session_maker() as db:
        analysis = await repo.create_pending(
            db,
            content_hash=content_hash(RESUME_TEXT, JOB_DESCRIPTION),
            resume_text=RESUME_TEXT,
            job_description=JOB_DESCRIPTION,
        )
        for _ in range(retry_count):
            await repo.increment_retry(db, analysis.id)
        await db.commit()
        return analysis.id


@pytest.fixture
def make_worker(session_maker, cache):
    def _make(provider, **kwargs):
        kwargs.setdefault("max_attempts", MAX_ATTEMPTS)
        kwargs.setdefault("provider_timeout_seconds", 5)
        return AnalysisWorker(session_maker=session_maker, provider=provider, cache=cache, **kwargs)

    return _make


class TestSuccess:

    async def test_first_attempt_success(self, make_worker, session_maker, cache, load_analysis):
        analysis_id = await _pending(session_maker)
        provider = ScriptedProvider([fenced(VALID_DOCUMENT)])

        outcome = await make_worker(provider).process(analysis_id)

        assert outcome["success"] is True
        assert outcome["analysis_id"] == str(analysis_id)
        assert provider.calls == 1

        row = await load_analysis(analysis_id)
        assert row.status == AnalysisStatus.COMPLETED.value
        assert row.retry_count == 0
        assert row.result == GapAnalysisResult.model_validate(VALID_DOCUMENT).to_document()
        assert row.processing_time_ms is not None

        cached = await cache.get(content_hash(RESUME_TEXT, JOB_DESCRIPTION))
        assert cached == GapAnalysisResult.model_validate(VALID_DOCUMENT)

    async def test_recovers_with_correction_prompt(self, make_worker, session_maker, load_analysis):
        """Attempt 2 quotes attempt 1's diagnostic and succeeds."""
        analysis_id = await _pending(session_maker)
        provider = ScriptedProvider(["this is not json", fenced(VALID_DOCUMENT)])

        outcome = await make_worker(provider).process(analysis_id)

        assert outcome["success"] is True
        assert provider.calls == 2
        assert "Error: JSON parse error: Invalid JSON syntax" in provider.prompts[1]
        assert "previous response was invalid" in provider.prompts[1]
        assert "previous response was invalid" not in provider.prompts[0]

        row = await load_analysis(analysis_id)
        assert row.status == AnalysisStatus.COMPLETED.value
        assert row.retry_count == 1

    async def test_progress_is_reported(self, make_worker, session_maker):
        analysis_id = await _pending(session_maker)
        reported = []

        await make_worker(
            ScriptedProvider([fenced(VALID_DOCUMENT)]), on_progress=reported.append
        ).process(analysis_id)

        assert reported[0] == 0
        assert reported[-1] == 100

    async def test_progress_failure_does_not_fail_the_job(self, make_worker, session_maker):
        analysis_id = await _pending(session_maker)

        def _explode(percent):
            raise RuntimeError("result backend down")

        outcome = await make_worker(
            ScriptedProvider([fenced(VALID_DOCUMENT)]), on_progress=_explode
        ).process(analysis_id)

        assert outcome["success"] is True


class TestRetryExhaustion:

    async def test_always_unparseable_fails_after_max_attempts(
        self, make_worker, session_maker, cache, load_analysis
    ):
        analysis_id = await _pending(session_maker)
        provider = ScriptedProvider(["nope"])

        outcome = await make_worker(provider).process(analysis_id)

        assert outcome["success"] is False
        assert outcome["error"] == "JSON parse error: Invalid JSON syntax"
        assert provider.calls == MAX_ATTEMPTS

        row = await load_analysis(analysis_id)
        assert row.status == AnalysisStatus.FAILED.value
        assert row.retry_count == MAX_ATTEMPTS
        assert row.error_message
        assert row.result is None
        assert await cache.get(content_hash(RESUME_TEXT, JOB_DESCRIPTION)) is None

    async def test_schema_violation_lists_the_field(self, make_worker, session_maker, load_analysis):
        analysis_id = await _pending(session_maker)
        bad = dict(VALID_DOCUMENT, interviewQuestions=["just one"])

        await make_worker(ScriptedProvider([fenced(bad)])).process(analysis_id)

        row = await load_analysis(analysis_id)
        assert row.status == AnalysisStatus.FAILED.value
        assert row.error_message.startswith("Schema validation failed: ")
        assert "interviewQuestions" in row.error_message

    async def test_provider_error_consumes_an_attempt(self, make_worker, session_maker, load_analysis):
        analysis_id = await _pending(session_maker)
        provider = ScriptedProvider([ProviderError("AI provider rate limit reached"), fenced(VALID_DOCUMENT)])

        outcome = await make_worker(provider).process(analysis_id)

        assert outcome["success"] is True
        assert "Error: AI provider rate limit reached" in provider.prompts[1]
        assert (await load_analysis(analysis_id)).retry_count == 1

    async def test_unexpected_exception_is_a_generic_diagnostic(
        self, make_worker, session_maker, load_analysis
    ):
        """Raw exception text never becomes the stored error."""
        analysis_id = await _pending(session_maker)
        provider = ScriptedProvider([KeyError("secret internal detail")])

        await make_worker(provider).process(analysis_id)

        row = await load_analysis(analysis_id)
        assert row.status == AnalysisStatus.FAILED.value
        assert row.error_message == "Unexpected AI provider error"
        assert "secret" not in row.error_message

    async def test_deeply_nested_output_fails_the_row(
        self, make_worker, session_maker, load_analysis
    ):
        analysis_id = await _pending(session_maker)
        provider = ScriptedProvider(["[" * 5000 + "]" * 5000])

        outcome = await make_worker(provider).process(analysis_id)

        assert outcome["success"] is False
        assert provider.calls == MAX_ATTEMPTS
        row = await load_analysis(analysis_id)
        assert row.status == AnalysisStatus.FAILED.value
        assert row.error_message.startswith("JSON parse error")

    async def test_coercion_crash_consumes_an_attempt(
        self, make_worker, session_maker, load_analysis, monkeypatch
    ):
        """An exception escaping coercion is charged like a provider fault."""
        real_coerce = coerce_response
        calls = []

        def flaky_coerce(raw):
            calls.append(raw)
            if len(calls) == 1:
                raise RecursionError("maximum recursion depth exceeded")
            return real_coerce(raw)

        monkeypatch.setattr("skillgap.workers.analysis_worker.coerce_response", flaky_coerce)
        analysis_id = await _pending(session_maker)

        outcome = await make_worker(ScriptedProvider([fenced(VALID_DOCUMENT)])).process(analysis_id)

        assert outcome["success"] is True
        row = await load_analysis(analysis_id)
        assert row.status == AnalysisStatus.COMPLETED.value
        assert row.retry_count == 1

    async def test_hanging_provider_times_out(self, make_worker, session_maker, load_analysis):
        """Each attempt is bounded by the provider timeout."""

        class HangingProvider:
            calls = 0

            async def generate(self, prompt):
                HangingProvider.calls += 1
                await asyncio.sleep(10)
                return ""

        analysis_id = await _pending(session_maker)
        outcome = await make_worker(
            HangingProvider(), provider_timeout_seconds=0.01
        ).process(analysis_id)

        assert outcome["success"] is False
        assert HangingProvider.calls == MAX_ATTEMPTS
        row = await load_analysis(analysis_id)
        assert row.error_message == "AI provider timed out after 0.01s"
        assert row.retry_count == MAX_ATTEMPTS


class TestIdempotency:

    async def test_completed_job_is_a_no_op(self, make_worker, session_maker, load_analysis):
        """Redelivery of a COMPLETED id makes no provider call and no write."""
        analysis_id = await _pending(session_maker)
        await make_worker(ScriptedProvider([fenced(VALID_DOCUMENT)])).process(analysis_id)
        before = await load_analysis(analysis_id)

        provider = ScriptedProvider(["should never be used"])
        outcome = await make_worker(provider).process(analysis_id)

        after = await load_analysis(analysis_id)
        assert outcome["skipped"] is True
        assert outcome["success"] is True
        assert provider.calls == 0
        assert after.status == before.status
        assert after.result == before.result
        assert after.updated_at == before.updated_at

    async def test_failed_job_is_a_no_op(self, make_worker, session_maker, load_analysis):
        analysis_id = await _pending(session_maker)
        await make_worker(ScriptedProvider(["nope"])).process(analysis_id)

        provider = ScriptedProvider([fenced(VALID_DOCUMENT)])
        outcome = await make_worker(provider).process(analysis_id)

        assert outcome["skipped"] is True
        assert outcome["success"] is False
        assert provider.calls == 0
        assert (await load_analysis(analysis_id)).status == AnalysisStatus.FAILED.value

    async def test_missing_analysis(self, make_worker):
        provider = ScriptedProvider([fenced(VALID_DOCUMENT)])
        outcome = await make_worker(provider).process(uuid.uuid4())

        assert outcome["skipped"] is True
        assert outcome["success"] is False
        assert provider.calls == 0

    async def test_budget_survives_redelivery(self, make_worker, session_maker, load_analysis):
        """A redelivered job only gets the attempts its first run left over."""
        analysis_id = await _pending(session_maker, retry_count=2)
        provider = ScriptedProvider(["nope"])

        await make_worker(provider).process(analysis_id)

        assert provider.calls == 1
        row = await load_analysis(analysis_id)
        assert row.status == AnalysisStatus.FAILED.value
        assert row.retry_count == MAX_ATTEMPTS

    async def test_exhausted_budget_fails_without_calling(
        self, make_worker, session_maker, load_analysis
    ):
        analysis_id = await _pending(session_maker, retry_count=MAX_ATTEMPTS)
        provider = ScriptedProvider([fenced(VALID_DOCUMENT)])

        await make_worker(provider).process(analysis_id)

        assert provider.calls == 0
        row = await load_analysis(analysis_id)
        assert row.status == AnalysisStatus.FAILED.value
        assert row.error_message == BUDGET_EXHAUSTED_MESSAGE


class TestRateLimiting:

    async def test_each_attempt_acquires_a_slot(self, make_worker, session_maker, fake_redis):
        analysis_id = await _pending(session_maker)
        limiter = ProviderRateLimiter(fake_redis, limit=10, window_seconds=60, clock=lambda: 120.0)

        await make_worker(
            ScriptedProvider(["nope", fenced(VALID_DOCUMENT)]), rate_limiter=limiter
        ).process(analysis_id)

        assert fake_redis.store["ratelimit:provider:2"] == "2"
