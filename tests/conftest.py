"""
Shared fixtures.

Settings are read at import time, so the environment is prepared before any
skillgap module is imported: in-memory rate-limit storage and a SQLite URL.
Redis, the provider and the Celery publisher are replaced with in-process
test doubles; the SQL store is a real aiosqlite database.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Union

import pytest
from kombu.exceptions import OperationalError as KombuOperationalError
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.pool import StaticPool

from skillgap.cache.result_cache import ResultCache
from skillgap.core.database import close_db, create_engine, create_session_maker, init_db
from skillgap.models.analysis import Analysis
from skillgap.workers.queue import JobQueue


# ── Test doubles ─────────────────────────────────────────────────────────────

class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (only the calls we use)."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.closed = False

    async def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    async def set(self, key: str, value: Any, ex: Optional[int] = None, nx: bool = False):
        if nx and key in self.store:
            return None
        self.store[key] = str(value)
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if key in self.store)

    async def incr(self, key: str) -> int:
        value = int(self.store.get(key, "0")) + 1
        self.store[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return key in self.store

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True


class BrokenRedis:
    """Every call fails like an unreachable Redis server."""

    def __getattr__(self, name: str):
        async def _fail(*args, **kwargs):
            raise RedisConnectionError("Connection refused")

        return _fail


class ScriptedProvider:
    """
    TextGenerator double. Returns (or raises) the scripted responses in
    order; the last one repeats once the script runs out.
    """

    def __init__(self, responses: List[Union[str, BaseException]]):
        self.responses = list(responses)
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        index = min(len(self.prompts), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        return response


class RecordingTask:
    """Stands in for the Celery task; records apply_async calls."""

    def __init__(self, fail: bool = False):
        self.calls: List[Dict[str, Any]] = []
        self.fail = fail

    def apply_async(self, args=None, task_id=None, queue=None, **kwargs):
        if self.fail:
            raise KombuOperationalError("Broker connection refused")
        self.calls.append({"args": args, "task_id": task_id, "queue": queue})
        return SimpleNamespace(id=task_id)


class FakeCelery:
    """AsyncResult lookups against a fixed state table."""

    def __init__(self, states: Optional[Dict[str, tuple]] = None):
        self.states = states or {}

    def AsyncResult(self, task_id: str):
        state, info = self.states.get(task_id, ("PENDING", None))
        return SimpleNamespace(id=task_id, state=state, info=info)


# ── Sample data ──────────────────────────────────────────────────────────────

RESUME_TEXT = "A" * 50
JOB_DESCRIPTION = "B" * 50

VALID_DOCUMENT = {
    "missingSkills": ["Docker"],
    "learningPath": [
        {"description": "Containerise a small Flask app", "resource": "https://docs.docker.com"},
        {"description": "Write a docker-compose file for app plus database"},
        {"description": "Publish an image to a registry from CI"},
    ],
    "interviewQuestions": [
        "How does a Docker image layer cache work?",
        "When would you use a multi-stage build?",
        "How do you pass secrets to a container safely?",
    ],
    "status": "COMPLETED",
}


def fenced(document: Dict[str, Any], trailer: str = "") -> str:
    """Provider-style answer: JSON inside a ```json fence."""
    return f"Here is the analysis:\n```json\n{json.dumps(document)}\n```\n{trailer}"


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
async def engine():
    """One in-memory SQLite database per test, shared by every session."""
    engine = create_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine, create_tables=True)
    yield engine
    await close_db(engine)


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return ResultCache(fake_redis, ttl_seconds=86400, key_prefix="analysis:")


@pytest.fixture
def task():
    return RecordingTask()


@pytest.fixture
def fake_celery():
    return FakeCelery()


@pytest.fixture
def queue(fake_redis, task, fake_celery):
    return JobQueue(fake_redis, task=task, celery=fake_celery, queue_name="analysis")


@pytest.fixture
def load_analysis(session_maker):
    """Read a row through a fresh session (never a stale identity map)."""

    async def _load(analysis_id) -> Optional[Analysis]:
        async with session_maker() as db:
            return await db.get(Analysis, analysis_id)

    return _load
