"""Pytest configuration and fixtures."""

import os

# Point the app at SQLite before any ipa_coach module reads settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from typing import AsyncGenerator
from uuid import UUID

import fakeredis
import numpy as np
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ipa_coach.api.jobs import get_job_queue
from ipa_coach.db.session import get_db, init_db
from ipa_coach.main import app
from ipa_coach.services.interfaces import (
    AudioSource,
    ScoreNotifier,
    ScoreRepository,
    SearchIndexer,
)
from ipa_coach.services.job_queue import JobQueue
from ipa_coach.services.scoring import PronunciationScore


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a throwaway SQLite database engine."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def redis():
    """In-process Redis with its own keyspace."""
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)

    yield client

    await client.aclose()


@pytest_asyncio.fixture
async def job_queue(redis) -> JobQueue:
    return JobQueue(redis, queue_key="job_queue", result_ttl=3600, retry_position="tail")


@pytest_asyncio.fixture
async def client(session_maker, job_queue) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_job_queue] = lambda: job_queue

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ============== Collaborator fakes ==============


class FakeAudioSource(AudioSource):
    """Serves fixed clips; fails the first `failures` fetches (negative: every fetch)."""

    def __init__(self, audio=None, reference=None, failures: int = 0):
        self.audio = np.full(16000, 0.1, dtype=np.float32) if audio is None else audio
        self.reference = self.audio if reference is None else reference
        self.failures = failures
        self.fetched: list[str] = []

    async def fetch(self, url: str) -> np.ndarray:
        self.fetched.append(url)
        if self.failures != 0:
            self.failures -= 1
            raise ConnectionError(f"Unable to download {url}")
        return self.audio

    async def lookup_reference(self, word_id: UUID, dialect: str) -> np.ndarray:
        return self.reference


class FakeScoreRepository(ScoreRepository):
    def __init__(self):
        self.saved: dict[UUID, PronunciationScore] = {}

    async def upsert_score(self, recording_id, score, latency_ms=0):
        self.saved[recording_id] = score


class FakeNotifier(ScoreNotifier):
    def __init__(self):
        self.notified: list[UUID] = []

    async def notify(self, recording_id, score):
        self.notified.append(recording_id)


class FakeSearchIndexer(SearchIndexer):
    def __init__(self):
        self.indexed: list[dict] = []

    async def load_word(self, word_id):
        return {"id": str(word_id), "text": "example", "ipa": "ɪɡˈzæmpəl", "dialect": "GA"}

    async def index_word(self, document):
        self.indexed.append(document)


@pytest.fixture
def audio_source() -> FakeAudioSource:
    return FakeAudioSource()


@pytest.fixture
def score_repository() -> FakeScoreRepository:
    return FakeScoreRepository()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def search_indexer() -> FakeSearchIndexer:
    return FakeSearchIndexer()
