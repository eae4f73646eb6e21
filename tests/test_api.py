"""Tests for API endpoints."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

from ipa_coach.schemas.schemas import Job, JobFailure, JobSuccess, SearchIndexUpdate
from ipa_coach.services.score_repository import SqlScoreRepository
from ipa_coach.services.scoring import PronunciationScore
from ipa_coach.services.storage import storage_service


def score_request(**overrides) -> dict:
    body = {
        "recording_id": str(uuid4()),
        "word_id": str(uuid4()),
        "dialect": "GA",
        "audio_url": "recordings/attempt.wav",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient, monkeypatch):
    """Test health check endpoint."""
    monkeypatch.setattr(storage_service, "health_check", lambda: True)

    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["redis"] == "ok"
    assert data["database"] == "ok"


@pytest.mark.asyncio
async def test_health_degraded_without_storage(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(storage_service, "health_check", lambda: False)

    response = await client.get("/health")
    data = response.json()
    assert data["status"] == "degraded"
    assert data["storage"] == "error"


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    """Test root endpoint."""
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "IPA Coach Scoring Service"


@pytest.mark.asyncio
async def test_dialects_endpoint(client: AsyncClient):
    """Test dialect listing endpoint."""
    response = await client.get("/v1/dialects")
    assert response.status_code == 200
    data = response.json()
    codes = {d["code"] for d in data}
    assert {"GA", "RP", "AU"} <= codes
    assert len(data) == 10


@pytest.mark.asyncio
async def test_score_enqueues_job(client: AsyncClient, job_queue):
    response = await client.post("/v1/score", json=score_request())

    assert response.status_code == 202
    data = response.json()
    assert data["job_type"] == "PronunciationScoring"
    assert data["status"] == "pending"
    assert await job_queue.length() == 1

    job = await job_queue.dequeue(1)
    assert str(job.id) == data["job_id"]
    assert job.retry_count == 0


@pytest.mark.asyncio
async def test_score_rejects_unknown_dialect(client: AsyncClient, job_queue):
    response = await client.post("/v1/score", json=score_request(dialect="XX"))

    assert response.status_code == 422
    assert await job_queue.length() == 0


@pytest.mark.asyncio
async def test_score_rejects_bad_recording_id(client: AsyncClient):
    response = await client.post("/v1/score", json=score_request(recording_id="not-a-uuid"))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_search_index_enqueues_job(client: AsyncClient, job_queue):
    word_id = uuid4()
    response = await client.post(f"/v1/search-index/{word_id}")

    assert response.status_code == 202
    assert response.json()["job_type"] == "SearchIndexUpdate"

    job = await job_queue.dequeue(1)
    assert job.job_type.word_id == word_id


@pytest.mark.asyncio
async def test_job_status_lifecycle(client: AsyncClient, job_queue):
    response = await client.post("/v1/score", json=score_request())
    job_id = response.json()["job_id"]

    response = await client.get(f"/v1/jobs/{job_id}")
    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert response.json()["result"] is None

    await job_queue.mark_processing(job_id)
    response = await client.get(f"/v1/jobs/{job_id}")
    assert response.json()["status"] == "processing"

    await job_queue.store_result(job_id, JobSuccess(data={"overall_pct": 91.0}))
    await job_queue.clear_processing(job_id)

    response = await client.get(f"/v1/jobs/{job_id}")
    data = response.json()
    assert data["status"] == "completed"
    assert data["result"] == {"Success": {"data": {"overall_pct": 91.0}}}


@pytest.mark.asyncio
async def test_failed_job_status(client: AsyncClient, job_queue):
    job_id = uuid4()
    await job_queue.store_result(job_id, JobFailure(error="Unable to download", retryable=False))

    response = await client.get(f"/v1/jobs/{job_id}")
    data = response.json()
    assert data["status"] == "failed"
    assert data["result"]["Failure"]["retryable"] is False
    assert data["result"]["Failure"]["error"] == "Unable to download"


@pytest.mark.asyncio
async def test_get_job_invalid_id(client: AsyncClient):
    response = await client.get("/v1/jobs/not-a-uuid")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_score_not_found(client: AsyncClient):
    response = await client.get(f"/v1/scores/{uuid4()}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_score(client: AsyncClient, session_maker):
    recording_id = uuid4()
    await SqlScoreRepository(session_maker).upsert_score(
        recording_id,
        PronunciationScore(
            overall_pct=82.0,
            per_phoneme={"phoneme_0": 80.0},
            alignment_cost=18.0,
            confidence=0.7,
        ),
        latency_ms=250,
    )

    response = await client.get(f"/v1/scores/{recording_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["recording_id"] == str(recording_id)
    assert data["overall_pct"] == 82.0
    assert data["confidence"] == 0.7
    assert data["latency_ms"] == 250


@pytest.mark.asyncio
async def test_service_info_reports_queue_length(client: AsyncClient, job_queue):
    await job_queue.enqueue(Job(job_type=SearchIndexUpdate(word_id=uuid4())))

    response = await client.get("/v1/info")
    assert response.status_code == 200
    data = response.json()
    assert data["queue_length"] == 1
    assert "PronunciationScoring" in data["supported_job_types"]
