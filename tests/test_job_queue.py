"""Tests for the Redis job queue and the job wire format."""

import json
from uuid import uuid4

import pytest
from pydantic import TypeAdapter, ValidationError

from ipa_coach.schemas.schemas import (
    Job,
    JobFailure,
    JobResult,
    JobState,
    JobSuccess,
    PronunciationScoring,
    SearchIndexUpdate,
)
from ipa_coach.services.job_queue import JobQueue, processing_key, result_key


def scoring_job(**kwargs) -> Job:
    return Job(
        job_type=PronunciationScoring(
            recording_id=uuid4(),
            word_id=uuid4(),
            dialect="GA",
            audio_url="https://example.com/audio.wav",
        ),
        **kwargs,
    )


def test_job_serialization():
    job = scoring_job()
    data = json.loads(job.model_dump_json())

    assert set(data["job_type"]) == {"PronunciationScoring"}
    assert data["job_type"]["PronunciationScoring"]["dialect"] == "GA"
    assert data["retry_count"] == 0
    assert data["max_retries"] == 3

    restored = Job.model_validate_json(job.model_dump_json())
    assert restored == job
    assert isinstance(restored.job_type, PronunciationScoring)


def test_search_job_round_trip():
    job = Job(job_type=SearchIndexUpdate(word_id=uuid4()))
    restored = Job.model_validate_json(job.model_dump_json())
    assert isinstance(restored.job_type, SearchIndexUpdate)


def test_next_attempt_keeps_id():
    job = scoring_job(max_retries=1)
    retry = job.next_attempt()
    assert retry.id == job.id
    assert retry.retry_count == 1
    with pytest.raises(ValueError):
        retry.next_attempt()


def test_retry_count_cannot_exceed_max_retries():
    with pytest.raises(ValidationError):
        scoring_job(retry_count=7, max_retries=3)

    payload = json.loads(scoring_job().model_dump_json())
    payload.update(retry_count=4, max_retries=3)
    with pytest.raises(ValidationError):
        Job.model_validate(payload)

    assert scoring_job(retry_count=3, max_retries=3).retry_count == 3


def test_parses_job_from_another_producer():
    payload = """
    {
        "id": "7f1c2a4e-9b1d-4c55-8d2e-2b6b1d0c9a11",
        "job_type": {
            "PronunciationScoring": {
                "recording_id": "0b8f6f0e-3f6a-4f0e-9d5a-5c7e3f7b2a10",
                "word_id": "e2d7a1c4-6b3f-4a8e-9c1d-7f5e2b4a6c38",
                "dialect": "RP",
                "audio_url": "recordings/0b8f6f0e.wav"
            }
        },
        "created_at": "2024-05-01T12:00:00Z",
        "retry_count": 1,
        "max_retries": 3
    }
    """
    job = Job.model_validate_json(payload)

    assert str(job.id) == "7f1c2a4e-9b1d-4c55-8d2e-2b6b1d0c9a11"
    assert isinstance(job.job_type, PronunciationScoring)
    assert str(job.job_type.recording_id) == "0b8f6f0e-3f6a-4f0e-9d5a-5c7e3f7b2a10"
    assert job.job_type.dialect == "RP"
    assert job.retry_count == 1

    search = Job.model_validate_json(
        '{"id": "7f1c2a4e-9b1d-4c55-8d2e-2b6b1d0c9a12",'
        ' "job_type": {"SearchIndexUpdate": {"word_id": "e2d7a1c4-6b3f-4a8e-9c1d-7f5e2b4a6c38"}},'
        ' "created_at": "2024-05-01T12:00:00Z", "retry_count": 0, "max_retries": 3}'
    )
    assert isinstance(search.job_type, SearchIndexUpdate)


def test_job_type_without_variant_key_is_rejected():
    payload = json.loads(scoring_job().model_dump_json())
    payload["job_type"] = payload["job_type"]["PronunciationScoring"]
    with pytest.raises(ValidationError):
        Job.model_validate(payload)

    payload["job_type"] = {"Transcription": {"word_id": str(uuid4())}}
    with pytest.raises(ValidationError):
        Job.model_validate(payload)


def test_result_wire_shape():
    adapter = TypeAdapter(JobResult)

    assert json.loads(adapter.dump_json(JobSuccess(data={"a": 1}))) == {"Success": {"data": {"a": 1}}}

    failure = adapter.validate_json('{"Failure": {"error": "timeout", "retryable": true}}')
    assert failure == JobFailure(error="timeout", retryable=True)


@pytest.mark.asyncio
async def test_enqueue_dequeue_fifo(job_queue: JobQueue):
    first, second = scoring_job(), scoring_job()
    await job_queue.enqueue(first)
    await job_queue.enqueue(second)

    assert await job_queue.length() == 2
    assert (await job_queue.dequeue(1)).id == first.id
    assert (await job_queue.dequeue(1)).id == second.id
    assert await job_queue.length() == 0


@pytest.mark.asyncio
async def test_dequeue_timeout_returns_none(job_queue: JobQueue):
    assert await job_queue.dequeue(1) is None


@pytest.mark.asyncio
async def test_retry_goes_behind_fresh_work(job_queue: JobQueue):
    fresh = scoring_job()
    retried = scoring_job().next_attempt()
    await job_queue.enqueue(fresh)
    await job_queue.requeue(retried)

    assert (await job_queue.dequeue(1)).id == fresh.id
    assert (await job_queue.dequeue(1)).id == retried.id


@pytest.mark.asyncio
async def test_retry_to_head_when_configured(redis):
    queue = JobQueue(redis, queue_key="head_queue", retry_position="head")
    fresh = scoring_job()
    retried = scoring_job().next_attempt()
    await queue.enqueue(fresh)
    await queue.requeue(retried)

    assert (await queue.dequeue(1)).id == retried.id


@pytest.mark.asyncio
async def test_results_expire_after_ttl(job_queue: JobQueue, redis):
    job = scoring_job()
    await job_queue.store_result(job.id, JobSuccess(data={"ok": True}))

    ttl = await redis.ttl(result_key(job.id))
    assert 0 < ttl <= 3600


@pytest.mark.asyncio
async def test_get_result_and_status(job_queue: JobQueue):
    job = scoring_job()
    assert await job_queue.get_result(job.id) is None
    assert await job_queue.is_completed(job.id) is False
    assert await job_queue.get_status(job.id) == JobState.PENDING

    await job_queue.mark_processing(job.id)
    assert await job_queue.get_status(job.id) == JobState.PROCESSING

    await job_queue.store_result(job.id, JobSuccess(data={"recording_id": "r1"}))
    await job_queue.clear_processing(job.id)

    result = await job_queue.get_result(job.id)
    assert isinstance(result, JobSuccess)
    assert result.data == {"recording_id": "r1"}
    assert await job_queue.is_completed(job.id) is True
    assert await job_queue.get_status(job.id) == JobState.COMPLETED


@pytest.mark.asyncio
async def test_failure_status(job_queue: JobQueue, redis):
    job = scoring_job()
    await job_queue.store_result(job.id, JobFailure(error="boom", retryable=False))

    assert await job_queue.get_status(job.id) == JobState.FAILED
    stored = json.loads(await redis.get(result_key(job.id)))
    assert stored == {"Failure": {"error": "boom", "retryable": False}}
    assert not await redis.exists(processing_key(job.id))


@pytest.mark.asyncio
async def test_result_and_status_read_together(job_queue: JobQueue):
    job = scoring_job()
    assert await job_queue.get_result_and_status(job.id) == (None, JobState.PENDING)

    await job_queue.mark_processing(job.id)
    assert await job_queue.get_result_and_status(job.id) == (None, JobState.PROCESSING)

    failure = JobFailure(error="boom", retryable=False)
    await job_queue.store_result(job.id, failure)
    assert await job_queue.get_result_and_status(job.id) == (failure, JobState.FAILED)
