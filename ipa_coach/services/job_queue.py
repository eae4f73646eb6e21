"""Redis list-backed job queue with an expiring result store."""

import logging
from typing import Literal, Optional
from uuid import UUID

import redis.asyncio as aioredis
from pydantic import TypeAdapter

from ipa_coach.config import get_settings
from ipa_coach.schemas.schemas import Job, JobFailure, JobResult, JobState

settings = get_settings()
logger = logging.getLogger(__name__)

RESULT_KEY_PREFIX = "job_result"
PROCESSING_KEY_PREFIX = "job_processing"

_result_adapter = TypeAdapter(JobResult)


def result_key(job_id: UUID) -> str:
    return f"{RESULT_KEY_PREFIX}:{job_id}"


def processing_key(job_id: UUID) -> str:
    return f"{PROCESSING_KEY_PREFIX}:{job_id}"


class JobQueue:
    """
    FIFO job queue on a single Redis list.

    Fresh jobs are pushed to the tail and consumed from the head with BLPOP,
    which hands each item to exactly one consumer. There is no
    acknowledgement: a worker that dies between dequeue and storing a
    result loses that job.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        queue_key: Optional[str] = None,
        result_ttl: Optional[int] = None,
        retry_position: Optional[Literal["tail", "head"]] = None,
    ):
        self.redis = redis
        self.queue_key = queue_key or settings.job_queue_key
        self.result_ttl = result_ttl or settings.job_result_ttl_seconds
        self.retry_position = retry_position or settings.job_retry_position

    @classmethod
    def from_url(cls, url: Optional[str] = None, **kwargs) -> "JobQueue":
        redis = aioredis.from_url(url or settings.redis_url, decode_responses=True)
        return cls(redis, **kwargs)

    async def enqueue(self, job: Job) -> None:
        """Push a new job onto the tail of the queue."""
        await self.redis.rpush(self.queue_key, job.model_dump_json())
        logger.info(f"Enqueued job {job.id} [{job.job_type.wire_tag}]")

    async def requeue(self, job: Job) -> None:
        """
        Push a retried job back onto the queue.

        Retries go to the tail by default so they wait behind fresh work;
        with retry_position="head" they are picked up next instead.
        """
        payload = job.model_dump_json()
        if self.retry_position == "head":
            await self.redis.lpush(self.queue_key, payload)
        else:
            await self.redis.rpush(self.queue_key, payload)

    async def dequeue(self, timeout: float = 1.0) -> Optional[Job]:
        """
        Pop the job at the head of the queue, waiting up to `timeout` seconds.

        Returns:
            The job, or None when the queue stayed empty

        Raises:
            pydantic.ValidationError: If the popped payload isn't a valid job;
                the item has already been removed from the queue
        """
        item = await self.redis.blpop([self.queue_key], timeout=timeout)
        if item is None:
            return None
        _, payload = item
        return Job.model_validate_json(payload)

    async def store_result(self, job_id: UUID, result: JobResult) -> None:
        """Store a job result with the configured expiry."""
        await self.redis.set(
            result_key(job_id),
            _result_adapter.dump_json(result),
            ex=self.result_ttl,
        )

    async def mark_processing(self, job_id: UUID) -> None:
        await self.redis.set(processing_key(job_id), "1", ex=self.result_ttl)

    async def clear_processing(self, job_id: UUID) -> None:
        await self.redis.delete(processing_key(job_id))

    async def get_result(self, job_id: UUID) -> Optional[JobResult]:
        payload = await self.redis.get(result_key(job_id))
        if payload is None:
            return None
        return _result_adapter.validate_json(payload)

    async def is_completed(self, job_id: UUID) -> bool:
        """True once a result (success or permanent failure) is stored."""
        return bool(await self.redis.exists(result_key(job_id)))

    async def get_result_and_status(
        self, job_id: UUID
    ) -> tuple[Optional[JobResult], JobState]:
        """
        Stored result of a job and the state derived from it.

        The result key is read once, so the two always agree. Unknown ids
        report PENDING: a queued job isn't indexed by id, and results
        expire after the TTL.
        """
        result = await self.get_result(job_id)
        if isinstance(result, JobFailure):
            return result, JobState.FAILED
        if result is not None:
            return result, JobState.COMPLETED
        if await self.redis.exists(processing_key(job_id)):
            return None, JobState.PROCESSING
        return None, JobState.PENDING

    async def get_status(self, job_id: UUID) -> JobState:
        """Best-effort state of a job."""
        _, state = await self.get_result_and_status(job_id)
        return state

    async def length(self) -> int:
        return await self.redis.llen(self.queue_key)

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def close(self) -> None:
        await self.redis.aclose()
