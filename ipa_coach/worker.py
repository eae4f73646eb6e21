"""Background job worker: pulls jobs off the Redis queue and runs them."""

import asyncio
import logging
import signal
import time
from typing import Optional

from pydantic import ValidationError

from ipa_coach.config import get_settings
from ipa_coach.schemas.schemas import (
    Job,
    JobFailure,
    JobSuccess,
    PronunciationScoring,
    SearchIndexUpdate,
)
from ipa_coach.services.interfaces import (
    AudioSource,
    ScoreNotifier,
    ScoreRepository,
    SearchIndexer,
)
from ipa_coach.services.job_queue import JobQueue
from ipa_coach.services.scoring import PronunciationScorer

settings = get_settings()
logger = logging.getLogger(__name__)


class JobWorker:
    """
    Single cooperative worker loop.

    One job runs at a time. Scale out by starting more worker processes
    against the same queue; BLPOP hands every job to exactly one of them.
    Retry decisions are made here and nowhere else.
    """

    def __init__(
        self,
        queue: JobQueue,
        scorer: PronunciationScorer,
        audio: AudioSource,
        scores: ScoreRepository,
        notifier: ScoreNotifier,
        search: SearchIndexer,
        dequeue_timeout: Optional[float] = None,
        idle_sleep: Optional[float] = None,
        error_backoff: Optional[float] = None,
    ):
        self.queue = queue
        self.scorer = scorer
        self.audio = audio
        self.scores = scores
        self.notifier = notifier
        self.search = search
        self.dequeue_timeout = (
            settings.worker_dequeue_timeout_seconds if dequeue_timeout is None else dequeue_timeout
        )
        self.idle_sleep = settings.worker_idle_sleep_seconds if idle_sleep is None else idle_sleep
        self.error_backoff = (
            settings.worker_error_backoff_seconds if error_backoff is None else error_backoff
        )

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Process jobs until stop_event is set.

        The event is checked between iterations, so a job already running
        is allowed to finish.
        """
        logger.info("Starting background job worker")

        while not stop_event.is_set():
            try:
                processed = await self.process_next_job()
            except Exception as e:
                # Queue or result store unavailable
                logger.error(f"Error processing job: {e}", exc_info=True)
                await self._wait(stop_event, self.error_backoff)
                continue

            if not processed:
                await self._wait(stop_event, self.idle_sleep)

        logger.info("Background job worker stopped")

    @staticmethod
    async def _wait(stop_event: asyncio.Event, seconds: float) -> None:
        """Sleep, waking early if the stop event is set."""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def process_next_job(self) -> bool:
        """
        Run the next queued job, if any.

        Returns:
            False when the queue was empty, True otherwise
        """
        try:
            job = await self.queue.dequeue(self.dequeue_timeout)
        except ValidationError as e:
            logger.error(f"Discarding malformed job payload: {e}")
            return True

        if job is None:
            return False

        logger.info(f"Processing job {job.id} [{job.job_type.wire_tag}] attempt {job.retry_count + 1}")
        await self.queue.mark_processing(job.id)

        try:
            result = await self.execute(job)
        except Exception as e:
            logger.error(f"Job {job.id} failed: {e}", exc_info=True)
            await self.handle_job_failure(job, str(e) or e.__class__.__name__)
        else:
            await self.handle_job_result(job, result)
            logger.info(f"Job {job.id} completed successfully")

        return True

    async def execute(self, job: Job) -> JobSuccess:
        """Dispatch a job to its handler."""
        params = job.job_type
        if isinstance(params, PronunciationScoring):
            return await self.process_pronunciation_scoring(params)
        elif isinstance(params, SearchIndexUpdate):
            return await self.process_search_index_update(params)
        raise TypeError(f"No handler registered for job type: {type(params).__name__}")

    async def process_pronunciation_scoring(self, params: PronunciationScoring) -> JobSuccess:
        """Fetch both clips, score, persist and notify."""
        logger.info(f"Processing pronunciation scoring for recording {params.recording_id}")
        start_time = time.time()

        audio_data = await self.audio.fetch(params.audio_url)
        reference_audio = await self.audio.lookup_reference(params.word_id, params.dialect)

        score = self.scorer.score_pronunciation(audio_data, reference_audio)
        latency_ms = int((time.time() - start_time) * 1000)

        await self.scores.upsert_score(params.recording_id, score, latency_ms)
        await self.notifier.notify(params.recording_id, score)

        return JobSuccess(data=score.to_payload(params.recording_id))

    async def process_search_index_update(self, params: SearchIndexUpdate) -> JobSuccess:
        logger.info(f"Processing search index update for word {params.word_id}")

        document = await self.search.load_word(params.word_id)
        await self.search.index_word(document)

        return JobSuccess(data={"word_id": str(params.word_id), "status": "updated"})

    async def handle_job_result(self, job: Job, result: JobSuccess) -> None:
        await self.queue.store_result(job.id, result)
        await self.queue.clear_processing(job.id)

    async def handle_job_failure(self, job: Job, error: str) -> None:
        """Requeue the job while retries remain, otherwise record a permanent failure."""
        await self.queue.clear_processing(job.id)

        if job.retry_count < job.max_retries:
            retry_job = job.next_attempt()
            await self.queue.requeue(retry_job)
            logger.warning(
                f"Job {job.id} failed, retrying ({retry_job.retry_count}/{job.max_retries})"
            )
            return

        await self.queue.store_result(job.id, JobFailure(error=error, retryable=False))
        logger.error(f"Job {job.id} permanently failed after {job.max_retries} retries")


def build_worker(queue: JobQueue) -> JobWorker:
    """Wire a worker to the production collaborators."""
    from ipa_coach.db.session import async_session_maker
    from ipa_coach.services.notifier import RedisScoreNotifier
    from ipa_coach.services.score_repository import SqlScoreRepository
    from ipa_coach.services.search import MeilisearchIndexer
    from ipa_coach.services.storage import StorageAudioSource, storage_service

    return JobWorker(
        queue=queue,
        scorer=PronunciationScorer(),
        audio=StorageAudioSource(storage_service),
        scores=SqlScoreRepository(async_session_maker),
        notifier=RedisScoreNotifier(queue.redis),
        search=MeilisearchIndexer(async_session_maker),
    )


async def run_worker() -> None:
    from ipa_coach.db.session import engine

    queue = JobQueue.from_url(settings.redis_url)
    worker = build_worker(queue)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await worker.run(stop_event)
    finally:
        await queue.close()
        await engine.dispose()


def main() -> None:
    """Console entry point for `ipa-coach-worker`."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
