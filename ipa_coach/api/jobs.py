"""Scoring and job status API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ipa_coach.config import get_settings
from ipa_coach.db.models import Score
from ipa_coach.db.session import get_db
from ipa_coach.schemas.schemas import (
    Job,
    JobCreateResponse,
    JobState,
    JobStatusResponse,
    PronunciationScoring,
    ScoreRequest,
    ScoreResponse,
    SearchIndexUpdate,
)
from ipa_coach.services.job_queue import JobQueue

router = APIRouter(prefix="/v1", tags=["Scoring"])

settings = get_settings()


def get_job_queue(request: Request) -> JobQueue:
    """Job queue created in the application lifespan."""
    return request.app.state.job_queue


def _created(job: Job) -> JobCreateResponse:
    return JobCreateResponse(
        job_id=job.id,
        job_type=job.job_type.wire_tag,
        status=JobState.PENDING,
        created_at=job.created_at,
    )


@router.post(
    "/score",
    response_model=JobCreateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Score a recording",
    description="Enqueue a pronunciation scoring job for an uploaded recording.",
)
async def score_recording(
    request: ScoreRequest,
    queue: JobQueue = Depends(get_job_queue),
):
    """
    Enqueue pronunciation scoring.

    - **recording_id**: Recording to score; a re-score replaces the stored score
    - **word_id**: Word the learner attempted
    - **dialect**: Dialect of the reference pronunciation
    - **audio_url**: HTTP URL or storage key of the recording
    """
    job = Job(
        job_type=PronunciationScoring(
            recording_id=request.recording_id,
            word_id=request.word_id,
            dialect=request.dialect,
            audio_url=request.audio_url,
        ),
        max_retries=settings.job_max_retries,
    )
    await queue.enqueue(job)
    return _created(job)


@router.post(
    "/search-index/{word_id}",
    response_model=JobCreateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Reindex a word",
    description="Enqueue a search index update for a word.",
)
async def reindex_word(
    word_id: UUID,
    queue: JobQueue = Depends(get_job_queue),
):
    job = Job(
        job_type=SearchIndexUpdate(word_id=word_id),
        max_retries=settings.job_max_retries,
    )
    await queue.enqueue(job)
    return _created(job)


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatusResponse,
    summary="Get job status",
    description="Get the state of a job and its result once finished.",
)
async def get_job(
    job_id: UUID,
    queue: JobQueue = Depends(get_job_queue),
):
    """Results are kept for an hour after the job finishes."""
    result, job_status = await queue.get_result_and_status(job_id)
    return JobStatusResponse(job_id=job_id, status=job_status, result=result)


@router.get(
    "/scores/{recording_id}",
    response_model=ScoreResponse,
    summary="Get recording score",
    description="Get the stored pronunciation score of a recording.",
)
async def get_score(
    recording_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Score).where(Score.recording_id == str(recording_id))
    )
    score = result.scalar_one_or_none()

    if not score:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No score for recording {recording_id}",
        )

    return score
