"""Health check and system info routes."""

import asyncio

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ipa_coach.api.jobs import get_job_queue
from ipa_coach.config import get_settings
from ipa_coach.db.session import get_db
from ipa_coach.schemas.schemas import DialectInfo, HealthResponse
from ipa_coach.services.job_queue import JobQueue
from ipa_coach.services.storage import storage_service

router = APIRouter(tags=["System"])

settings = get_settings()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the service and its dependencies.",
)
async def health_check(
    queue: JobQueue = Depends(get_job_queue),
    db: AsyncSession = Depends(get_db),
):
    """
    Health check endpoint.

    Returns the status of:
    - Database connection
    - Redis connection
    - Object storage connection
    """
    # Check Redis
    redis_status = "ok"
    try:
        await queue.ping()
    except Exception:
        redis_status = "error"

    # Check storage (boto3 is blocking)
    storage_ok = await asyncio.to_thread(storage_service.health_check)
    storage_status = "ok" if storage_ok else "error"

    # Check database
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        db_status = "error"

    overall_status = "healthy"
    if any(s == "error" for s in [redis_status, storage_status, db_status]):
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version="1.0.0",
        database=db_status,
        redis=redis_status,
        storage=storage_status,
    )


@router.get(
    "/v1/dialects",
    response_model=list[DialectInfo],
    summary="List supported dialects",
    description="Get the dialects reference pronunciations exist for.",
)
async def list_dialects():
    return [
        DialectInfo(code=code, name=name)
        for code, name in settings.dialects.items()
    ]


@router.get(
    "/v1/info",
    summary="Service information",
    description="Get general information about the service.",
)
async def service_info(queue: JobQueue = Depends(get_job_queue)):
    """Get service information."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "environment": settings.app_env,
        "supported_job_types": ["PronunciationScoring", "SearchIndexUpdate"],
        "supported_dialects": list(settings.dialects.keys()),
        "queue_length": await queue.length(),
        "documentation": "/docs",
    }
