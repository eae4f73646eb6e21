"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ipa_coach.api import health, jobs
from ipa_coach.config import get_settings
from ipa_coach.db.session import init_db
from ipa_coach.services.job_queue import JobQueue

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting IPA Coach scoring service...")

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    app.state.job_queue = JobQueue.from_url(settings.redis_url)
    logger.info("IPA Coach scoring service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down IPA Coach scoring service...")
    await app.state.job_queue.close()


# Create FastAPI app
app = FastAPI(
    title="IPA Coach Scoring Service",
    description="""
## Pronunciation scoring API

Learners record themselves saying a word; this service compares the
recording with a reference pronunciation and produces:
- **overall_pct**: overall similarity, 0-100
- **per_phoneme**: a per-segment breakdown, 0-100 each
- **confidence**: 0-1

Scoring runs asynchronously. `POST /v1/score` returns a job id; poll
`GET /v1/jobs/{job_id}` or subscribe to `score_updates:<recording_id>`.
Job results are kept for one hour.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


# Include routers
app.include_router(health.router)
app.include_router(jobs.router)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with service info."""
    return {
        "service": "IPA Coach Scoring Service",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ipa_coach.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
