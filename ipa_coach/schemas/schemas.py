"""Pydantic schemas for queued jobs, job results and API payloads."""

import enum
from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    SerializerFunctionWrapHandler,
    Tag,
    field_validator,
    model_serializer,
    model_validator,
)


DIALECT_CODES = {"GA", "RP", "AU", "CA", "NZ", "SA", "IN", "IE", "SC", "WA"}


def normalize_dialect(dialect: str) -> str:
    """Normalize a dialect code to upper case and check it is supported."""
    code = dialect.strip().upper()
    if code not in DIALECT_CODES:
        raise ValueError(f"Unsupported dialect: {dialect}")
    return code


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============== Job Schemas ==============


class TaggedVariant(BaseModel):
    """
    One variant of a closed union, serialized as {"<wire_tag>": {fields}}.

    This is the shape other queue producers and result readers use, e.g.
    {"PronunciationScoring": {"recording_id": ...}} or {"Success": {"data": ...}}.
    """

    wire_tag: ClassVar[str]

    @model_validator(mode="before")
    @classmethod
    def unwrap_tag(cls, data: Any) -> Any:
        if isinstance(data, dict) and len(data) == 1 and cls.wire_tag in data:
            return data[cls.wire_tag]
        return data

    @model_serializer(mode="wrap")
    def wrap_tag(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        return {self.wire_tag: handler(self)}


def _variant_tag(value: Any) -> Optional[str]:
    """Tag of a wire object ({"Tag": {...}}) or of an already-built variant."""
    if isinstance(value, TaggedVariant):
        return value.wire_tag
    if isinstance(value, dict) and len(value) == 1:
        return next(iter(value))
    return None


class PronunciationScoring(TaggedVariant):
    """Score a learner recording against the reference audio of a word."""

    wire_tag: ClassVar[str] = "PronunciationScoring"

    recording_id: UUID
    word_id: UUID
    dialect: str
    audio_url: str


class SearchIndexUpdate(TaggedVariant):
    """Push the current state of a word into the search index."""

    wire_tag: ClassVar[str] = "SearchIndexUpdate"

    word_id: UUID


JobType = Annotated[
    Union[
        Annotated[PronunciationScoring, Tag("PronunciationScoring")],
        Annotated[SearchIndexUpdate, Tag("SearchIndexUpdate")],
    ],
    Discriminator(_variant_tag),
]


class Job(BaseModel):
    """A unit of background work as stored on the queue."""

    id: UUID = Field(default_factory=uuid4)
    job_type: JobType
    created_at: datetime = Field(default_factory=_utcnow)
    retry_count: int = Field(0, ge=0)
    max_retries: int = Field(3, ge=0)

    @model_validator(mode="after")
    def check_retry_budget(self) -> "Job":
        if self.retry_count > self.max_retries:
            raise ValueError(
                f"retry_count ({self.retry_count}) exceeds max_retries ({self.max_retries})"
            )
        return self

    def next_attempt(self) -> "Job":
        """Copy of this job for a retry; the id is kept."""
        if self.retry_count >= self.max_retries:
            raise ValueError(f"Job {self.id} has no retries left")
        return self.model_copy(update={"retry_count": self.retry_count + 1})


class JobSuccess(TaggedVariant):
    wire_tag: ClassVar[str] = "Success"

    data: dict[str, Any]


class JobFailure(TaggedVariant):
    wire_tag: ClassVar[str] = "Failure"

    error: str
    retryable: bool


JobResult = Annotated[
    Union[
        Annotated[JobSuccess, Tag("Success")],
        Annotated[JobFailure, Tag("Failure")],
    ],
    Discriminator(_variant_tag),
]


class JobState(str, enum.Enum):
    """Externally visible state of a job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# ============== API Schemas ==============


class ScoreRequest(BaseModel):
    """Request to score a recording."""

    recording_id: UUID
    word_id: UUID
    dialect: str = Field(..., description="Dialect code, e.g. GA or RP")
    audio_url: str = Field(..., min_length=1, description="HTTP URL or storage key of the recording")

    @field_validator("dialect", mode="before")
    @classmethod
    def check_dialect(cls, v: str) -> str:
        return normalize_dialect(v)


class JobCreateResponse(BaseModel):
    """Response after enqueuing a job."""

    job_id: UUID
    job_type: str
    status: JobState
    created_at: datetime


class JobStatusResponse(BaseModel):
    """Current state of a job and its result once finished."""

    job_id: UUID
    status: JobState
    result: Optional[JobResult] = None


class ScoreResponse(BaseModel):
    """Stored pronunciation score of a recording."""

    model_config = ConfigDict(from_attributes=True)

    recording_id: str
    overall_pct: float
    per_phoneme: dict[str, float]
    confidence: float
    alignment_cost: Optional[float] = None
    latency_ms: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============== Health & Misc Schemas ==============


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    redis: str
    storage: str


class DialectInfo(BaseModel):
    """Information about a supported dialect."""

    code: str
    name: str
