"""Data models for queued jobs."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    """Generate a globally unique, opaque job identifier."""
    return f"job_{uuid4().hex}"


def new_failed_job_id() -> str:
    """Generate an identifier for a failed-job archive record."""
    return f"failed_{uuid4().hex}"


class JobStatus(str, Enum):
    """Job status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobPayload(BaseModel):
    """
    Envelope for one queued job invocation.

    The driver owns the physical representation (a table row or a log
    message); status transitions are driven by the queue manager.
    """

    id: str = Field(default_factory=new_job_id)
    queue: str = "default"
    job_type: str
    job_name: str
    data: Any = None
    attempts: int = 0
    max_retries: int = 3
    timeout: int = 300
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    available_at: datetime = Field(default_factory=utcnow)
    reserved_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    def is_available(self, now: Optional[datetime] = None) -> bool:
        """Whether the job may be reserved at ``now``."""
        return self.available_at <= (now or utcnow())

    def delay(self, seconds: float) -> "JobPayload":
        """Push ``available_at`` out to ``seconds`` after ``created_at``."""
        self.available_at = self.created_at + timedelta(seconds=max(0, seconds))
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert payload to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")


class FailedJob(BaseModel):
    """Permanent archive record of a job that exhausted its retries."""

    id: str = Field(default_factory=new_failed_job_id)
    job_id: str
    queue: str
    job_type: str
    job_name: str
    data: Any = None
    attempts: int
    error: str
    failed_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_payload(cls, payload: JobPayload, error: str) -> "FailedJob":
        """Build an archive record from the envelope being failed."""
        return cls(
            job_id=payload.id,
            queue=payload.queue,
            job_type=payload.job_type,
            job_name=payload.job_name,
            data=payload.data,
            attempts=payload.attempts,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")


class QueueStats(BaseModel):
    """Point-in-time queue statistics computed by a driver."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0
    failed_total: int = 0
    approximate: bool = False
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
