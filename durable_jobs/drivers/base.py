"""Driver contract for job storage and brokers."""

from abc import ABC, abstractmethod
from typing import List, Optional

from durable_jobs.models import FailedJob, JobPayload, QueueStats


class DriverInterface(ABC):
    """
    Storage/broker abstraction used by the queue manager.

    Implementations own the physical representation of envelopes and the
    reservation mechanism that keeps two consumers from running the same
    job at once.
    """

    @abstractmethod
    async def push(self, payload: JobPayload, queue: str = "default", delay: int = 0) -> bool:
        """Store a pending envelope, available ``delay`` seconds from now."""

    @abstractmethod
    async def pop(self, queue: str = "default") -> Optional[JobPayload]:
        """Reserve the next available envelope, or return None."""

    @abstractmethod
    async def mark_completed(self, job_id: str) -> bool:
        pass

    @abstractmethod
    async def mark_failed(self, job_id: str, error: str) -> bool:
        """Mark the envelope failed, counting the failing attempt, and archive it once."""

    @abstractmethod
    async def retry(self, job_id: str, attempts: int, delay: int) -> bool:
        """Return a reserved envelope to pending after ``delay`` seconds."""

    @abstractmethod
    async def get_stats(self, queue: Optional[str] = None) -> QueueStats:
        pass

    @abstractmethod
    async def clear(self, queue: str = "default") -> bool:
        pass

    @abstractmethod
    async def get_failed_jobs(self, limit: int = 50, offset: int = 0) -> List[FailedJob]:
        pass

    @abstractmethod
    async def retry_failed_job(self, job_id: str) -> bool:
        """Re-queue an archived job as a new envelope and drop the archive entry."""

    async def close(self) -> None:
        """Release connections held by the driver."""
        return None
