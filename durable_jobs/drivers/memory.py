"""In-process job storage for tests and local development."""

import asyncio
import logging
from datetime import timedelta
from typing import Dict, List, Optional

from durable_jobs.config import QueueConfig
from durable_jobs.drivers.base import DriverInterface
from durable_jobs.models import FailedJob, JobPayload, JobStatus, QueueStats, utcnow

logger = logging.getLogger(__name__)


class MemoryDriver(DriverInterface):
    """
    Non-durable driver keeping envelopes in a dictionary.

    Reservation is guarded by an ``asyncio.Lock`` so concurrent ``pop``
    calls within one event loop never hand out the same envelope. Nothing
    survives a process restart.
    """

    def __init__(self, config: Optional[QueueConfig] = None):
        self.config = config or QueueConfig(driver="memory")
        self._jobs: Dict[str, JobPayload] = {}
        self._failed: List[FailedJob] = []
        self._lock = asyncio.Lock()

    async def push(self, payload: JobPayload, queue: str = "default", delay: int = 0) -> bool:
        async with self._lock:
            payload.queue = queue
            payload.status = JobStatus.PENDING
            payload.reserved_at = None
            payload.processed_at = None
            payload.available_at = utcnow() + timedelta(seconds=max(0, delay))
            self._jobs[payload.id] = payload
        return True

    async def pop(self, queue: str = "default") -> Optional[JobPayload]:
        async with self._lock:
            now = utcnow()
            candidates = [
                payload
                for payload in self._jobs.values()
                if payload.queue == queue
                and payload.status == JobStatus.PENDING
                and payload.is_available(now)
            ]
            if not candidates:
                return None

            payload = min(candidates, key=lambda p: p.created_at)
            payload.status = JobStatus.PROCESSING
            payload.reserved_at = now
            return payload.model_copy()

    async def mark_completed(self, job_id: str) -> bool:
        async with self._lock:
            payload = self._jobs.get(job_id)
            if payload is None:
                return False
            if payload.status == JobStatus.COMPLETED:
                return True
            if payload.status != JobStatus.PROCESSING:
                return False
            payload.status = JobStatus.COMPLETED
            payload.processed_at = utcnow()
            return True

    async def mark_failed(self, job_id: str, error: str) -> bool:
        async with self._lock:
            payload = self._jobs.get(job_id)
            if payload is None:
                return False
            if payload.status == JobStatus.FAILED:
                return True
            payload.status = JobStatus.FAILED
            payload.attempts += 1
            payload.processed_at = utcnow()
            self._failed.append(FailedJob.from_payload(payload, error))
            return True

    async def retry(self, job_id: str, attempts: int, delay: int) -> bool:
        async with self._lock:
            payload = self._jobs.get(job_id)
            if payload is None:
                return False
            payload.status = JobStatus.PENDING
            payload.attempts = attempts
            payload.available_at = utcnow() + timedelta(seconds=max(0, delay))
            payload.reserved_at = None
            payload.processed_at = None
            return True

    async def get_stats(self, queue: Optional[str] = None) -> QueueStats:
        counts = {status: 0 for status in JobStatus}
        for payload in self._jobs.values():
            if queue is None or payload.queue == queue:
                counts[payload.status] += 1

        failed_total = sum(1 for f in self._failed if queue is None or f.queue == queue)
        return QueueStats(
            pending=counts[JobStatus.PENDING],
            processing=counts[JobStatus.PROCESSING],
            completed=counts[JobStatus.COMPLETED],
            failed=counts[JobStatus.FAILED],
            total=sum(counts.values()),
            failed_total=failed_total,
        )

    async def clear(self, queue: str = "default") -> bool:
        async with self._lock:
            for job_id in [j.id for j in self._jobs.values() if j.queue == queue]:
                del self._jobs[job_id]
        return True

    async def get_failed_jobs(self, limit: int = 50, offset: int = 0) -> List[FailedJob]:
        newest_first = sorted(self._failed, key=lambda f: f.failed_at, reverse=True)
        return newest_first[offset:offset + limit]

    async def retry_failed_job(self, job_id: str) -> bool:
        matches = [f for f in self._failed if f.job_id == job_id]
        if not matches:
            return False

        failed_job = max(matches, key=lambda f: f.failed_at)
        payload = JobPayload(
            queue=failed_job.queue,
            job_type=failed_job.job_type,
            job_name=failed_job.job_name,
            data=failed_job.data,
            max_retries=self.config.max_tries,
            timeout=self.config.timeout,
        )
        await self.push(payload, failed_job.queue, 0)
        self._failed.remove(failed_job)
        logger.info(f"Re-queued failed job {job_id} as {payload.id}")
        return True
