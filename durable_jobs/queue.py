"""Queue manager: push, reserve, execute, retry and fail jobs."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Mapping, Optional, Type, Union

import psutil

from durable_jobs.config import QueueConfig
from durable_jobs.drivers import DriverInterface, create_driver
from durable_jobs.errors import ConfigurationError, JobNotRegisteredError, JobTimeoutError
from durable_jobs.events import (
    JOB_FAILED,
    JOB_PROCESSED,
    JOB_PROCESSING,
    JOB_QUEUED,
    JOB_QUEUING,
    WORKER_MEMORY_EXCEEDED,
    WORKER_STARTING,
    WORKER_STOPPED,
    EventDispatcher,
    EventListener,
)
from durable_jobs.job import JobInterface
from durable_jobs.models import FailedJob, JobPayload, QueueStats
from durable_jobs.registry import JobRegistry, job_registry

JobReference = Union[JobInterface, Type[JobInterface], str]


class JobQueue:
    """
    High-level API for queueing and processing jobs.

    Owns a driver, rebuilds job instances from stored type identifiers and
    decides between retrying and archiving a failed attempt.

    Example:
        ```python
        queue = JobQueue({"driver": "database", "db_dsn": dsn})
        await queue.push(SendEmailJob(), {"to": "a@b.com"})
        await queue.work("default", max_jobs=100)
        ```
    """

    def __init__(
        self,
        config: Union[QueueConfig, Mapping[str, Any], None] = None,
        driver: Optional[DriverInterface] = None,
        registry: Optional[JobRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if config is None:
            config = QueueConfig()
        elif not isinstance(config, QueueConfig):
            config = QueueConfig.from_dict(config)

        self._config = config
        self._driver = driver or create_driver(config)
        self.registry = registry or job_registry
        self.logger = logger or logging.getLogger(__name__)
        self.events = EventDispatcher()
        self._running = False
        self._ack_failed = False

    @property
    def driver(self) -> DriverInterface:
        return self._driver

    @property
    def config(self) -> QueueConfig:
        return self._config

    async def push(
        self,
        job: JobReference,
        data: Any = None,
        queue: Optional[str] = None,
        delay: int = 0,
    ) -> bool:
        """
        Push a job onto a queue.

        Args:
            job: Job instance, job class or registered type identifier
            data: JSON-serializable job data
            queue: Target queue (defaults to the job's own queue)
            delay: Seconds before the job becomes available

        Returns:
            True if the driver stored the job

        Raises:
            JobContractError: If ``job`` does not implement the job contract
            JobNotRegisteredError: If the job type is not registered
        """
        job_type = self.registry.type_name_for(job)
        instance = job if isinstance(job, JobInterface) else self.registry.create(job_type)
        queue = queue or instance.get_queue()

        payload = JobPayload(
            queue=queue,
            job_type=job_type,
            job_name=instance.get_name(),
            data=data,
            max_retries=instance.get_max_retries(),
            timeout=instance.get_timeout(),
        ).delay(delay)

        self.events.emit(JOB_QUEUING, {"payload": payload, "job": instance})

        result = await self._driver.push(payload, queue, delay)
        if result:
            self.logger.info(f"Queued job {payload.id} ({job_type}) on {queue}")
            self.events.emit(JOB_QUEUED, {"payload": payload, "job": instance})
        else:
            self.logger.warning(f"Driver rejected job {payload.id} ({job_type}) on {queue}")
        return result

    async def later(
        self,
        delay: int,
        job: JobReference,
        data: Any = None,
        queue: Optional[str] = None,
    ) -> bool:
        """Push a job that becomes available after ``delay`` seconds."""
        return await self.push(job, data, queue, delay)

    async def pop(self, queue: str = "default") -> Optional[JobPayload]:
        return await self._driver.pop(queue)

    async def work(self, queue: str = "default", max_jobs: int = 0) -> int:
        """
        Process jobs until stopped.

        The loop exits when ``stop()`` is called, when ``max_jobs`` jobs have
        been processed (0 means no limit), or when the process exceeds
        ``config.memory_limit`` megabytes so a supervisor can restart it.

        Returns:
            Number of jobs processed

        Raises:
            ConfigurationError: On deployment defects such as an unknown
                job type; these are never retried.
        """
        self._running = True
        processed = 0

        self.logger.info(f"Starting worker for queue {queue}")
        self.events.emit(WORKER_STARTING, {"queue": queue, "max_jobs": max_jobs})

        try:
            while self._running:
                memory_mb = self.memory_usage()
                if memory_mb >= self.config.memory_limit:
                    self.logger.warning(
                        f"Worker memory {memory_mb:.1f}MB exceeds limit "
                        f"{self.config.memory_limit}MB, stopping"
                    )
                    self.events.emit(
                        WORKER_MEMORY_EXCEEDED,
                        {"queue": queue, "memory": memory_mb, "limit": self.config.memory_limit},
                    )
                    break

                try:
                    payload = await self.pop(queue)
                except ConfigurationError:
                    raise
                except Exception as e:
                    self.logger.error(f"Error reserving job from {queue}: {e}", exc_info=True)
                    await asyncio.sleep(self.config.sleep)
                    continue

                if payload is None:
                    await asyncio.sleep(self.config.sleep)
                    continue

                self._ack_failed = False
                await self.process_job(payload)
                processed += 1

                if self._ack_failed:
                    # The driver could not record the outcome; back off like a failed pop
                    await asyncio.sleep(self.config.sleep)

                if max_jobs and processed >= max_jobs:
                    break
        finally:
            self._running = False
            self.logger.info(f"Worker for queue {queue} stopped after {processed} jobs")
            self.events.emit(WORKER_STOPPED, {"queue": queue, "processed": processed})

        return processed

    def stop(self) -> None:
        """Ask the worker loop to exit after the current job."""
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def memory_usage(self) -> float:
        """Resident memory of this process in megabytes."""
        return psutil.Process().memory_info().rss / (1024 * 1024)

    async def process_job(self, payload: JobPayload) -> bool:
        """
        Execute one reserved job.

        Returns:
            True if the job completed and the driver recorded it, False if
            the job failed or the driver could not record the outcome

        Raises:
            JobNotRegisteredError: If the job type cannot be resolved; the
                envelope is archived as failed first.
            ConfigurationError: If the driver reports a configuration defect
                while recording the outcome.
        """
        try:
            job = self.registry.create(payload.job_type)
        except JobNotRegisteredError as e:
            self.logger.error(f"Cannot process job {payload.id}: {e}")
            await self._acknowledge(
                payload, "archive", self._driver.mark_failed(payload.id, str(e))
            )
            self.events.emit(
                JOB_FAILED, {"payload": payload, "error": e, "attempts": payload.attempts}
            )
            raise

        self.logger.info(
            f"Processing job {payload.id} ({payload.job_name}, attempt {payload.attempts + 1})"
        )
        self.events.emit(JOB_PROCESSING, {"payload": payload, "job": job})

        timeout = payload.timeout if payload.timeout and payload.timeout > 0 else None
        started = time.monotonic()
        try:
            try:
                result = await asyncio.wait_for(job.handle(payload.data), timeout=timeout)
            except asyncio.TimeoutError:
                raise JobTimeoutError(payload.job_name, timeout) from None
        except Exception as e:
            self.logger.error(f"Job {payload.id} failed: {e}", exc_info=True)
            await self.handle_job_failure(payload, e, job)
            return False

        execution_time = time.monotonic() - started
        if not await self._acknowledge(
            payload, "complete", self._driver.mark_completed(payload.id)
        ):
            return False

        self.logger.info(f"Job {payload.id} completed in {execution_time:.3f}s")
        self.events.emit(
            JOB_PROCESSED,
            {"payload": payload, "job": job, "result": result, "execution_time": execution_time},
        )
        return True

    async def handle_job_failure(
        self,
        payload: JobPayload,
        error: BaseException,
        job: Optional[JobInterface] = None,
    ) -> bool:
        """
        Retry or archive a failed attempt.

        Retries are delayed by ``retry_delay * attempts`` seconds.

        Returns:
            True if the job was scheduled for retry, False if it was archived
            or the driver could not record either outcome
        """
        job = job or self.registry.create(payload.job_type)
        attempts = payload.attempts + 1

        self.events.emit(JOB_FAILED, {"payload": payload, "error": error, "attempts": attempts})

        try:
            retry = job.should_retry(attempts, error)
        except Exception as e:
            self.logger.error(f"should_retry raised for job {payload.id}: {e}", exc_info=True)
            retry = False

        if retry:
            delay = job.get_retry_delay() * attempts
            if not await self._acknowledge(
                payload, "retry", self._driver.retry(payload.id, attempts, delay)
            ):
                return False
            self.logger.warning(
                f"Job {payload.id} will retry (attempt {attempts}) after {delay}s"
            )
            return True

        if not await self._acknowledge(
            payload,
            "archive",
            self._driver.mark_failed(payload.id, str(error) or type(error).__name__),
        ):
            # Left reserved; the hook runs once the archive write succeeds
            return False
        self.logger.error(f"Job {payload.id} failed permanently after {attempts} attempts")

        try:
            await job.failed(error, payload.data)
        except Exception as e:
            self.logger.error(f"failed() hook raised for job {payload.id}: {e}", exc_info=True)
        return False

    async def _acknowledge(self, payload: JobPayload, action: str, call: Awaitable[Any]) -> bool:
        """
        Await a driver call that records a job's outcome.

        Storage and broker errors are logged and reported as False so the
        worker loop survives them; configuration errors propagate.
        """
        try:
            await call
        except ConfigurationError:
            raise
        except Exception as e:
            self._ack_failed = True
            self.logger.error(
                f"Driver could not {action} job {payload.id}: {e}", exc_info=True
            )
            return False
        return True

    async def get_stats(self, queue: Optional[str] = None) -> QueueStats:
        return await self._driver.get_stats(queue)

    async def clear(self, queue: str = "default") -> bool:
        return await self._driver.clear(queue)

    async def get_failed_jobs(self, limit: int = 50, offset: int = 0) -> list[FailedJob]:
        return await self._driver.get_failed_jobs(limit, offset)

    async def retry_failed_job(self, job_id: str) -> bool:
        return await self._driver.retry_failed_job(job_id)

    def listen(self, event: str, listener: EventListener) -> None:
        """Register a listener for a lifecycle event."""
        self.events.on(event, listener)

    async def close(self) -> None:
        await self._driver.close()
