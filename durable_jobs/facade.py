"""Process-wide convenience wrapper around one queue and one scheduler.

Use this only at an application's composition root. Library code should
take a ``JobQueue`` as a constructor argument instead.
"""

from typing import Any, List, Mapping, Optional, Union

from durable_jobs.config import QueueConfig
from durable_jobs.drivers import DriverInterface
from durable_jobs.events import EventListener
from durable_jobs.models import FailedJob, QueueStats
from durable_jobs.queue import JobQueue, JobReference
from durable_jobs.registry import JobRegistry
from durable_jobs.scheduler import ScheduledJob, Scheduler, TimeSpec

ConfigLike = Union[QueueConfig, Mapping[str, Any], None]


class Jobs:
    """
    Lazily built process-wide queue and scheduler.

    Example:
        ```python
        Jobs.configure({"driver": "database", "db_dsn": dsn})
        await Jobs.dispatch(SendEmailJob(), {"to": "a@b.com"})
        Jobs.schedule_daily(DataCleanupJob, {"days": 30}, time="03:00")
        ```
    """

    _config: Optional[QueueConfig] = None
    _driver: Optional[DriverInterface] = None
    _registry: Optional[JobRegistry] = None
    _queue: Optional[JobQueue] = None
    _scheduler: Optional[Scheduler] = None

    @classmethod
    def configure(
        cls,
        config: ConfigLike = None,
        driver: Optional[DriverInterface] = None,
        registry: Optional[JobRegistry] = None,
    ) -> None:
        """Set configuration and drop any queue or scheduler built earlier."""
        if config is not None and not isinstance(config, QueueConfig):
            config = QueueConfig.from_dict(config)
        cls._config = config
        cls._driver = driver
        cls._registry = registry
        cls._queue = None
        cls._scheduler = None

    @classmethod
    def queue(cls) -> JobQueue:
        if cls._queue is None:
            config = cls._config or QueueConfig.from_env()
            cls._queue = JobQueue(config, driver=cls._driver, registry=cls._registry)
        return cls._queue

    @classmethod
    def scheduler(cls) -> Scheduler:
        if cls._scheduler is None:
            cls._scheduler = Scheduler(cls.queue())
        return cls._scheduler

    @classmethod
    async def dispatch(
        cls,
        job: JobReference,
        data: Any = None,
        queue: Optional[str] = None,
        delay: int = 0,
    ) -> bool:
        return await cls.queue().push(job, data, queue, delay)

    @classmethod
    async def dispatch_later(
        cls,
        delay: int,
        job: JobReference,
        data: Any = None,
        queue: Optional[str] = None,
    ) -> bool:
        return await cls.queue().later(delay, job, data, queue)

    @classmethod
    def schedule_at(
        cls, job: JobReference, time: TimeSpec, data: Any = None, queue: Optional[str] = None
    ) -> ScheduledJob:
        return cls.scheduler().at(job, time, data, queue)

    @classmethod
    def schedule_in(
        cls, job: JobReference, delay: int, data: Any = None, queue: Optional[str] = None
    ) -> ScheduledJob:
        return cls.scheduler().in_(job, delay, data, queue)

    @classmethod
    def schedule_every(
        cls, job: JobReference, interval: int, data: Any = None, queue: Optional[str] = None
    ) -> ScheduledJob:
        return cls.scheduler().every(job, interval, data, queue)

    @classmethod
    def schedule_daily(
        cls, job: JobReference, data: Any = None, queue: Optional[str] = None, time: str = "00:00"
    ) -> ScheduledJob:
        return cls.scheduler().daily(job, data, queue, time)

    @classmethod
    async def stats(cls, queue: Optional[str] = None) -> QueueStats:
        return await cls.queue().get_stats(queue)

    @classmethod
    async def clear(cls, queue: str = "default") -> bool:
        return await cls.queue().clear(queue)

    @classmethod
    async def failed_jobs(cls, limit: int = 50, offset: int = 0) -> List[FailedJob]:
        return await cls.queue().get_failed_jobs(limit, offset)

    @classmethod
    async def retry(cls, job_id: str) -> bool:
        return await cls.queue().retry_failed_job(job_id)

    @classmethod
    async def work(cls, queue: str = "default", max_jobs: int = 0) -> int:
        return await cls.queue().work(queue, max_jobs)

    @classmethod
    def stop(cls) -> None:
        """Stop the worker loop and the scheduler loop, if running."""
        if cls._queue is not None:
            cls._queue.stop()
        if cls._scheduler is not None:
            cls._scheduler.stop()

    @classmethod
    def listen(cls, event: str, listener: EventListener) -> None:
        cls.queue().listen(event, listener)

    @classmethod
    async def close(cls) -> None:
        """Close the driver connections and reset."""
        if cls._queue is not None:
            await cls._queue.close()
        cls.reset()

    @classmethod
    def reset(cls) -> None:
        """Forget all process-wide state. Mainly for tests."""
        cls._config = None
        cls._driver = None
        cls._registry = None
        cls._queue = None
        cls._scheduler = None
