"""Durable, at-least-once job queue with a time-based scheduler."""

from durable_jobs.config import QueueConfig
from durable_jobs.ddl import FAILED_JOBS_TABLE_DDL, JOBS_TABLE_DDL
from durable_jobs.drivers import (
    DatabaseDriver,
    DriverInterface,
    KafkaDriver,
    MemoryDriver,
    create_driver,
)
from durable_jobs.errors import (
    ConfigurationError,
    DriverConnectionError,
    DurableJobsError,
    JobContractError,
    JobNotRegisteredError,
    JobTimeoutError,
    UnsupportedDriverError,
)
from durable_jobs.events import EventDispatcher, JobEvent
from durable_jobs.facade import Jobs
from durable_jobs.job import Job, JobInterface
from durable_jobs.models import FailedJob, JobPayload, JobStatus, QueueStats
from durable_jobs.queue import JobQueue
from durable_jobs.registry import JobRegistry, job_registry
from durable_jobs.scheduler import ScheduledJob, Scheduler

__version__ = "0.1.0"

__all__ = [
    "QueueConfig",
    "JOBS_TABLE_DDL",
    "FAILED_JOBS_TABLE_DDL",
    "DatabaseDriver",
    "DriverInterface",
    "KafkaDriver",
    "MemoryDriver",
    "create_driver",
    "ConfigurationError",
    "DriverConnectionError",
    "DurableJobsError",
    "JobContractError",
    "JobNotRegisteredError",
    "JobTimeoutError",
    "UnsupportedDriverError",
    "EventDispatcher",
    "JobEvent",
    "Jobs",
    "Job",
    "JobInterface",
    "FailedJob",
    "JobPayload",
    "JobStatus",
    "QueueStats",
    "JobQueue",
    "JobRegistry",
    "job_registry",
    "ScheduledJob",
    "Scheduler",
]
