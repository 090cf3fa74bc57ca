"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone

import pytest

from durable_jobs.config import QueueConfig
from durable_jobs.drivers.memory import MemoryDriver
from durable_jobs.facade import Jobs
from durable_jobs.queue import JobQueue
from durable_jobs.registry import JobRegistry

# Set test environment
os.environ.setdefault("JOBS_DRIVER", "memory")


class FakeClock:
    """Controllable clock for scheduler tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def registry():
    """Fresh job registry, isolated from the global one."""
    return JobRegistry()


@pytest.fixture
def memory_config():
    """Config for the in-memory driver with no idle sleep."""
    return QueueConfig(driver="memory", sleep=0, memory_limit=1024 * 1024)


@pytest.fixture
def memory_driver(memory_config):
    return MemoryDriver(memory_config)


@pytest.fixture
def job_queue(memory_config, memory_driver, registry):
    """Queue manager over the in-memory driver."""
    return JobQueue(memory_config, driver=memory_driver, registry=registry)


@pytest.fixture
def clock():
    """Clock fixed at Wednesday 2025-01-01 08:00 UTC."""
    return FakeClock(datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture(autouse=True)
def reset_jobs_facade():
    """Process-wide facade state must not leak between tests."""
    Jobs.reset()
    yield
    Jobs.reset()


@pytest.fixture
def make_available(memory_driver):
    """Pretend a delayed job's retry delay has elapsed."""

    def _make_available(job_id: str) -> None:
        payload = memory_driver._jobs[job_id]
        payload.available_at = payload.available_at - timedelta(days=1)

    return _make_available
