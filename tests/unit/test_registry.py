"""Unit tests for registry module."""

import pytest

from durable_jobs.errors import JobContractError, JobNotRegisteredError
from durable_jobs.job import Job
from durable_jobs.registry import JobRegistry


class PingJob(Job):
    async def handle(self, data):
        return "pong"


def test_register_directly():
    """Test registering a job class by calling register()."""
    registry = JobRegistry()

    result = registry.register(PingJob)

    assert result is PingJob
    assert registry.resolve("PingJob") is PingJob
    assert registry.is_registered("PingJob")


def test_register_decorator_with_name():
    """Test registering with an explicit stable name."""
    registry = JobRegistry()

    @registry.register(name="ops.ping")
    class NamedPingJob(Job):
        async def handle(self, data):
            return "pong"

    assert registry.resolve("ops.ping") is NamedPingJob
    assert NamedPingJob.type_name() == "ops.ping"
    assert not registry.is_registered("NamedPingJob")


def test_register_rejects_non_jobs():
    registry = JobRegistry()

    with pytest.raises(JobContractError):
        registry.register(object)

    with pytest.raises(JobContractError):
        registry.register(lambda data: None)


def test_resolve_unknown_raises():
    registry = JobRegistry()

    with pytest.raises(JobNotRegisteredError) as exc_info:
        registry.resolve("missing")

    assert exc_info.value.job_type == "missing"


def test_create_builds_fresh_instances():
    """Test every create() call returns a new instance."""
    registry = JobRegistry()
    registry.register(PingJob)

    first = registry.create("PingJob")
    second = registry.create("PingJob")

    assert isinstance(first, PingJob)
    assert first is not second


def test_type_name_for_accepts_instance_class_and_name():
    registry = JobRegistry()
    registry.register(PingJob)

    assert registry.type_name_for(PingJob()) == "PingJob"
    assert registry.type_name_for(PingJob) == "PingJob"
    assert registry.type_name_for("PingJob") == "PingJob"


def test_type_name_for_rejects_non_jobs():
    registry = JobRegistry()

    with pytest.raises(JobContractError):
        registry.type_name_for(object())

    with pytest.raises(JobContractError):
        registry.type_name_for(42)


def test_type_name_for_requires_registration():
    registry = JobRegistry()

    with pytest.raises(JobNotRegisteredError):
        registry.type_name_for(PingJob())


def test_all_jobs_returns_copy():
    registry = JobRegistry()
    registry.register(PingJob)

    jobs = registry.all_jobs()
    jobs.clear()

    assert registry.all_jobs() == {"PingJob": PingJob}


def test_clear():
    registry = JobRegistry()
    registry.register(PingJob)

    registry.clear()

    assert registry.all_jobs() == {}
