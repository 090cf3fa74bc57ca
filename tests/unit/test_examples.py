"""Unit tests for the sample jobs."""

import os
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from durable_jobs.drivers.database import DatabaseDriver
from durable_jobs.drivers.memory import MemoryDriver
from durable_jobs.examples import DataCleanupJob, SendEmailJob
from durable_jobs.facade import Jobs
from durable_jobs.registry import job_registry


def test_examples_are_registered():
    assert job_registry.resolve("examples.send_email") is SendEmailJob
    assert job_registry.resolve("examples.data_cleanup") is DataCleanupJob


@pytest.mark.asyncio
async def test_send_email():
    job = SendEmailJob()
    job.mailer = AsyncMock()

    result = await job.handle({"to": "a@b.com", "subject": "Hi", "body": "Hello"})

    assert result["status"] == "sent"
    assert result["to"] == "a@b.com"
    job.mailer.assert_awaited_once_with("a@b.com", "noreply@example.com", "Hi", "Hello")


@pytest.mark.asyncio
async def test_send_email_requires_fields():
    with pytest.raises(ValueError, match="subject, body"):
        await SendEmailJob().handle({"to": "a@b.com"})


def test_send_email_retry_policy():
    job = SendEmailJob()

    assert job.should_retry(1, ValueError("bad data")) is False
    assert job.should_retry(1, ConnectionError("smtp down")) is True
    assert job.should_retry(4, ConnectionError("smtp down")) is False


@pytest.mark.asyncio
async def test_cleanup_files(tmp_path):
    old_file = tmp_path / "old.log"
    new_file = tmp_path / "new.log"
    old_file.write_text("old")
    new_file.write_text("new")
    forty_days_ago = time.time() - 40 * 86400
    os.utime(old_file, (forty_days_ago, forty_days_ago))

    result = await DataCleanupJob().handle(
        {"type": "files", "directory": str(tmp_path), "older_than_days": 30}
    )

    assert result["deleted"] == 1
    assert not old_file.exists()
    assert new_file.exists()


@pytest.mark.asyncio
async def test_cleanup_files_requires_directory():
    with pytest.raises(ValueError):
        await DataCleanupJob().handle({"type": "files"})


@pytest.mark.asyncio
async def test_cleanup_unknown_type():
    job = DataCleanupJob()

    with pytest.raises(ValueError) as exc_info:
        await job.handle({"type": "caches"})

    assert job.should_retry(1, exc_info.value) is False


@pytest.mark.asyncio
async def test_cleanup_old_jobs_uses_database_driver():
    driver = MagicMock(spec=DatabaseDriver)
    driver.cleanup_completed_jobs = AsyncMock(return_value=5)
    Jobs.configure(driver=driver)

    result = await DataCleanupJob().handle({"type": "old_jobs", "older_than_days": 7})

    assert result["deleted"] == 5
    driver.cleanup_completed_jobs.assert_awaited_once_with(7)


@pytest.mark.asyncio
async def test_cleanup_old_jobs_rejects_other_drivers(memory_config):
    Jobs.configure(memory_config, driver=MemoryDriver(memory_config))

    with pytest.raises(ValueError):
        await DataCleanupJob().handle({"type": "failed_jobs"})
