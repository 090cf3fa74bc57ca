"""Unit tests for the in-memory driver."""

import asyncio
from datetime import timedelta

import pytest

from durable_jobs.models import JobPayload, JobStatus, utcnow


def make_payload(**kwargs):
    kwargs.setdefault("job_type", "PingJob")
    kwargs.setdefault("job_name", "PingJob")
    return JobPayload(**kwargs)


@pytest.mark.asyncio
async def test_push_and_pop(memory_driver):
    payload = make_payload(data={"n": 1})

    assert await memory_driver.push(payload, "default") is True
    popped = await memory_driver.pop("default")

    assert popped.id == payload.id
    assert popped.status == JobStatus.PROCESSING
    assert popped.reserved_at is not None
    assert popped.data == {"n": 1}
    assert await memory_driver.pop("default") is None


@pytest.mark.asyncio
async def test_pop_skips_delayed_jobs(memory_driver):
    await memory_driver.push(make_payload(), "default", delay=60)

    assert await memory_driver.pop("default") is None


@pytest.mark.asyncio
async def test_pop_returns_oldest_first(memory_driver):
    older = make_payload()
    older.created_at = utcnow() - timedelta(minutes=5)
    newer = make_payload()

    await memory_driver.push(newer, "default")
    await memory_driver.push(older, "default")

    assert (await memory_driver.pop("default")).id == older.id
    assert (await memory_driver.pop("default")).id == newer.id


@pytest.mark.asyncio
async def test_queues_are_isolated(memory_driver):
    await memory_driver.push(make_payload(), "emails")

    assert await memory_driver.pop("default") is None
    assert await memory_driver.pop("emails") is not None


@pytest.mark.asyncio
async def test_at_most_one_reservation(memory_driver):
    """Test concurrent pops claim a single pending job exactly once."""
    await memory_driver.push(make_payload(), "default")

    results = await asyncio.gather(*[memory_driver.pop("default") for _ in range(10)])

    assert len([r for r in results if r is not None]) == 1


@pytest.mark.asyncio
async def test_mark_completed_is_idempotent(memory_driver):
    payload = make_payload()
    await memory_driver.push(payload, "default")
    await memory_driver.pop("default")

    assert await memory_driver.mark_completed(payload.id) is True
    assert await memory_driver.mark_completed(payload.id) is True

    stats = await memory_driver.get_stats()
    assert stats.completed == 1
    assert stats.failed_total == 0


@pytest.mark.asyncio
async def test_mark_completed_unknown_job(memory_driver):
    assert await memory_driver.mark_completed("job_missing") is False


@pytest.mark.asyncio
async def test_mark_failed_archives_once(memory_driver):
    """Test a failed job is archived exactly once with the failing attempt counted."""
    payload = make_payload(attempts=2)
    await memory_driver.push(payload, "default")
    await memory_driver.pop("default")

    assert await memory_driver.mark_failed(payload.id, "boom") is True
    assert await memory_driver.mark_failed(payload.id, "boom again") is True

    failed = await memory_driver.get_failed_jobs()
    assert len(failed) == 1
    assert failed[0].job_id == payload.id
    assert failed[0].attempts == 3
    assert failed[0].error == "boom"


@pytest.mark.asyncio
async def test_retry_returns_job_to_pending(memory_driver):
    payload = make_payload()
    await memory_driver.push(payload, "default")
    await memory_driver.pop("default")

    assert await memory_driver.retry(payload.id, 1, 60) is True

    stored = memory_driver._jobs[payload.id]
    assert stored.status == JobStatus.PENDING
    assert stored.attempts == 1
    assert stored.reserved_at is None
    assert stored.available_at > utcnow() + timedelta(seconds=55)
    assert await memory_driver.pop("default") is None


@pytest.mark.asyncio
async def test_retry_unknown_job(memory_driver):
    assert await memory_driver.retry("job_missing", 1, 0) is False


@pytest.mark.asyncio
async def test_get_stats(memory_driver):
    first, second, third = make_payload(), make_payload(), make_payload()
    for payload in (first, second):
        await memory_driver.push(payload, "default")
    await memory_driver.push(third, "emails")
    await memory_driver.pop("default")

    stats = await memory_driver.get_stats()
    assert stats.pending == 2
    assert stats.processing == 1
    assert stats.total == 3

    emails = await memory_driver.get_stats("emails")
    assert emails.pending == 1
    assert emails.total == 1


@pytest.mark.asyncio
async def test_clear_only_touches_one_queue(memory_driver):
    await memory_driver.push(make_payload(), "default")
    await memory_driver.push(make_payload(), "emails")

    assert await memory_driver.clear("default") is True

    assert (await memory_driver.get_stats("default")).total == 0
    assert (await memory_driver.get_stats("emails")).total == 1


@pytest.mark.asyncio
async def test_get_failed_jobs_pagination(memory_driver):
    for _ in range(3):
        payload = make_payload()
        await memory_driver.push(payload, "default")
        await memory_driver.pop("default")
        await memory_driver.mark_failed(payload.id, "boom")

    assert len(await memory_driver.get_failed_jobs(limit=2)) == 2
    assert len(await memory_driver.get_failed_jobs(limit=2, offset=2)) == 1


@pytest.mark.asyncio
async def test_retry_failed_job_creates_new_envelope(memory_driver, memory_config):
    payload = make_payload(queue="emails", data={"to": "a@b.com"}, attempts=3)
    await memory_driver.push(payload, "emails")
    await memory_driver.pop("emails")
    await memory_driver.mark_failed(payload.id, "boom")

    assert await memory_driver.retry_failed_job(payload.id) is True

    assert await memory_driver.get_failed_jobs() == []
    requeued = await memory_driver.pop("emails")
    assert requeued.id != payload.id
    assert requeued.attempts == 0
    assert requeued.data == {"to": "a@b.com"}
    assert requeued.max_retries == memory_config.max_tries
    assert requeued.timeout == memory_config.timeout


@pytest.mark.asyncio
async def test_retry_failed_job_unknown(memory_driver):
    assert await memory_driver.retry_failed_job("job_missing") is False
