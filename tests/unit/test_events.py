"""Unit tests for events module."""

import logging

from durable_jobs.events import JOB_PROCESSED, JOB_QUEUED, EventDispatcher, JobEvent


def test_emit_calls_listeners_in_order():
    dispatcher = EventDispatcher()
    calls = []

    dispatcher.on(JOB_QUEUED, lambda event: calls.append(("first", event.get("id"))))
    dispatcher.on(JOB_QUEUED, lambda event: calls.append(("second", event.get("id"))))

    event = dispatcher.emit(JOB_QUEUED, {"id": "job_1"})

    assert calls == [("first", "job_1"), ("second", "job_1")]
    assert event.type == JOB_QUEUED


def test_emit_without_listeners_is_dropped():
    dispatcher = EventDispatcher()

    event = dispatcher.emit(JOB_PROCESSED, {"id": "job_1"})

    assert event.get("id") == "job_1"


def test_off_removes_listener():
    dispatcher = EventDispatcher()
    calls = []

    def listener(event):
        calls.append(event)

    dispatcher.on(JOB_QUEUED, listener)
    dispatcher.off(JOB_QUEUED, listener)
    dispatcher.off(JOB_QUEUED, listener)
    dispatcher.emit(JOB_QUEUED, {})

    assert calls == []
    assert dispatcher.listeners(JOB_QUEUED) == []


def test_failing_listener_does_not_stop_others(caplog):
    """Test a listener error is logged and the rest still run."""
    dispatcher = EventDispatcher()
    calls = []

    def broken(event):
        raise RuntimeError("listener broke")

    dispatcher.on(JOB_QUEUED, broken)
    dispatcher.on(JOB_QUEUED, lambda event: calls.append(event))

    with caplog.at_level(logging.ERROR, logger="durable_jobs.events"):
        dispatcher.emit(JOB_QUEUED, {})

    assert len(calls) == 1
    assert "listener broke" in caplog.text


def test_job_event_accessors():
    event = JobEvent(type=JOB_QUEUED, data={"attempts": 2})

    assert event.get("attempts") == 2
    assert event.get("missing", "x") == "x"
    assert event.has("attempts")
    assert not event.has("missing")
    assert event.timestamp > 0
