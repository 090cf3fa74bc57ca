"""In-process job lifecycle events."""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

JOB_QUEUING = "job.queuing"
JOB_QUEUED = "job.queued"
JOB_PROCESSING = "job.processing"
JOB_PROCESSED = "job.processed"
JOB_FAILED = "job.failed"
WORKER_STARTING = "worker.starting"
WORKER_MEMORY_EXCEEDED = "worker.memory_exceeded"
WORKER_STOPPED = "worker.stopped"


@dataclass
class JobEvent:
    """Event emitted by the queue manager."""

    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.data


EventListener = Callable[[JobEvent], Any]


class EventDispatcher:
    """
    Synchronous publish/subscribe within one process.

    Events with no listeners are dropped. A failing listener is logged and
    does not prevent the remaining listeners from running.
    """

    def __init__(self):
        self._listeners: Dict[str, List[EventListener]] = defaultdict(list)

    def on(self, event: str, listener: EventListener) -> None:
        self._listeners[event].append(listener)

    def off(self, event: str, listener: EventListener) -> None:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    def emit(self, event: str, data: Dict[str, Any]) -> JobEvent:
        job_event = JobEvent(type=event, data=data)
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(job_event)
            except Exception as e:
                logger.error(f"Listener for {event} raised: {e}", exc_info=True)
        return job_event

    def listeners(self, event: str) -> List[EventListener]:
        return list(self._listeners.get(event, []))
