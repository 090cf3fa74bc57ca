"""Time-based scheduler that pushes due jobs onto a queue."""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Tuple, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from durable_jobs.errors import DriverConnectionError
from durable_jobs.models import utcnow
from durable_jobs.queue import JobQueue, JobReference

logger = logging.getLogger(__name__)

MINUTE = 60
FIVE_MINUTES = 300
HOUR = 3600
DAY = 86400
WEEK = 604800

TimeSpec = Union[datetime, int, float, str]

_RELATIVE = re.compile(
    r"^\+?\s*(\d+)\s*(second|sec|minute|min|hour|day|week|month|year)s?$"
)
_RELATIVE_UNITS = {
    "second": "seconds",
    "sec": "seconds",
    "minute": "minutes",
    "min": "minutes",
    "hour": "hours",
    "day": "days",
    "week": "weeks",
    "month": "months",
    "year": "years",
}
_CLOCK_TIME = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass
class ScheduledJob:
    """A job reference plus the time it is next due and its recurrence."""

    job: JobReference
    next_run: datetime
    data: Any = None
    queue: Optional[str] = None
    interval: Optional[int] = None

    def is_due(self, now: datetime) -> bool:
        return self.next_run <= now

    def is_recurring(self) -> bool:
        return self.interval is not None

    def schedule_next(self, now: Optional[datetime] = None) -> None:
        """
        Advance ``next_run`` by the interval.

        When ``now`` is given the entry keeps advancing until it lies in
        the future, so a scheduler that was paused does not replay every
        missed run.
        """
        if not self.is_recurring():
            return

        step = timedelta(seconds=self.interval)
        self.next_run += step
        if now is not None:
            while self.next_run <= now:
                self.next_run += step


class Scheduler:
    """
    In-memory schedule of one-shot and recurring jobs.

    ``tick()`` is the primitive: a single non-blocking pass that pushes
    every due entry onto the queue. ``run()`` calls it in a loop for simple
    deployments. Callers must not run two ``tick()`` calls concurrently.

    Example:
        ```python
        scheduler = Scheduler(queue)
        scheduler.daily(DataCleanupJob, {"days": 30}, time="03:00")
        scheduler.every_five_minutes(SyncJob)

        await scheduler.run()
        ```
    """

    def __init__(
        self,
        queue: JobQueue,
        clock: Callable[[], datetime] = utcnow,
        poll_interval: float = 30.0,
    ):
        """
        Initialize the scheduler.

        Args:
            queue: Queue manager that due jobs are pushed onto
            clock: Returns the current timezone-aware time; daily and
                weekly wall-clock times are interpreted in its timezone
            poll_interval: Seconds between ticks in ``run()``
        """
        self.queue = queue
        self.clock = clock
        self.poll_interval = poll_interval
        self._jobs: List[ScheduledJob] = []
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None

    def _add(
        self,
        job: JobReference,
        next_run: datetime,
        data: Any = None,
        queue: Optional[str] = None,
        interval: Optional[int] = None,
    ) -> ScheduledJob:
        scheduled_job = ScheduledJob(
            job=job, next_run=next_run, data=data, queue=queue, interval=interval
        )
        self._jobs.append(scheduled_job)
        logger.debug(f"Scheduled {_job_label(job)} for {next_run.isoformat()}")
        return scheduled_job

    def at(
        self,
        job: JobReference,
        time: TimeSpec,
        data: Any = None,
        queue: Optional[str] = None,
    ) -> ScheduledJob:
        """
        Schedule a job once at an absolute or relative time.

        ``time`` may be a datetime, a UNIX timestamp, a date string such as
        ``"2025-01-01 09:00"`` or a relative expression such as ``"now"``,
        ``"tomorrow"`` or ``"+2 hours"``. Past times run on the next tick.

        Raises:
            ValueError: If ``time`` cannot be parsed
        """
        now = self.clock()
        target = parse_time(time, now)
        return self._add(job, max(target, now), data, queue)

    def in_(
        self,
        job: JobReference,
        delay: int,
        data: Any = None,
        queue: Optional[str] = None,
    ) -> ScheduledJob:
        """Schedule a job once, ``delay`` seconds from now."""
        return self._add(job, self.clock() + timedelta(seconds=max(0, delay)), data, queue)

    def every(
        self,
        job: JobReference,
        interval: int,
        data: Any = None,
        queue: Optional[str] = None,
    ) -> ScheduledJob:
        """Schedule a job now and then every ``interval`` seconds."""
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        return self._add(job, self.clock(), data, queue, interval)

    def every_minute(self, job: JobReference, data: Any = None, queue: Optional[str] = None) -> ScheduledJob:
        return self.every(job, MINUTE, data, queue)

    def every_five_minutes(self, job: JobReference, data: Any = None, queue: Optional[str] = None) -> ScheduledJob:
        return self.every(job, FIVE_MINUTES, data, queue)

    def hourly(self, job: JobReference, data: Any = None, queue: Optional[str] = None) -> ScheduledJob:
        return self.every(job, HOUR, data, queue)

    def daily(
        self,
        job: JobReference,
        data: Any = None,
        queue: Optional[str] = None,
        time: str = "00:00",
    ) -> ScheduledJob:
        """Schedule a job every day at ``time`` (``HH:MM``)."""
        hour, minute = parse_clock_time(time)
        now = self.clock()

        next_run = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
        if next_run <= now:
            next_run += timedelta(days=1)
        return self._add(job, next_run, data, queue, DAY)

    def weekly(
        self,
        job: JobReference,
        data: Any = None,
        queue: Optional[str] = None,
        day_of_week: int = 0,
        time: str = "00:00",
    ) -> ScheduledJob:
        """
        Schedule a job every week on ``day_of_week`` at ``time``.

        Args:
            day_of_week: 0 = Sunday through 6 = Saturday
            time: Wall-clock time as ``HH:MM``
        """
        if not 0 <= day_of_week <= 6:
            raise ValueError(f"day_of_week must be between 0 (Sunday) and 6, got {day_of_week}")
        hour, minute = parse_clock_time(time)
        now = self.clock()

        # datetime.weekday() counts from Monday
        target_weekday = (day_of_week - 1) % 7
        days_ahead = (target_weekday - now.weekday()) % 7
        next_run = (now + timedelta(days=days_ahead)).replace(
            hour=hour, minute=minute, second=0, microsecond=0
        )
        if next_run <= now:
            next_run += timedelta(days=7)
        return self._add(job, next_run, data, queue, WEEK)

    async def tick(self) -> int:
        """
        Push every due entry onto the queue.

        Recurring entries are advanced and kept; one-shot entries are
        removed. An entry whose push fails stays untouched and is tried
        again on the next tick.

        Returns:
            Number of jobs pushed
        """
        now = self.clock()
        pushed = 0

        for scheduled_job in list(self._jobs):
            if not scheduled_job.is_due(now):
                continue

            try:
                result = await self.queue.push(
                    scheduled_job.job, scheduled_job.data, scheduled_job.queue, 0
                )
            except DriverConnectionError as e:
                logger.error(f"Failed to push scheduled job {_job_label(scheduled_job.job)}: {e}")
                continue

            if not result:
                logger.warning(f"Queue rejected scheduled job {_job_label(scheduled_job.job)}")
                continue

            pushed += 1
            if scheduled_job.is_recurring():
                scheduled_job.schedule_next(now)
            else:
                self._jobs.remove(scheduled_job)

        if pushed:
            logger.info(f"Scheduler pushed {pushed} due jobs")
        return pushed

    async def run(self) -> None:
        """Tick every ``poll_interval`` seconds until ``stop()`` is called."""
        self._running = True
        self._stop_event = asyncio.Event()
        logger.info("Scheduler started")

        while self._running:
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Unexpected error in scheduler: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Scheduler stopped")

    def stop(self) -> None:
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

    @property
    def running(self) -> bool:
        return self._running

    def get_scheduled_jobs(self) -> List[ScheduledJob]:
        return list(self._jobs)

    def clear_schedule(self) -> None:
        self._jobs.clear()


def parse_clock_time(value: str) -> Tuple[int, int]:
    """Parse ``HH:MM`` into an (hour, minute) pair."""
    match = _CLOCK_TIME.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return hour, minute


def parse_time(value: TimeSpec, now: Optional[datetime] = None) -> datetime:
    """
    Resolve an absolute or relative time expression to a datetime.

    Naive results take the timezone of ``now``.
    """
    now = now or utcnow()
    tz = now.tzinfo or timezone.utc

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if not isinstance(value, str):
        raise ValueError(f"Unsupported time value: {value!r}")

    text = value.strip().lower()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if re.fullmatch(r"\d+(\.\d+)?", text):
        return datetime.fromtimestamp(float(text), tz=timezone.utc)
    if text == "now":
        return now
    if text == "today":
        return midnight
    if text == "tomorrow":
        return midnight + timedelta(days=1)

    match = _RELATIVE.match(text)
    if match:
        amount, unit = int(match.group(1)), _RELATIVE_UNITS[match.group(2)]
        return now + relativedelta(**{unit: amount})

    for prefix, day_offset in (("today ", 0), ("tomorrow ", 1)):
        if text.startswith(prefix):
            hour, minute = parse_clock_time(text[len(prefix):])
            return midnight.replace(hour=hour, minute=minute) + timedelta(days=day_offset)

    try:
        parsed = date_parser.parse(value, default=midnight.replace(tzinfo=None))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Unable to parse time: {value!r}") from e
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)


def _job_label(job: JobReference) -> str:
    if isinstance(job, str):
        return job
    if isinstance(job, type):
        return job.__name__
    return type(job).__name__
