"""Job contract and base class."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)


class JobInterface(ABC):
    """
    Contract every queued job must satisfy.

    A job instance is built fresh for every execution attempt, so it must
    not keep attempt-scoped state of its own.
    """

    @classmethod
    def type_name(cls) -> str:
        """Stable identifier used to store and reconstruct this job type."""
        return getattr(cls, "job_type", None) or cls.__name__

    @abstractmethod
    async def handle(self, data: Any) -> Any:
        """Execute the unit of work."""

    @abstractmethod
    def get_name(self) -> str:
        pass

    @abstractmethod
    def get_max_retries(self) -> int:
        pass

    @abstractmethod
    def get_retry_delay(self) -> int:
        pass

    @abstractmethod
    def get_timeout(self) -> int:
        pass

    @abstractmethod
    def get_queue(self) -> str:
        pass

    @abstractmethod
    def should_retry(self, attempts: int, error: BaseException) -> bool:
        pass

    @abstractmethod
    async def failed(self, error: BaseException, data: Any) -> None:
        pass


class Job(JobInterface):
    """
    Base class for all jobs.

    Subclasses implement ``handle`` and may override the class attributes
    to change defaults for every instance.

    Example:
        ```python
        @job_registry.register
        class SendEmailJob(Job):
            queue = "emails"
            timeout = 120

            async def handle(self, data):
                await mailer.send(data["to"], data["subject"], data["body"])
                return {"status": "sent"}
        ```
    """

    job_type: Optional[str] = None
    name: Optional[str] = None
    max_retries: int = 3
    retry_delay: int = 60
    timeout: int = 300
    queue: str = "default"

    def __init__(self):
        # Instance copies so fluent setters never leak into the class.
        self.name = self.name or self.__class__.__name__
        self.max_retries = self.max_retries
        self.retry_delay = self.retry_delay
        self.timeout = self.timeout
        self.queue = self.queue

    def get_name(self) -> str:
        return self.name

    def get_max_retries(self) -> int:
        return self.max_retries

    def get_retry_delay(self) -> int:
        return self.retry_delay

    def get_timeout(self) -> int:
        return self.timeout

    def get_queue(self) -> str:
        return self.queue

    def on_queue(self, queue: str) -> "Job":
        self.queue = queue
        return self

    def set_max_retries(self, max_retries: int) -> "Job":
        self.max_retries = max_retries
        return self

    def set_retry_delay(self, retry_delay: int) -> "Job":
        self.retry_delay = retry_delay
        return self

    def set_timeout(self, timeout: int) -> "Job":
        self.timeout = timeout
        return self

    def retries(self, max_retries: int) -> "Job":
        """Alias for ``set_max_retries``."""
        return self.set_max_retries(max_retries)

    def retry_after(self, retry_delay: int) -> "Job":
        """Alias for ``set_retry_delay``."""
        return self.set_retry_delay(retry_delay)

    def should_retry(self, attempts: int, error: BaseException) -> bool:
        """
        Decide whether a failed attempt is retried.

        ``max_retries`` counts retries after the first attempt, so a job
        with ``max_retries=3`` runs at most four times. The comparison is
        ``attempts <= max_retries``, not ``attempts < max_retries``: with
        ``<`` the same job would run only three times and be archived on
        its third failure. Keep ``<=`` when overriding if ``max_retries``
        should keep meaning "retries". Override for error-sensitive
        policies, e.g. never retrying a validation error.

        Args:
            attempts: Attempt count including the one that just failed
            error: The exception raised by ``handle``
        """
        return attempts <= self.max_retries

    async def failed(self, error: BaseException, data: Any) -> None:
        """Called once after retries are exhausted."""
        logger.error(f"Job {self.get_name()} failed: {error}")

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name}, queue={self.queue}, "
            f"max_retries={self.max_retries})"
        )
