"""Job type registry."""

from typing import Dict, Optional, Type, Union

from durable_jobs.errors import JobContractError, JobNotRegisteredError
from durable_jobs.job import JobInterface


class JobRegistry:
    """Registry mapping stable type identifiers to job classes."""

    def __init__(self):
        self._jobs: Dict[str, Type[JobInterface]] = {}

    def register(self, job_class: Optional[Type[JobInterface]] = None, *, name: Optional[str] = None):
        """
        Register a job class. Usable directly or as a decorator.

        Usage:
            @registry.register
            class SendEmailJob(Job):
                ...

            @registry.register(name="emails.send")
            class SendEmailJob(Job):
                ...
        """

        def decorator(cls: Type[JobInterface]) -> Type[JobInterface]:
            if not (isinstance(cls, type) and issubclass(cls, JobInterface)):
                raise JobContractError(f"{cls!r} must implement JobInterface")
            key = name or cls.type_name()
            if name is not None:
                cls.job_type = name
            self._jobs[key] = cls
            return cls

        if job_class is not None:
            return decorator(job_class)
        return decorator

    def resolve(self, job_type: str) -> Type[JobInterface]:
        """Get a job class by identifier, raising if it is unknown."""
        try:
            return self._jobs[job_type]
        except KeyError:
            raise JobNotRegisteredError(job_type) from None

    def create(self, job_type: str) -> JobInterface:
        """Build a fresh job instance for one execution attempt."""
        return self.resolve(job_type)()

    def type_name_for(self, job: Union[JobInterface, Type[JobInterface], str]) -> str:
        """Identifier for a job instance, class or name; must be registered."""
        if isinstance(job, str):
            job_type = job
        elif isinstance(job, JobInterface):
            job_type = type(job).type_name()
        elif isinstance(job, type) and issubclass(job, JobInterface):
            job_type = job.type_name()
        else:
            raise JobContractError(f"{job!r} must implement JobInterface")

        if job_type not in self._jobs:
            raise JobNotRegisteredError(job_type)
        return job_type

    def is_registered(self, job_type: str) -> bool:
        return job_type in self._jobs

    def all_jobs(self) -> Dict[str, Type[JobInterface]]:
        """Get all registered job classes."""
        return self._jobs.copy()

    def clear(self) -> None:
        self._jobs.clear()


# Global registry instance
job_registry = JobRegistry()
