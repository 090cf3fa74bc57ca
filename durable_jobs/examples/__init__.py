"""Sample jobs."""

from durable_jobs.examples.emails import SendEmailJob
from durable_jobs.examples.maintenance import DataCleanupJob

__all__ = ["SendEmailJob", "DataCleanupJob"]
