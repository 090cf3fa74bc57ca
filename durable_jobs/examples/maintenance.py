"""Example maintenance job."""

import logging
import time
from pathlib import Path
from typing import Any, Dict

from durable_jobs.drivers import DatabaseDriver
from durable_jobs.facade import Jobs
from durable_jobs.job import Job
from durable_jobs.registry import job_registry

logger = logging.getLogger(__name__)


@job_registry.register(name="examples.data_cleanup")
class DataCleanupJob(Job):
    """
    Periodic cleanup.

    Data: ``{"type": "old_jobs" | "failed_jobs" | "files", "older_than_days": 30}``.
    ``files`` also needs ``"directory"``. The job-table sweeps only apply
    when the process-wide queue uses the database driver.
    """

    queue = "maintenance"
    timeout = 600
    max_retries = 1

    async def handle(self, data: Dict[str, Any]) -> Dict[str, Any]:
        data = data or {}
        cleanup_type = data.get("type", "old_jobs")
        older_than_days = int(data.get("older_than_days", 30))

        logger.info(f"Starting data cleanup: {cleanup_type}, older than {older_than_days} days")

        if cleanup_type == "old_jobs":
            deleted = await self._database_driver().cleanup_completed_jobs(older_than_days)
        elif cleanup_type == "failed_jobs":
            deleted = await self._database_driver().cleanup_failed_jobs(older_than_days)
        elif cleanup_type == "files":
            deleted = self._cleanup_files(data.get("directory"), older_than_days)
        else:
            raise ValueError(f"Unknown cleanup type: {cleanup_type}")

        logger.info(f"Data cleanup completed: {cleanup_type}, removed {deleted}")
        return {
            "status": "completed",
            "cleanup_type": cleanup_type,
            "older_than_days": older_than_days,
            "deleted": deleted,
        }

    def should_retry(self, attempts: int, error: BaseException) -> bool:
        if isinstance(error, ValueError):
            return False
        return super().should_retry(attempts, error)

    def _database_driver(self) -> DatabaseDriver:
        driver = Jobs.queue().driver
        if not isinstance(driver, DatabaseDriver):
            raise ValueError("Job table cleanup requires the database driver")
        return driver

    def _cleanup_files(self, directory: Any, older_than_days: int) -> int:
        if not directory:
            raise ValueError("File cleanup requires a directory")

        root = Path(directory)
        if not root.is_dir():
            raise ValueError(f"Not a directory: {directory}")

        cutoff = time.time() - older_than_days * 86400
        deleted = 0
        for path in root.iterdir():
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                deleted += 1
        return deleted
