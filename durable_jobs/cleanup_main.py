"""CLI entrypoint for job table retention sweeps."""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Tuple

from durable_jobs.config import QueueConfig
from durable_jobs.drivers import DatabaseDriver
from durable_jobs.errors import ConfigurationError
from durable_jobs.worker_main import setup_logging


async def run_cleanup(
    completed_days: int = 7,
    failed_days: int = 30,
    config: Optional[QueueConfig] = None,
    driver: Optional[DatabaseDriver] = None,
) -> Tuple[int, int]:
    """
    Delete old completed jobs and old failed-job archive records.

    Returns:
        (completed rows deleted, failed rows deleted)
    """
    if driver is None:
        config = config or QueueConfig.from_env()
        if config.driver != "database":
            raise ConfigurationError(
                f"Cleanup only supports the database driver, not {config.driver!r}"
            )
        driver = DatabaseDriver(config)

    try:
        completed = await driver.cleanup_completed_jobs(completed_days)
        failed = await driver.cleanup_failed_jobs(failed_days)
    finally:
        await driver.close()
    return completed, failed


def main(argv=None):
    """Main entrypoint for cleanup."""
    setup_logging()
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="Durable Jobs Cleanup")
    parser.add_argument(
        "--completed-days",
        type=int,
        default=7,
        help="Delete completed jobs older than this many days (default: 7)",
    )
    parser.add_argument(
        "--failed-days",
        type=int,
        default=30,
        help="Delete failed-job records older than this many days (default: 30)",
    )
    args = parser.parse_args(argv)

    try:
        completed, failed = asyncio.run(run_cleanup(args.completed_days, args.failed_days))
    except Exception as e:
        logger.error(f"Cleanup failed: {e}", exc_info=True)
        sys.exit(1)

    logger.info(f"Deleted {completed} completed jobs and {failed} failed-job records")


if __name__ == "__main__":
    main()
