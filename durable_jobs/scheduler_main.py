"""CLI entrypoint for the scheduler."""

import argparse
import asyncio
import importlib
import logging
import os
import signal
import sys

from durable_jobs.config import QueueConfig
from durable_jobs.queue import JobQueue
from durable_jobs.scheduler import Scheduler
from durable_jobs.worker_main import setup_logging


def load_schedule(scheduler: Scheduler, schedule_module: str) -> int:
    """
    Import ``schedule_module`` and let it declare entries.

    The module must define ``register_schedule(scheduler)``.

    Returns:
        Number of scheduled entries
    """
    module = importlib.import_module(schedule_module)
    register = getattr(module, "register_schedule", None)
    if not callable(register):
        raise AttributeError(f"{schedule_module} has no register_schedule(scheduler) function")

    register(scheduler)
    return len(scheduler.get_scheduled_jobs())


def main(argv=None):
    """Main entrypoint for scheduler."""
    setup_logging()
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="Durable Jobs Scheduler")
    parser.add_argument(
        "--schedule-module",
        default=os.getenv("JOBS_SCHEDULE_MODULE"),
        help="Module defining register_schedule(scheduler) (default: JOBS_SCHEDULE_MODULE env var)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=30.0,
        help="Seconds between ticks (default: 30)",
    )
    args = parser.parse_args(argv)

    if not args.schedule_module:
        logger.error("No schedule module given; use --schedule-module or JOBS_SCHEDULE_MODULE")
        sys.exit(1)

    try:
        config = QueueConfig.from_env()
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    async def run():
        """Async main function."""
        job_queue = JobQueue(config, logger=logger)
        scheduler = Scheduler(job_queue, poll_interval=args.poll_interval)

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down...")
            scheduler.stop()

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

        try:
            count = load_schedule(scheduler, args.schedule_module)
            logger.info(f"Loaded {count} scheduled jobs from {args.schedule_module}")

            logger.info("Starting scheduler loop...")
            await scheduler.run()
        except Exception as e:
            logger.error(f"Fatal error in scheduler: {e}", exc_info=True)
            sys.exit(1)
        finally:
            logger.info("Closing queue driver...")
            await job_queue.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
