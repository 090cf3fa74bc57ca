"""CLI entrypoint and programmatic interface for the worker."""

import argparse
import asyncio
import importlib
import logging
import os
import signal
import sys
from typing import Optional

from durable_jobs.config import QueueConfig
from durable_jobs.drivers import DriverInterface
from durable_jobs.events import (
    JOB_FAILED,
    JOB_PROCESSED,
    JOB_PROCESSING,
    WORKER_MEMORY_EXCEEDED,
    WORKER_STARTING,
    WORKER_STOPPED,
    JobEvent,
)
from durable_jobs.queue import JobQueue
from durable_jobs.registry import JobRegistry


def setup_logging():
    """Setup logging configuration."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_handlers(handlers_module: Optional[str] = None, logger: Optional[logging.Logger] = None):
    """Import the module that registers the application's jobs."""
    logger = logger or logging.getLogger(__name__)
    handlers_module = handlers_module or os.getenv("JOBS_HANDLERS_MODULE")
    if not handlers_module:
        logger.warning("JOBS_HANDLERS_MODULE not set, only already-imported jobs are available")
        return

    importlib.import_module(handlers_module)
    logger.info(f"Loaded handlers from {handlers_module}")


def register_event_logging(queue: JobQueue, logger: logging.Logger) -> None:
    """Log every worker lifecycle event."""

    def on_starting(event: JobEvent):
        logger.info(f"Worker starting on queue {event.get('queue')} (pid {os.getpid()})")

    def on_processing(event: JobEvent):
        payload = event.get("payload")
        logger.info(f"Processing job: {payload.job_name} (ID: {payload.id})")

    def on_processed(event: JobEvent):
        payload = event.get("payload")
        logger.info(
            f"Completed job: {payload.job_name} (ID: {payload.id}) "
            f"in {event.get('execution_time', 0):.3f}s"
        )

    def on_failed(event: JobEvent):
        payload = event.get("payload")
        logger.error(
            f"Failed job: {payload.job_name} (ID: {payload.id}) after "
            f"{event.get('attempts', 0)} attempts - {event.get('error')}"
        )

    def on_memory_exceeded(event: JobEvent):
        logger.warning(
            f"Memory limit exceeded: {event.get('memory'):.1f}MB >= {event.get('limit')}MB"
        )

    def on_stopped(event: JobEvent):
        logger.info(f"Worker stopped after processing {event.get('processed', 0)} jobs")

    queue.listen(WORKER_STARTING, on_starting)
    queue.listen(JOB_PROCESSING, on_processing)
    queue.listen(JOB_PROCESSED, on_processed)
    queue.listen(JOB_FAILED, on_failed)
    queue.listen(WORKER_MEMORY_EXCEEDED, on_memory_exceeded)
    queue.listen(WORKER_STOPPED, on_stopped)


async def run_worker(
    queue_name: str = "default",
    max_jobs: int = 0,
    config: Optional[QueueConfig] = None,
    driver: Optional[DriverInterface] = None,
    registry: Optional[JobRegistry] = None,
    logger: Optional[logging.Logger] = None,
    job_queue: Optional[JobQueue] = None,
) -> int:
    """
    Run the worker programmatically.

    Args:
        queue_name: Queue to process
        max_jobs: Stop after this many jobs (0 means no limit)
        config: QueueConfig instance. If None, will load from environment.
        driver: Driver instance. If None, built from config.
        registry: JobRegistry instance. If None, uses the global job_registry.
        logger: Logger instance. If None, will create default logger.
        job_queue: Existing queue to run instead of building one.

    Returns:
        Number of jobs processed

    Example:
        ```python
        from durable_jobs.worker_main import run_worker
        import asyncio

        import myapp.jobs  # registers jobs

        asyncio.run(run_worker("emails", max_jobs=100))
        ```
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    if job_queue is None:
        if config is None:
            config = QueueConfig.from_env()
        job_queue = JobQueue(config, driver=driver, registry=registry, logger=logger)

    try:
        return await job_queue.work(queue_name, max_jobs)
    finally:
        await job_queue.close()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Durable Jobs Worker")
    parser.add_argument(
        "queue",
        nargs="?",
        default="default",
        help="Queue name to process (default: default)",
    )
    parser.add_argument(
        "max_jobs",
        nargs="?",
        type=int,
        default=0,
        help="Stop after processing this many jobs (default: 0, no limit)",
    )
    parser.add_argument(
        "--handlers-module",
        default=None,
        help="Module that registers jobs (default: JOBS_HANDLERS_MODULE env var)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entrypoint for worker."""
    setup_logging()
    logger = logging.getLogger(__name__)

    args = parse_args(argv)

    try:
        config = QueueConfig.from_env()
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    try:
        load_handlers(args.handlers_module, logger)
    except ImportError as e:
        logger.error(f"Failed to import handlers module: {e}")
        sys.exit(1)

    async def run():
        """Async main function."""
        job_queue = JobQueue(config, logger=logger)
        register_event_logging(job_queue, logger)

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, finishing current job and shutting down...")
            job_queue.stop()

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

        try:
            logger.info(f"Starting worker for queue: {args.queue}...")
            await run_worker(args.queue, args.max_jobs, logger=logger, job_queue=job_queue)
        except Exception as e:
            logger.error(f"Fatal error in worker: {e}", exc_info=True)
            sys.exit(1)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
