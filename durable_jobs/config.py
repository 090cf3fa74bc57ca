"""Configuration for the durable jobs queue."""

import os
from typing import Any, Dict, Mapping, Optional

SUPPORTED_DRIVERS = ("database", "kafka", "memory")


class QueueConfig:
    """Configuration object for a job queue and its driver."""

    def __init__(
        self,
        driver: str = "database",
        connection: str = "default",
        db_dsn: Optional[str] = None,
        table: str = "jobs",
        failed_table: str = "failed_jobs",
        brokers: str = "localhost:9092",
        group_id: str = "durable-jobs-consumer",
        topic_prefix: str = "durable-jobs-",
        auto_offset_reset: str = "earliest",
        compression: Optional[str] = "gzip",
        timeout_ms: int = 1000,
        max_workers: int = 1,
        memory_limit: int = 128,
        timeout: int = 60,
        sleep: float = 3,
        max_tries: int = 3,
        retry_delay: int = 60,
    ):
        self.driver = driver
        self.connection = connection
        self.db_dsn = db_dsn
        self.table = table
        self.failed_table = failed_table

        # Kafka driver settings
        self.brokers = brokers
        self.group_id = group_id
        self.topic_prefix = topic_prefix
        self.auto_offset_reset = auto_offset_reset
        self.compression = compression
        self.timeout_ms = timeout_ms

        # Worker settings
        self.max_workers = max_workers
        self.memory_limit = memory_limit
        self.timeout = timeout
        self.sleep = sleep
        self.max_tries = max_tries
        self.retry_delay = retry_delay

    @classmethod
    def from_dict(cls, values: Optional[Mapping[str, Any]] = None) -> "QueueConfig":
        """Create config from a mapping, ignoring unknown keys."""
        config = cls()
        for key, value in (values or {}).items():
            if hasattr(config, key):
                setattr(config, key, value)
        return config

    @classmethod
    def from_env(cls) -> "QueueConfig":
        """Create config from environment variables."""
        return cls(
            driver=os.getenv("JOBS_DRIVER", "database"),
            connection=os.getenv("JOBS_CONNECTION", "default"),
            db_dsn=os.getenv("JOBS_DB_DSN"),
            table=os.getenv("JOBS_TABLE", "jobs"),
            failed_table=os.getenv("JOBS_FAILED_TABLE", "failed_jobs"),
            brokers=os.getenv("JOBS_KAFKA_BROKERS", "localhost:9092"),
            group_id=os.getenv("JOBS_KAFKA_GROUP_ID", "durable-jobs-consumer"),
            topic_prefix=os.getenv("JOBS_KAFKA_TOPIC_PREFIX", "durable-jobs-"),
            auto_offset_reset=os.getenv("JOBS_KAFKA_AUTO_OFFSET_RESET", "earliest"),
            compression=os.getenv("JOBS_KAFKA_COMPRESSION", "gzip") or None,
            timeout_ms=_int_env("JOBS_KAFKA_TIMEOUT_MS", 1000),
            max_workers=_int_env("JOBS_MAX_WORKERS", 1),
            memory_limit=_int_env("JOBS_MEMORY_LIMIT", 128),
            timeout=_int_env("JOBS_TIMEOUT", 60),
            sleep=_float_env("JOBS_SLEEP", 3),
            max_tries=_int_env("JOBS_MAX_TRIES", 3),
            retry_delay=_int_env("JOBS_RETRY_DELAY", 60),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to a plain dictionary."""
        return dict(vars(self))

    def __repr__(self) -> str:
        return f"QueueConfig(driver={self.driver!r}, connection={self.connection!r})"


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"Invalid integer in {name}: {value!r}") from e


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"Invalid number in {name}: {value!r}") from e
