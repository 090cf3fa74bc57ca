"""Storage and broker drivers."""

from typing import Any, Optional

from durable_jobs.config import QueueConfig
from durable_jobs.drivers.base import DriverInterface
from durable_jobs.drivers.database import DatabaseDriver
from durable_jobs.drivers.kafka import KafkaDriver
from durable_jobs.drivers.memory import MemoryDriver
from durable_jobs.errors import UnsupportedDriverError


def create_driver(config: Optional[QueueConfig] = None, **kwargs: Any) -> DriverInterface:
    """
    Build the driver named by ``config.driver``.

    Extra keyword arguments are passed to the driver constructor, e.g.
    ``db_pool`` or ``connection_resolver`` for the database driver.

    Raises:
        UnsupportedDriverError: If the driver name is unknown
    """
    config = config or QueueConfig()

    if config.driver == "database":
        return DatabaseDriver(config, **kwargs)
    if config.driver == "kafka":
        return KafkaDriver(config, **kwargs)
    if config.driver == "memory":
        return MemoryDriver(config, **kwargs)

    raise UnsupportedDriverError(config.driver)


__all__ = [
    "DriverInterface",
    "DatabaseDriver",
    "KafkaDriver",
    "MemoryDriver",
    "create_driver",
]
