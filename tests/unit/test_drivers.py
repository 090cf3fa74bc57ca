"""Unit tests for driver selection."""

from unittest.mock import MagicMock

import pytest

from durable_jobs.config import QueueConfig
from durable_jobs.drivers import DatabaseDriver, KafkaDriver, MemoryDriver, create_driver
from durable_jobs.errors import ConfigurationError, UnsupportedDriverError


@pytest.mark.parametrize(
    "name,driver_class",
    [("database", DatabaseDriver), ("kafka", KafkaDriver), ("memory", MemoryDriver)],
)
def test_create_driver(name, driver_class):
    config = QueueConfig(driver=name)

    driver = create_driver(config)

    assert isinstance(driver, driver_class)
    assert driver.config is config


def test_create_driver_passes_keyword_arguments():
    pool = MagicMock()

    driver = create_driver(QueueConfig(driver="database"), db_pool=pool)

    assert driver.db_pool is pool


def test_create_driver_rejects_unknown_name():
    with pytest.raises(UnsupportedDriverError) as exc_info:
        create_driver(QueueConfig(driver="redis"))

    assert isinstance(exc_info.value, ConfigurationError)
