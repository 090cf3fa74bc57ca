"""Unit tests for configuration module."""

import pytest

from durable_jobs.config import SUPPORTED_DRIVERS, QueueConfig


@pytest.fixture
def clean_env(monkeypatch):
    """Remove JOBS_* variables so defaults apply."""
    for name in [
        "JOBS_DRIVER",
        "JOBS_CONNECTION",
        "JOBS_DB_DSN",
        "JOBS_TABLE",
        "JOBS_FAILED_TABLE",
        "JOBS_KAFKA_BROKERS",
        "JOBS_KAFKA_GROUP_ID",
        "JOBS_KAFKA_TOPIC_PREFIX",
        "JOBS_KAFKA_AUTO_OFFSET_RESET",
        "JOBS_KAFKA_COMPRESSION",
        "JOBS_KAFKA_TIMEOUT_MS",
        "JOBS_MAX_WORKERS",
        "JOBS_MEMORY_LIMIT",
        "JOBS_TIMEOUT",
        "JOBS_SLEEP",
        "JOBS_MAX_TRIES",
        "JOBS_RETRY_DELAY",
    ]:
        monkeypatch.delenv(name, raising=False)


def test_config_defaults():
    """Test default configuration values."""
    config = QueueConfig()

    assert config.driver == "database"
    assert config.connection == "default"
    assert config.db_dsn is None
    assert config.table == "jobs"
    assert config.failed_table == "failed_jobs"
    assert config.brokers == "localhost:9092"
    assert config.group_id == "durable-jobs-consumer"
    assert config.topic_prefix == "durable-jobs-"
    assert config.auto_offset_reset == "earliest"
    assert config.compression == "gzip"
    assert config.timeout_ms == 1000
    assert config.max_workers == 1
    assert config.memory_limit == 128
    assert config.timeout == 60
    assert config.sleep == 3
    assert config.max_tries == 3
    assert config.retry_delay == 60


def test_supported_drivers():
    assert SUPPORTED_DRIVERS == ("database", "kafka", "memory")


def test_config_from_dict_ignores_unknown_keys():
    """Test from_dict merges known keys over defaults."""
    config = QueueConfig.from_dict({"driver": "kafka", "sleep": 1, "unknown": "x"})

    assert config.driver == "kafka"
    assert config.sleep == 1
    assert config.table == "jobs"
    assert not hasattr(config, "unknown")


def test_config_from_dict_none():
    assert QueueConfig.from_dict(None).driver == "database"


def test_config_from_env_defaults(clean_env):
    config = QueueConfig.from_env()

    assert config.driver == "database"
    assert config.memory_limit == 128
    assert config.compression == "gzip"


def test_config_from_env_with_overrides(clean_env, monkeypatch):
    """Test creating config with environment overrides."""
    monkeypatch.setenv("JOBS_DRIVER", "kafka")
    monkeypatch.setenv("JOBS_DB_DSN", "postgresql://localhost/test")
    monkeypatch.setenv("JOBS_KAFKA_BROKERS", "kafka-1:9092,kafka-2:9092")
    monkeypatch.setenv("JOBS_KAFKA_TOPIC_PREFIX", "app-")
    monkeypatch.setenv("JOBS_KAFKA_COMPRESSION", "")
    monkeypatch.setenv("JOBS_KAFKA_TIMEOUT_MS", "250")
    monkeypatch.setenv("JOBS_MEMORY_LIMIT", "512")
    monkeypatch.setenv("JOBS_SLEEP", "0.5")
    monkeypatch.setenv("JOBS_MAX_TRIES", "7")

    config = QueueConfig.from_env()

    assert config.driver == "kafka"
    assert config.db_dsn == "postgresql://localhost/test"
    assert config.brokers == "kafka-1:9092,kafka-2:9092"
    assert config.topic_prefix == "app-"
    assert config.compression is None
    assert config.timeout_ms == 250
    assert config.memory_limit == 512
    assert config.sleep == 0.5
    assert config.max_tries == 7


def test_config_from_env_invalid_integer(clean_env, monkeypatch):
    monkeypatch.setenv("JOBS_MEMORY_LIMIT", "lots")

    with pytest.raises(ValueError, match="JOBS_MEMORY_LIMIT"):
        QueueConfig.from_env()


def test_config_from_env_invalid_number(clean_env, monkeypatch):
    monkeypatch.setenv("JOBS_SLEEP", "soon")

    with pytest.raises(ValueError, match="JOBS_SLEEP"):
        QueueConfig.from_env()


def test_config_to_dict():
    config = QueueConfig(driver="memory")

    data = config.to_dict()

    assert data["driver"] == "memory"
    assert data["failed_table"] == "failed_jobs"
    assert data["retry_delay"] == 60


def test_config_repr():
    assert repr(QueueConfig(driver="memory")) == "QueueConfig(driver='memory', connection='default')"
