"""Unit tests for DDL module."""

from durable_jobs.ddl import (
    FAILED_JOBS_TABLE_DDL,
    JOBS_TABLE_DDL,
    failed_jobs_table_ddl,
    jobs_table_ddl,
)


def test_jobs_table_ddl_columns():
    """Test the jobs table keeps its full column set."""
    for column in [
        "id",
        "queue",
        "job_type",
        "job_name",
        "data",
        "attempts",
        "max_retries",
        "timeout",
        "status",
        "created_at",
        "available_at",
        "reserved_at",
        "processed_at",
    ]:
        assert f"  {column} " in JOBS_TABLE_DDL

    assert "CREATE TABLE IF NOT EXISTS jobs" in JOBS_TABLE_DDL
    assert "'pending', 'processing', 'completed', 'failed'" in JOBS_TABLE_DDL


def test_failed_jobs_table_ddl_columns():
    for column in [
        "id",
        "job_id",
        "queue",
        "job_type",
        "job_name",
        "data",
        "attempts",
        "error",
        "failed_at",
    ]:
        assert f"  {column} " in FAILED_JOBS_TABLE_DDL

    assert "CREATE TABLE IF NOT EXISTS failed_jobs" in FAILED_JOBS_TABLE_DDL


def test_custom_table_names():
    ddl = jobs_table_ddl("app_jobs")

    assert "CREATE TABLE IF NOT EXISTS app_jobs" in ddl
    assert "idx_app_jobs_queue_status" in ddl
    assert "CREATE TABLE IF NOT EXISTS app_failed" in failed_jobs_table_ddl("app_failed")


def test_schema_qualified_table_names():
    """Test index names use the bare table name while tables keep their schema."""
    ddl = jobs_table_ddl("jobs_schema.jobs")

    assert "CREATE TABLE IF NOT EXISTS jobs_schema.jobs" in ddl
    assert "CREATE INDEX IF NOT EXISTS idx_jobs_queue_status\nON jobs_schema.jobs" in ddl
    assert "idx_jobs_schema." not in ddl

    failed_ddl = failed_jobs_table_ddl("archive.failed_jobs")
    assert "CREATE INDEX IF NOT EXISTS idx_failed_jobs_job_id\nON archive.failed_jobs" in failed_ddl
    assert "idx_archive." not in failed_ddl
