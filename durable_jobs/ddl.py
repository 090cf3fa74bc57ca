"""Database schema DDL for the database driver."""

_JOBS_TABLE_TEMPLATE = """
CREATE TABLE IF NOT EXISTS {table} (
  id            VARCHAR(255) PRIMARY KEY,
  queue         VARCHAR(100) NOT NULL DEFAULT 'default',
  job_type      VARCHAR(255) NOT NULL,
  job_name      VARCHAR(255) NOT NULL,
  data          JSONB,

  attempts      INT NOT NULL DEFAULT 0,
  max_retries   INT NOT NULL DEFAULT 3,
  timeout       INT NOT NULL DEFAULT 300,

  status        TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'processing', 'completed', 'failed')),

  created_at    TIMESTAMPTZ NOT NULL DEFAULT now(),
  available_at  TIMESTAMPTZ NOT NULL,
  reserved_at   TIMESTAMPTZ,
  processed_at  TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_{index_prefix}_queue_status
ON {table} (queue, status);

CREATE INDEX IF NOT EXISTS idx_{index_prefix}_status_available
ON {table} (status, available_at);

CREATE INDEX IF NOT EXISTS idx_{index_prefix}_reserved_at
ON {table} (reserved_at);

-- Retention sweeps filter on processed_at
CREATE INDEX IF NOT EXISTS idx_{index_prefix}_processed_at
ON {table} (processed_at);
"""

_FAILED_JOBS_TABLE_TEMPLATE = """
CREATE TABLE IF NOT EXISTS {table} (
  id         VARCHAR(255) PRIMARY KEY,
  job_id     VARCHAR(255) NOT NULL,
  queue      VARCHAR(100) NOT NULL,
  job_type   VARCHAR(255) NOT NULL,
  job_name   VARCHAR(255) NOT NULL,
  data       JSONB,
  attempts   INT NOT NULL,
  error      TEXT NOT NULL,
  failed_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_{index_prefix}_job_id
ON {table} (job_id);

CREATE INDEX IF NOT EXISTS idx_{index_prefix}_queue
ON {table} (queue);

CREATE INDEX IF NOT EXISTS idx_{index_prefix}_failed_at
ON {table} (failed_at);
"""


def _index_prefix(table: str) -> str:
    # Postgres creates an index in its table's schema, so the name is unqualified
    return table.rsplit(".", 1)[-1]


def jobs_table_ddl(table: str = "jobs") -> str:
    """DDL for the live jobs table."""
    return _JOBS_TABLE_TEMPLATE.format(table=table, index_prefix=_index_prefix(table))


def failed_jobs_table_ddl(table: str = "failed_jobs") -> str:
    """DDL for the failed-jobs archive table."""
    return _FAILED_JOBS_TABLE_TEMPLATE.format(table=table, index_prefix=_index_prefix(table))


JOBS_TABLE_DDL = jobs_table_ddl()
FAILED_JOBS_TABLE_DDL = failed_jobs_table_ddl()
