"""PostgreSQL driver for the job queue."""

import json
import logging
import re
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

import asyncpg

from durable_jobs.config import QueueConfig
from durable_jobs.ddl import failed_jobs_table_ddl, jobs_table_ddl
from durable_jobs.drivers.base import DriverInterface
from durable_jobs.errors import ConfigurationError, DriverConnectionError
from durable_jobs.models import (
    FailedJob,
    JobPayload,
    JobStatus,
    QueueStats,
    new_failed_job_id,
    new_job_id,
    utcnow,
)

logger = logging.getLogger(__name__)

ConnectionResolver = Callable[[str], Awaitable[asyncpg.Pool]]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

_STATUS_VALUES = {status.value for status in JobStatus}

_CONNECTION_ERRORS = (
    OSError,
    asyncpg.InterfaceError,
    asyncpg.exceptions.CannotConnectNowError,
)


class DatabaseDriver(DriverInterface):
    """
    Table-backed job storage.

    Reservation is race-free because ``pop`` selects and claims the oldest
    available row inside one transaction using ``FOR UPDATE SKIP LOCKED``;
    a concurrent worker either skips the locked row or sees zero rows
    updated once the winner commits.

    Example:
        ```python
        driver = DatabaseDriver(QueueConfig(db_dsn="postgresql://localhost/app"))
        await driver.create_tables()
        queue = JobQueue(config, driver=driver)
        ```
    """

    def __init__(
        self,
        config: Optional[QueueConfig] = None,
        db_pool: Optional[asyncpg.Pool] = None,
        connection_resolver: Optional[ConnectionResolver] = None,
    ):
        """
        Initialize the driver.

        Args:
            config: Queue configuration (table names, connection name, DSN)
            db_pool: Existing connection pool; the driver will not close it
            connection_resolver: Coroutine resolving ``config.connection``
                to a pool, used when no pool is given
        """
        self.config = config or QueueConfig()
        self.jobs_table = _validate_identifier(self.config.table)
        self.failed_jobs_table = _validate_identifier(self.config.failed_table)
        self.db_pool = db_pool
        self.connection_resolver = connection_resolver
        self._owns_pool = False

    async def _get_pool(self) -> asyncpg.Pool:
        if self.db_pool is not None:
            return self.db_pool

        try:
            if self.connection_resolver is not None:
                self.db_pool = await self.connection_resolver(self.config.connection)
            elif self.config.db_dsn:
                self.db_pool = await asyncpg.create_pool(
                    self.config.db_dsn, min_size=1, max_size=max(2, self.config.max_workers)
                )
                self._owns_pool = True
            else:
                raise ConfigurationError(
                    "Database driver needs a pool, a connection resolver or db_dsn"
                )
        except _CONNECTION_ERRORS as e:
            raise DriverConnectionError(
                f"Could not establish database connection: {e}"
            ) from e

        if self.db_pool is None:
            raise DriverConnectionError("Could not establish database connection")
        return self.db_pool

    @asynccontextmanager
    async def _acquire(self) -> AsyncIterator[Any]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                yield conn
        except _CONNECTION_ERRORS as e:
            raise DriverConnectionError(f"Database connection error: {e}") from e

    async def create_tables(self) -> None:
        """Create the jobs and failed-jobs tables if they don't exist."""
        async with self._acquire() as conn:
            await conn.execute(jobs_table_ddl(self.jobs_table))
            await conn.execute(failed_jobs_table_ddl(self.failed_jobs_table))

    async def push(self, payload: JobPayload, queue: str = "default", delay: int = 0) -> bool:
        now = utcnow()
        available_at = now + timedelta(seconds=max(0, delay))

        try:
            async with self._acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO {self.jobs_table} (
                        id, queue, job_type, job_name, data, attempts, max_retries,
                        timeout, status, created_at, available_at, reserved_at, processed_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, NULL, NULL)
                    """,
                    payload.id,
                    queue,
                    payload.job_type,
                    payload.job_name,
                    json.dumps(payload.data),
                    payload.attempts,
                    payload.max_retries,
                    payload.timeout,
                    JobStatus.PENDING.value,
                    payload.created_at,
                    available_at,
                )
        except asyncpg.PostgresError as e:
            logger.error(f"Failed to push job {payload.id} onto {queue}: {e}")
            return False

        payload.queue = queue
        payload.status = JobStatus.PENDING
        payload.available_at = available_at
        return True

    async def pop(self, queue: str = "default") -> Optional[JobPayload]:
        now = utcnow()

        async with self._acquire() as conn:
            transaction = conn.transaction()
            await transaction.start()
            try:
                row = await conn.fetchrow(
                    f"""
                    SELECT * FROM {self.jobs_table}
                    WHERE queue = $1 AND status = $2 AND available_at <= $3
                    ORDER BY created_at ASC
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                    """,
                    queue,
                    JobStatus.PENDING.value,
                    now,
                )
                if row is None:
                    await transaction.rollback()
                    return None

                result = await conn.execute(
                    f"""
                    UPDATE {self.jobs_table}
                    SET status = $1, reserved_at = $2
                    WHERE id = $3 AND status = $4
                    """,
                    JobStatus.PROCESSING.value,
                    now,
                    row["id"],
                    JobStatus.PENDING.value,
                )
                if _affected_rows(result) == 0:
                    # Another worker claimed it first
                    await transaction.rollback()
                    return None

                await transaction.commit()
            except BaseException:
                await transaction.rollback()
                raise

        payload = self._row_to_payload(row)
        payload.status = JobStatus.PROCESSING
        payload.reserved_at = now
        return payload

    async def mark_completed(self, job_id: str) -> bool:
        async with self._acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE {self.jobs_table}
                SET status = $1, processed_at = $2
                WHERE id = $3 AND status = $4
                RETURNING id
                """,
                JobStatus.COMPLETED.value,
                utcnow(),
                job_id,
                JobStatus.PROCESSING.value,
            )
            if row is not None:
                return True

            status = await conn.fetchval(
                f"SELECT status FROM {self.jobs_table} WHERE id = $1", job_id
            )

        # Completing an already-completed job is a no-op
        return status == JobStatus.COMPLETED.value

    async def mark_failed(self, job_id: str, error: str) -> bool:
        now = utcnow()

        async with self._acquire() as conn:
            transaction = conn.transaction()
            await transaction.start()
            try:
                row = await conn.fetchrow(
                    f"SELECT * FROM {self.jobs_table} WHERE id = $1 FOR UPDATE", job_id
                )
                if row is None:
                    await transaction.rollback()
                    return False

                if row["status"] == JobStatus.FAILED.value:
                    # Already archived
                    await transaction.rollback()
                    return True

                await conn.execute(
                    f"""
                    UPDATE {self.jobs_table}
                    SET status = $1, processed_at = $2, attempts = attempts + 1
                    WHERE id = $3
                    """,
                    JobStatus.FAILED.value,
                    now,
                    job_id,
                )
                await conn.execute(
                    f"""
                    INSERT INTO {self.failed_jobs_table} (
                        id, job_id, queue, job_type, job_name, data, attempts, error, failed_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    new_failed_job_id(),
                    job_id,
                    row["queue"],
                    row["job_type"],
                    row["job_name"],
                    _json_text(row["data"]),
                    row["attempts"] + 1,
                    error,
                    now,
                )
                await transaction.commit()
            except BaseException:
                await transaction.rollback()
                raise

        return True

    async def retry(self, job_id: str, attempts: int, delay: int) -> bool:
        available_at = utcnow() + timedelta(seconds=max(0, delay))

        async with self._acquire() as conn:
            result = await conn.execute(
                f"""
                UPDATE {self.jobs_table}
                SET status = $1,
                    attempts = $2,
                    available_at = $3,
                    reserved_at = NULL,
                    processed_at = NULL
                WHERE id = $4
                """,
                JobStatus.PENDING.value,
                attempts,
                available_at,
                job_id,
            )

        return _affected_rows(result) > 0

    async def get_stats(self, queue: Optional[str] = None) -> QueueStats:
        stats = QueueStats()

        query = f"SELECT status, COUNT(*) AS count FROM {self.jobs_table}"
        failed_query = f"SELECT COUNT(*) FROM {self.failed_jobs_table}"
        params = []
        if queue is not None:
            query += " WHERE queue = $1"
            failed_query += " WHERE queue = $1"
            params.append(queue)
        query += " GROUP BY status"

        async with self._acquire() as conn:
            rows = await conn.fetch(query, *params)
            failed_total = await conn.fetchval(failed_query, *params)

        for row in rows:
            count = int(row["count"])
            if row["status"] in _STATUS_VALUES:
                setattr(stats, row["status"], count)
            stats.total += count

        stats.failed_total = int(failed_total or 0)
        return stats

    async def clear(self, queue: str = "default") -> bool:
        try:
            async with self._acquire() as conn:
                await conn.execute(f"DELETE FROM {self.jobs_table} WHERE queue = $1", queue)
        except asyncpg.PostgresError as e:
            logger.error(f"Failed to clear queue {queue}: {e}")
            return False
        return True

    async def get_failed_jobs(self, limit: int = 50, offset: int = 0) -> List[FailedJob]:
        async with self._acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT * FROM {self.failed_jobs_table}
                ORDER BY failed_at DESC
                LIMIT $1 OFFSET $2
                """,
                limit,
                offset,
            )

        return [self._row_to_failed_job(row) for row in rows]

    async def retry_failed_job(self, job_id: str) -> bool:
        now = utcnow()

        async with self._acquire() as conn:
            transaction = conn.transaction()
            await transaction.start()
            try:
                failed = await conn.fetchrow(
                    f"""
                    SELECT * FROM {self.failed_jobs_table}
                    WHERE job_id = $1
                    ORDER BY failed_at DESC
                    LIMIT 1
                    FOR UPDATE
                    """,
                    job_id,
                )
                if failed is None:
                    await transaction.rollback()
                    return False

                await conn.execute(
                    f"""
                    INSERT INTO {self.jobs_table} (
                        id, queue, job_type, job_name, data, attempts, max_retries,
                        timeout, status, created_at, available_at, reserved_at, processed_at
                    ) VALUES ($1, $2, $3, $4, $5, 0, $6, $7, $8, $9, $9, NULL, NULL)
                    """,
                    new_job_id(),
                    failed["queue"],
                    failed["job_type"],
                    failed["job_name"],
                    _json_text(failed["data"]),
                    self.config.max_tries,
                    self.config.timeout,
                    JobStatus.PENDING.value,
                    now,
                )
                await conn.execute(
                    f"DELETE FROM {self.failed_jobs_table} WHERE id = $1", failed["id"]
                )
                await transaction.commit()
            except asyncpg.PostgresError as e:
                await transaction.rollback()
                logger.error(f"Failed to re-queue failed job {job_id}: {e}")
                return False
            except BaseException:
                await transaction.rollback()
                raise

        return True

    async def cleanup_completed_jobs(self, days: int = 7) -> int:
        """
        Delete completed jobs processed more than ``days`` days ago.

        Returns:
            Number of rows deleted
        """
        cutoff = utcnow() - timedelta(days=days)
        return await self._count_then_delete(
            self.jobs_table,
            "status = $1 AND processed_at < $2",
            JobStatus.COMPLETED.value,
            cutoff,
        )

    async def cleanup_failed_jobs(self, days: int = 30) -> int:
        """
        Delete failed-job archive records older than ``days`` days.

        Returns:
            Number of rows deleted
        """
        cutoff = utcnow() - timedelta(days=days)
        return await self._count_then_delete(self.failed_jobs_table, "failed_at < $1", cutoff)

    async def _count_then_delete(self, table: str, where: str, *params: Any) -> int:
        async with self._acquire() as conn:
            async with conn.transaction():
                count = await conn.fetchval(f"SELECT COUNT(*) FROM {table} WHERE {where}", *params)
                count = int(count or 0)
                if count > 0:
                    await conn.execute(f"DELETE FROM {table} WHERE {where}", *params)
        return count

    async def close(self) -> None:
        if self._owns_pool and self.db_pool is not None:
            await self.db_pool.close()
            self.db_pool = None
            self._owns_pool = False

    def _row_to_payload(self, row: Any) -> JobPayload:
        """Convert a database row to a job payload."""
        return JobPayload(
            id=row["id"],
            queue=row["queue"],
            job_type=row["job_type"],
            job_name=row["job_name"],
            data=_json_value(row["data"]),
            attempts=row["attempts"],
            max_retries=row["max_retries"],
            timeout=row["timeout"],
            status=JobStatus(row["status"]),
            created_at=row["created_at"],
            available_at=row["available_at"],
            reserved_at=row["reserved_at"],
            processed_at=row["processed_at"],
        )

    def _row_to_failed_job(self, row: Any) -> FailedJob:
        """Convert a database row to a failed-job record."""
        return FailedJob(
            id=row["id"],
            job_id=row["job_id"],
            queue=row["queue"],
            job_type=row["job_type"],
            job_name=row["job_name"],
            data=_json_value(row["data"]),
            attempts=row["attempts"],
            error=row["error"],
            failed_at=row["failed_at"],
        )


def _validate_identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ConfigurationError(f"Invalid table name: {name!r}")
    return name


def _affected_rows(status: Optional[str]) -> int:
    # asyncpg returns command tags like "UPDATE 1"
    if not status:
        return 0
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError):
        return 0


def _json_value(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def _json_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)
