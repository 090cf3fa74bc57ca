"""Apache Kafka driver for the job queue."""

import logging
from collections import Counter, OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition
from aiokafka.errors import KafkaConnectionError, KafkaError
from pydantic import ValidationError

from durable_jobs.config import QueueConfig
from durable_jobs.drivers.base import DriverInterface
from durable_jobs.errors import DriverConnectionError
from durable_jobs.models import FailedJob, JobPayload, JobStatus, QueueStats, utcnow

logger = logging.getLogger(__name__)

DEAD_LETTER_SUFFIX = "dead-letter"

# Recent completed ids remembered so a repeated completion stays a no-op
COMPLETED_ID_HISTORY = 10000

STATS_NOTE = (
    "Kafka stats are approximate and local to this process. Pending depth "
    "is not tracked; use consumer lag monitoring for queue depth."
)


@dataclass
class _Reservation:
    """An uncommitted message currently being processed."""

    payload: JobPayload
    partition: TopicPartition
    offset: int


class KafkaDriver(DriverInterface):
    """
    Partitioned-log job storage on Apache Kafka.

    Each queue maps to the topic ``{topic_prefix}{queue}``. Reservation is
    the consumer-group offset: a message's offset is committed only when
    the job is completed, failed or re-queued, so an uncommitted message
    is redelivered to the group if this consumer dies.

    Known limitations:
        - Delayed jobs are approximate. ``pop`` cannot un-deliver a message
          that is not yet due; it leaves the offset uncommitted, seeks the
          partition back to it and returns None, so the message is seen
          again on a later poll. This holds up the rest of that partition
          until the job becomes due.
        - Ordering is per partition only; there is no ordering across
          partitions of a topic.
        - Processing, completed and failed bookkeeping lives in this
          process's memory. It is lost on restart, so ``get_stats`` and
          ``get_failed_jobs`` describe this process only. Failed jobs are
          also published to ``{topic_prefix}dead-letter``.
    """

    def __init__(
        self,
        config: Optional[QueueConfig] = None,
        producer: Optional[AIOKafkaProducer] = None,
        consumer: Optional[AIOKafkaConsumer] = None,
    ):
        """
        Initialize the driver.

        Args:
            config: Queue configuration (brokers, group id, topic prefix)
            producer: Started producer to use instead of creating one
            consumer: Started consumer to use instead of creating one
        """
        self.config = config or QueueConfig(driver="kafka")
        self._producer = producer
        self._consumer = consumer
        self._processing: Dict[str, _Reservation] = {}
        self._completed_ids: "OrderedDict[str, None]" = OrderedDict()
        self._completed_counts: Counter = Counter()
        self._failed: Dict[str, FailedJob] = {}

    def topic_name(self, queue: str) -> str:
        return f"{self.config.topic_prefix}{queue}"

    @property
    def dead_letter_topic(self) -> str:
        return f"{self.config.topic_prefix}{DEAD_LETTER_SUFFIX}"

    async def _get_producer(self) -> AIOKafkaProducer:
        """Get or create Kafka producer."""
        if self._producer is None:
            producer = AIOKafkaProducer(
                bootstrap_servers=self.config.brokers,
                client_id=self.config.group_id,
                acks="all",
                compression_type=self.config.compression,
            )
            try:
                await producer.start()
            except KafkaConnectionError as e:
                raise DriverConnectionError(f"Could not connect to Kafka: {e}") from e
            self._producer = producer
            logger.info(f"Kafka producer connected to {self.config.brokers}")
        return self._producer

    async def _get_consumer(self) -> AIOKafkaConsumer:
        """Get or create Kafka consumer."""
        if self._consumer is None:
            consumer = AIOKafkaConsumer(
                bootstrap_servers=self.config.brokers,
                group_id=self.config.group_id,
                auto_offset_reset=self.config.auto_offset_reset,
                enable_auto_commit=False,
            )
            try:
                await consumer.start()
            except KafkaConnectionError as e:
                raise DriverConnectionError(f"Could not connect to Kafka: {e}") from e
            self._consumer = consumer
            logger.info(f"Kafka consumer connected to {self.config.brokers}")
        return self._consumer

    async def push(self, payload: JobPayload, queue: str = "default", delay: int = 0) -> bool:
        payload.queue = queue
        payload.status = JobStatus.PENDING
        payload.reserved_at = None
        payload.available_at = utcnow() + timedelta(seconds=max(0, delay))

        producer = await self._get_producer()
        try:
            # send_and_wait returns once the broker acknowledges the write
            await producer.send_and_wait(
                self.topic_name(queue),
                value=payload.model_dump_json().encode("utf-8"),
                key=payload.id.encode("utf-8"),
            )
        except KafkaError as e:
            logger.error(f"Kafka push error for job {payload.id}: {e}")
            return False
        return True

    async def pop(self, queue: str = "default") -> Optional[JobPayload]:
        consumer = await self._get_consumer()
        topic = self.topic_name(queue)

        if consumer.subscription() != {topic}:
            consumer.subscribe([topic])

        try:
            batches = await consumer.getmany(timeout_ms=self.config.timeout_ms, max_records=1)
        except KafkaConnectionError as e:
            raise DriverConnectionError(f"Kafka consume error: {e}") from e
        except KafkaError as e:
            logger.error(f"Kafka consume error: {e}")
            return None

        for partition, messages in batches.items():
            if not messages:
                continue
            message = messages[0]

            try:
                payload = JobPayload.model_validate_json(message.value)
            except (ValidationError, ValueError, TypeError) as e:
                logger.error(
                    f"Invalid job payload at {partition.topic}[{partition.partition}]"
                    f"@{message.offset}, skipping: {e}"
                )
                await self._commit(partition, message.offset)
                return None

            if not payload.is_available():
                # Not due yet: leave it uncommitted and read it again later
                consumer.seek(partition, message.offset)
                return None

            payload.status = JobStatus.PROCESSING
            payload.reserved_at = utcnow()
            self._processing[payload.id] = _Reservation(payload, partition, message.offset)
            return payload

        return None

    async def _commit(self, partition: TopicPartition, offset: int) -> None:
        consumer = await self._get_consumer()
        await consumer.commit({partition: offset + 1})

    async def mark_completed(self, job_id: str) -> bool:
        reservation = self._processing.get(job_id)
        if reservation is None:
            return job_id in self._completed_ids

        try:
            await self._commit(reservation.partition, reservation.offset)
        except KafkaError as e:
            logger.error(f"Kafka commit error completing job {job_id}: {e}")
            return False

        reservation.payload.status = JobStatus.COMPLETED
        reservation.payload.processed_at = utcnow()
        self._completed_counts[reservation.payload.queue] += 1
        self._completed_ids[job_id] = None
        if len(self._completed_ids) > COMPLETED_ID_HISTORY:
            self._completed_ids.popitem(last=False)
        del self._processing[job_id]
        return True

    async def mark_failed(self, job_id: str, error: str) -> bool:
        reservation = self._processing.get(job_id)
        if reservation is None:
            return job_id in self._failed

        try:
            await self._commit(reservation.partition, reservation.offset)
        except KafkaError as e:
            logger.error(f"Kafka commit error failing job {job_id}: {e}")
            return False

        payload = reservation.payload
        payload.status = JobStatus.FAILED
        payload.attempts += 1
        payload.processed_at = utcnow()
        failed_job = FailedJob.from_payload(payload, error)
        self._failed[job_id] = failed_job
        del self._processing[job_id]

        await self._publish_dead_letter(failed_job)
        return True

    async def _publish_dead_letter(self, failed_job: FailedJob) -> None:
        """Publish a failed job to the dead-letter topic. Best effort."""
        try:
            producer = await self._get_producer()
            await producer.send_and_wait(
                self.dead_letter_topic,
                value=failed_job.model_dump_json().encode("utf-8"),
                key=failed_job.job_id.encode("utf-8"),
            )
        except (KafkaError, DriverConnectionError) as e:
            logger.error(f"Failed to publish job {failed_job.job_id} to dead-letter topic: {e}")

    async def retry(self, job_id: str, attempts: int, delay: int) -> bool:
        reservation = self._processing.pop(job_id, None)
        if reservation is None:
            return False

        payload = reservation.payload
        payload.attempts = attempts

        # Re-publish before committing so a crash in between duplicates
        # the job instead of losing it.
        if not await self.push(payload, payload.queue, delay):
            consumer = await self._get_consumer()
            consumer.seek(reservation.partition, reservation.offset)
            return False

        try:
            await self._commit(reservation.partition, reservation.offset)
        except KafkaError as e:
            logger.error(f"Kafka commit error retrying job {job_id}: {e}")
        return True

    async def get_stats(self, queue: Optional[str] = None) -> QueueStats:
        def in_queue(payload_queue: str) -> bool:
            return queue is None or payload_queue == queue

        processing = sum(1 for r in self._processing.values() if in_queue(r.payload.queue))
        if queue is None:
            completed = sum(self._completed_counts.values())
        else:
            completed = self._completed_counts[queue]
        failed = sum(1 for f in self._failed.values() if in_queue(f.queue))

        return QueueStats(
            pending=0,
            processing=processing,
            completed=completed,
            failed=failed,
            total=processing + completed + failed,
            failed_total=failed,
            approximate=True,
            note=STATS_NOTE,
        )

    async def clear(self, queue: str = "default") -> bool:
        try:
            if self._consumer is not None:
                self._consumer.unsubscribe()
        except KafkaError as e:
            logger.error(f"Kafka clear error: {e}")
            return False

        self._processing.clear()
        self._completed_ids.clear()
        self._completed_counts.clear()
        logger.warning(
            f"KafkaDriver.clear({queue!r}) only clears local state; topic "
            f"{self.topic_name(queue)} still holds its messages"
        )
        return True

    async def get_failed_jobs(self, limit: int = 50, offset: int = 0) -> List[FailedJob]:
        return list(self._failed.values())[offset:offset + limit]

    async def retry_failed_job(self, job_id: str) -> bool:
        failed_job = self._failed.get(job_id)
        if failed_job is None:
            return False

        payload = JobPayload(
            queue=failed_job.queue,
            job_type=failed_job.job_type,
            job_name=failed_job.job_name,
            data=failed_job.data,
            max_retries=self.config.max_tries,
            timeout=self.config.timeout,
        )
        result = await self.push(payload, failed_job.queue, 0)
        if result:
            del self._failed[job_id]
        return result

    async def close(self) -> None:
        if self._consumer is not None:
            try:
                await self._consumer.stop()
            except KafkaError as e:
                logger.error(f"Error closing Kafka consumer: {e}")
            self._consumer = None
            logger.info("Kafka consumer closed")

        if self._producer is not None:
            try:
                await self._producer.stop()
            except KafkaError as e:
                logger.error(f"Error closing Kafka producer: {e}")
            self._producer = None
