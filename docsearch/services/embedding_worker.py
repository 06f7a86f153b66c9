# File: docsearch/services/embedding_worker.py
import asyncio
import json
import structlog
from typing import Any, Optional, Set

from pydantic import ValidationError

from docsearch.application.use_cases.embed_document_use_case import EmbedDocumentUseCase
from docsearch.core.config import settings
from docsearch.core.metrics import MESSAGES_CONSUMED_TOTAL, PROCESSING_ERRORS_TOTAL
from docsearch.domain.models import EmbeddingJob, IngestionOutcome
from docsearch.services.kafka_clients import KafkaConsumerClient

log = structlog.get_logger(__name__)


class PoisonMessageError(Exception):
    """The message can never be processed; it is acknowledged and dropped."""
    pass


def parse_job(raw_value: Optional[bytes]) -> EmbeddingJob:
    try:
        return EmbeddingJob.model_validate(json.loads(raw_value or b""))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        raise PoisonMessageError(str(e)) from e


async def process_message(msg: Any, use_case: EmbedDocumentUseCase) -> Optional[IngestionOutcome]:
    """
    Processes one Kafka message. Returns None for poison messages, which are
    safe to acknowledge; any other failure propagates so the message is not
    acknowledged.
    """
    msg_log = log.bind(kafka_topic=msg.topic(), kafka_partition=msg.partition(), kafka_offset=msg.offset())
    try:
        job = parse_job(msg.value())
    except PoisonMessageError as e:
        msg_log.error("Invalid embedding job message; dropping it", error=str(e))
        MESSAGES_CONSUMED_TOTAL.labels(topic=msg.topic(), status="invalid").inc()
        PROCESSING_ERRORS_TOTAL.labels(stage="validation").inc()
        return None

    msg_log = msg_log.bind(document_id=job.document_id)
    msg_log.info("Received new message to process.")
    try:
        outcome = await use_case.execute(job)
    except Exception as e:
        MESSAGES_CONSUMED_TOTAL.labels(topic=msg.topic(), status="failure").inc()
        PROCESSING_ERRORS_TOTAL.labels(stage=type(e).__name__).inc()
        raise
    MESSAGES_CONSUMED_TOTAL.labels(topic=msg.topic(), status="rejected" if outcome.error else "success").inc()
    return outcome


class EmbeddingWorker:
    """
    Task-per-message consumer loop. At most max_in_flight messages are
    processed concurrently; a message's offset becomes committable only once
    its task has finished successfully.

    A failed message is redelivered after an exponential backoff. Once it has
    failed max_attempts times it is logged and dropped, so the commit moves on.
    """

    def __init__(self, consumer: KafkaConsumerClient, use_case: EmbedDocumentUseCase,
                 max_in_flight: Optional[int] = None, max_attempts: Optional[int] = None,
                 redelivery_backoff: Optional[float] = None, redelivery_backoff_max: Optional[float] = None):
        self.consumer = consumer
        self.use_case = use_case
        self.max_in_flight = max_in_flight or settings.KAFKA_MAX_IN_FLIGHT
        self.max_attempts = max_attempts or settings.KAFKA_MAX_DELIVERY_ATTEMPTS
        self.redelivery_backoff = (
            settings.KAFKA_REDELIVERY_BACKOFF_SECONDS if redelivery_backoff is None else redelivery_backoff
        )
        self.redelivery_backoff_max = (
            settings.KAFKA_REDELIVERY_BACKOFF_MAX_SECONDS if redelivery_backoff_max is None else redelivery_backoff_max
        )
        self._semaphore = asyncio.Semaphore(self.max_in_flight)
        self._tasks: Set[asyncio.Task] = set()
        self._stopping = asyncio.Event()
        self.log = log.bind(component="EmbeddingWorker", max_in_flight=self.max_in_flight)

    def stop(self):
        if not self._stopping.is_set():
            self.log.info("Stop requested; no new messages will be polled.")
            self._stopping.set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def run(self):
        self.log.info("Starting Kafka consumer loop...")
        try:
            while not self._stopping.is_set():
                await self._semaphore.acquire()
                if self._stopping.is_set():
                    self._semaphore.release()
                    break
                try:
                    msg = await asyncio.to_thread(self.consumer.poll)
                except BaseException:
                    self._semaphore.release()
                    raise
                if msg is None:
                    self._semaphore.release()
                else:
                    task = asyncio.create_task(self._handle(msg))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
                self.consumer.commit_tracked()
        finally:
            await self.drain()

    async def _handle(self, msg: Any):
        try:
            await process_message(msg, self.use_case)
        except Exception as e:
            await self._retry_or_drop(msg, e)
        else:
            self.consumer.ack(msg)
        finally:
            self._semaphore.release()

    async def _retry_or_drop(self, msg: Any, error: Exception):
        attempts = self.consumer.nack(msg)
        msg_log = self.log.bind(kafka_partition=msg.partition(), kafka_offset=msg.offset(),
                                attempts=attempts, error=str(error))
        if attempts >= self.max_attempts:
            msg_log.error("Message failed on every delivery attempt; dropping it")
            MESSAGES_CONSUMED_TOTAL.labels(topic=msg.topic(), status="dropped").inc()
            self.consumer.give_up(msg)
            return

        delay = min(self.redelivery_backoff * 2 ** (attempts - 1), self.redelivery_backoff_max)
        msg_log.warning("Message processing failed; it will be redelivered", delay_seconds=delay)
        if delay > 0:
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        if self._stopping.is_set():
            # Left uncommitted; the next consumer of the partition picks it up.
            return
        self.consumer.rewind_failed(msg.topic(), msg.partition())

    async def drain(self):
        if self._tasks:
            self.log.info("Draining in-flight messages...", in_flight=len(self._tasks))
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self.consumer.commit_tracked(asynchronous=False)
        self.log.info("In-flight messages drained and offsets committed.")
