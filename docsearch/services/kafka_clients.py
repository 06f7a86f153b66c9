# File: docsearch/services/kafka_clients.py
import json
import threading
import structlog
from datetime import datetime, timezone
from confluent_kafka import Consumer, Producer, KafkaError, KafkaException, TopicPartition
from typing import Optional, Any, Dict, List, Set, Tuple

from docsearch.application.ports.document_store_port import EventPublisherPort
from docsearch.core.config import settings
from docsearch.core.metrics import KAFKA_MESSAGES_PRODUCED_TOTAL

log = structlog.get_logger(__name__)

PartitionKey = Tuple[str, int]


# --- Kafka Producer ---
class KafkaProducerClient(EventPublisherPort):
    def __init__(self, producer: Optional[Producer] = None):
        self.producer = producer or Producer({
            'bootstrap.servers': settings.KAFKA_BOOTSTRAP_SERVERS,
            'acks': 'all',
        })
        self.log = log.bind(component="KafkaProducerClient")

    def _delivery_report(self, err, msg):
        if err is not None:
            KAFKA_MESSAGES_PRODUCED_TOTAL.labels(topic=msg.topic(), status="failure").inc()
            self.log.error(f"Message delivery failed to topic '{msg.topic()}'", error=str(err))
        else:
            KAFKA_MESSAGES_PRODUCED_TOTAL.labels(topic=msg.topic(), status="success").inc()
            self.log.debug(f"Message delivered to {msg.topic()} [{msg.partition()}]")

    def produce(self, topic: str, key: str, value: Dict[str, Any]):
        try:
            self.producer.produce(
                topic,
                key=key.encode('utf-8'),
                value=json.dumps(value).encode('utf-8'),
                callback=self._delivery_report
            )
            self.producer.poll(0)
        except (KafkaException, BufferError) as e:
            self.log.exception("Failed to produce message", topic=topic, error=str(e))
            raise

    def publish_summarization_request(self, document_id: str, extracted_text: str) -> None:
        self.produce(
            settings.KAFKA_SUMMARY_TOPIC,
            key=document_id,
            value={
                "document_id": document_id,
                "extracted_text": extracted_text,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
        self.log.info("Summarization request published", document_id=document_id, topic=settings.KAFKA_SUMMARY_TOPIC)

    def flush(self, timeout: float = 10.0):
        self.log.info(f"Flushing producer with a timeout of {timeout}s...")
        remaining = self.producer.flush(timeout)
        if remaining:
            self.log.warning("Producer flush timed out with messages still queued", remaining=remaining)
        else:
            self.log.info("Producer flushed.")


class OffsetTracker:
    """
    Tracks in-flight and failed offsets per partition so that commits never
    skip past a message that has not been fully processed.

    The committable offset of a partition is the lowest offset still pending
    or failed, or one past the highest offset seen when nothing is outstanding.
    Failed attempts are counted per offset until the offset is acked or given up.
    """

    def __init__(self):
        self._pending: Dict[PartitionKey, Set[int]] = {}
        self._failed: Dict[PartitionKey, Set[int]] = {}
        self._highest: Dict[PartitionKey, int] = {}
        self._committed: Dict[PartitionKey, int] = {}
        self._attempts: Dict[PartitionKey, Dict[int, int]] = {}
        self._lock = threading.Lock()

    def track(self, topic: str, partition: int, offset: int):
        # A redelivered offset is in flight again, no longer failed.
        key = (topic, partition)
        with self._lock:
            self._pending.setdefault(key, set()).add(offset)
            self._failed.get(key, set()).discard(offset)
            self._highest[key] = max(self._highest.get(key, -1), offset)

    def ack(self, topic: str, partition: int, offset: int):
        key = (topic, partition)
        with self._lock:
            self._pending.get(key, set()).discard(offset)
            self._attempts.get(key, {}).pop(offset, None)

    def nack(self, topic: str, partition: int, offset: int) -> int:
        """Marks the offset failed and returns how many times it has failed so far."""
        key = (topic, partition)
        with self._lock:
            self._pending.get(key, set()).discard(offset)
            self._failed.setdefault(key, set()).add(offset)
            attempts = self._attempts.setdefault(key, {})
            attempts[offset] = attempts.get(offset, 0) + 1
            return attempts[offset]

    def give_up(self, topic: str, partition: int, offset: int):
        # Treated as done: the commit may move past it.
        key = (topic, partition)
        with self._lock:
            self._pending.get(key, set()).discard(offset)
            self._failed.get(key, set()).discard(offset)
            self._attempts.get(key, {}).pop(offset, None)

    def attempts(self, topic: str, partition: int, offset: int) -> int:
        with self._lock:
            return self._attempts.get((topic, partition), {}).get(offset, 0)

    def lowest_failed(self, topic: str, partition: int) -> Optional[int]:
        with self._lock:
            failed = self._failed.get((topic, partition))
            return min(failed) if failed else None

    def committable(self) -> List[Tuple[str, int, int]]:
        """Returns (topic, partition, offset) entries that advanced since the last call."""
        result = []
        with self._lock:
            for key, highest in self._highest.items():
                outstanding = self._pending.get(key, set()) | self._failed.get(key, set())
                offset = min(outstanding) if outstanding else highest + 1
                if offset > self._committed.get(key, -1):
                    self._committed[key] = offset
                    result.append((key[0], key[1], offset))
        return result

    def revoke(self, topic: str, partition: int):
        key = (topic, partition)
        with self._lock:
            for state in (self._pending, self._failed, self._highest, self._committed, self._attempts):
                state.pop(key, None)

    def outstanding(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._pending.values())


# --- Kafka Consumer ---
class KafkaConsumerClient:
    def __init__(self, topics: List[str], tracker: Optional[OffsetTracker] = None, consumer: Optional[Consumer] = None):
        self.tracker = tracker or OffsetTracker()
        self.consumer = consumer or Consumer({
            'bootstrap.servers': settings.KAFKA_BOOTSTRAP_SERVERS,
            'group.id': settings.KAFKA_CONSUMER_GROUP_ID,
            'auto.offset.reset': settings.KAFKA_AUTO_OFFSET_RESET,
            'enable.auto.commit': False,  # Commits manuales: at-least-once
        })
        self.consumer.subscribe(topics, on_revoke=self._on_revoke)
        self.log = log.bind(component="KafkaConsumerClient", topics=topics)

    def _on_revoke(self, consumer, partitions):
        self.commit_tracked(asynchronous=False)
        for tp in partitions:
            self.tracker.revoke(tp.topic, tp.partition)
        self.log.info("Partitions revoked", partitions=[(tp.topic, tp.partition) for tp in partitions])

    def poll(self, timeout: Optional[float] = None) -> Optional[Any]:
        """Returns the next valid message or None. Raises KafkaException on fatal errors."""
        msg = self.consumer.poll(timeout=settings.KAFKA_POLL_TIMEOUT_SECONDS if timeout is None else timeout)
        if msg is None:
            return None
        if msg.error():
            if msg.error().code() == KafkaError._PARTITION_EOF:
                return None
            self.log.error("Kafka consumer error", error=str(msg.error()))
            raise KafkaException(msg.error())
        self.tracker.track(msg.topic(), msg.partition(), msg.offset())
        return msg

    def ack(self, msg: Any):
        self.tracker.ack(msg.topic(), msg.partition(), msg.offset())

    def nack(self, msg: Any) -> int:
        """
        Marks the message failed and returns its failed-attempt count. The
        commit holds at the message until it is redelivered through
        rewind_failed and acked, or dropped with give_up.
        """
        return self.tracker.nack(msg.topic(), msg.partition(), msg.offset())

    def give_up(self, msg: Any):
        self.tracker.give_up(msg.topic(), msg.partition(), msg.offset())

    def rewind_failed(self, topic: str, partition: int):
        offset = self.tracker.lowest_failed(topic, partition)
        if offset is None:
            return
        try:
            self.consumer.seek(TopicPartition(topic, partition, offset))
        except KafkaException as e:
            # Seek fails while the partition is not yet assigned; the uncommitted
            # offset is still redelivered after the next rebalance.
            self.log.warning("Seek to failed offset did not succeed", topic=topic, partition=partition, offset=offset, error=str(e))
            return
        self.log.info("Partition rewound for redelivery", topic=topic, partition=partition, offset=offset)

    def commit_tracked(self, asynchronous: bool = True):
        offsets = [TopicPartition(t, p, o) for t, p, o in self.tracker.committable()]
        if not offsets:
            return
        try:
            self.consumer.commit(offsets=offsets, asynchronous=asynchronous)
        except KafkaException as e:
            self.log.error("Offset commit failed", error=str(e))
            return
        self.log.debug("Offsets committed", offsets=[(tp.topic, tp.partition, tp.offset) for tp in offsets])

    def close(self):
        self.log.info("Closing Kafka consumer...")
        self.consumer.close()
