# File: docsearch/core/metrics.py
from prometheus_client import Counter, Histogram

MESSAGES_CONSUMED_TOTAL = Counter(
    "docsearch_messages_consumed_total",
    "Total number of Kafka messages consumed.",
    ["topic", "status"]
)

PROCESSING_DURATION_SECONDS = Histogram(
    "docsearch_processing_duration_seconds",
    "Time taken to embed and index a single document.",
    buckets=[0.5, 1, 2, 5, 10, 30, 60, 120, 300]
)

CHUNKS_EMBEDDED_TOTAL = Counter(
    "docsearch_chunks_embedded_total",
    "Total number of chunks embedded and upserted into the vector index.",
)

CHUNK_EMBEDDING_FAILURES_TOTAL = Counter(
    "docsearch_chunk_embedding_failures_total",
    "Total number of chunks skipped because their embedding failed.",
)

VECTOR_UPSERTS_TOTAL = Counter(
    "docsearch_vector_upserts_total",
    "Total number of batch upserts sent to the vector index.",
    ["status"]
)

PROCESSING_ERRORS_TOTAL = Counter(
    "docsearch_processing_errors_total",
    "Total number of errors during ingestion.",
    ["stage"]
)

S3_DOWNLOAD_DURATION_SECONDS = Histogram(
    "docsearch_s3_download_duration_seconds",
    "Time taken to download a file from object storage.",
    buckets=[0.1, 0.5, 1, 2, 5, 10]
)

KAFKA_MESSAGES_PRODUCED_TOTAL = Counter(
    "docsearch_kafka_messages_produced_total",
    "Total number of messages produced to Kafka.",
    ["topic", "status"]
)

SEARCH_REQUESTS_TOTAL = Counter(
    "docsearch_search_requests_total",
    "Total number of search requests by answering strategy and outcome.",
    ["strategy", "outcome"]
)

SEARCH_DURATION_SECONDS = Histogram(
    "docsearch_search_duration_seconds",
    "Time taken to answer a search or listing request.",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5]
)
