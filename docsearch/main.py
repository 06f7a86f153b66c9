# File: docsearch/main.py
import sys
import signal
import argparse
import asyncio
import structlog

from dotenv import load_dotenv
load_dotenv()

from prometheus_client import start_http_server

from docsearch.core.logging_config import setup_logging
setup_logging()

from docsearch.core.config import settings
from docsearch.dependencies import get_embed_document_use_case, get_model_manager
from docsearch.infrastructure.persistence.postgres_client import get_db_pool, close_db_pool
from docsearch.infrastructure.persistence.search_schema import drop_search_schema, ensure_search_schema
from docsearch.infrastructure.vectorstores.milvus_adapter import MilvusVectorStoreAdapter
from docsearch.services.clients.document_store_client import DocumentStoreClient
from docsearch.services.embedding_worker import EmbeddingWorker
from docsearch.services.kafka_clients import KafkaConsumerClient, KafkaProducerClient

log = structlog.get_logger(__name__)


async def run_worker():
    """Wires the worker, preloads the model, then consumes until a stop signal."""
    log.info("Initializing embedding worker...",
             config=settings.model_dump(exclude={"POSTGRES_PASSWORD", "MILVUS_TOKEN", "STORAGE_ACCESS_KEY", "STORAGE_SECRET_KEY"}))

    start_http_server(settings.METRICS_PORT)
    log.info(f"Prometheus metrics server started on port {settings.METRICS_PORT}.")

    producer = KafkaProducerClient()
    document_store = DocumentStoreClient()
    vector_store = MilvusVectorStoreAdapter()
    use_case = get_embed_document_use_case(
        vector_store=vector_store,
        document_store=document_store,
        event_publisher=producer,
    )

    # Fail at startup rather than on the first message.
    await get_model_manager().ensure_model(settings.EMBEDDING_TASK, settings.EMBEDDING_MODEL_NAME)
    await vector_store.ensure_collection()

    consumer = KafkaConsumerClient(topics=[settings.KAFKA_INPUT_TOPIC])
    worker = EmbeddingWorker(consumer, use_case)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    log.info("Worker initialized successfully. Starting message consumption loop...")
    try:
        await worker.run()
    finally:
        log.info("Closing worker resources...")
        consumer.close()
        producer.flush()
        await document_store.close()
        vector_store.close()
        log.info("Worker shut down gracefully.")


async def _setup_search_schema(drop: bool = False):
    pool = await get_db_pool()
    try:
        if drop:
            await drop_search_schema(pool)
        else:
            await ensure_search_schema(pool)
    finally:
        await close_db_pool()


def init_search_schema():
    """Instala columnas, trigger e indices de busqueda (idempotente). Con --drop los elimina."""
    parser = argparse.ArgumentParser(prog="docsearch-search-schema")
    parser.add_argument("--drop", action="store_true", help="Remove the search column, trigger and indexes.")
    args = parser.parse_args()
    try:
        asyncio.run(_setup_search_schema(drop=args.drop))
    except Exception as e:
        log.critical("Search schema setup failed", error=str(e), exc_info=True)
        sys.exit(1)


def main():
    """Punto de entrada del worker de indexacion."""
    try:
        asyncio.run(run_worker())
    except Exception as e:
        log.critical("Embedding worker terminated with a fatal error", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
