# File: docsearch/dependencies.py
from typing import Optional

from docsearch.application.ports.chunking_port import ChunkingPort
from docsearch.application.ports.document_store_port import DocumentStorePort, EventPublisherPort
from docsearch.application.ports.vector_store_port import VectorStorePort
from docsearch.application.use_cases.embed_document_use_case import EmbedDocumentUseCase
from docsearch.application.use_cases.search_documents_use_case import SearchDocumentsUseCase

from docsearch.infrastructure.chunkers.sentence_chunker_adapter import SentenceChunkerAdapter
from docsearch.infrastructure.embedding_models.model_manager import ModelManager
from docsearch.infrastructure.embedding_models.sentence_transformer_loader import SentenceTransformerLoader
from docsearch.infrastructure.extractors import CompositeExtractorAdapter, PdfAdapter, TxtAdapter
from docsearch.infrastructure.persistence.postgres_client import PostgresQueryExecutor, get_db_pool
from docsearch.infrastructure.search.exact_fts import ExactFTSStrategy
from docsearch.infrastructure.search.fuzzy_fts import FuzzyFTSStrategy
from docsearch.infrastructure.search.listing import DocumentListing
from docsearch.infrastructure.search.pattern import PatternStrategy
from docsearch.infrastructure.search.trigram import TrigramStrategy
from docsearch.infrastructure.vectorstores.milvus_adapter import MilvusVectorStoreAdapter
from docsearch.services.s3_client import S3Client

_model_manager: Optional[ModelManager] = None


def get_model_manager() -> ModelManager:
    """Una sola instancia por proceso: el cache de modelos es compartido."""
    global _model_manager
    if _model_manager is None:
        _model_manager = ModelManager(loader=SentenceTransformerLoader())
    return _model_manager


def get_extractor() -> CompositeExtractorAdapter:
    return CompositeExtractorAdapter(
        extractors={
            "application/pdf": PdfAdapter(),
            "text/plain": TxtAdapter(),
        }
    )


def get_embed_document_use_case(
    vector_store: Optional[VectorStorePort] = None,
    document_store: Optional[DocumentStorePort] = None,
    event_publisher: Optional[EventPublisherPort] = None,
) -> EmbedDocumentUseCase:
    """
    Construye el caso de uso de ingesta con sus adaptadores concretos.
    """
    chunking_adapter: ChunkingPort = SentenceChunkerAdapter()
    return EmbedDocumentUseCase(
        extractor=get_extractor(),
        chunking_port=chunking_adapter,
        storage=S3Client(),
        model_manager=get_model_manager(),
        vector_store=vector_store or MilvusVectorStoreAdapter(),
        document_store=document_store,
        event_publisher=event_publisher,
    )


async def get_search_documents_use_case(executor: Optional[PostgresQueryExecutor] = None) -> SearchDocumentsUseCase:
    """Cascada en orden fijo: exact, fuzzy, trigram, pattern."""
    if executor is None:
        executor = PostgresQueryExecutor(await get_db_pool())
    strategies = [
        ExactFTSStrategy(executor),
        FuzzyFTSStrategy(executor),
        TrigramStrategy(executor),
        PatternStrategy(executor),
    ]
    return SearchDocumentsUseCase(strategies=strategies, listing=DocumentListing(executor))
