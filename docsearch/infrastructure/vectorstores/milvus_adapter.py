# File: docsearch/infrastructure/vectorstores/milvus_adapter.py
import asyncio
import structlog
from typing import List, Optional

from pymilvus import (
    Collection, CollectionSchema, FieldSchema, DataType, connections,
    utility, MilvusException
)

from docsearch.application.ports.vector_store_port import VectorStorePort, VectorStoreError
from docsearch.domain.models import EmbeddingPoint
from docsearch.core.config import settings

log = structlog.get_logger(__name__)

# --- Milvus field names ---
PK_FIELD = "id"
VECTOR_FIELD = "vector"
DOCUMENT_ID_FIELD = "document_id"
CHUNK_INDEX_FIELD = "chunk_index"
TEXT_FIELD = "text"
PAGE_FIELD = "page_number"
SIZE_FIELD = "size"
TYPE_FIELD = "type"
CREATED_AT_FIELD = "created_at"

# Milvus INT64 fields are not nullable; chunks without a page are stored as -1.
NO_PAGE = -1


class MilvusVectorStoreAdapter(VectorStorePort):
    def __init__(
        self,
        collection_name: Optional[str] = None,
        dimension: Optional[int] = None,
        metric_type: Optional[str] = None,
        alias: str = "docsearch_indexing",
    ):
        self.collection_name = collection_name or settings.MILVUS_COLLECTION_NAME
        self.dimension = dimension or settings.EMBEDDING_DIMENSION
        self.metric_type = metric_type or settings.MILVUS_METRIC_TYPE
        self.alias = alias
        self._collection: Optional[Collection] = None
        self.log = log.bind(component="MilvusVectorStore", collection_name=self.collection_name, milvus_alias=alias)

    def _connect(self):
        if self.alias in connections.list_connections():
            return
        self.log.info("Connecting to Milvus...", uri=settings.MILVUS_URI)
        try:
            connections.connect(
                alias=self.alias,
                uri=settings.MILVUS_URI,
                timeout=settings.MILVUS_GRPC_TIMEOUT,
                token=settings.MILVUS_TOKEN.get_secret_value() if settings.MILVUS_TOKEN else None,
            )
        except MilvusException as e:
            self.log.error("Failed to connect to Milvus", error=str(e))
            raise VectorStoreError(f"Milvus connection failed: {e}") from e
        self.log.info("Connected to Milvus.")

    def _schema(self) -> CollectionSchema:
        fields = [
            FieldSchema(name=PK_FIELD, dtype=DataType.VARCHAR, max_length=64, is_primary=True),
            FieldSchema(name=VECTOR_FIELD, dtype=DataType.FLOAT_VECTOR, dim=self.dimension),
            FieldSchema(name=DOCUMENT_ID_FIELD, dtype=DataType.VARCHAR, max_length=64),
            FieldSchema(name=CHUNK_INDEX_FIELD, dtype=DataType.INT64),
            FieldSchema(name=TEXT_FIELD, dtype=DataType.VARCHAR, max_length=settings.MILVUS_TEXT_FIELD_MAX_LENGTH),
            FieldSchema(name=PAGE_FIELD, dtype=DataType.INT64),
            FieldSchema(name=SIZE_FIELD, dtype=DataType.INT64),
            FieldSchema(name=TYPE_FIELD, dtype=DataType.VARCHAR, max_length=32),
            FieldSchema(name=CREATED_AT_FIELD, dtype=DataType.VARCHAR, max_length=40),
        ]
        return CollectionSchema(fields, description="Document text chunks", enable_dynamic_field=False)

    def _create_collection(self) -> Collection:
        self.log.warning("Collection not found. Creating.", dimension=self.dimension, metric_type=self.metric_type)
        collection = Collection(
            name=self.collection_name, schema=self._schema(), using=self.alias, consistency_level="Strong"
        )
        index_params = dict(settings.MILVUS_INDEX_PARAMS, metric_type=self.metric_type)
        collection.create_index(field_name=VECTOR_FIELD, index_params=index_params, index_name=f"{VECTOR_FIELD}_idx")
        collection.create_index(field_name=DOCUMENT_ID_FIELD, index_name=f"{DOCUMENT_ID_FIELD}_idx")
        self.log.info("Collection and indexes created.")
        return collection

    def _verify_collection(self, collection: Collection):
        vector_fields = [f for f in collection.schema.fields if f.name == VECTOR_FIELD]
        if not vector_fields:
            raise VectorStoreError(f"Collection '{self.collection_name}' has no '{VECTOR_FIELD}' field.")
        actual_dim = int(vector_fields[0].params.get("dim", 0))
        if actual_dim != self.dimension:
            raise VectorStoreError(
                f"Collection '{self.collection_name}' has vector dimension {actual_dim}, expected {self.dimension}."
            )
        for index in collection.indexes:
            if index.field_name == VECTOR_FIELD:
                actual_metric = str(index.params.get("metric_type", "")).upper()
                if actual_metric and actual_metric != self.metric_type:
                    raise VectorStoreError(
                        f"Collection '{self.collection_name}' uses metric {actual_metric}, expected {self.metric_type}."
                    )
                break
        else:
            self.log.warning("Vector index missing on existing collection. Creating it.")
            index_params = dict(settings.MILVUS_INDEX_PARAMS, metric_type=self.metric_type)
            collection.create_index(field_name=VECTOR_FIELD, index_params=index_params, index_name=f"{VECTOR_FIELD}_idx")

    def _ensure_collection_sync(self) -> Collection:
        if self._collection is not None:
            return self._collection
        self._connect()
        try:
            if utility.has_collection(self.collection_name, using=self.alias):
                collection = Collection(name=self.collection_name, using=self.alias)
                self._verify_collection(collection)
                self.log.info("Using existing collection.")
            else:
                collection = self._create_collection()
            collection.load()
        except MilvusException as e:
            self.log.error("Failed during collection access/creation", error=str(e), exc_info=True)
            raise VectorStoreError(f"Milvus collection error: {e}") from e
        self._collection = collection
        return collection

    async def ensure_collection(self) -> None:
        await asyncio.to_thread(self._ensure_collection_sync)

    @staticmethod
    def _row(point: EmbeddingPoint) -> dict:
        row = point.payload()
        row[TEXT_FIELD] = row[TEXT_FIELD][:settings.MILVUS_TEXT_FIELD_MAX_LENGTH]
        if row[PAGE_FIELD] is None:
            row[PAGE_FIELD] = NO_PAGE
        row[PK_FIELD] = point.id
        row[VECTOR_FIELD] = point.vector
        return row

    def _upsert_sync(self, points: List[EmbeddingPoint]) -> int:
        collection = self._ensure_collection_sync()
        rows = [self._row(p) for p in points]
        try:
            result = collection.upsert(rows)
            collection.flush()
        except MilvusException as e:
            self.log.error("Milvus upsert failed", error=str(e), num_points=len(points))
            raise VectorStoreError(f"Milvus upsert failed: {e}") from e
        return int(getattr(result, "upsert_count", len(rows)))

    async def upsert(self, points: List[EmbeddingPoint]) -> int:
        if not points:
            return 0
        count = await asyncio.to_thread(self._upsert_sync, points)
        self.log.debug("Points upserted", count=count)
        return count

    def close(self):
        if self.alias in connections.list_connections():
            connections.disconnect(self.alias)
            self.log.info("Disconnected from Milvus.")
