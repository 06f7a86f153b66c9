# File: docsearch/application/use_cases/embed_document_use_case.py
import time
import uuid
import structlog
from typing import List, Optional

from docsearch.core.config import settings
from docsearch.core.metrics import (
    CHUNKS_EMBEDDED_TOTAL,
    CHUNK_EMBEDDING_FAILURES_TOTAL,
    PROCESSING_ERRORS_TOTAL,
    VECTOR_UPSERTS_TOTAL,
    PROCESSING_DURATION_SECONDS,
)
from docsearch.domain.models import (
    Chunk, DocumentStatus, EmbeddingJob, EmbeddingPoint, IngestionOutcome
)
from docsearch.application.ports.chunking_port import ChunkingPort
from docsearch.application.ports.extraction_port import ExtractedText, ExtractionError
from docsearch.application.ports.embedding_model_port import EmbeddingModelPort
from docsearch.application.ports.vector_store_port import VectorStorePort, VectorStoreError
from docsearch.application.ports.storage_port import ObjectUnavailableError, StoragePort
from docsearch.application.ports.document_store_port import DocumentStorePort, EventPublisherPort
from docsearch.infrastructure.embedding_models.model_manager import ModelManager
from docsearch.infrastructure.extractors.composite_extractor_adapter import (
    CompositeExtractorAdapter, guess_content_type
)

log = structlog.get_logger(__name__)

# Namespace for deterministic point ids (uuid5 of "document_id:chunk_index").
POINT_ID_NAMESPACE = uuid.UUID("6f1c2a55-3a8e-4f0e-9a57-1f3f1b7c2d10")


class EmbedDocumentUseCase:
    """
    Turns one embedding job into vector points: resolve chunks (from the
    message or from object storage), embed them in fixed-size batches and
    upsert each batch into the vector index.
    """

    def __init__(
        self,
        extractor: CompositeExtractorAdapter,
        chunking_port: ChunkingPort,
        storage: StoragePort,
        model_manager: ModelManager,
        vector_store: VectorStorePort,
        document_store: Optional[DocumentStorePort] = None,
        event_publisher: Optional[EventPublisherPort] = None,
        batch_size: Optional[int] = None,
        deterministic_ids: Optional[bool] = None,
        summarization_enabled: Optional[bool] = None,
    ):
        self.extractor = extractor
        self.chunking_port = chunking_port
        self.storage = storage
        self.model_manager = model_manager
        self.vector_store = vector_store
        self.document_store = document_store
        self.event_publisher = event_publisher
        self.batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE
        self.deterministic_ids = settings.DETERMINISTIC_POINT_IDS if deterministic_ids is None else deterministic_ids
        self.summarization_enabled = (
            settings.SUMMARIZATION_ENABLED if summarization_enabled is None else summarization_enabled
        )
        self._collection_ready = False
        self.log = log.bind(component="EmbedDocumentUseCase")

    async def execute(self, job: EmbeddingJob) -> IngestionOutcome:
        use_case_log = self.log.bind(document_id=job.document_id, storage_path=job.storage_path)
        use_case_log.info("Starting document embedding")
        start_time = time.perf_counter()

        await self._report_status(job.document_id, DocumentStatus.PROCESSING)
        try:
            outcome = await self._run(job, use_case_log)
        except ObjectUnavailableError as e:
            # Redelivery cannot bring the object back; the job ends here.
            use_case_log.error("Source object unavailable; document marked failed", error=str(e))
            PROCESSING_ERRORS_TOTAL.labels(stage="storage").inc()
            await self._report_status(job.document_id, DocumentStatus.FAILED)
            return IngestionOutcome(document_id=job.document_id, error=str(e))
        except Exception as e:
            use_case_log.error("Document embedding failed", error=str(e), error_type=type(e).__name__)
            await self._report_status(job.document_id, DocumentStatus.FAILED)
            raise

        await self._report_status(job.document_id, DocumentStatus.READY)
        if self.summarization_enabled and self.event_publisher and outcome.chunks_total and outcome.extracted_text:
            self.event_publisher.publish_summarization_request(job.document_id, outcome.extracted_text)

        PROCESSING_DURATION_SECONDS.observe(time.perf_counter() - start_time)
        use_case_log.info("Document embedding finished",
                          chunks_total=outcome.chunks_total,
                          points_upserted=outcome.points_upserted,
                          chunks_failed=outcome.chunks_failed)
        return outcome

    async def _run(self, job: EmbeddingJob, use_case_log) -> IngestionOutcome:
        if job.chunks is not None:
            chunks = self._renumber(job.chunks)
        elif job.storage_path:
            chunks = await self._chunks_from_storage(job.document_id, job.storage_path, job.bucket_name, use_case_log)
        else:
            use_case_log.warning("Job has neither chunks nor storage_path")
            chunks = []

        extracted_text = "\n".join(c.text for c in chunks)
        outcome = IngestionOutcome(document_id=job.document_id, chunks_total=len(chunks), extracted_text=extracted_text)
        if not chunks:
            use_case_log.info("No text chunks to process")
            return outcome

        model = await self.model_manager.ensure_model(settings.EMBEDDING_TASK, settings.EMBEDDING_MODEL_NAME)
        await self._ensure_collection()

        num_batches = (len(chunks) + self.batch_size - 1) // self.batch_size
        for batch_number, start in enumerate(range(0, len(chunks), self.batch_size), start=1):
            batch = chunks[start:start + self.batch_size]
            use_case_log.debug(f"Processing batch {batch_number}/{num_batches}", batch_size=len(batch))
            points = await self._embed_batch(job.document_id, batch, model, use_case_log)
            outcome.chunks_failed += len(batch) - len(points)
            if not points:
                use_case_log.warning("Every chunk in batch failed; nothing to upsert", batch=batch_number)
                continue
            try:
                outcome.points_upserted += await self.vector_store.upsert(points)
            except VectorStoreError:
                VECTOR_UPSERTS_TOTAL.labels(status="failure").inc()
                raise
            VECTOR_UPSERTS_TOTAL.labels(status="success").inc()
        return outcome

    async def _chunks_from_storage(self, document_id: str, storage_path: str, bucket_name: Optional[str],
                                   use_case_log) -> List[Chunk]:
        content_type = guess_content_type(storage_path)
        if not self.extractor.supports(content_type):
            use_case_log.info("Unsupported file type for text extraction", content_type=content_type)
            return []

        # Transient storage errors propagate so the message is redelivered.
        file_bytes = await self.storage.download(storage_path, bucket_name)
        try:
            extracted, _ = self.extractor.extract_text(file_bytes, storage_path, content_type)
        except ExtractionError as e:
            use_case_log.warning("Extraction failed; treating document as having no text", error=str(e))
            return []

        chunks = self._chunk_extracted(extracted)
        if chunks and self.document_store:
            await self.document_store.save_extracted_text(document_id, "\n".join(c.text for c in chunks))
        return chunks

    def _chunk_extracted(self, extracted: ExtractedText) -> List[Chunk]:
        if isinstance(extracted, str):
            return self.chunking_port.chunk_text(extracted)
        chunks: List[Chunk] = []
        for page_number, page_text in extracted:
            chunks.extend(self.chunking_port.chunk_text(page_text, page_number=page_number, start_index=len(chunks)))
        return chunks

    @staticmethod
    def _renumber(chunks: List[Chunk]) -> List[Chunk]:
        return [
            c.model_copy(update={"chunk_index": i, "size": c.size or len(c.text)})
            for i, c in enumerate(chunks)
        ]

    def _point_id(self, document_id: str, chunk_index: int) -> str:
        if self.deterministic_ids:
            return str(uuid.uuid5(POINT_ID_NAMESPACE, f"{document_id}:{chunk_index}"))
        return str(uuid.uuid4())

    async def _embed_batch(self, document_id: str, batch: List[Chunk], model: EmbeddingModelPort,
                           use_case_log) -> List[EmbeddingPoint]:
        points: List[EmbeddingPoint] = []
        for chunk in batch:
            try:
                vector = await model.embed(chunk.text)
            except Exception as e:
                # One bad chunk never aborts the document.
                CHUNK_EMBEDDING_FAILURES_TOTAL.inc()
                use_case_log.warning("Failed to embed chunk; skipping", chunk_index=chunk.chunk_index, error=str(e))
                continue
            points.append(EmbeddingPoint(
                id=self._point_id(document_id, chunk.chunk_index),
                vector=vector,
                document_id=document_id,
                chunk_index=chunk.chunk_index,
                text=chunk.text,
                page_number=chunk.page_number,
                size=chunk.size,
            ))
            CHUNKS_EMBEDDED_TOTAL.inc()
        return points

    async def _ensure_collection(self):
        if not self._collection_ready:
            await self.vector_store.ensure_collection()
            self._collection_ready = True

    async def _report_status(self, document_id: str, status: DocumentStatus):
        if self.document_store:
            await self.document_store.update_status(document_id, status)
