# File: docsearch/domain/models.py
import math
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

POINT_TYPE_TEXT_CHUNK = "text_chunk"


class DocumentStatus(str, Enum):
    """Estados de procesamiento de un documento."""
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class Document(BaseModel):
    """Documento tal como lo expone el almacen relacional."""
    id: uuid.UUID
    user_id: uuid.UUID
    title: str = ""
    description: str = ""
    file_name: str = ""
    original_file_name: str = ""
    file_size: int = 0
    file_type: str = ""
    mime_type: str = ""
    status: str = DocumentStatus.PENDING.value
    storage_path: Optional[str] = None
    storage_bucket: Optional[str] = None
    extracted_text: Optional[str] = None
    tags: str = Field("", description="Tags separados por coma.")
    view_count: int = 0
    download_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None
    score: Optional[float] = Field(None, description="Relevancia asignada por la estrategia que produjo el resultado.")

    @property
    def tag_list(self) -> List[str]:
        return [t.strip() for t in self.tags.split(",") if t.strip()]


class Chunk(BaseModel):
    """Fragmento de texto acotado, unidad de embedding."""
    text: str
    page_number: Optional[int] = None
    size: int = Field(0, ge=0, description="Longitud en caracteres; 0 si el productor no la informo.")
    chunk_index: int = Field(0, ge=0)


class EmbeddingPoint(BaseModel):
    """Vector mas metadatos, uno por chunk."""
    id: str
    vector: List[float]
    document_id: str
    chunk_index: int
    text: str
    page_number: Optional[int] = None
    size: int
    type: str = POINT_TYPE_TEXT_CHUNK
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def payload(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "chunk_index": self.chunk_index,
            "text": self.text,
            "page_number": self.page_number,
            "size": self.size,
            "type": self.type,
            "created_at": self.created_at.isoformat(),
        }


class EmbeddingJob(BaseModel):
    """Mensaje recibido en el topic document.text.embedding."""
    document_id: str = Field(..., min_length=1)
    storage_path: Optional[str] = None
    bucket_name: Optional[str] = None
    chunks: Optional[List[Chunk]] = None


class IngestionOutcome(BaseModel):
    document_id: str
    chunks_total: int = 0
    points_upserted: int = 0
    chunks_failed: int = 0
    extracted_text: Optional[str] = None
    error: Optional[str] = Field(None, description="Motivo por el que el documento quedo en FAILED sin reintento.")


class SearchRequest(BaseModel):
    """Peticion de busqueda, siempre acotada a un usuario."""
    user_id: uuid.UUID
    search: str = ""
    page: int = Field(1, ge=1)
    limit: int = Field(20, gt=0)
    file_type: Optional[str] = None
    status: Optional[str] = None
    tags: Optional[str] = Field(None, description="Substrings de tags separados por coma, combinados con AND.")
    sort_by: str = "date"
    sort_dir: str = "desc"

    # Rellenados por el preprocesador
    clean_query: str = ""
    tokens: List[str] = Field(default_factory=list)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def tag_filters(self) -> List[str]:
        if not self.tags:
            return []
        return [t.strip() for t in self.tags.split(",") if t.strip()]


def total_pages(total: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return math.ceil(total / limit)


class SearchResult(BaseModel):
    documents: List[Document] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = 0
    strategy: Optional[str] = None
    error: Optional[str] = Field(None, description="Mensaje cuando la estrategia fallo; distingue 'sin resultados' de 'consulta fallida'.")

    @classmethod
    def build(cls, documents: List[Document], total: int, page: int, limit: int,
              strategy: Optional[str] = None) -> "SearchResult":
        return cls(
            documents=documents[:limit],
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages(total, limit),
            strategy=strategy,
        )

    @classmethod
    def empty(cls, page: int, limit: int, strategy: Optional[str] = None,
              error: Optional[str] = None) -> "SearchResult":
        return cls(page=page, limit=limit, strategy=strategy, error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None


class Suggestion(BaseModel):
    title: str
    score: float
