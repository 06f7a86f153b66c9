# File: docsearch/infrastructure/chunkers/sentence_chunker_adapter.py
import re
import structlog
from typing import List, Optional

from docsearch.application.ports.chunking_port import ChunkingPort, ChunkingError
from docsearch.domain.models import Chunk
from docsearch.core.config import settings

log = structlog.get_logger(__name__)

# A sentence ends at terminal punctuation followed by whitespace, so tokens
# such as "3.14" or "report.pdf" stay whole. Each sentence keeps its
# punctuation: joining the chunks gives back the text modulo whitespace.
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


class SentenceChunkerAdapter(ChunkingPort):
    """
    Chunker por oraciones con limite de caracteres. Las oraciones se acumulan
    de forma greedy; un fragmento que supera el maximo se vuelve a dividir
    por palabras con la misma regla.
    """

    def __init__(self, max_chunk_size: Optional[int] = None):
        self.max_chunk_size = max_chunk_size or settings.CHUNK_MAX_SIZE
        if self.max_chunk_size <= 0:
            raise ChunkingError(f"Chunk size must be positive. Received: {self.max_chunk_size}")

    def _sentences(self, text_content: str) -> List[str]:
        sentences = []
        for raw in _SENTENCE_BOUNDARY.split(text_content):
            sentence = " ".join(raw.split())
            if sentence:
                sentences.append(sentence)
        return sentences

    def _split_words(self, fragment: str, emit) -> str:
        """Emits full word-chunks of fragment and returns the unfinished tail."""
        current = ""
        for word in fragment.split(" "):
            if current and len(current) + len(word) + 1 > self.max_chunk_size:
                emit(current)
                current = ""
            current = f"{current} {word}" if current else word
        return current

    def chunk_text(
        self,
        text_content: str,
        page_number: Optional[int] = None,
        start_index: int = 0
    ) -> List[Chunk]:
        if not text_content or text_content.isspace():
            log.debug("SentenceChunkerAdapter: Empty or whitespace-only text provided, returning no chunks.")
            return []

        chunks: List[Chunk] = []

        def emit(text: str):
            chunks.append(Chunk(
                text=text,
                page_number=page_number,
                size=len(text),
                chunk_index=start_index + len(chunks),
            ))

        current = ""
        for sentence in self._sentences(text_content):
            if current and len(current) + len(sentence) + 1 > self.max_chunk_size:
                emit(current)
                current = ""
            current = f"{current} {sentence}" if current else sentence

            if len(current) > self.max_chunk_size:
                current = self._split_words(current, emit)

        if current:
            emit(current)

        log.debug("SentenceChunkerAdapter: Text split into chunks",
                  text_length=len(text_content),
                  num_chunks=len(chunks),
                  page_number=page_number,
                  max_chunk_size=self.max_chunk_size)
        return chunks
