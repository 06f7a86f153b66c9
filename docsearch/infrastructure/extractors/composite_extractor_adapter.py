# File: docsearch/infrastructure/extractors/composite_extractor_adapter.py
import mimetypes
from typing import Dict, Any, Tuple, Optional
import structlog

from docsearch.application.ports.extraction_port import (
    ExtractedText, ExtractionPort, UnsupportedContentTypeError, ExtractionError
)
from .base_extractor import BaseExtractorAdapter

log = structlog.get_logger(__name__)

# Only these extensions are indexed; everything else is a no-op upstream.
EXTENSION_CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".txt": "text/plain",
}


def guess_content_type(filename: str) -> Optional[str]:
    """Resuelve el content-type por extension; None si no se indexa."""
    lowered = filename.lower()
    for ext, content_type in EXTENSION_CONTENT_TYPES.items():
        if lowered.endswith(ext):
            return content_type
    content_type, _ = mimetypes.guess_type(lowered)
    return content_type


class CompositeExtractorAdapter(BaseExtractorAdapter):
    """
    Delega la extraccion al adaptador registrado para el content_type.
    """
    def __init__(self, extractors: Dict[str, ExtractionPort]):
        self.extractors = extractors
        self.log = log.bind(component="CompositeExtractorAdapter")
        self.log.info("Initialized with supported content types", types=list(extractors.keys()))

    def supports(self, content_type: Optional[str]) -> bool:
        if not content_type:
            return False
        return content_type.split(';')[0].strip().lower() in self.extractors

    def extract_text(
        self,
        file_bytes: bytes,
        filename: str,
        content_type: str
    ) -> Tuple[ExtractedText, Dict[str, Any]]:
        normalized_content_type = content_type.split(';')[0].strip().lower()
        extractor = self.extractors.get(normalized_content_type)
        if not extractor:
            self.log.warning("Unsupported content type for composite extraction", content_type=content_type)
            raise UnsupportedContentTypeError(f"No extractor registered for content type: {content_type}")

        self.log.debug("Delegating extraction", filename=filename, content_type=normalized_content_type,
                       extractor=type(extractor).__name__)
        try:
            return extractor.extract_text(file_bytes, filename, normalized_content_type)
        except ExtractionError:
            raise
        except Exception as e:
            raise self._handle_extraction_error(e, filename, f"CompositeAdapter -> {type(extractor).__name__}") from e
