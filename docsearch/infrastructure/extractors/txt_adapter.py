import structlog
from typing import Tuple, Dict, Any

from docsearch.application.ports.extraction_port import ExtractionError
from docsearch.infrastructure.extractors.base_extractor import BaseExtractorAdapter

log = structlog.get_logger(__name__)

class TxtAdapter(BaseExtractorAdapter):
    """Adaptador para archivos de texto plano."""

    SUPPORTED_CONTENT_TYPES = ["text/plain"]
    ENCODINGS = ("utf-8", "cp1252", "latin-1")

    def extract_text(
        self,
        file_bytes: bytes,
        filename: str,
        content_type: str
    ) -> Tuple[str, Dict[str, Any]]:
        self._check_content_type(content_type)

        for enc in self.ENCODINGS:
            try:
                text = file_bytes.decode(enc)
            except UnicodeDecodeError:
                log.debug(f"TxtAdapter: Failed to decode with {enc}, trying next.", filename=filename)
                continue
            log.info("TxtAdapter: TXT extraction successful", filename=filename, encoding=enc, length=len(text))
            return text, {"encoding_used": enc}

        raise ExtractionError(f"Could not decode TXT file {filename} with tried encodings.")
