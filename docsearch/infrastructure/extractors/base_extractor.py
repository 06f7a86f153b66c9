import structlog
from typing import Sequence

from docsearch.application.ports.extraction_port import ExtractionPort, ExtractionError, UnsupportedContentTypeError

log = structlog.get_logger(__name__)


class BaseExtractorAdapter(ExtractionPort):
    """Comun a los adaptadores: validacion del content-type y errores uniformes."""

    SUPPORTED_CONTENT_TYPES: Sequence[str] = ()

    def _check_content_type(self, content_type: str):
        if content_type not in self.SUPPORTED_CONTENT_TYPES:
            raise UnsupportedContentTypeError(f"{type(self).__name__} does not support content type: {content_type}")

    def _handle_extraction_error(self, e: Exception, filename: str, adapter_name: str) -> ExtractionError:
        log.error(f"{adapter_name} extraction failed", filename=filename, error=str(e), exc_info=True)
        return ExtractionError(f"Error extracting with {adapter_name} for {filename}: {e}")
