import fitz  # PyMuPDF
import structlog
from typing import List, Tuple, Dict, Any

from docsearch.infrastructure.extractors.base_extractor import BaseExtractorAdapter

log = structlog.get_logger(__name__)

class PdfAdapter(BaseExtractorAdapter):
    """Extrae el texto de un PDF pagina por pagina con PyMuPDF."""

    SUPPORTED_CONTENT_TYPES = ["application/pdf"]

    def extract_text(
        self,
        file_bytes: bytes,
        filename: str,
        content_type: str
    ) -> Tuple[List[Tuple[int, str]], Dict[str, Any]]:
        self._check_content_type(content_type)

        pages_content: List[Tuple[int, str]] = []
        try:
            with fitz.open(stream=file_bytes, filetype="pdf") as doc:
                total_pages_in_doc = len(doc)
                log.info("PdfAdapter: Processing PDF document", filename=filename, num_pages_in_doc=total_pages_in_doc)
                for page_index, page in enumerate(doc):
                    page_number = page_index + 1
                    try:
                        # Text runs on a page are joined with single spaces.
                        page_text = " ".join(page.get_text("text").split())
                    except Exception as page_err:
                        # A broken page must not lose the rest of the document.
                        log.warning("PdfAdapter: Error extracting text from PDF page", filename=filename, page=page_number, error=str(page_err))
                        continue
                    if page_text:
                        pages_content.append((page_number, page_text))
                    else:
                        log.debug("PdfAdapter: Skipping empty page", page=page_number)
        except Exception as e:
            raise self._handle_extraction_error(e, filename, "PdfAdapter") from e

        log.info("PdfAdapter: PDF extraction successful", filename=filename,
                 pages_with_text=len(pages_content), total_doc_pages=total_pages_in_doc)
        return pages_content, {"total_pages_extracted": len(pages_content), "total_pages": total_pages_in_doc}
