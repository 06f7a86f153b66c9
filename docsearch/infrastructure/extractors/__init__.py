from .composite_extractor_adapter import CompositeExtractorAdapter, guess_content_type
from .pdf_adapter import PdfAdapter
from .txt_adapter import TxtAdapter

__all__ = [
    "CompositeExtractorAdapter",
    "guess_content_type",
    "PdfAdapter",
    "TxtAdapter",
]
