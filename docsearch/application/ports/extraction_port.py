import abc
from typing import Any, Dict, List, Tuple, Union

# Plain text for unpaginated formats, (page_number, page_text) pairs for paginated ones.
ExtractedText = Union[str, List[Tuple[int, str]]]


class ExtractionError(Exception):
    """The file could not be turned into text."""
    pass


class UnsupportedContentTypeError(ExtractionError):
    pass


class ExtractionPort(abc.ABC):
    """Turns the raw bytes of a stored document into text."""

    @abc.abstractmethod
    def extract_text(self, file_bytes: bytes, filename: str, content_type: str) -> Tuple[ExtractedText, Dict[str, Any]]:
        """
        Returns the extracted text and extraction metadata (pages, encoding...).

        Raises:
            UnsupportedContentTypeError: content_type is not handled by this adapter.
            ExtractionError: the content is corrupt or cannot be decoded.
        """
        raise NotImplementedError
