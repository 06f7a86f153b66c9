# File: docsearch/application/ports/document_store_port.py
import abc

from docsearch.domain.models import DocumentStatus


class DocumentStorePort(abc.ABC):
    """
    Callbacks to the external document store. Failures are reported as False,
    never raised, so they cannot abort ingestion.
    """

    @abc.abstractmethod
    async def update_status(self, document_id: str, status: DocumentStatus) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    async def save_extracted_text(self, document_id: str, extracted_text: str) -> bool:
        raise NotImplementedError


class EventPublisherPort(abc.ABC):
    """Publishes follow-up events once a document is indexed."""

    @abc.abstractmethod
    def publish_summarization_request(self, document_id: str, extracted_text: str) -> None:
        raise NotImplementedError
