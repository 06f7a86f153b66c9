# File: docsearch/services/clients/document_store_client.py
import httpx
import structlog
from typing import Optional

from tenacity import RetryError

from docsearch.application.ports.document_store_port import DocumentStorePort
from docsearch.core.config import settings
from docsearch.domain.models import DocumentStatus
from docsearch.services.base_client import BaseServiceClient

log = structlog.get_logger(__name__)


class DocumentStoreClient(BaseServiceClient, DocumentStorePort):
    """
    Callbacks into the document store's internal API. Every method returns
    False instead of raising, so a store outage never aborts ingestion.
    """

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        super().__init__(base_url or settings.DOCUMENT_STORE_BASE_URL, "DocumentStore", client=client)

    async def update_status(self, document_id: str, status: DocumentStatus) -> bool:
        return await self._patch(
            f"/internal/documents/{document_id}/status",
            {"status": DocumentStatus(status).value},
            document_id=document_id,
            action="update_status",
        )

    async def save_extracted_text(self, document_id: str, extracted_text: str) -> bool:
        return await self._patch(
            f"/internal/documents/{document_id}/extracted-text",
            {"extracted_text": extracted_text},
            document_id=document_id,
            action="save_extracted_text",
        )

    async def _patch(self, endpoint: str, body: dict, document_id: str, action: str) -> bool:
        call_log = log.bind(document_id=document_id, action=action)
        try:
            await self.patch(endpoint, body)
        except (httpx.HTTPError, RetryError) as e:
            call_log.error("Document store callback failed", error=str(e))
            return False
        call_log.info("Document store callback succeeded")
        return True
