"""Unit tests for the document store callbacks."""

from __future__ import annotations

import json

import httpx
import pytest
from tenacity import wait_none

from docsearch.domain.models import DocumentStatus
from docsearch.services.base_client import BaseServiceClient
from docsearch.services.clients.document_store_client import DocumentStoreClient

BASE_URL = "http://documents.test/api/v1"


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(BaseServiceClient._request.retry, "wait", wait_none())


def _client(handler) -> DocumentStoreClient:
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return DocumentStoreClient(base_url=BASE_URL, client=http)


async def test_status_update_is_a_patch_with_the_status_value() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    client = _client(handler)
    assert await client.update_status("doc-1", DocumentStatus.READY) is True
    await client.close()

    assert seen[0].method == "PATCH"
    assert seen[0].url.path == "/api/v1/internal/documents/doc-1/status"
    assert json.loads(seen[0].content) == {"status": "ready"}


async def test_extracted_text_is_sent_verbatim() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append((request.url.path, json.loads(request.content)))
        return httpx.Response(204)

    client = _client(handler)
    assert await client.save_extracted_text("doc-2", "línea uno\nlínea dos") is True

    assert bodies == [
        ("/api/v1/internal/documents/doc-2/extracted-text", {"extracted_text": "línea uno\nlínea dos"})
    ]


async def test_server_error_returns_false_without_retrying() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500, text="boom")

    client = _client(handler)
    assert await client.update_status("doc-1", DocumentStatus.FAILED) is False
    assert len(calls) == 1


async def test_network_errors_are_retried_then_reported_as_false() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    assert await client.update_status("doc-1", DocumentStatus.PROCESSING) is False
    assert len(calls) == 3


async def test_transient_network_error_recovers() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200)

    client = _client(handler)
    assert await client.update_status("doc-1", DocumentStatus.READY) is True
    assert len(attempts) == 2
