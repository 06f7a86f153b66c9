"""Pattern strategy and listing against a real PostgreSQL (temporary table)."""

from __future__ import annotations

import uuid

import pytest

from docsearch.domain.models import SearchRequest
from docsearch.domain.query import preprocess_query
from docsearch.infrastructure.persistence.postgres_client import PostgresQueryExecutor
from docsearch.infrastructure.search.listing import DocumentListing
from docsearch.infrastructure.search.pattern import PatternStrategy
from tests.integration.conftest import insert_document

pytestmark = pytest.mark.integration


@pytest.fixture
async def executor(pg_pool, user_id):
    async with pg_pool.acquire() as conn:
        await insert_document(conn, user_id, "Misc notes", description="invoice archive for Q1",
                              original_file_name="notes.txt")
        await insert_document(conn, user_id, "Invoice 2024 Summary", original_file_name="summary.pdf")
        await insert_document(conn, user_id, "Deleted invoice", original_file_name="gone.pdf", deleted=True)
        await insert_document(conn, user_id, "100% invoice", original_file_name="percent.pdf")
        await insert_document(conn, uuid.uuid4(), "Invoice of someone else")
    return PostgresQueryExecutor(pg_pool)


def _request(user_id, search: str, **kwargs) -> SearchRequest:
    clean_query, tokens = preprocess_query(search)
    return SearchRequest(user_id=user_id, search=search, clean_query=clean_query, tokens=tokens, **kwargs)


async def test_title_match_outranks_description_match(executor, user_id) -> None:
    result = await PatternStrategy(executor).search(_request(user_id, "invoice"))

    titles = [d.title for d in result.documents]
    assert result.total == 3
    assert "Deleted invoice" not in titles
    assert "Invoice of someone else" not in titles
    assert titles.index("Invoice 2024 Summary") < titles.index("Misc notes")
    scores = {d.title: d.score for d in result.documents}
    assert scores["Invoice 2024 Summary"] == 2
    assert scores["Misc notes"] == 1


async def test_percent_sign_matches_literally(executor, user_id) -> None:
    request = SearchRequest(user_id=user_id, search="100%", clean_query="100%", tokens=["100%"])
    result = await PatternStrategy(executor).search(request)
    assert [d.title for d in result.documents] == ["100% invoice"]


async def test_listing_filters_by_file_type(executor, user_id) -> None:
    result = await DocumentListing(executor).list_documents(
        SearchRequest(user_id=user_id, file_type="pdf", sort_by="title", sort_dir="asc")
    )
    assert [d.title for d in result.documents] == ["100% invoice", "Invoice 2024 Summary"]
    assert result.total == 2


async def test_two_token_query_prefers_title_hits(pg_pool, user_id) -> None:
    other_user = uuid.uuid4()
    async with pg_pool.acquire() as conn:
        await insert_document(conn, other_user, "Invoice 2024 Summary")
        await insert_document(conn, other_user, "Yearly papers", description="invoice for 2024")
    executor = PostgresQueryExecutor(pg_pool)

    result = await PatternStrategy(executor).search(_request(other_user, "invoice 2024"))

    assert [d.title for d in result.documents] == ["Invoice 2024 Summary", "Yearly papers"]
    assert result.documents[0].score == 4
    assert result.documents[1].score == 2
