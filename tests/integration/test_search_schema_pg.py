"""Search schema bootstrap and the full cascade against a real PostgreSQL."""

from __future__ import annotations

import pytest

from docsearch.dependencies import get_search_documents_use_case
from docsearch.domain.models import SearchRequest
from docsearch.infrastructure.persistence.postgres_client import PostgresQueryExecutor
from docsearch.infrastructure.persistence.search_schema import drop_search_schema, ensure_search_schema
from tests.integration.conftest import insert_document

pytestmark = pytest.mark.integration


@pytest.fixture
async def use_case(pg_pool, user_id):
    async with pg_pool.acquire() as conn:
        await insert_document(conn, user_id, "Annual budget report", tags="finance,2024")
        await insert_document(conn, user_id, "Holiday photos", description="Summer trip to the coast")
    # Run twice: the bootstrap must be idempotent.
    await ensure_search_schema(pg_pool, db_name="", threshold=0.2)
    await ensure_search_schema(pg_pool, db_name="", threshold=0.2)
    yield await get_search_documents_use_case(PostgresQueryExecutor(pg_pool))
    await drop_search_schema(pg_pool)


async def test_existing_rows_are_backfilled_and_found_by_exact_search(use_case, user_id) -> None:
    result = await use_case.execute(SearchRequest(user_id=user_id, search="budget report"))
    assert result.strategy == "exact_fts"
    assert [d.title for d in result.documents] == ["Annual budget report"]
    assert result.documents[0].score > 0


async def test_trigger_indexes_new_rows(use_case, pg_pool, user_id) -> None:
    async with pg_pool.acquire() as conn:
        await insert_document(conn, user_id, "Quarterly invoices")
    result = await use_case.execute(SearchRequest(user_id=user_id, search="invoices"))
    assert [d.title for d in result.documents] == ["Quarterly invoices"]


async def test_no_match_is_empty_not_failed(use_case, user_id) -> None:
    result = await use_case.execute(SearchRequest(user_id=user_id, search="zebra"))
    assert result.total == 0
    assert not result.failed
