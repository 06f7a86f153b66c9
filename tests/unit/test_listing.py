"""Unit tests for the query-less listing path."""

from __future__ import annotations

from docsearch.domain.models import SearchRequest
from docsearch.infrastructure.search.listing import DocumentListing
from tests.unit.fakes import FakeExecutor, make_row


async def test_listing_applies_filters_sort_and_pagination(user_id) -> None:
    rows = [make_row(user_id, "alpha", tags="finance,2024")]
    executor = FakeExecutor(counts=[21], rows=rows)

    result = await DocumentListing(executor).list_documents(
        SearchRequest(user_id=user_id, status="ready", sort_by="title", sort_dir="asc", page=2, limit=10)
    )

    count_sql, count_args = executor.sql("fetchval")[0]
    assert count_sql.startswith("SELECT COUNT(*) FROM documents WHERE (user_id = $1)")
    assert count_args == (user_id, "ready")
    page_sql, page_args = executor.sql("fetch")[0]
    assert "search_score" not in page_sql
    assert "ORDER BY LOWER(title) ASC LIMIT $3 OFFSET $4" in page_sql
    assert page_args == (user_id, "ready", 10, 10)
    assert (result.total, result.total_pages, result.strategy) == (21, 3, None)
    assert result.documents[0].tag_list == ["finance", "2024"]


async def test_last_page_holds_the_remainder(user_id) -> None:
    """45 documents at 20 per page: three pages, the third with 5 documents."""
    rows = [make_row(user_id, f"doc {i}", minutes_ago=i) for i in range(5)]
    executor = FakeExecutor(counts=[45], rows=rows)

    result = await DocumentListing(executor).list_documents(SearchRequest(user_id=user_id, page=3, limit=20))

    _, page_args = executor.sql("fetch")[0]
    assert page_args[-2:] == (20, 40)
    assert (result.total, result.total_pages, result.page) == (45, 3, 3)
    assert len(result.documents) == 5


async def test_listing_of_an_empty_library(user_id) -> None:
    executor = FakeExecutor(counts=[0])
    result = await DocumentListing(executor).list_documents(SearchRequest(user_id=user_id))
    assert result.total == 0
    assert result.total_pages == 0
    assert result.documents == []
    assert not result.failed


async def test_null_text_columns_become_empty_strings(user_id) -> None:
    executor = FakeExecutor(counts=[1], rows=[make_row(user_id, title=None, description=None)])
    result = await DocumentListing(executor).list_documents(SearchRequest(user_id=user_id))
    document = result.documents[0]
    assert document.title == ""
    assert document.description == ""
    assert document.score is None


async def test_suggestions_are_scoped_to_the_user(user_id) -> None:
    executor = FakeExecutor(rows=[{"title": "Budget 2024", "score": 0.42}, {"title": "Budget", "score": 0.3}])

    suggestions = await DocumentListing(executor).suggestions(user_id, "budget", limit=2)

    sql, args = executor.sql("fetch")[0]
    assert "WHERE user_id = $1 AND deleted_at IS NULL" in sql
    assert args[0] == user_id
    assert [s.title for s in suggestions] == ["Budget 2024", "Budget"]
    assert suggestions[0].score == 0.42
