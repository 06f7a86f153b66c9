# File: docsearch/infrastructure/search/listing.py
import structlog
from typing import List

from docsearch.application.ports.search_port import QueryExecutorPort
from docsearch.domain.models import SearchRequest, SearchResult, Suggestion
from docsearch.infrastructure.search.sql_query import (
    DOCUMENTS_TABLE, SqlQuery, apply_filters, build_order_by, document_from_row
)

log = structlog.get_logger(__name__)

SUGGESTION_MIN_SIMILARITY = 0.1


class DocumentListing:
    """Filter, sort and paginate a user's documents when there is no query text."""

    def __init__(self, executor: QueryExecutorPort):
        self.executor = executor

    async def list_documents(self, request: SearchRequest) -> SearchResult:
        query = apply_filters(SqlQuery(request.user_id), request)
        total = int(await self.executor.fetchval(query.count_sql(), *query.params) or 0)
        order_by = build_order_by(request.sort_by, request.sort_dir)
        sql = query.page_sql(order_by, request.limit, request.offset)
        rows = await self.executor.fetch(sql, *query.params)
        documents = [document_from_row(r) for r in rows]
        log.debug("Listed documents", total=total, returned=len(documents), order_by=order_by)
        return SearchResult.build(documents, total, request.page, request.limit)

    async def suggestions(self, user_id, query_text: str, limit: int = 5) -> List[Suggestion]:
        sql = (
            f"SELECT title, MAX(similarity(title, $2)) AS score FROM {DOCUMENTS_TABLE} "
            f"WHERE user_id = $1 AND deleted_at IS NULL AND similarity(title, $2) > $3 "
            f"GROUP BY title ORDER BY score DESC, title LIMIT $4"
        )
        rows = await self.executor.fetch(sql, user_id, query_text, SUGGESTION_MIN_SIMILARITY, limit)
        return [Suggestion(title=r["title"], score=float(r["score"])) for r in rows]
