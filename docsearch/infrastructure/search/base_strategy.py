# File: docsearch/infrastructure/search/base_strategy.py
import structlog
from typing import Optional

from docsearch.application.ports.search_port import QueryExecutorPort, SearchStrategyPort
from docsearch.domain.models import SearchRequest, SearchResult
from docsearch.infrastructure.search.sql_query import SqlQuery, apply_filters, document_from_row

log = structlog.get_logger(__name__)

RANK_ORDER = "search_score DESC, created_at DESC"


class SqlSearchStrategy(SearchStrategyPort):
    """Shared count-then-page execution for the SQL-backed strategies."""

    name = "sql"

    def __init__(self, executor: QueryExecutorPort):
        self.executor = executor
        self.log = log.bind(strategy=self.name)

    def base_query(self, request: SearchRequest) -> SqlQuery:
        return apply_filters(SqlQuery(request.user_id), request)

    async def count(self, query: SqlQuery) -> int:
        return int(await self.executor.fetchval(query.count_sql(), *query.params) or 0)

    async def fetch_page(self, request: SearchRequest, query: SqlQuery, total: int,
                         score_sql: Optional[str] = None, order_by: str = RANK_ORDER) -> SearchResult:
        sql = query.page_sql(order_by, request.limit, request.offset, score_sql=score_sql)
        rows = await self.executor.fetch(sql, *query.params)
        documents = [document_from_row(r) for r in rows]
        self.log.debug("Strategy matched documents", total=total, returned=len(documents))
        return SearchResult.build(documents, total, request.page, request.limit, strategy=self.name)

    def empty(self, request: SearchRequest) -> SearchResult:
        return SearchResult.empty(request.page, request.limit, strategy=self.name)
