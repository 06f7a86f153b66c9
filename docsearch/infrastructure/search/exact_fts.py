# File: docsearch/infrastructure/search/exact_fts.py
from docsearch.domain.models import SearchRequest, SearchResult
from docsearch.infrastructure.search.base_strategy import SqlSearchStrategy

MIN_QUERY_LENGTH = 3
MIN_TOKEN_LENGTH = 2


class ExactFTSStrategy(SqlSearchStrategy):
    """Every token must match the weighted search_vector (AND semantics)."""

    name = "exact_fts"

    def can_handle(self, request: SearchRequest) -> bool:
        return len(request.tokens) > 0 and len(request.clean_query) >= MIN_QUERY_LENGTH

    async def search(self, request: SearchRequest) -> SearchResult:
        parts = [t for t in request.tokens if len(t) >= MIN_TOKEN_LENGTH]
        if not parts:
            return self.empty(request)

        query = self.base_query(request)
        ts_param = query.param(" & ".join(parts))
        ts_query = f"websearch_to_tsquery('english', {ts_param})"
        query.where(f"search_vector @@ {ts_query}")

        total = await self.count(query)
        if total == 0:
            return self.empty(request)
        return await self.fetch_page(request, query, total, score_sql=f"ts_rank(search_vector, {ts_query})")
