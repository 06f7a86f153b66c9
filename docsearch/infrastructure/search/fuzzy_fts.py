# File: docsearch/infrastructure/search/fuzzy_fts.py
from docsearch.domain.models import SearchRequest, SearchResult
from docsearch.infrastructure.search.base_strategy import SqlSearchStrategy

MIN_QUERY_LENGTH = 3
MIN_PREFIX_LENGTH = 3


class FuzzyFTSStrategy(SqlSearchStrategy):
    """Prefix matching (token:*) against search_vector, any token may match."""

    name = "fuzzy_fts"

    def can_handle(self, request: SearchRequest) -> bool:
        return len(request.tokens) > 0 and len(request.clean_query) >= MIN_QUERY_LENGTH

    @staticmethod
    def _prefix_term(token: str) -> str:
        # to_tsquery has its own syntax; a quoted lexeme keeps apostrophes literal.
        return "'{}':*".format(token.replace("'", "''"))

    async def search(self, request: SearchRequest) -> SearchResult:
        parts = [self._prefix_term(t) for t in request.tokens if len(t) >= MIN_PREFIX_LENGTH]
        if not parts:
            return self.empty(request)

        query = self.base_query(request)
        ts_param = query.param(" | ".join(parts))
        ts_query = f"to_tsquery('english', {ts_param})"
        query.where(f"search_vector @@ {ts_query}")

        total = await self.count(query)
        if total == 0:
            return self.empty(request)
        return await self.fetch_page(request, query, total, score_sql=f"ts_rank(search_vector, {ts_query})")
