# File: docsearch/infrastructure/search/pattern.py
from docsearch.domain.models import SearchRequest, SearchResult
from docsearch.infrastructure.search.base_strategy import SqlSearchStrategy
from docsearch.infrastructure.search.sql_query import contains_pattern

MIN_TOKEN_LENGTH = 2

# Points awarded per token when it appears in the field.
FIELD_WEIGHTS = (
    ("title", 2),
    ("description", 1),
    ("tags", 1),
    ("original_file_name", 1),
)


class PatternStrategy(SqlSearchStrategy):
    """
    Last resort: every significant token must appear as a substring of at
    least one field. Ranked by a weighted count of field hits.
    """

    name = "pattern"

    def can_handle(self, request: SearchRequest) -> bool:
        return len(request.tokens) > 0

    async def search(self, request: SearchRequest) -> SearchResult:
        tokens = [t for t in request.tokens if len(t) >= MIN_TOKEN_LENGTH]
        if not tokens:
            return self.empty(request)

        query = self.base_query(request)
        score_terms = []
        for token in tokens:
            p = query.param(contains_pattern(token))
            query.where(" OR ".join(f"{field} ILIKE {p}" for field, _ in FIELD_WEIGHTS))
            score_terms.extend(
                f"(CASE WHEN {field} ILIKE {p} THEN {weight} ELSE 0 END)" for field, weight in FIELD_WEIGHTS
            )

        total = await self.count(query)
        if total == 0:
            return self.empty(request)
        return await self.fetch_page(request, query, total, score_sql="(" + " + ".join(score_terms) + ")")
