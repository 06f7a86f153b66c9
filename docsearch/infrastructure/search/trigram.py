# File: docsearch/infrastructure/search/trigram.py
from typing import Optional

from docsearch.application.ports.search_port import QueryExecutorPort
from docsearch.core.config import settings
from docsearch.domain.models import SearchRequest, SearchResult
from docsearch.infrastructure.search.base_strategy import SqlSearchStrategy

MIN_QUERY_LENGTH = 3
TRIGRAM_FIELDS = ("title", "description", "original_file_name")


class TrigramStrategy(SqlSearchStrategy):
    """
    pg_trgm similarity over title, description and file name. Tries the
    indexed % operator first and falls back to an explicit similarity
    threshold when the session threshold filters everything out.
    """

    name = "trigram"

    def __init__(self, executor: QueryExecutorPort, min_similarity: Optional[float] = None):
        super().__init__(executor)
        self.min_similarity = settings.SEARCH_TRIGRAM_MIN_SIMILARITY if min_similarity is None else min_similarity

    def can_handle(self, request: SearchRequest) -> bool:
        return len(request.clean_query) >= MIN_QUERY_LENGTH

    async def search(self, request: SearchRequest) -> SearchResult:
        query = self.base_query(request)
        q = query.param(request.clean_query)
        query.where(" OR ".join(f"{field} % {q}" for field in TRIGRAM_FIELDS))
        total = await self.count(query)

        if total == 0:
            query = self.base_query(request)
            q = query.param(request.clean_query)
            threshold = query.param(self.min_similarity)
            query.where(" OR ".join(f"similarity({field}, {q}) > {threshold}" for field in TRIGRAM_FIELDS))
            total = await self.count(query)
            if total == 0:
                return self.empty(request)
            self.log.debug("Trigram operator found nothing; used explicit similarity threshold", total=total)

        score_sql = "GREATEST({})".format(", ".join(f"similarity({field}, {q})" for field in TRIGRAM_FIELDS))
        return await self.fetch_page(request, query, total, score_sql=score_sql)
