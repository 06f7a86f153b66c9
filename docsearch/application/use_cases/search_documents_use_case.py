# File: docsearch/application/use_cases/search_documents_use_case.py
import time
import structlog
from typing import List, Optional, Sequence

from docsearch.application.ports.search_port import SearchStoreError, SearchStrategyPort
from docsearch.core.config import settings
from docsearch.core.metrics import SEARCH_REQUESTS_TOTAL, SEARCH_DURATION_SECONDS
from docsearch.domain.models import SearchRequest, SearchResult, Suggestion
from docsearch.domain.query import preprocess_query
from docsearch.infrastructure.search.listing import DocumentListing

log = structlog.get_logger(__name__)

LISTING = "listing"


class SearchDocumentsUseCase:
    """
    Answers a search request with the first applicable strategy of the
    cascade, or with a plain filtered listing when the query is empty.

    With fail_fast (the default) the first applicable strategy decides the
    outcome: an empty result or a store error ends the cascade. Without it,
    the next applicable strategy is tried after an empty or failed result.
    """

    def __init__(
        self,
        strategies: Sequence[SearchStrategyPort],
        listing: DocumentListing,
        fail_fast: Optional[bool] = None,
    ):
        self.strategies = list(strategies)
        self.listing = listing
        self.fail_fast = settings.SEARCH_CASCADE_FAIL_FAST if fail_fast is None else fail_fast
        self.log = log.bind(component="SearchDocumentsUseCase", strategies=[s.name for s in self.strategies])

    def prepare(self, request: SearchRequest) -> SearchRequest:
        clean_query, tokens = preprocess_query(request.search)
        update = {"clean_query": clean_query, "tokens": tokens}
        # Relevance is undefined without a query.
        if not clean_query and request.sort_by == "relevance":
            update.update(sort_by="date", sort_dir="desc")
        return request.model_copy(update=update)

    async def execute(self, request: SearchRequest) -> SearchResult:
        request = self.prepare(request)
        req_log = self.log.bind(user_id=str(request.user_id), query=request.clean_query,
                                page=request.page, limit=request.limit)
        start_time = time.perf_counter()
        try:
            if not request.clean_query:
                try:
                    result = await self.listing.list_documents(request)
                except SearchStoreError:
                    SEARCH_REQUESTS_TOTAL.labels(strategy=LISTING, outcome="error").inc()
                    req_log.error("Document listing failed")
                    raise
                SEARCH_REQUESTS_TOTAL.labels(strategy=LISTING, outcome="hit" if result.total else "empty").inc()
                return result
            return await self._cascade(request, req_log)
        finally:
            SEARCH_DURATION_SECONDS.observe(time.perf_counter() - start_time)

    async def _cascade(self, request: SearchRequest, req_log) -> SearchResult:
        errored: Optional[SearchResult] = None
        for strategy in self.strategies:
            if not strategy.can_handle(request):
                continue
            strategy_log = req_log.bind(strategy=strategy.name)
            try:
                result = await strategy.search(request)
            except SearchStoreError as e:
                SEARCH_REQUESTS_TOTAL.labels(strategy=strategy.name, outcome="error").inc()
                strategy_log.error("Search strategy failed", error=str(e))
                result = SearchResult.empty(request.page, request.limit, strategy=strategy.name, error=str(e))
            else:
                if result.total > 0:
                    SEARCH_REQUESTS_TOTAL.labels(strategy=strategy.name, outcome="hit").inc()
                    strategy_log.info("Search strategy returned results", total=result.total)
                    return result
                SEARCH_REQUESTS_TOTAL.labels(strategy=strategy.name, outcome="empty").inc()
                strategy_log.info("Search strategy returned no results")

            if self.fail_fast:
                return result
            if result.failed and errored is None:
                errored = result

        # A failed query must not be reported as an empty one.
        if errored is not None:
            return errored
        return SearchResult.empty(request.page, request.limit)

    async def get_suggestions(self, request: SearchRequest, limit: int = 5) -> List[Suggestion]:
        clean_query, _ = preprocess_query(request.search)
        if not clean_query:
            return []
        return await self.listing.suggestions(request.user_id, clean_query, limit)
