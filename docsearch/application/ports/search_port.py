# File: docsearch/application/ports/search_port.py
import abc
from typing import Any, List, Mapping

from docsearch.domain.models import SearchRequest, SearchResult


class SearchStoreError(Exception):
    """Raised when the document store fails to answer a search or listing query."""
    pass


class QueryExecutorPort(abc.ABC):
    """
    Runs parameterized read-only SQL against the document store.
    Placeholders follow the $1, $2 ... convention.
    """

    @abc.abstractmethod
    async def fetch(self, sql: str, *args: Any) -> List[Mapping[str, Any]]:
        """Raises SearchStoreError on failure."""
        raise NotImplementedError

    @abc.abstractmethod
    async def fetchval(self, sql: str, *args: Any) -> Any:
        """Raises SearchStoreError on failure."""
        raise NotImplementedError


class SearchStrategyPort(abc.ABC):
    """
    A self-contained matching technique with its own applicability test and
    scoring rule. Strategies never mutate shared state.
    """

    name: str = "base"

    @abc.abstractmethod
    def can_handle(self, request: SearchRequest) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    async def search(self, request: SearchRequest) -> SearchResult:
        """
        Raises:
            SearchStoreError: If the underlying query fails.
        """
        raise NotImplementedError
