# File: docsearch/application/ports/vector_store_port.py
import abc
from typing import List

from docsearch.domain.models import EmbeddingPoint


class VectorStoreError(Exception):
    """Raised when the vector index cannot be reached, created or written."""
    pass


class VectorStorePort(abc.ABC):
    """
    Abstract port for the vector index holding one point per chunk.
    """

    @abc.abstractmethod
    async def ensure_collection(self) -> None:
        """
        Verifies the target collection exists with the configured dimension and
        metric, creating it when absent. Safe to call repeatedly.

        Raises:
            VectorStoreError: If the collection exists with an incompatible schema
                or cannot be created.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def upsert(self, points: List[EmbeddingPoint]) -> int:
        """
        Upserts the points in a single call. Returns the number written.

        Raises:
            VectorStoreError: On any failure writing to the index.
        """
        raise NotImplementedError
