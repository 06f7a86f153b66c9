# File: docsearch/application/ports/embedding_model_port.py
import abc
from typing import List, Dict, Any, Optional


class EmbeddingError(Exception):
    """Raised when a single text cannot be embedded."""
    pass


class IncompatibleModelError(Exception):
    """The model loaded but its vectors do not match the index dimension."""
    pass


class ModelLoadError(Exception):
    """Terminal failure: neither the requested model nor the task fallback could be loaded."""

    def __init__(self, task: str, model_name: str, fallback_model: Optional[str], last_error: Optional[BaseException] = None):
        self.task = task
        self.model_name = model_name
        self.fallback_model = fallback_model
        self.last_error = last_error
        super().__init__(
            f"Failed to load both specific model ({model_name}) and fallback model "
            f"({fallback_model or 'none configured'}) for task {task}. Last error: {last_error}"
        )


class EmbeddingModelPort(abc.ABC):
    """
    A loaded, ready-to-use embedding model handle.
    """

    @abc.abstractmethod
    async def embed(self, text: str) -> List[float]:
        """
        Embeds a single text with mean pooling and L2 normalization.

        Raises:
            EmbeddingError: If the model fails on this text.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def get_model_info(self) -> Dict[str, Any]:
        """Returns model_name, task and dimension."""
        raise NotImplementedError


class ModelLoaderPort(abc.ABC):
    """
    Blocking loader used by the model manager. Each method either returns a
    fully usable handle or raises; partial handles are never returned.
    """

    @abc.abstractmethod
    def load_local(self, task: str, model_name: str, local_path: str, options: Dict[str, Any]) -> EmbeddingModelPort:
        """Loads a model already persisted at local_path. Raises if it is missing or unreadable."""
        raise NotImplementedError

    @abc.abstractmethod
    def load_remote(self, task: str, model_name: str, local_path: str, options: Dict[str, Any]) -> EmbeddingModelPort:
        """Downloads model_name, persists it at local_path and returns the handle."""
        raise NotImplementedError
